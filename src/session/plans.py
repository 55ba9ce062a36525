"""Creating plan templates, one at a time or from a weekly split."""

import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from src.models.workout_plan import PlannedExercise, WorkoutPlanTemplate, WorkoutType
from src.session.prefill import custom_exercise_id
from src.utils.errors import DuplicateExerciseError
from src.utils.exercise_catalog import DEFAULT_SET_COUNT, find_exercise, infer_muscle_group, normalize_name

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
REST_DAY = "Rest"


def planned_exercise(name: str, sets: int = DEFAULT_SET_COUNT) -> PlannedExercise:
    """Planned exercise for a searched name, with the catalog id when there is one."""
    name = name.strip()
    match = find_exercise(name)
    return PlannedExercise(
        id=match.id if match else custom_exercise_id(),
        name=match.name if match else name,
        sets=sets,
        muscle_group=match.muscle_group if match else infer_muscle_group(name),
    )


def available_split_days(plans: Iterable[WorkoutPlanTemplate]) -> List[str]:
    """Weekdays that do not have a split plan yet."""
    taken = {p.day_of_week for p in plans if p.workout_type == WorkoutType.SPLIT}
    return [day for day in DAYS_OF_WEEK if day not in taken]


def build_plan(
    user_id: str,
    title: str,
    exercise_names: Iterable[str] = (),
    workout_type: WorkoutType = WorkoutType.CUSTOM,
    day_of_week: Optional[str] = None,
    description: Optional[str] = None,
    existing: Iterable[WorkoutPlanTemplate] = (),
) -> WorkoutPlanTemplate:
    """
    Build a new plan template from the create-plan form.

    Args:
        user_id: Owner of the plan
        title: Plan title, must not be blank
        exercise_names: Names picked from search, in order
        workout_type: ``split`` plans are bound to a weekday, ``custom`` ones are not
        day_of_week: Weekday of a split plan
        description: Optional free text
        existing: The user's current plans, to keep one split plan per weekday

    Raises:
        ValueError: blank title, or a missing, unknown or taken weekday
        DuplicateExerciseError: the same exercise was picked twice
    """
    title = title.strip()
    if not title:
        raise ValueError("Plan title is required")

    workout_type = WorkoutType(workout_type)
    if workout_type == WorkoutType.SPLIT:
        if day_of_week not in DAYS_OF_WEEK:
            raise ValueError(f"Split plans need a weekday, got {day_of_week!r}")
        if day_of_week not in available_split_days(existing):
            raise ValueError(f"There is already a split plan for {day_of_week}")
    else:
        day_of_week = None

    exercises: List[PlannedExercise] = []
    seen = set()
    for name in exercise_names:
        if normalize_name(name) in seen:
            raise DuplicateExerciseError(name.strip())
        seen.add(normalize_name(name))
        exercises.append(planned_exercise(name))

    return WorkoutPlanTemplate(
        plan_id=str(uuid.uuid4()),
        user_id=user_id,
        title=title,
        description=description or None,
        workout_type=workout_type,
        day_of_week=day_of_week,
        exercises=exercises,
        created_at=datetime.now(),
    )


def plans_from_schedule(
    user_id: str,
    schedule: Dict[str, str],
    existing: Iterable[WorkoutPlanTemplate] = (),
) -> List[WorkoutPlanTemplate]:
    """
    One empty split plan per training day of a weekly schedule.

    ``schedule`` maps weekday to workout name, e.g. ``{"Monday": "Push"}``;
    rest days are skipped. Titles read ``"Monday - Push"``.

    Raises:
        ValueError: a training day already has a split plan in ``existing``
    """
    existing = list(existing)
    plans: List[WorkoutPlanTemplate] = []
    for day in DAYS_OF_WEEK:
        workout = (schedule.get(day) or REST_DAY).strip()
        if workout.lower() == REST_DAY.lower():
            continue
        plans.append(build_plan(
            user_id,
            f"{day} - {workout}",
            workout_type=WorkoutType.SPLIT,
            day_of_week=day,
            existing=existing + plans,
        ))
    logger.info(f"Generated {len(plans)} split plans from schedule")
    return plans
