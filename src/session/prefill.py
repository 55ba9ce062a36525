"""Building working sets with previous performance as placeholder hints."""

import time
import uuid
from typing import List, Optional

from src.models.session import WorkingExercise, WorkingSet
from src.models.workout_plan import WorkoutPlanTemplate
from src.session.history import ExerciseHistoryIndex, HistoryEntry
from src.utils.exercise_catalog import DEFAULT_SET_COUNT, find_exercise, infer_muscle_group


def set_from_history(position: int, entry: Optional[HistoryEntry]) -> WorkingSet:
    """
    Create a blank set, hinting the prior set logged at ``position``.

    Only the set kind is copied as a live value; weight, reps and notes of
    the prior set become placeholders and the actual fields stay empty.
    """
    if entry is None or position >= entry.set_count:
        return WorkingSet()

    prior = entry.exercise.set_details[position]
    return WorkingSet(
        kind=prior.kind,
        placeholder_weight=prior.weight,
        placeholder_reps=prior.reps,
        placeholder_notes=prior.notes,
    )


def build_working_sets(target_set_count: int, entry: Optional[HistoryEntry]) -> List[WorkingSet]:
    return [set_from_history(i, entry) for i in range(max(target_set_count, 1))]


def prefill_from_plan(
    plan: WorkoutPlanTemplate, index: ExerciseHistoryIndex
) -> List[WorkingExercise]:
    """Working exercises for a new session of ``plan``."""
    exercises = []
    for planned in plan.exercises:
        entry = index.resolve(planned.id, planned.name)
        exercises.append(
            WorkingExercise(
                id=planned.id,
                name=planned.name,
                muscle_group=planned.muscle_group,
                sets=build_working_sets(planned.sets, entry),
            )
        )
    return exercises


def next_set(exercise: WorkingExercise, index: ExerciseHistoryIndex) -> WorkingSet:
    """Set appended to ``exercise``, hinted from the prior set at the same position."""
    entry = index.resolve(exercise.id, exercise.name)
    return set_from_history(len(exercise.sets), entry)


def custom_exercise_id() -> str:
    return f"custom-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def new_exercise(
    name: str,
    index: ExerciseHistoryIndex,
    exercise_id: Optional[str] = None,
    set_count: int = DEFAULT_SET_COUNT,
) -> WorkingExercise:
    """
    Working exercise for a name picked from search.

    The catalog decides the identifier and muscle group; names missing from
    the catalog get a ``custom-<timestamp>-<suffix>`` id and an inferred muscle group.
    History is then resolved by that id first and by name second.
    """
    name = name.strip()
    match = find_exercise(name)
    if exercise_id is None:
        exercise_id = match.id if match else custom_exercise_id()
    muscle_group = match.muscle_group if match else infer_muscle_group(name)

    entry = index.resolve(exercise_id, name)
    return WorkingExercise(
        id=exercise_id,
        name=match.name if match else name,
        muscle_group=muscle_group,
        sets=build_working_sets(set_count, entry),
    )
