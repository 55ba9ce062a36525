"""Helpers turning stored JSON dictionaries into models."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.models.workout_log import CompletedSessionRecord, SessionExercise, SetDetail
from src.models.workout_plan import PlannedExercise, WorkoutPlanTemplate
from src.utils.errors import MalformedRecordError

logger = logging.getLogger(__name__)


def parse_weight(value: Any) -> Optional[float]:
    """Return a non-negative float or None for blank/unparseable input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        weight = float(value)
    except (TypeError, ValueError):
        return None
    return weight if weight >= 0 else None


def parse_reps(value: Any) -> Optional[int]:
    """Return a non-negative whole number or None."""
    weight = parse_weight(value)
    if weight is None or not weight.is_integer():
        return None
    return int(weight)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise ValueError(f"Unsupported datetime value: {value!r}")
    # Stored timestamps may carry an offset; everything in memory is local naive time.
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def _set_details_from_list(raw_sets: Any) -> List[SetDetail]:
    details = []
    if not isinstance(raw_sets, list):
        return details

    for position, raw in enumerate(raw_sets):
        if not isinstance(raw, dict):
            continue
        details.append(
            SetDetail(
                id=str(raw.get("id") or position + 1),
                weight=parse_weight(raw.get("weight")),
                reps=parse_reps(raw.get("reps")),
                kind=raw.get("kind") or raw.get("type") or "normal",
                notes=raw.get("notes") or None,
            )
        )
    return details


def create_session_exercise_from_dict(data: Dict[str, Any]) -> SessionExercise:
    return SessionExercise(
        id=str(data.get("id") or data.get("name", "")),
        name=data.get("name", "Unknown"),
        muscle_group=data.get("muscle_group"),
        set_details=_set_details_from_list(data.get("set_details", data.get("setDetails"))),
    )


def create_session_record_from_dict(data: Any) -> CompletedSessionRecord:
    """
    Build a session record from a stored dictionary.

    Args:
        data: Raw record as loaded from storage

    Returns:
        Parsed CompletedSessionRecord

    Raises:
        MalformedRecordError: if the record lacks an id, has an invalid date
            or its exercises are not a list of objects
    """
    if not isinstance(data, dict):
        raise MalformedRecordError(f"Record is not an object: {type(data).__name__}")

    record_id = data.get("record_id") or data.get("id")
    if not record_id:
        raise MalformedRecordError("Record has no id", details={"keys": sorted(data)})

    exercises_data = data.get("exercises")
    if not isinstance(exercises_data, list):
        raise MalformedRecordError(
            f"Record {record_id} has no exercise list", details={"record_id": record_id}
        )

    try:
        exercises = [
            create_session_exercise_from_dict(ex)
            for ex in exercises_data
            if isinstance(ex, dict)
        ]
        date = parse_datetime(data.get("date")) or parse_datetime(data.get("created_at"))
        if date is None:
            raise ValueError("missing date")

        return CompletedSessionRecord(
            record_id=str(record_id),
            user_id=data.get("user_id", ""),
            plan_id=data.get("plan_id"),
            title=data.get("title") or "Workout",
            date=date,
            start_time=parse_datetime(data.get("start_time")),
            end_time=parse_datetime(data.get("end_time")),
            notes=data.get("notes") or "",
            body_weight=parse_weight(data.get("body_weight")),
            exercises=exercises,
            done=bool(data.get("done", False)),
            created_at=parse_datetime(data.get("created_at")) or date,
        )
    except (ValidationError, ValueError, TypeError) as e:
        raise MalformedRecordError(
            f"Record {record_id} could not be parsed: {e}", details={"record_id": record_id}
        ) from e


def create_workout_plan_from_dict(data: Any) -> WorkoutPlanTemplate:
    """Build a plan template, skipping exercise entries that do not parse."""
    if not isinstance(data, dict) or not (data.get("plan_id") or data.get("id")):
        raise MalformedRecordError("Plan has no id")

    exercises = []
    exercises_data = data.get("exercises", [])
    if isinstance(exercises_data, list):
        for ex in exercises_data:
            if not isinstance(ex, dict):
                continue
            try:
                exercises.append(
                    PlannedExercise(
                        id=str(ex.get("id") or ex.get("name", "")),
                        name=ex.get("name", "Unknown"),
                        sets=parse_reps(ex.get("sets")) or 0,
                        muscle_group=ex.get("muscle_group"),
                    )
                )
            except ValidationError:
                logger.warning(f"Skipping invalid planned exercise: {ex}")
                continue

    try:
        return WorkoutPlanTemplate(
            plan_id=str(data.get("plan_id") or data.get("id")),
            user_id=data.get("user_id", ""),
            title=data.get("title") or "Workout",
            description=data.get("description"),
            workout_type=data.get("workout_type") or "custom",
            day_of_week=data.get("day_of_week"),
            exercises=exercises,
            created_at=parse_datetime(data.get("created_at")) or datetime.now(),
        )
    except (ValidationError, ValueError) as e:
        raise MalformedRecordError(f"Plan could not be parsed: {e}") from e


def new_session_record(
    user_id: str,
    plan_id: Optional[str],
    title: str,
    **fields: Any,
) -> CompletedSessionRecord:
    """Create a fresh session record with a new UUID."""
    now = datetime.now()
    return CompletedSessionRecord(
        record_id=str(uuid.uuid4()),
        user_id=user_id,
        plan_id=plan_id,
        title=title,
        date=fields.pop("date", None) or now,
        created_at=now,
        **fields,
    )
