"""Session mode of the workout screen.

A screen is either editing a plan template, running a session, looking at
an ended session that is not saved yet, or editing a record opened from
history. Transitions are plain functions returning the new mode.
"""

from datetime import datetime, time
from typing import Literal, Optional, Union

from pydantic import BaseModel

from src.utils.errors import InvalidTransitionError


class PlanEditing(BaseModel):
    kind: Literal["plan_editing"] = "plan_editing"


class ActiveSession(BaseModel):
    kind: Literal["active"] = "active"
    start_time: datetime


class Ended(BaseModel):
    kind: Literal["ended"] = "ended"
    start_time: datetime
    end_time: datetime


class HistoricalEdit(BaseModel):
    kind: Literal["historical"] = "historical"
    record_id: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


SessionMode = Union[PlanEditing, ActiveSession, Ended, HistoricalEdit]


def _unknown(mode: object) -> TypeError:
    return TypeError(f"Unknown session mode: {mode!r}")


def initial_mode(from_history: bool, record_id: Optional[str] = None) -> SessionMode:
    if from_history:
        if not record_id:
            raise InvalidTransitionError("Opening from history requires a record id")
        return HistoricalEdit(record_id=record_id)
    return PlanEditing()


def start(mode: SessionMode, at: datetime) -> SessionMode:
    """Press of "Start Workout"."""
    if isinstance(mode, PlanEditing):
        return ActiveSession(start_time=at)
    if isinstance(mode, (ActiveSession, Ended)):
        return mode
    if isinstance(mode, HistoricalEdit):
        raise InvalidTransitionError("A finished workout cannot be started again")
    raise _unknown(mode)


def set_start_time(mode: SessionMode, at: datetime) -> SessionMode:
    """Edit of the start time picker. The first edit of a plan starts the session."""
    if isinstance(mode, (PlanEditing, ActiveSession)):
        return ActiveSession(start_time=at)
    if isinstance(mode, Ended):
        _check_order(at, mode.end_time)
        return Ended(start_time=at, end_time=mode.end_time)
    if isinstance(mode, HistoricalEdit):
        if mode.end_time is not None:
            _check_order(at, mode.end_time)
        return mode.model_copy(update={"start_time": at})
    raise _unknown(mode)


def end(mode: SessionMode, at: datetime) -> SessionMode:
    """Press of "End Workout"."""
    if isinstance(mode, (ActiveSession, Ended)):
        _check_order(mode.start_time, at)
        return Ended(start_time=mode.start_time, end_time=at)
    if isinstance(mode, PlanEditing):
        raise InvalidTransitionError("Workout has not been started")
    if isinstance(mode, HistoricalEdit):
        if mode.start_time is not None:
            _check_order(mode.start_time, at)
        return mode.model_copy(update={"end_time": at})
    raise _unknown(mode)


def _check_order(start_time: datetime, end_time: datetime) -> None:
    if end_time < start_time:
        raise InvalidTransitionError(
            f"End time {end_time.isoformat()} is before start time {start_time.isoformat()}"
        )


def is_session(mode: SessionMode) -> bool:
    """True when saving creates or updates a session record."""
    if isinstance(mode, (ActiveSession, Ended)):
        return True
    if isinstance(mode, (PlanEditing, HistoricalEdit)):
        return False
    raise _unknown(mode)


def is_in_flight(mode: SessionMode) -> bool:
    """Started but not ended."""
    return isinstance(mode, ActiveSession)


def describe(mode: SessionMode) -> str:
    if isinstance(mode, PlanEditing):
        return "Editing plan"
    if isinstance(mode, ActiveSession):
        return f"Workout running since {mode.start_time:%H:%M}"
    if isinstance(mode, Ended):
        return f"Workout {mode.start_time:%H:%M}-{mode.end_time:%H:%M}"
    if isinstance(mode, HistoricalEdit):
        return "Editing past workout"
    raise _unknown(mode)


def editable_start(mode: SessionMode) -> Optional[datetime]:
    """
    Start time for the minute-precision picker.

    None when there is no stored start to edit: a plan that has not been
    started, or a past record saved without a start time.
    """
    if isinstance(mode, (ActiveSession, Ended)):
        return mode.start_time.replace(second=0, microsecond=0)
    if isinstance(mode, HistoricalEdit):
        if mode.start_time is None:
            return None
        return mode.start_time.replace(second=0, microsecond=0)
    if isinstance(mode, PlanEditing):
        return None
    raise _unknown(mode)


def picked_start(mode: SessionMode, picked: time) -> Optional[datetime]:
    """New start time when the picker moved away from the shown minute, else None."""
    shown = editable_start(mode)
    if shown is None or picked == shown.time():
        return None
    return datetime.combine(shown.date(), picked)
