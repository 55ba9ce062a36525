"""Workout screen controller: working state, mode and persistence routing."""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, List, Literal, Optional

from pydantic import BaseModel

from src.memory.workout_repository import WorkoutRepository
from src.models.session import WorkingExercise, WorkingSet
from src.models.workout_plan import WorkoutPlanTemplate
from src.session import mode as modes
from src.session.history import ExerciseHistoryIndex
from src.session.mode import ActiveSession, Ended, HistoricalEdit, PlanEditing, SessionMode
from src.session.prefill import new_exercise, next_set, prefill_from_plan
from src.utils.errors import (
    DuplicateExerciseError,
    InvalidTransitionError,
    NotFoundError,
    SaveInProgressError,
    TrackerError,
)
from src.utils.exercise_catalog import is_duplicate
from src.utils.settings import TrackerSettings
from src.utils.storage_helpers import new_session_record, parse_reps, parse_weight

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class SaveOutcome(BaseModel):
    """What a save wrote."""

    target: Literal["plan", "session_created", "session_updated", "deleted", "noop"]
    record_id: Optional[str] = None
    plan_id: Optional[str] = None
    done: bool = False


class InFlightToken:
    """Single slot for the one save a screen may have outstanding.

    A second claim while the slot is taken fails immediately; nothing queues.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.holder: Optional[str] = None

    def try_claim(self, holder: str) -> bool:
        if not self._lock.acquire(blocking=False):
            return False
        self.holder = holder
        return True

    def release(self) -> None:
        self.holder = None
        self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()


def _weight_input(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    weight = parse_weight(value)
    if weight is None:
        raise ValueError(f"Invalid weight: {value!r}")
    return weight


def _reps_input(value: Any) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    reps = parse_reps(value)
    if reps is None:
        raise ValueError(f"Reps must be a non-negative whole number, got {value!r}")
    return reps


class WorkoutSessionReconciler:
    """
    State behind one workout screen.

    Holds the editable exercises, the session mode and the history index
    built at load time, and decides on save whether the plan template, a new
    session record or an existing historical record is written.
    """

    def __init__(
        self,
        repository: WorkoutRepository,
        auth,
        suggestions=None,
        settings: Optional[TrackerSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Args:
            repository: Persistence adapter for plans and session records
            auth: Session exposing ``current_user_id()``
            suggestions: Optional service with ``invalidate(user_id)``
            settings: Tracker settings, defaults when omitted
            clock: Source of "now" for start/end timestamps
        """
        self.repository = repository
        self.auth = auth
        self.suggestions = suggestions
        self.settings = settings or TrackerSettings()
        self.clock = clock

        self.mode: SessionMode = PlanEditing()
        self.plan: Optional[WorkoutPlanTemplate] = None
        self.index = ExerciseHistoryIndex()
        self.exercises: List[WorkingExercise] = []
        self.title = "Workout"
        self.notes = ""
        self.body_weight: Optional[float] = None

        self.user_id: Optional[str] = None
        self.session_record_id: Optional[str] = None
        self.saved = False
        self._in_flight = InFlightToken()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        plan_id: Optional[str] = None,
        record_id: Optional[str] = None,
        from_history: bool = False,
    ) -> None:
        """
        Load the screen for a plan, or for a past record when ``from_history``.

        Raises:
            AuthenticationError: user has to log in again
            NotFoundError: plan or record does not exist
        """
        self.user_id = self.auth.current_user_id()
        history = self.repository.fetch_session_dicts(
            self.user_id, limit=self.settings.history_window
        )
        self.index = ExerciseHistoryIndex.build(history)
        self.mode = modes.initial_mode(from_history, record_id)

        if from_history:
            record = self.repository.get_session(record_id)
            self.title = record.title
            self.notes = record.notes
            self.body_weight = record.body_weight
            self.exercises = [WorkingExercise.from_session_exercise(ex) for ex in record.exercises]
            self.mode = HistoricalEdit(
                record_id=record.record_id,
                start_time=record.start_time,
                end_time=record.end_time,
            )
        elif plan_id:
            self.plan = self.repository.get_plan(plan_id)
            self.title = self.plan.title
            self.exercises = prefill_from_plan(self.plan, self.index)
        else:
            self.exercises = []

        logger.info(
            f"Loaded workout screen ({modes.describe(self.mode)}) with "
            f"{len(self.exercises)} exercises, {len(self.index)} in history"
        )

    # ------------------------------------------------------------------
    # Working state
    # ------------------------------------------------------------------

    def get_exercise(self, exercise_id: str) -> WorkingExercise:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        raise NotFoundError(f"Exercise {exercise_id} not in workout")

    def _get_set(self, exercise: WorkingExercise, set_id: str) -> WorkingSet:
        for working_set in exercise.sets:
            if working_set.id == set_id:
                return working_set
        raise NotFoundError(f"Set {set_id} not in exercise {exercise.name}")

    def add_exercise(self, name: str, exercise_id: Optional[str] = None) -> WorkingExercise:
        """
        Append an exercise picked from search.

        Raises:
            DuplicateExerciseError: same name or id already in the workout; nothing changes
        """
        exercise = new_exercise(
            name, self.index, exercise_id=exercise_id, set_count=self.settings.default_set_count
        )
        taken_ids = {ex.id for ex in self.exercises}
        if is_duplicate(name, self.exercises) or exercise.id in taken_ids:
            logger.info(f"Rejected duplicate exercise {name} ({exercise.id})")
            raise DuplicateExerciseError(name.strip())

        self.exercises.append(exercise)
        return exercise

    def remove_exercise(self, exercise_id: str) -> None:
        exercise = self.get_exercise(exercise_id)
        self.exercises.remove(exercise)

    def move_exercise(self, dragged_id: str, target_id: str) -> None:
        """Move ``dragged_id`` to the position currently held by ``target_id``."""
        if dragged_id == target_id:
            return
        dragged = self.get_exercise(dragged_id)
        target_index = self.exercises.index(self.get_exercise(target_id))
        self.exercises.remove(dragged)
        self.exercises.insert(target_index, dragged)

    def add_set(self, exercise_id: str) -> WorkingSet:
        exercise = self.get_exercise(exercise_id)
        working_set = next_set(exercise, self.index)
        exercise.sets.append(working_set)
        return working_set

    def update_set(
        self,
        exercise_id: str,
        set_id: str,
        weight: Any = _UNSET,
        reps: Any = _UNSET,
        notes: Any = _UNSET,
    ) -> WorkingSet:
        """
        Change what the user typed into a set row.

        Weight and reps accept numbers or form strings; blank clears the field.

        Raises:
            ValueError: negative weight, or reps that are not a whole number
        """
        working_set = self._get_set(self.get_exercise(exercise_id), set_id)
        update = {}
        if weight is not _UNSET:
            update["weight"] = _weight_input(weight)
        if reps is not _UNSET:
            update["reps"] = _reps_input(reps)
        if notes is not _UNSET:
            update["notes"] = notes or ""
        for field, value in update.items():
            setattr(working_set, field, value)
        return working_set

    def toggle_set_kind(self, exercise_id: str, set_id: str) -> WorkingSet:
        working_set = self._get_set(self.get_exercise(exercise_id), set_id)
        working_set.kind = working_set.kind.next()
        return working_set

    def delete_set(self, exercise_id: str, set_id: str) -> None:
        exercise = self.get_exercise(exercise_id)
        exercise.sets.remove(self._get_set(exercise, set_id))

    def set_title(self, title: str) -> None:
        self.title = title.strip() or self.title

    def set_notes(self, notes: str) -> None:
        self.notes = notes

    def set_body_weight(self, value: Any) -> None:
        self.body_weight = _weight_input(value)

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start_workout(self, at: Optional[datetime] = None) -> SessionMode:
        self.mode = modes.start(self.mode, at or self.clock())
        logger.info(f"Workout started: {modes.describe(self.mode)}")
        return self.mode

    def set_start_time(self, at: datetime) -> SessionMode:
        self.mode = modes.set_start_time(self.mode, at)
        return self.mode

    def end_workout(self, at: Optional[datetime] = None) -> SessionMode:
        self.mode = modes.end(self.mode, at or self.clock())
        logger.info(f"Workout ended: {modes.describe(self.mode)}")
        return self.mode

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def save(self) -> SaveOutcome:
        """
        Explicit save.

        Raises:
            SaveInProgressError: another save of this screen is still running
            AuthenticationError, NotFoundError, PersistenceError: nothing was
                written and the working state is unchanged
        """
        if not self._in_flight.try_claim("save"):
            raise SaveInProgressError("Save already in progress")
        try:
            outcome = self._persist()
        finally:
            self._in_flight.release()

        self.saved = True
        return outcome

    def teardown(self) -> Optional[SaveOutcome]:
        """
        Screen is going away: store a running, unsaved workout as not done.

        Errors are logged and dropped since there is no screen left to show
        them; the token is released so a later explicit save can retry.
        """
        if self.saved or not modes.is_in_flight(self.mode) or not self.exercises:
            return None
        if not self._in_flight.try_claim("teardown"):
            logger.info("Save in progress, skipping auto-save on teardown")
            return None

        try:
            outcome = self._persist()
        except TrackerError as e:
            logger.error(f"Auto-save of unfinished workout failed: {e}", exc_info=True)
            return None
        finally:
            self._in_flight.release()

        self.saved = True
        logger.info(f"Auto-saved unfinished workout {outcome.record_id}")
        return outcome

    def delete(self) -> SaveOutcome:
        """
        Delete what the screen shows: the plan template, or the past record.

        Raises:
            InvalidTransitionError: a running or ended session, or an ad-hoc
                screen without a plan, has nothing stored to delete
            SaveInProgressError: a save of this screen is still running
        """
        if not self._in_flight.try_claim("delete"):
            raise SaveInProgressError("Save in progress, cannot delete")
        try:
            self.auth.current_user_id()
            mode = self.mode
            if isinstance(mode, HistoricalEdit):
                self.repository.delete_session(mode.record_id)
                outcome = SaveOutcome(target="deleted", record_id=mode.record_id)
            elif isinstance(mode, PlanEditing) and self.plan is not None:
                self.repository.delete_plan(self.plan.plan_id)
                outcome = SaveOutcome(target="deleted", plan_id=self.plan.plan_id)
            else:
                raise InvalidTransitionError(f"Nothing stored to delete ({modes.describe(mode)})")
        finally:
            self._in_flight.release()

        # Nothing left for teardown to auto-save.
        self.saved = True
        self.exercises = []
        logger.info(f"Deleted {outcome.record_id or outcome.plan_id}")
        return outcome

    def _persist(self) -> SaveOutcome:
        mode = self.mode
        if isinstance(mode, HistoricalEdit):
            return self._save_historical(mode)
        if isinstance(mode, PlanEditing):
            return self._save_plan()
        if isinstance(mode, (ActiveSession, Ended)):
            return self._save_session(mode)
        raise TypeError(f"Unknown session mode: {mode!r}")

    def _session_fields(self) -> dict:
        return {
            "title": self.title,
            "notes": self.notes,
            "body_weight": self.body_weight,
            "exercises": [ex.to_session_exercise() for ex in self.exercises],
        }

    def _save_plan(self) -> SaveOutcome:
        if self.plan is None:
            logger.info("Nothing to save: workout has no plan and was never started")
            return SaveOutcome(target="noop")

        self.auth.current_user_id()
        self.plan = self.repository.update_plan_exercises(self.plan.plan_id, self.exercises)
        return SaveOutcome(target="plan", plan_id=self.plan.plan_id)

    def _save_session(self, mode: SessionMode) -> SaveOutcome:
        user_id = self.auth.current_user_id()
        done = isinstance(mode, Ended)
        fields = self._session_fields()
        fields.update(
            start_time=mode.start_time,
            end_time=mode.end_time if isinstance(mode, Ended) else None,
            done=done,
        )

        if self.session_record_id is None:
            record = new_session_record(
                user_id,
                self.plan.plan_id if self.plan else None,
                date=mode.start_time,
                **fields,
            )
            self.repository.insert_session(record)
            self.session_record_id = record.record_id
            target = "session_created"
        else:
            existing = self.repository.get_session(self.session_record_id)
            record = existing.model_copy(update=fields)
            self.repository.update_session(record)
            target = "session_updated"

        if done:
            self._signal_completion(user_id)
        return SaveOutcome(
            target=target,
            record_id=record.record_id,
            plan_id=record.plan_id,
            done=done,
        )

    def _save_historical(self, mode: HistoricalEdit) -> SaveOutcome:
        user_id = self.auth.current_user_id()
        record = self.repository.get_session(mode.record_id)
        was_done = record.done

        fields = self._session_fields()
        fields.update(
            start_time=mode.start_time or record.start_time,
            end_time=mode.end_time or record.end_time,
            done=True,
        )
        updated = record.model_copy(update=fields)
        self.repository.update_session(updated)

        if not was_done:
            self._signal_completion(user_id)
        return SaveOutcome(
            target="session_updated",
            record_id=updated.record_id,
            plan_id=updated.plan_id,
            done=True,
        )

    def _signal_completion(self, user_id: str) -> None:
        """Best effort: a failing suggestion service never fails the save."""
        if self.suggestions is None:
            return
        try:
            self.suggestions.invalidate(user_id)
        except Exception as e:
            logger.warning(f"Failed to invalidate suggestions for {user_id}: {e}")
