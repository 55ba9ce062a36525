"""Reading and writing plans and session records."""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from src.models.session import WorkingExercise
from src.models.workout_log import CompletedSessionRecord
from src.models.workout_plan import WorkoutPlanTemplate
from src.utils.errors import (
    AuthenticationError,
    MalformedRecordError,
    NotFoundError,
    PersistenceError,
)
from src.utils.storage_helpers import (
    create_session_record_from_dict,
    create_workout_plan_from_dict,
)

logger = logging.getLogger(__name__)

PLANS_TABLE = "workout_plans"
SESSIONS_TABLE = "workouts"


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Map Drive API failures to tracker errors."""
    try:
        yield
    except HttpError as e:
        status = getattr(e.resp, "status", None)
        if status in (401, 403):
            raise AuthenticationError(f"{action}: not authorized ({status})") from e
        if status == 404:
            raise NotFoundError(f"{action}: not found") from e
        raise PersistenceError(f"{action} failed: {e}") from e
    except RefreshError as e:
        raise AuthenticationError(f"{action}: credentials could not be refreshed") from e
    except (TransportError, httplib2.HttpLib2Error, OSError, ValueError) as e:
        raise PersistenceError(f"{action} failed: {e}") from e


def _filename(record_id: str) -> str:
    return f"{record_id}.json"


class WorkoutRepository:
    """Persistence adapter for the ``workout_plans`` and ``workouts`` tables."""

    def __init__(self, storage) -> None:
        """
        Args:
            storage: GoogleDriveStorage or anything with the same JSON document API
        """
        self.storage = storage

    # ------------------------------------------------------------------
    # Session records
    # ------------------------------------------------------------------

    def fetch_session_dicts(self, user_id: str, limit: Optional[int] = None) -> List[dict]:
        """Raw stored session records of ``user_id``, newest first."""
        with store_errors("Loading workouts"):
            documents = self.storage.load_all_json(SESSIONS_TABLE, limit=limit)
        return [
            doc for doc in documents
            if not isinstance(doc, dict) or doc.get("user_id") in (None, user_id)
        ]

    def fetch_sessions_by_user(
        self, user_id: str, limit: Optional[int] = None
    ) -> List[CompletedSessionRecord]:
        records = []
        for doc in self.fetch_session_dicts(user_id, limit=limit):
            try:
                records.append(create_session_record_from_dict(doc))
            except MalformedRecordError as e:
                logger.warning(f"Skipping malformed workout record: {e}")
        return records

    def get_session(self, record_id: str) -> CompletedSessionRecord:
        with store_errors(f"Loading workout {record_id}"):
            data = self.storage.load_json(_filename(record_id), subfolder=SESSIONS_TABLE)
        if data is None:
            raise NotFoundError(f"Workout {record_id} not found", details={"record_id": record_id})
        return create_session_record_from_dict(data)

    def insert_session(self, record: CompletedSessionRecord) -> CompletedSessionRecord:
        with store_errors(f"Creating workout {record.record_id}"):
            self.storage.save_json(
                _filename(record.record_id),
                record.model_dump(mode="json"),
                subfolder=SESSIONS_TABLE,
            )
        logger.info(f"Created workout {record.record_id} (done={record.done})")
        return record

    def update_session(self, record: CompletedSessionRecord) -> CompletedSessionRecord:
        with store_errors(f"Updating workout {record.record_id}"):
            existing = self.storage.load_json(_filename(record.record_id), subfolder=SESSIONS_TABLE)
            if existing is None:
                raise NotFoundError(
                    f"Workout {record.record_id} not found",
                    details={"record_id": record.record_id},
                )
            self.storage.save_json(
                _filename(record.record_id),
                record.model_dump(mode="json"),
                subfolder=SESSIONS_TABLE,
            )
        logger.info(f"Updated workout {record.record_id} (done={record.done})")
        return record

    def delete_session(self, record_id: str) -> bool:
        with store_errors(f"Deleting workout {record_id}"):
            return self.storage.delete_file(_filename(record_id), subfolder=SESSIONS_TABLE)

    # ------------------------------------------------------------------
    # Plan templates
    # ------------------------------------------------------------------

    def fetch_plans_by_user(self, user_id: str) -> List[WorkoutPlanTemplate]:
        with store_errors("Loading plans"):
            documents = self.storage.load_all_json(PLANS_TABLE)
        plans = []
        for doc in documents:
            try:
                plan = create_workout_plan_from_dict(doc)
            except MalformedRecordError as e:
                logger.warning(f"Skipping malformed plan: {e}")
                continue
            if plan.user_id in ("", user_id):
                plans.append(plan)
        return plans

    def get_plan(self, plan_id: str) -> WorkoutPlanTemplate:
        with store_errors(f"Loading plan {plan_id}"):
            data = self.storage.load_json(_filename(plan_id), subfolder=PLANS_TABLE)
        if data is None:
            raise NotFoundError(f"Plan {plan_id} not found", details={"plan_id": plan_id})
        return create_workout_plan_from_dict(data)

    def save_plan(self, plan: WorkoutPlanTemplate) -> WorkoutPlanTemplate:
        with store_errors(f"Saving plan {plan.plan_id}"):
            self.storage.save_json(
                _filename(plan.plan_id), plan.model_dump(mode="json"), subfolder=PLANS_TABLE
            )
        return plan

    def delete_plan(self, plan_id: str) -> bool:
        """Remove a plan template. Session records logged from it are kept."""
        with store_errors(f"Deleting plan {plan_id}"):
            deleted = self.storage.delete_file(_filename(plan_id), subfolder=PLANS_TABLE)
        logger.info(f"Deleted plan {plan_id}: {deleted}")
        return deleted

    def update_plan_exercises(
        self, plan_id: str, exercises: List[WorkingExercise]
    ) -> WorkoutPlanTemplate:
        """Rewrite the exercise list and target set counts of a plan, nothing else."""
        plan = self.get_plan(plan_id)
        updated = plan.model_copy(
            update={"exercises": [ex.to_planned_exercise() for ex in exercises]}
        )
        self.save_plan(updated)
        logger.info(f"Updated plan {plan_id} with {len(exercises)} exercises")
        return updated
