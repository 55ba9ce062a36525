"""Tests for WorkoutRepository over the in-memory store."""

from unittest.mock import Mock

import httplib2
import pytest
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from src.memory.workout_repository import PLANS_TABLE, SESSIONS_TABLE, store_errors
from src.models.session import WorkingExercise, WorkingSet
from src.utils.errors import AuthenticationError, NotFoundError, PersistenceError
from src.utils.storage_helpers import new_session_record
from tests.conftest import USER_ID, make_session_dict


def _http_error(status):
    return HttpError(Mock(status=status, reason="error"), b"{}")


class TestStoreErrors:
    @pytest.mark.parametrize(
        "status,expected",
        [(401, AuthenticationError), (403, AuthenticationError), (404, NotFoundError), (500, PersistenceError)],
    )
    def test_maps_http_status(self, status, expected):
        with pytest.raises(expected):
            with store_errors("Saving"):
                raise _http_error(status)

    def test_maps_io_errors(self):
        with pytest.raises(PersistenceError):
            with store_errors("Saving"):
                raise OSError("socket closed")

    def test_refresh_failure_is_auth_error(self):
        with pytest.raises(AuthenticationError):
            with store_errors("Saving"):
                raise RefreshError("invalid_grant: Token has been expired or revoked.")

    @pytest.mark.parametrize(
        "error",
        [TransportError("connection aborted"), httplib2.ServerNotFoundError("www.googleapis.com")],
    )
    def test_maps_transport_errors(self, error):
        with pytest.raises(PersistenceError):
            with store_errors("Saving"):
                raise error


class TestSessions:
    def test_insert_and_get(self, repository):
        record = new_session_record(USER_ID, "plan-push", "Push", done=True)

        repository.insert_session(record)

        loaded = repository.get_session(record.record_id)
        assert loaded.record_id == record.record_id
        assert loaded.done is True
        assert loaded.date == record.date

    def test_get_missing(self, repository):
        with pytest.raises(NotFoundError):
            repository.get_session("nope")

    def test_update_missing(self, repository):
        """Updates never create records."""
        record = new_session_record(USER_ID, None, "Push")

        with pytest.raises(NotFoundError):
            repository.update_session(record)

        assert repository.storage.documents(SESSIONS_TABLE) == []

    def test_fetch_filters_by_user(self, repository, storage):
        storage.put(SESSIONS_TABLE, "a", make_session_dict("a", "2025-03-01T10:00:00", []))
        storage.put(
            SESSIONS_TABLE, "b",
            make_session_dict("b", "2025-03-02T10:00:00", [], user_id="other@example.com"),
        )

        records = repository.fetch_sessions_by_user(USER_ID)

        assert [r.record_id for r in records] == ["a"]

    def test_fetch_skips_malformed(self, repository, storage):
        storage.put(SESSIONS_TABLE, "a", make_session_dict("a", "2025-03-01T10:00:00", []))
        storage.put(SESSIONS_TABLE, "bad", {"user_id": USER_ID})

        assert len(repository.fetch_session_dicts(USER_ID)) == 2
        assert [r.record_id for r in repository.fetch_sessions_by_user(USER_ID)] == ["a"]

    def test_delete(self, repository):
        record = repository.insert_session(new_session_record(USER_ID, None, "Push"))

        assert repository.delete_session(record.record_id) is True
        assert repository.delete_session(record.record_id) is False


class TestPlans:
    def test_update_plan_exercises(self, repository, push_plan):
        """Only the exercise list and set counts change."""
        exercises = [
            WorkingExercise(id="legs5", name="Leg Press", muscle_group="legs", sets=[WorkingSet(), WorkingSet()]),
        ]

        updated = repository.update_plan_exercises("plan-push", exercises)

        stored = repository.storage.load_json("plan-push.json", subfolder=PLANS_TABLE)
        assert updated.title == "Monday - Push"
        assert stored["day_of_week"] == "Monday"
        assert stored["exercises"] == [
            {"id": "legs5", "name": "Leg Press", "sets": 2, "muscle_group": "legs"}
        ]

    def test_fetch_plans_by_user(self, repository, storage, push_plan):
        storage.put(PLANS_TABLE, "theirs", dict(push_plan, plan_id="theirs", user_id="other@example.com"))

        assert [p.plan_id for p in repository.fetch_plans_by_user(USER_ID)] == ["plan-push"]

    def test_get_missing_plan(self, repository):
        with pytest.raises(NotFoundError):
            repository.get_plan("nope")

    def test_delete_plan(self, repository, storage, push_plan, bench_history):
        """Deleting a plan leaves the sessions logged from it."""
        assert repository.delete_plan("plan-push") is True
        assert repository.delete_plan("plan-push") is False

        assert storage.documents(PLANS_TABLE) == []
        assert len(storage.documents(SESSIONS_TABLE)) == 1
