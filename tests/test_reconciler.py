"""Tests for the workout screen reconciler."""

from datetime import datetime
from unittest.mock import Mock

import httplib2
import pytest
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from src.memory.workout_repository import PLANS_TABLE, SESSIONS_TABLE, WorkoutRepository
from src.models.workout_log import SetKind
from src.session.mode import ActiveSession, Ended, HistoricalEdit, PlanEditing
from src.session.reconciler import InFlightToken, WorkoutSessionReconciler
from src.utils.errors import (
    AuthenticationError,
    DuplicateExerciseError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    SaveInProgressError,
)
from src.utils.settings import TrackerSettings
from tests.conftest import FakeSuggestions, make_exercise_dict, make_session_dict

END = datetime(2025, 3, 10, 19, 5)


@pytest.fixture
def reconciler(repository, auth, suggestions, clock):
    return WorkoutSessionReconciler(repository, auth, suggestions=suggestions, clock=clock)


@pytest.fixture
def plan_screen(reconciler, push_plan, bench_history):
    reconciler.load(plan_id="plan-push")
    return reconciler


def _sessions(storage):
    return storage.documents(SESSIONS_TABLE)


def _bench(reconciler):
    return reconciler.get_exercise("chest1")


class ReentrantRepository(WorkoutRepository):
    """Runs ``on_write`` while a session write is still in flight."""

    def __init__(self, storage):
        super().__init__(storage)
        self.on_write = None
        self.results = []

    def insert_session(self, record):
        if self.on_write is not None:
            self.results.append(self.on_write())
        return super().insert_session(record)


class TestInFlightToken:
    def test_second_claim_fails(self):
        token = InFlightToken()

        assert token.try_claim("save")
        assert not token.try_claim("teardown")
        assert token.holder == "save"

    def test_release_frees_slot(self):
        token = InFlightToken()
        token.try_claim("save")
        token.release()

        assert not token.busy
        assert token.try_claim("teardown")


class TestLoad:
    def test_plan_prefill(self, plan_screen):
        """Bench shows 50x10, 55x8 and a blank normal third set as hints."""
        sets = _bench(plan_screen).sets

        assert isinstance(plan_screen.mode, PlanEditing)
        assert [(s.placeholder_weight, s.placeholder_reps) for s in sets] == [
            (50, 10),
            (55, 8),
            (None, None),
        ]
        assert sets[2].kind == SetKind.NORMAL
        assert all(s.weight is None and s.reps is None for s in sets)

    def test_uses_plan_title(self, plan_screen):
        assert plan_screen.title == "Monday - Push"
        assert [ex.id for ex in plan_screen.exercises] == ["chest1", "shoulders5"]

    def test_history_window_limits_scan(self, repository, auth, storage, push_plan):
        """Only the most recent records inside the window feed the index."""
        storage.put(SESSIONS_TABLE, "old", make_session_dict(
            "old", "2025-01-01T10:00:00",
            [make_exercise_dict("legs1", "Barbell Back Squat", [(100, 5, "normal")])],
        ))
        storage.put(SESSIONS_TABLE, "new", make_session_dict(
            "new", "2025-03-01T10:00:00",
            [make_exercise_dict("chest1", "Barbell Bench Press", [(60, 5, "normal")])],
        ))
        reconciler = WorkoutSessionReconciler(
            repository, auth, settings=TrackerSettings(history_window=1)
        )

        reconciler.load(plan_id="plan-push")

        assert reconciler.index.resolve("chest1", None) is not None
        assert reconciler.index.resolve("legs1", None) is None

    def test_ignores_other_users(self, reconciler, storage, push_plan):
        storage.put(SESSIONS_TABLE, "theirs", make_session_dict(
            "theirs", "2025-03-01T10:00:00",
            [make_exercise_dict("chest1", "Barbell Bench Press", [(200, 1, "normal")])],
            user_id="someone@example.com",
        ))

        reconciler.load(plan_id="plan-push")

        assert _bench(reconciler).sets[0].placeholder_weight is None

    def test_malformed_history_does_not_fail_load(self, reconciler, storage, push_plan, bench_history):
        storage.put(SESSIONS_TABLE, "broken", {"user_id": "lifter@example.com", "exercises": 3})

        reconciler.load(plan_id="plan-push")

        assert reconciler.index.skipped == 1
        assert _bench(reconciler).sets[0].placeholder_weight == 50

    def test_missing_plan(self, reconciler):
        with pytest.raises(NotFoundError):
            reconciler.load(plan_id="nope")

    def test_expired_auth(self, reconciler, auth, push_plan):
        auth.expired = True

        with pytest.raises(AuthenticationError):
            reconciler.load(plan_id="plan-push")

    def test_history_record_loads_values(self, reconciler, bench_history):
        """Past records open with their logged values filled in."""
        reconciler.load(record_id="rec-1", from_history=True)

        sets = _bench(reconciler).sets
        assert isinstance(reconciler.mode, HistoricalEdit)
        assert reconciler.mode.record_id == "rec-1"
        assert [(s.weight, s.reps) for s in sets] == [(50, 10), (55, 8)]

    def test_history_without_record_id(self, reconciler):
        with pytest.raises(InvalidTransitionError):
            reconciler.load(from_history=True)


class TestEditing:
    def test_duplicate_exercise_rejected(self, plan_screen):
        """Adding a name already present leaves the list untouched."""
        before = [ex.model_copy(deep=True) for ex in plan_screen.exercises]

        with pytest.raises(DuplicateExerciseError):
            plan_screen.add_exercise("  barbell BENCH press ")

        assert plan_screen.exercises == before

    def test_duplicate_exercise_id_rejected(self, plan_screen):
        """A new name cannot reuse the id of an exercise already on screen."""
        before = [ex.model_copy(deep=True) for ex in plan_screen.exercises]

        with pytest.raises(DuplicateExerciseError):
            plan_screen.add_exercise("Zercher Squat", exercise_id="chest1")

        assert plan_screen.exercises == before

    def test_custom_exercises_get_distinct_ids(self, plan_screen):
        first = plan_screen.add_exercise("Zercher Squat")
        second = plan_screen.add_exercise("Sissy Squat")

        assert first.id != second.id

    def test_add_exercise_prefills(self, plan_screen):
        exercise = plan_screen.add_exercise("Leg Press")

        assert exercise.id == "legs5"
        assert len(exercise.sets) == 3
        assert plan_screen.exercises[-1] is exercise

    def test_add_set_uses_next_position(self, reconciler, bench_history):
        reconciler.load()
        exercise = reconciler.add_exercise("Barbell Bench Press")
        exercise.sets = exercise.sets[:1]

        added = reconciler.add_set("chest1")

        assert added.placeholder_weight == 55

    def test_update_set_parses_input(self, plan_screen):
        set_id = _bench(plan_screen).sets[0].id

        updated = plan_screen.update_set("chest1", set_id, weight="52,5", reps="10", notes="easy")

        assert (updated.weight, updated.reps, updated.notes) == (52.5, 10, "easy")

    def test_update_set_rejects_fractional_reps(self, plan_screen):
        set_id = _bench(plan_screen).sets[0].id

        with pytest.raises(ValueError):
            plan_screen.update_set("chest1", set_id, reps="8.5")
        with pytest.raises(ValueError):
            plan_screen.update_set("chest1", set_id, weight="-5")

    def test_blank_input_clears(self, plan_screen):
        set_id = _bench(plan_screen).sets[0].id
        plan_screen.update_set("chest1", set_id, weight=50)

        plan_screen.update_set("chest1", set_id, weight="")

        assert _bench(plan_screen).sets[0].weight is None

    def test_toggle_kind_cycles(self, plan_screen):
        working_set = _bench(plan_screen).sets[2]

        kinds = [plan_screen.toggle_set_kind("chest1", working_set.id).kind for _ in range(3)]

        assert kinds == [SetKind.WARMUP, SetKind.DROPSET, SetKind.NORMAL]

    def test_delete_set(self, plan_screen):
        set_id = _bench(plan_screen).sets[1].id

        plan_screen.delete_set("chest1", set_id)

        assert len(_bench(plan_screen).sets) == 2
        assert set_id not in [s.id for s in _bench(plan_screen).sets]

    def test_move_exercise(self, plan_screen):
        plan_screen.move_exercise("shoulders5", "chest1")

        assert [ex.id for ex in plan_screen.exercises] == ["shoulders5", "chest1"]

    def test_unknown_exercise(self, plan_screen):
        with pytest.raises(NotFoundError):
            plan_screen.add_set("missing")


class TestSaveRouting:
    def test_plan_editing_updates_plan_only(self, plan_screen, storage):
        """Without a start, saving rewrites the plan's exercises and set counts."""
        plan_screen.add_set("chest1")
        plan_screen.remove_exercise("shoulders5")

        outcome = plan_screen.save()

        plan = storage.load_json("plan-push.json", subfolder=PLANS_TABLE)
        assert outcome.target == "plan"
        assert [(ex["id"], ex["sets"]) for ex in plan["exercises"]] == [("chest1", 4)]
        assert plan["title"] == "Monday - Push"
        assert len(_sessions(storage)) == 1

    def test_empty_workout_without_plan_is_noop(self, reconciler, storage):
        reconciler.load()

        assert reconciler.save().target == "noop"
        assert storage.saves == []

    def test_active_session_leaves_plan_unchanged(self, plan_screen, storage, push_plan):
        """Edits during a running session never reach the plan template."""
        plan_screen.start_workout()
        plan_screen.add_exercise("Leg Press")
        plan_screen.remove_exercise("shoulders5")

        plan_screen.save()

        assert storage.load_json("plan-push.json", subfolder=PLANS_TABLE) == push_plan

    def test_ended_session_creates_done_record(self, plan_screen, storage, suggestions, clock):
        plan_screen.start_workout()
        bench = _bench(plan_screen)
        plan_screen.update_set("chest1", bench.sets[0].id, weight=52.5, reps=10)
        plan_screen.end_workout(END)

        outcome = plan_screen.save()

        record = storage.load_json(f"{outcome.record_id}.json", subfolder=SESSIONS_TABLE)
        assert outcome.target == "session_created"
        assert record["done"] is True
        assert record["plan_id"] == "plan-push"
        assert record["start_time"] == clock.now.isoformat()
        assert record["end_time"] == END.isoformat()
        assert record["exercises"][0]["set_details"][0]["weight"] == 52.5
        assert suggestions.invalidated == ["lifter@example.com"]

    def test_started_but_not_ended_is_not_done(self, plan_screen, storage, suggestions):
        plan_screen.start_workout()

        outcome = plan_screen.save()

        record = storage.load_json(f"{outcome.record_id}.json", subfolder=SESSIONS_TABLE)
        assert record["done"] is False
        assert suggestions.invalidated == []

    def test_start_time_edit_starts_session(self, plan_screen, storage):
        """Changing the start time of a plan screen counts as a start."""
        plan_screen.set_start_time(datetime(2025, 3, 10, 17, 30))

        outcome = plan_screen.save()

        assert outcome.target == "session_created"
        assert len(_sessions(storage)) == 2

    def test_resave_updates_same_record(self, plan_screen, storage):
        plan_screen.start_workout()
        first = plan_screen.save()
        plan_screen.end_workout(END)

        second = plan_screen.save()

        assert second.target == "session_updated"
        assert second.record_id == first.record_id
        assert len(_sessions(storage)) == 2

    def test_historical_edit_updates_record(self, reconciler, storage, suggestions):
        """Saving a past record rewrites it as done and never adds a record."""
        storage.put(SESSIONS_TABLE, "rec-2", make_session_dict(
            "rec-2", "2025-03-08T18:00:00",
            [make_exercise_dict("chest1", "Barbell Bench Press", [(60, 5, "normal")])],
            done=False,
            start_time="2025-03-08T18:00:00",
        ))
        reconciler.load(record_id="rec-2", from_history=True)
        reconciler.update_set("chest1", _bench(reconciler).sets[0].id, reps=6)

        outcome = reconciler.save()

        record = storage.load_json("rec-2.json", subfolder=SESSIONS_TABLE)
        assert outcome.target == "session_updated"
        assert record["done"] is True
        assert record["exercises"][0]["set_details"][0]["reps"] == 6
        assert record["start_time"] == "2025-03-08T18:00:00"
        assert len(_sessions(storage)) == 1
        assert suggestions.invalidated == ["lifter@example.com"]

    def test_editing_done_record_keeps_suggestions(self, reconciler, bench_history, suggestions):
        reconciler.load(record_id="rec-1", from_history=True)

        reconciler.save()

        assert suggestions.invalidated == []

    def test_historical_record_deleted_meanwhile(self, reconciler, storage, bench_history):
        reconciler.load(record_id="rec-1", from_history=True)
        storage.delete_file("rec-1.json", subfolder=SESSIONS_TABLE)

        with pytest.raises(NotFoundError):
            reconciler.save()

        assert _sessions(storage) == []

    def test_suggestion_failure_does_not_fail_save(self, repository, auth, clock, push_plan, storage):
        reconciler = WorkoutSessionReconciler(
            repository, auth, suggestions=FakeSuggestions(fail=True), clock=clock
        )
        reconciler.load(plan_id="plan-push")
        reconciler.start_workout()
        reconciler.end_workout(END)

        assert reconciler.save().done is True
        assert len(_sessions(storage)) == 1


class TestSaveFailures:
    def test_expired_auth_writes_nothing(self, plan_screen, auth, storage):
        plan_screen.start_workout()
        exercises = [ex.model_copy(deep=True) for ex in plan_screen.exercises]
        auth.expired = True

        with pytest.raises(AuthenticationError):
            plan_screen.save()

        assert len(_sessions(storage)) == 1
        assert plan_screen.exercises == exercises
        assert not plan_screen.saved

    def test_store_failure_releases_token(self, plan_screen, storage):
        """A failed write can be retried by the user."""
        plan_screen.start_workout()
        storage.fail_saves = OSError("connection reset")

        with pytest.raises(PersistenceError):
            plan_screen.save()

        storage.fail_saves = None
        assert plan_screen.save().target == "session_created"
        assert len(_sessions(storage)) == 2

    def test_drive_unauthorized(self, plan_screen, storage):
        plan_screen.start_workout()
        storage.fail_saves = HttpError(Mock(status=401, reason="Unauthorized"), b"{}")

        with pytest.raises(AuthenticationError):
            plan_screen.save()

    def test_revoked_credentials(self, plan_screen, storage):
        """A token refresh rejected by Google surfaces as an auth error."""
        plan_screen.start_workout()
        storage.fail_saves = RefreshError("invalid_grant")

        with pytest.raises(AuthenticationError):
            plan_screen.save()

        storage.fail_saves = None
        assert plan_screen.save().target == "session_created"

    @pytest.mark.parametrize(
        "error",
        [TransportError("connection aborted"), httplib2.ServerNotFoundError("www.googleapis.com")],
    )
    def test_transport_failures(self, plan_screen, storage, error):
        plan_screen.start_workout()
        storage.fail_saves = error

        with pytest.raises(PersistenceError):
            plan_screen.save()

        assert not plan_screen.saved


class TestTeardown:
    def test_autosaves_running_workout(self, plan_screen, storage):
        plan_screen.start_workout()

        outcome = plan_screen.teardown()

        record = storage.load_json(f"{outcome.record_id}.json", subfolder=SESSIONS_TABLE)
        assert record["done"] is False
        assert plan_screen.saved

    def test_nothing_when_not_started(self, plan_screen, storage):
        assert plan_screen.teardown() is None
        assert storage.saves == []

    def test_nothing_when_ended(self, plan_screen, storage):
        """An ended but unsaved workout is left to the explicit save."""
        plan_screen.start_workout()
        plan_screen.end_workout(END)

        assert plan_screen.teardown() is None
        assert storage.saves == []

    def test_nothing_without_exercises(self, reconciler, storage):
        reconciler.load()
        reconciler.start_workout()

        assert reconciler.teardown() is None
        assert storage.saves == []

    def test_nothing_after_explicit_save(self, plan_screen, storage):
        plan_screen.start_workout()
        plan_screen.save()

        assert plan_screen.teardown() is None
        assert len(_sessions(storage)) == 2

    def test_errors_are_swallowed(self, plan_screen, auth, storage):
        plan_screen.start_workout()
        auth.expired = True

        assert plan_screen.teardown() is None
        assert len(_sessions(storage)) == 1

    @pytest.mark.parametrize(
        "error",
        [
            RefreshError("invalid_grant"),
            TransportError("connection aborted"),
            httplib2.ServerNotFoundError("www.googleapis.com"),
            HttpError(Mock(status=500, reason="Backend Error"), b"{}"),
        ],
    )
    def test_store_errors_are_swallowed(self, plan_screen, storage, error):
        plan_screen.start_workout()
        storage.fail_saves = error

        assert plan_screen.teardown() is None
        assert len(_sessions(storage)) == 1
        assert not plan_screen.saved

        storage.fail_saves = None
        assert plan_screen.save().target == "session_created"


class TestDelete:
    def test_historical_record(self, reconciler, storage, bench_history):
        reconciler.load(record_id="rec-1", from_history=True)

        outcome = reconciler.delete()

        assert outcome.target == "deleted"
        assert outcome.record_id == "rec-1"
        assert _sessions(storage) == []
        assert reconciler.teardown() is None
        assert storage.saves == []

    def test_plan_keeps_logged_sessions(self, plan_screen, storage):
        outcome = plan_screen.delete()

        assert outcome.plan_id == "plan-push"
        assert storage.documents(PLANS_TABLE) == []
        assert len(_sessions(storage)) == 1

    def test_running_workout_has_nothing_stored(self, plan_screen, storage):
        plan_screen.start_workout()

        with pytest.raises(InvalidTransitionError):
            plan_screen.delete()

        assert len(storage.documents(PLANS_TABLE)) == 1
        assert not plan_screen.saved

    def test_empty_workout_has_nothing_stored(self, reconciler):
        reconciler.load()

        with pytest.raises(InvalidTransitionError):
            reconciler.delete()

    def test_expired_auth_deletes_nothing(self, reconciler, auth, storage, bench_history):
        reconciler.load(record_id="rec-1", from_history=True)
        auth.expired = True

        with pytest.raises(AuthenticationError):
            reconciler.delete()

        assert len(_sessions(storage)) == 1

    def test_rejected_while_saving(self, storage, auth, clock, push_plan, bench_history):
        repository = ReentrantRepository(storage)
        reconciler = WorkoutSessionReconciler(repository, auth, clock=clock)
        reconciler.load(plan_id="plan-push")
        reconciler.start_workout()
        errors = []

        def delete_during_save():
            try:
                reconciler.delete()
            except SaveInProgressError as e:
                errors.append(e)

        repository.on_write = delete_during_save
        reconciler.save()

        assert len(errors) == 1
        assert len(storage.documents(PLANS_TABLE)) == 1


class TestSaveTeardownRace:
    def test_teardown_during_save_writes_once(self, storage, auth, clock, push_plan, bench_history):
        """Teardown firing while the save is in flight adds no second record."""
        repository = ReentrantRepository(storage)
        reconciler = WorkoutSessionReconciler(repository, auth, clock=clock)
        reconciler.load(plan_id="plan-push")
        reconciler.start_workout()
        repository.on_write = reconciler.teardown

        outcome = reconciler.save()

        assert repository.results == [None]
        assert [d["record_id"] for d in _sessions(storage)] == ["rec-1", outcome.record_id]

    def test_save_during_teardown_is_rejected(self, storage, auth, clock, push_plan, bench_history):
        """An explicit save while teardown writes fails fast instead of queueing."""
        repository = ReentrantRepository(storage)
        reconciler = WorkoutSessionReconciler(repository, auth, clock=clock)
        reconciler.load(plan_id="plan-push")
        reconciler.start_workout()

        def save_now():
            with pytest.raises(SaveInProgressError):
                reconciler.save()
            return "rejected"

        repository.on_write = save_now

        assert reconciler.teardown() is not None
        assert repository.results == ["rejected"]
        assert len(_sessions(storage)) == 2

    def test_save_after_teardown_updates(self, plan_screen, storage):
        plan_screen.start_workout()
        autosaved = plan_screen.teardown()

        outcome = plan_screen.save()

        assert outcome.record_id == autosaved.record_id
        assert len(_sessions(storage)) == 2

    def test_mode_after_session_start(self, plan_screen, clock):
        plan_screen.start_workout()

        assert plan_screen.mode == ActiveSession(start_time=clock.now)
        plan_screen.end_workout(END)
        assert plan_screen.mode == Ended(start_time=clock.now, end_time=END)
