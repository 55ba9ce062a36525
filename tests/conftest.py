"""Shared fixtures: in-memory Drive storage, auth session and suggestions."""

import copy
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from src.memory.workout_repository import PLANS_TABLE, SESSIONS_TABLE, WorkoutRepository
from src.utils.errors import AuthenticationError

USER_ID = "lifter@example.com"


class FakeDriveStorage:
    """Dict-backed stand-in for GoogleDriveStorage.

    Documents are kept per subfolder in insertion order; ``load_all_json``
    returns them newest first like the Drive listing does.
    """

    def __init__(self) -> None:
        self.folders: Dict[str, Dict[str, Any]] = {}
        self.saves: List[str] = []
        self.fail_saves: Optional[Exception] = None

    def save_json(self, filename: str, data: Dict[str, Any], subfolder: Optional[str] = None) -> str:
        if self.fail_saves is not None:
            raise self.fail_saves
        self.saves.append(f"{subfolder}/{filename}")
        self.folders.setdefault(subfolder or "", {})[filename] = copy.deepcopy(data)
        return filename

    def load_json(self, filename: str, subfolder: Optional[str] = None) -> Optional[Dict[str, Any]]:
        data = self.folders.get(subfolder or "", {}).get(filename)
        return copy.deepcopy(data) if data is not None else None

    def delete_file(self, filename: str, subfolder: Optional[str] = None) -> bool:
        return self.folders.get(subfolder or "", {}).pop(filename, None) is not None

    def load_all_json(self, subfolder: str, limit: Optional[int] = None) -> List[Any]:
        documents = [copy.deepcopy(d) for d in reversed(list(self.folders.get(subfolder, {}).values()))]
        return documents[:limit] if limit else documents

    # Test helpers

    def put(self, subfolder: str, key: str, data: Any) -> None:
        self.folders.setdefault(subfolder, {})[f"{key}.json"] = copy.deepcopy(data)

    def documents(self, subfolder: str) -> List[Any]:
        return list(self.folders.get(subfolder, {}).values())


class FakeAuth:
    """AuthSession stand-in; set ``expired`` to make every call fail."""

    def __init__(self, user_id: str = USER_ID) -> None:
        self.user_id = user_id
        self.expired = False
        self.calls = 0

    def current_user_id(self) -> str:
        self.calls += 1
        if self.expired:
            raise AuthenticationError("Session expired")
        return self.user_id


class FakeSuggestions:
    def __init__(self, fail: bool = False) -> None:
        self.invalidated: List[str] = []
        self.fail = fail

    def invalidate(self, user_id: str) -> None:
        if self.fail:
            raise RuntimeError("suggestion store down")
        self.invalidated.append(user_id)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_session_dict(
    record_id: str,
    date: str,
    exercises: List[Dict[str, Any]],
    done: bool = True,
    user_id: str = USER_ID,
    **extra: Any,
) -> Dict[str, Any]:
    data = {
        "record_id": record_id,
        "user_id": user_id,
        "plan_id": extra.pop("plan_id", "plan-push"),
        "title": extra.pop("title", "Push"),
        "date": date,
        "exercises": exercises,
        "done": done,
    }
    data.update(extra)
    return data


def make_exercise_dict(exercise_id: str, name: str, sets: List[tuple]) -> Dict[str, Any]:
    """``sets`` holds (weight, reps, kind) tuples."""
    return {
        "id": exercise_id,
        "name": name,
        "set_details": [
            {"id": f"{exercise_id}-s{i}", "weight": w, "reps": r, "kind": k}
            for i, (w, r, k) in enumerate(sets, start=1)
        ],
    }


@pytest.fixture
def storage():
    return FakeDriveStorage()


@pytest.fixture
def repository(storage):
    return WorkoutRepository(storage)


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def suggestions():
    return FakeSuggestions()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 10, 18, 0))


@pytest.fixture
def push_plan(storage):
    """Plan with a 3-set bench press, stored under the plans table."""
    plan = {
        "plan_id": "plan-push",
        "user_id": USER_ID,
        "title": "Monday - Push",
        "workout_type": "split",
        "day_of_week": "Monday",
        "exercises": [
            {"id": "chest1", "name": "Barbell Bench Press", "sets": 3, "muscle_group": "chest"},
            {"id": "shoulders5", "name": "Lateral Raise", "sets": 2, "muscle_group": "shoulders"},
        ],
        "created_at": "2025-01-01T10:00:00",
    }
    storage.put(PLANS_TABLE, "plan-push", plan)
    return plan


@pytest.fixture
def bench_history(storage):
    """One finished session: bench 50x10 warmup then 55x8."""
    record = make_session_dict(
        "rec-1",
        "2025-03-03T18:00:00",
        [make_exercise_dict("chest1", "Barbell Bench Press", [(50, 10, "warmup"), (55, 8, "normal")])],
    )
    storage.put(SESSIONS_TABLE, "rec-1", record)
    return record
