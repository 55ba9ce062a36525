"""Lookup of the most recent logged performance per exercise."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Union

from pydantic import BaseModel

from src.models.workout_log import CompletedSessionRecord, SessionExercise
from src.utils.errors import MalformedRecordError
from src.utils.exercise_catalog import normalize_name
from src.utils.storage_helpers import create_session_record_from_dict

logger = logging.getLogger(__name__)


class HistoryEntry(BaseModel):
    """Most recent logged exercise together with its session date."""

    record_id: str
    date: datetime
    exercise: SessionExercise

    @property
    def set_count(self) -> int:
        return len(self.exercise.set_details)

    def newer_than(self, other: "HistoryEntry") -> bool:
        # Equal dates fall back to the record id so the result never
        # depends on the order records were fetched in.
        return (self.date, self.record_id) > (other.date, other.record_id)


class ExerciseHistoryIndex:
    """
    Per-load index of previous performance.

    Built from completed (``done``) session records only and keyed both by
    exercise id and by lowercased exercise name. Never persisted.
    """

    def __init__(self) -> None:
        self.by_id: Dict[str, HistoryEntry] = {}
        self.by_name: Dict[str, HistoryEntry] = {}
        self.skipped = 0

    @classmethod
    def build(
        cls, records: Iterable[Union[CompletedSessionRecord, Dict[str, Any]]]
    ) -> "ExerciseHistoryIndex":
        """
        Build the index from session records.

        Args:
            records: Parsed records or raw stored dictionaries, in any order

        Returns:
            Populated index; malformed records are skipped and counted
        """
        index = cls()
        for raw in records:
            try:
                record = (
                    raw
                    if isinstance(raw, CompletedSessionRecord)
                    else create_session_record_from_dict(raw)
                )
            except MalformedRecordError as e:
                index.skipped += 1
                logger.warning(f"Skipping malformed workout record: {e}")
                continue
            index.add_record(record)

        logger.info(
            f"Built history index with {len(index.by_id)} exercises "
            f"({index.skipped} records skipped)"
        )
        return index

    def add_record(self, record: CompletedSessionRecord) -> None:
        if not record.done:
            return
        for exercise in record.exercises:
            if not exercise.has_sets:
                continue
            entry = HistoryEntry(record_id=record.record_id, date=record.date, exercise=exercise)
            self._keep_latest(self.by_id, exercise.id, entry)
            self._keep_latest(self.by_name, normalize_name(exercise.name), entry)

    @staticmethod
    def _keep_latest(table: Dict[str, HistoryEntry], key: str, entry: HistoryEntry) -> None:
        if not key:
            return
        current = table.get(key)
        if current is None or entry.newer_than(current):
            table[key] = entry

    def resolve(
        self,
        exercise_id: Optional[str],
        name: Optional[str],
        strategies: Optional[Sequence["Strategy"]] = None,
    ) -> Optional[HistoryEntry]:
        """Return the first match produced by the resolution strategies."""
        for strategy in strategies or DEFAULT_STRATEGIES:
            entry = strategy(self, exercise_id, name)
            if entry is not None:
                return entry
        return None

    def __len__(self) -> int:
        return len(self.by_id)


Strategy = Callable[[ExerciseHistoryIndex, Optional[str], Optional[str]], Optional[HistoryEntry]]


def match_by_id(
    index: ExerciseHistoryIndex, exercise_id: Optional[str], name: Optional[str]
) -> Optional[HistoryEntry]:
    if not exercise_id:
        return None
    return index.by_id.get(exercise_id)


def match_by_name(
    index: ExerciseHistoryIndex, exercise_id: Optional[str], name: Optional[str]
) -> Optional[HistoryEntry]:
    if not name:
        return None
    return index.by_name.get(normalize_name(name))


DEFAULT_STRATEGIES = (match_by_id, match_by_name)
