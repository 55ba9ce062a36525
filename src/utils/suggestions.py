"""Cached AI suggestions for upcoming workouts."""

import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional

from src.models.workout_log import CompletedSessionRecord
from src.utils.prompts import SUGGESTION_REQUEST, SUGGESTION_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

SUGGESTIONS_FOLDER = "suggestions"


class RefreshSignals:
    """
    Process-scoped flags telling collaborators to regenerate their data.

    Created once at app start and passed to the services that need it;
    :meth:`reset` is called on logout.
    """

    def __init__(self) -> None:
        self.suggestions_stale = False
        self.notifications_stale = False

    def mark_workout_completed(self) -> None:
        self.suggestions_stale = True
        self.notifications_stale = True

    def reset(self) -> None:
        self.suggestions_stale = False
        self.notifications_stale = False


def _cache_filename(user_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.@-]", "_", user_id) + ".json"


def format_history(records: Iterable[CompletedSessionRecord], max_records: int = 10) -> str:
    lines = []
    for record in list(records)[:max_records]:
        lines.append(f"{record.date:%Y-%m-%d} {record.title}")
        for exercise in record.exercises:
            sets = []
            for detail in exercise.set_details:
                text = f"{detail.weight if detail.weight is not None else '-'}x{detail.reps if detail.reps is not None else '-'}"
                if detail.kind.value != "normal":
                    text += f" ({detail.kind.value})"
                sets.append(text)
            lines.append(f"  {exercise.name}: {', '.join(sets) or 'no sets'}")
    return "\n".join(lines)


def parse_suggestions(text: str, limit: int) -> List[str]:
    suggestions = []
    for line in text.splitlines():
        line = re.sub(r"^\s*(?:[-*•]|\d+[.)])\s*", "", line).strip()
        if line:
            suggestions.append(line)
    return suggestions[:limit]


class SuggestionService:
    """AI suggestions cached per user in the remote store."""

    def __init__(self, storage, client=None, signals: Optional[RefreshSignals] = None, limit: int = 5) -> None:
        """
        Args:
            storage: GoogleDriveStorage or compatible JSON document store
            client: LLM client with ``generate(prompt, system_instruction)``
            signals: Process-scoped refresh flags
            limit: Maximum suggestions kept
        """
        self.storage = storage
        self.client = client
        self.signals = signals or RefreshSignals()
        self.limit = limit

    def get_cached(self, user_id: str) -> Optional[List[str]]:
        data = self.storage.load_json(_cache_filename(user_id), subfolder=SUGGESTIONS_FOLDER)
        if not data:
            return None
        return list(data.get("suggestions", []))

    def invalidate(self, user_id: str) -> None:
        """Drop cached suggestions after a completed workout."""
        self.signals.mark_workout_completed()
        removed = self.storage.delete_file(_cache_filename(user_id), subfolder=SUGGESTIONS_FOLDER)
        logger.info(f"Invalidated suggestions for {user_id} (cache removed: {removed})")

    def generate(self, user_id: str, records: Iterable[CompletedSessionRecord]) -> List[str]:
        """Ask the LLM for fresh suggestions and cache them."""
        if self.client is None:
            raise RuntimeError("No LLM client configured")

        finished = [r for r in records if r.done]
        if not finished:
            return []

        prompt = SUGGESTION_REQUEST.format(history=format_history(finished), limit=self.limit)
        response = self.client.generate(prompt, system_instruction=SUGGESTION_SYSTEM_PROMPT)
        suggestions = parse_suggestions(response, self.limit)

        self.storage.save_json(
            _cache_filename(user_id),
            {"suggestions": suggestions, "generated_at": datetime.now().isoformat()},
            subfolder=SUGGESTIONS_FOLDER,
        )
        self.signals.suggestions_stale = False
        logger.info(f"Generated {len(suggestions)} suggestions for {user_id}")
        return suggestions
