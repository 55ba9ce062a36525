"""Tracker settings read from Streamlit secrets."""

import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class TrackerSettings(BaseModel):
    """Tunables of the workout screen."""

    history_window: int = Field(50, ge=1, description="Recent workouts scanned for previous performance")
    default_set_count: int = Field(3, ge=1, description="Sets for an exercise added during a workout")
    app_folder_name: str = Field("WorkoutTracker", description="Root folder on Google Drive")
    suggestion_model: str = Field("gemini-2.0-flash-exp")
    suggestion_limit: int = Field(5, ge=1, description="Suggestions generated per request")


def load_settings(secrets: Optional[Mapping[str, Any]] = None) -> TrackerSettings:
    """
    Build settings from the optional ``tracker`` section of the secrets.

    Invalid values are logged and replaced by defaults.
    """
    section = {}
    if secrets is not None:
        try:
            section = dict(secrets.get("tracker", {}) or {})
        except (AttributeError, TypeError) as e:
            logger.warning(f"Ignoring unreadable tracker settings: {e}")

    try:
        return TrackerSettings(**section)
    except ValidationError as e:
        logger.warning(f"Invalid tracker settings, using defaults: {e}")
        return TrackerSettings()
