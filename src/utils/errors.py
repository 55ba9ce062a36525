"""Error types shared by the session reconciler and its collaborators."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent user-facing error handling."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    MALFORMED_RECORD = "MALFORMED_RECORD"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    DUPLICATE_EXERCISE = "DUPLICATE_EXERCISE"
    SAVE_IN_PROGRESS = "SAVE_IN_PROGRESS"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class TrackerError(Exception):
    """
    Base exception for the workout tracker.

    Attributes:
        message: Developer-facing error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_user_message = "Something went wrong"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self.default_user_message
        super().__init__(message)


class AuthenticationError(TrackerError):
    """Session missing or expired and a refresh did not help."""

    code = ErrorCode.UNAUTHORIZED
    default_user_message = "Your session has expired, please log in again"


class NotFoundError(TrackerError):
    """Referenced plan, record, exercise or set does not exist."""

    code = ErrorCode.NOT_FOUND
    default_user_message = "Workout not found"


class MalformedRecordError(TrackerError):
    """A stored record could not be parsed."""

    code = ErrorCode.MALFORMED_RECORD
    default_user_message = "A stored workout could not be read"


class PersistenceError(TrackerError):
    """A write or read against the remote store failed."""

    code = ErrorCode.PERSISTENCE_ERROR
    default_user_message = "Failed to save workout"


class DuplicateExerciseError(TrackerError):
    """Exercise with the same name is already part of the workout."""

    code = ErrorCode.DUPLICATE_EXERCISE

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Exercise '{name}' already exists in this workout",
            details={"name": name},
            user_message=f"{name} is already in this workout",
        )


class SaveInProgressError(TrackerError):
    """Another save of the same screen is still running."""

    code = ErrorCode.SAVE_IN_PROGRESS
    default_user_message = "Saving already in progress"


class InvalidTransitionError(TrackerError):
    """Session mode change that is not allowed from the current mode."""

    code = ErrorCode.INVALID_TRANSITION
    default_user_message = "This action is not available right now"
