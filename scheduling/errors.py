"""
Error taxonomy for the scheduling core.

Every error carries a stable ``error_code`` and a ``details`` dict so the
transport wrapping this core can map it without parsing messages.
Nothing here is retried internally; retry is a caller policy.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    error_code = "SCHEDULING_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "details": self.details}


class ValidationError(SchedulingError):
    """Malformed date/time, duplicate slot within a day, start >= end, bad field."""

    error_code = "VALIDATION_ERROR"


class NotFoundError(SchedulingError):
    """Unknown type, day, id or slot index."""

    error_code = "NOT_FOUND"


class ConflictError(SchedulingError):
    """Slot already reserved, or an open reschedule request already exists."""

    error_code = "CONFLICT"


class InvalidTransitionError(SchedulingError):
    """Raised when a transition is not valid from the current state."""

    error_code = "INVALID_TRANSITION"
