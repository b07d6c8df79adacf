"""Error taxonomy for the calendar engine.

None of these are fatal: each is recoverable by a user action and every one
of them is surfaced through the notification sink.
"""

from __future__ import annotations


class CalendarError(Exception):
    """Base class for all calendar engine errors.

    Attributes:
        message:     User-facing description.
        status_code: HTTP status from the event store, when the error came
                     from a response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(CalendarError):
    """A required field is missing or malformed.  No request is issued."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class ConflictError(CalendarError):
    """A domain invariant would be violated (e.g. a second open period)."""


class PrerequisiteError(CalendarError):
    """The user's profile lacks cycle durations; the grid must not render."""


class LoadError(CalendarError):
    """A read failed.  The previously loaded state is kept."""


class MutationError(CalendarError):
    """A create/update/delete failed.  The dialog keeps the entered data."""


class InvalidTransition(RuntimeError):
    """A dialog action was invoked from a state that does not offer it."""
