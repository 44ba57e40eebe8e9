"""
Error taxonomy for todo operations and its mapping to HTTP status codes.

Validation and lookup failures (InvalidArgument, NotFound) carry a message that
is safe to show to the caller. Storage-side failures (ResourceExhausted,
StorageFailure) are logged in full on the server and reported to the caller
only through a generic message.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Type


class TodoError(Exception):
    """Base class for every failure a todo operation can report."""

    expose: bool = False


class InvalidArgument(TodoError):
    """Malformed id, empty title, unknown priority or other bad input."""

    expose = True


class NotFound(TodoError):
    """The targeted todo does not exist."""

    expose = True


class StorageFailure(TodoError):
    """Any error raised by the storage engine."""


class ResourceExhausted(StorageFailure):
    """No pooled connection became available within the acquisition timeout."""


STATUS_CODES: Dict[Type[TodoError], int] = {
    InvalidArgument: 400,
    NotFound: 404,
    ResourceExhausted: 500,
    StorageFailure: 500,
    TodoError: 500,
}


# PUBLIC_INTERFACE
def status_for(error: TodoError) -> int:
    """Return the HTTP status code for an error, resolved along its class hierarchy."""
    for cls in type(error).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Result:
    """
    Outcome of a dispatcher operation: either a value or an error.

    `message` is what the caller is allowed to see when the operation failed.
    """

    value: Any = None
    error: Optional[TodoError] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        return 200 if self.error is None else status_for(self.error)

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, error: TodoError, fallback: str = "Internal server error") -> "Result":
        message = str(error) if error.expose and str(error) else fallback
        return cls(error=error, message=message)
