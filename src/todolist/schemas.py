from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import Priority
from .query import UNSET, UPDATE_ORDER, TodoChanges

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

TITLE_MAX_LENGTH = 255


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a datetime.
    - None or an empty string means "no due date".
    - If value is a string, parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, return as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for due_date; expected ISO8601 string.")


def _parse_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    if isinstance(value, str) and value in Priority.literals():
        return Priority(value)
    raise ValueError("Invalid priority value")


def _strip_title(value: Any, message: str) -> Any:
    if value is None:
        raise ValueError(message)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError(message)
        if len(s) > TITLE_MAX_LENGTH:
            raise ValueError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
        return s
    # Non-strings are rejected by the str type check that follows.
    return value


# PUBLIC_INTERFACE
def first_error_message(exc: ValidationError) -> str:
    """
    Turn a pydantic ValidationError into a single caller-facing message.

    Messages raised by our own validators are returned verbatim; built-in type
    errors are prefixed with the offending field name.
    """
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    ctx = err.get("ctx") or {}
    if err.get("type") == "value_error" and "error" in ctx:
        return str(ctx["error"])
    field = ".".join(str(part) for part in err.get("loc", ()))
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "priority": "high",
                "due_date": "2025-02-01",
            }
        }
    )

    title: str = Field(
        default=None,  # type: ignore[assignment]
        validate_default=True,
        description="Short title for the todo item; surrounding whitespace is trimmed",
    )
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    priority: Priority = Field(default=Priority.MEDIUM, description="One of low, medium, high")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        """
        Title is required and must not be blank; it is stored trimmed.
        """
        return _strip_title(v, "Title is required")

    @field_validator("priority", mode="before")
    @classmethod
    def validate_priority(cls, v: Any) -> Priority:
        """
        Missing or null priority defaults to medium.
        """
        if v is None:
            return Priority.MEDIUM
        return _parse_priority(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated. A field sent
    as null (or "" for due_date) is provided and clears the stored value where
    the column allows it.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "description": "Milk, eggs, bread, and paper towels",
                "completed": True,
                "priority": "low",
                "due_date": "2025-02-02T09:30:00",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    priority: Optional[Priority] = Field(default=None, description="One of low, medium, high")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; null or \"\" clears it",
    )

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        """
        If title is provided, it must be a non-blank string; it is stored trimmed.
        """
        return _strip_title(v, "Title cannot be empty")

    @field_validator("completed", mode="before")
    @classmethod
    def validate_completed(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("completed must be a boolean")
        return v

    @field_validator("priority", mode="before")
    @classmethod
    def validate_priority(cls, v: Any) -> Priority:
        return _parse_priority(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)

    def to_changes(self) -> TodoChanges:
        """
        Build the partial update from the fields the caller sent.
        Fields not sent stay UNSET; fields sent as null are carried as None.
        """
        provided = self.model_fields_set
        return TodoChanges(
            **{
                name: getattr(self, name) if name in provided else UNSET
                for name in UPDATE_ORDER
            }
        )


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "priority": "medium",
                "due_date": "2025-02-01T00:00:00",
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-26T09:00:00.000001Z",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(..., description="Completion status flag")
    priority: Priority = Field(..., description="One of low, medium, high")
    due_date: Optional[datetime] = Field(
        default=None, description="Due date/time of the todo item as an ISO8601 datetime"
    )
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")
