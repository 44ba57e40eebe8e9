from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Priority level of a todo item. Stored as its lowercase literal."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def literals(cls) -> tuple:
        return tuple(p.value for p in cls)


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo row as read from storage.

    Fields:
    - id: Unique integer identifier, assigned by the database and never reused
    - title: Short title (trimmed, never empty)
    - description: Optional detailed description
    - completed: Boolean completion flag
    - priority: One of 'low', 'medium', 'high'
    - due_date: Optional due datetime
    - created_at: UTC creation timestamp
    - updated_at: UTC last update timestamp (>= created_at)
    """

    id: int
    title: str
    description: Optional[str]
    completed: bool
    priority: str
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
