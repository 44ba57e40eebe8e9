from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import TodoEntity
from .query import ListFilters, TodoChanges
from .schemas import TodoCreate


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Implementations raise StorageFailure (or ResourceExhausted) for any engine
    error and never let driver exceptions escape.
    """

    @abstractmethod
    def list(self, filters: Optional[ListFilters] = None) -> List[TodoEntity]:
        """
        Return todos matching the filters, newest first.
        - Filter by completed and priority
        - Case-insensitive substring search across title and description
        """

    @abstractmethod
    def get(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def create(self, data: TodoCreate) -> TodoEntity:
        """Create and return a new TodoEntity."""

    @abstractmethod
    def update(self, todo_id: int, changes: TodoChanges) -> Optional[TodoEntity]:
        """
        Apply the supplied fields. Return the resulting entity or None if not found.
        With no supplied fields the entity is returned unchanged.
        """

    @abstractmethod
    def toggle(self, todo_id: int) -> Optional[TodoEntity]:
        """Flip the completed flag. Return the updated entity or None if not found."""

    @abstractmethod
    def delete(self, todo_id: int) -> bool:
        """Delete a TodoEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def ping(self) -> None:
        """Check that storage is reachable; raise StorageFailure otherwise."""
