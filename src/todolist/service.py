"""
Request validation and dispatch for todo operations.

`TodoService` takes raw request data (path strings, query mappings, decoded
JSON bodies), validates it into typed parameters, runs one repository call and
returns a `Result`. Nothing invalid reaches the repository.
"""
from __future__ import annotations

import functools
import logging
import re
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from .errors import InvalidArgument, NotFound, Result, TodoError
from .query import ListFilters
from .repositories import Repository
from .schemas import TodoCreate, TodoUpdate, first_error_message

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[0-9]+$")
# Largest value SQLite can store in an INTEGER column.
MAX_ID = 2**63 - 1
_TRUE_VALUES = {"true", "1", "yes", "on"}


def parse_id(raw: Any) -> int:
    """Parse a path id; only positive decimal integers within SQLite range are accepted."""
    if isinstance(raw, bool):
        raise InvalidArgument("Invalid todo ID")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and _ID_PATTERN.match(raw.strip()):
        value = int(raw.strip())
    else:
        raise InvalidArgument("Invalid todo ID")
    if value < 1 or value > MAX_ID:
        raise InvalidArgument("Invalid todo ID")
    return value


def parse_filters(params: Mapping[str, str]) -> ListFilters:
    """
    Build list filters from raw query parameters.

    A filter is present when its key was supplied, whatever the value, so
    `completed=false` filters for open todos. Unknown keys are ignored.
    """
    kwargs = {}
    if "completed" in params:
        kwargs["completed"] = str(params["completed"]).strip().lower() in _TRUE_VALUES
    if "priority" in params:
        kwargs["priority"] = str(params["priority"])
    if "search" in params:
        kwargs["search"] = str(params["search"])
    return ListFilters(**kwargs)


def _parse_body(model, payload: Any):
    if not isinstance(payload, Mapping):
        raise InvalidArgument("Request body must be a JSON object")
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidArgument(first_error_message(exc)) from exc


def _operation(failure_message: str) -> Callable:
    """
    Run a dispatcher operation and wrap its outcome in a Result.

    Server-side failures are logged with their traceback and reported with
    `failure_message` only.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Result]:
        @functools.wraps(fn)
        def wrapper(self: "TodoService", *args: Any, **kwargs: Any) -> Result:
            try:
                return Result.success(fn(self, *args, **kwargs))
            except TodoError as exc:
                if not exc.expose:
                    logger.exception("%s: %s", failure_message, exc)
                return Result.failure(exc, failure_message)

        return wrapper

    return decorator


# PUBLIC_INTERFACE
class TodoService:
    """Validates raw inputs and dispatches them to the repository."""

    def __init__(self, repository: Repository) -> None:
        self._repo = repository

    @property
    def repository(self) -> Repository:
        return self._repo

    @_operation("Failed to fetch todos")
    def list_todos(self, params: Mapping[str, str]):
        return self._repo.list(parse_filters(params))

    @_operation("Failed to fetch todo")
    def get_todo(self, raw_id: Any):
        item = self._repo.get(parse_id(raw_id))
        if item is None:
            raise NotFound("Todo not found")
        return item

    @_operation("Failed to create todo")
    def create_todo(self, payload: Any):
        data = _parse_body(TodoCreate, payload)
        return self._repo.create(data)

    @_operation("Failed to update todo")
    def update_todo(self, raw_id: Any, payload: Any):
        todo_id = parse_id(raw_id)
        changes = _parse_body(TodoUpdate, payload).to_changes()
        item = self._repo.update(todo_id, changes)
        if item is None:
            raise NotFound("Todo not found")
        return item

    @_operation("Failed to toggle todo")
    def toggle_todo(self, raw_id: Any):
        item = self._repo.toggle(parse_id(raw_id))
        if item is None:
            raise NotFound("Todo not found")
        return item

    @_operation("Failed to delete todo")
    def delete_todo(self, raw_id: Any):
        if not self._repo.delete(parse_id(raw_id)):
            raise NotFound("Todo not found")
        return None

    @_operation("Database unavailable")
    def check_ready(self):
        self._repo.ping()
        return None
