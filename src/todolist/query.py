"""
Parameterized statement construction for the todos table.

Every statement is returned as a `Statement` holding SQL text and a tuple of
parameters. User-supplied values only ever travel in `params`; the SQL text is
assembled exclusively from the column names declared here and numbered
placeholders (`?1`, `?2`, ...) handed out by `_Binder`, which appends the value
and returns its placeholder in one step so the two can never drift apart.

Sparse inputs (list filters, partial updates) use the `UNSET` marker to tell
"not supplied" apart from "supplied as None/empty".
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Tuple, Union


class _Unset:
    """Marker for a field the caller did not supply at all."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    completed: str = "completed"
    priority: str = "priority"
    due_date: str = "due_date"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


COLS = _Cols()

SELECT_COLUMNS = ", ".join(
    getattr(COLS, f.name) for f in fields(_Cols) if f.name != "table"
)

SCHEMA_STATEMENTS: Tuple[str, ...] = (
    f"""
    CREATE TABLE IF NOT EXISTS {COLS.table} (
        {COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
        {COLS.title} TEXT NOT NULL CHECK (length(trim({COLS.title})) > 0),
        {COLS.description} TEXT NULL,
        {COLS.completed} INTEGER NOT NULL DEFAULT 0,
        {COLS.priority} TEXT NOT NULL DEFAULT 'medium'
            CHECK ({COLS.priority} IN ('low', 'medium', 'high')),
        {COLS.due_date} TEXT NULL,
        {COLS.created_at} TEXT NOT NULL,
        {COLS.updated_at} TEXT NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_{COLS.table}_completed ON {COLS.table}({COLS.completed})",
    f"CREATE INDEX IF NOT EXISTS idx_{COLS.table}_priority ON {COLS.table}({COLS.priority})",
    f"CREATE INDEX IF NOT EXISTS idx_{COLS.table}_due_date ON {COLS.table}({COLS.due_date})",
)

# Assignments are always emitted in this order, whatever order the caller
# supplied its fields in.
UPDATE_ORDER = ("title", "description", "completed", "priority", "due_date")

LIKE_ESCAPE = "\\"

# SQL function registered on every pooled connection (see pool.ConnectionPool).
CASEFOLD = "casefold"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Statement:
    """A SQL statement together with the values bound to its placeholders."""

    sql: str
    params: Tuple[Any, ...] = ()


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class ListFilters:
    """Sparse set of filters for listing todos."""

    completed: Union[bool, Any] = UNSET
    priority: Union[str, Any] = UNSET
    search: Union[str, Any] = UNSET


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TodoChanges:
    """
    Sparse set of field assignments for a partial update.

    A field left as UNSET is not touched. A field set to None (or any other
    value) is written, so `due_date=None` clears the stored due date.
    """

    title: Union[str, Any] = UNSET
    description: Union[Optional[str], Any] = UNSET
    completed: Union[bool, Any] = UNSET
    priority: Union[str, Any] = UNSET
    due_date: Union[Optional[datetime], Any] = UNSET

    def present(self) -> List[Tuple[str, Any]]:
        """Return (field, value) pairs for supplied fields, in declared update order."""
        return [
            (name, getattr(self, name))
            for name in UPDATE_ORDER
            if is_set(getattr(self, name))
        ]

    def is_empty(self) -> bool:
        return not self.present()


def _adapt(value: Any) -> Any:
    """Convert Python values to what the sqlite driver stores."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def escape_like(fragment: str) -> str:
    """Escape LIKE wildcards so the fragment matches literally."""
    return (
        fragment.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class _Binder:
    """Accumulates parameters and hands out the matching numbered placeholder."""

    def __init__(self) -> None:
        self._values: List[Any] = []

    def bind(self, value: Any) -> str:
        self._values.append(_adapt(value))
        return f"?{len(self._values)}"

    @property
    def params(self) -> Tuple[Any, ...]:
        return tuple(self._values)


# PUBLIC_INTERFACE
def build_list(filters: Optional[ListFilters] = None) -> Statement:
    """
    Build the list query for the given filters.

    Clauses are appended for each supplied filter in the order completed,
    priority, search. Results are
    always ordered newest first; the ordering is not configurable.
    """
    f = filters or ListFilters()
    binder = _Binder()
    clauses = ["1=1"]

    if is_set(f.completed):
        clauses.append(f"{COLS.completed} = {binder.bind(bool(f.completed))}")

    if is_set(f.priority):
        clauses.append(f"{COLS.priority} = {binder.bind(f.priority)}")

    if is_set(f.search):
        # One placeholder, referenced twice.
        # Both sides are casefolded so non-ASCII letters match regardless of case.
        p = binder.bind(f"%{escape_like(f.search.casefold())}%")
        clauses.append(
            f"({CASEFOLD}({COLS.title}) LIKE {p} ESCAPE '{LIKE_ESCAPE}'"
            f" OR {CASEFOLD}({COLS.description}) LIKE {p} ESCAPE '{LIKE_ESCAPE}')"
        )

    sql = (
        f"SELECT {SELECT_COLUMNS} FROM {COLS.table}"
        f" WHERE {' AND '.join(clauses)}"
        f" ORDER BY {COLS.created_at} DESC, {COLS.id} DESC"
    )
    return Statement(sql, binder.params)


# PUBLIC_INTERFACE
def build_get(todo_id: int) -> Statement:
    binder = _Binder()
    return Statement(
        f"SELECT {SELECT_COLUMNS} FROM {COLS.table} WHERE {COLS.id} = {binder.bind(todo_id)}",
        binder.params,
    )


# PUBLIC_INTERFACE
def build_insert(
    title: str,
    description: Optional[str],
    priority: str,
    due_date: Optional[datetime],
    now: datetime,
) -> Statement:
    """Build the insert for a new todo. Both timestamps get the same instant."""
    binder = _Binder()
    columns = (
        COLS.title,
        COLS.description,
        COLS.completed,
        COLS.priority,
        COLS.due_date,
        COLS.created_at,
        COLS.updated_at,
    )
    placeholders = [
        binder.bind(v) for v in (title, description, False, priority, due_date, now, now)
    ]
    sql = (
        f"INSERT INTO {COLS.table} ({', '.join(columns)})"
        f" VALUES ({', '.join(placeholders)})"
        f" RETURNING {SELECT_COLUMNS}"
    )
    return Statement(sql, binder.params)


# PUBLIC_INTERFACE
def build_update(todo_id: int, changes: TodoChanges, now: datetime) -> Statement:
    """
    Build a partial update for the supplied fields.

    Assignments follow UPDATE_ORDER, then `updated_at` is always refreshed and
    the id is bound last. When no field was supplied there is nothing to write,
    so the plain lookup is returned instead and `updated_at` stays as it is.
    """
    present = changes.present()
    if not present:
        return build_get(todo_id)

    binder = _Binder()
    assignments = [f"{getattr(COLS, name)} = {binder.bind(value)}" for name, value in present]
    assignments.append(f"{COLS.updated_at} = {binder.bind(now)}")
    sql = (
        f"UPDATE {COLS.table} SET {', '.join(assignments)}"
        f" WHERE {COLS.id} = {binder.bind(todo_id)}"
        f" RETURNING {SELECT_COLUMNS}"
    )
    return Statement(sql, binder.params)


# PUBLIC_INTERFACE
def build_toggle(todo_id: int, now: datetime) -> Statement:
    binder = _Binder()
    sql = (
        f"UPDATE {COLS.table}"
        f" SET {COLS.completed} = NOT {COLS.completed}, {COLS.updated_at} = {binder.bind(now)}"
        f" WHERE {COLS.id} = {binder.bind(todo_id)}"
        f" RETURNING {SELECT_COLUMNS}"
    )
    return Statement(sql, binder.params)


# PUBLIC_INTERFACE
def build_delete(todo_id: int) -> Statement:
    binder = _Binder()
    return Statement(
        f"DELETE FROM {COLS.table} WHERE {COLS.id} = {binder.bind(todo_id)}",
        binder.params,
    )


PING = Statement("SELECT 1")
