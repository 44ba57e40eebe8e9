from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from . import query
from .errors import StorageFailure
from .models import TodoEntity
from .pool import ConnectionPool
from .query import COLS, ListFilters, Statement, TodoChanges
from .repositories import Repository
from .schemas import TodoCreate

logger = logging.getLogger(__name__)


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class SQLiteRepository(Repository):
    """
    SQLite repository executing statements produced by `todolist.query`.

    Every operation borrows one pooled connection and runs a single statement.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def init_schema(self) -> None:
        with self._pool.connection() as conn:
            try:
                for ddl in query.SCHEMA_STATEMENTS:
                    conn.execute(ddl)
            except sqlite3.Error as exc:
                raise StorageFailure("schema initialization failed") from exc
        logger.info("Database tables initialized")

    def _fetch_all(self, stmt: Statement) -> List[TodoEntity]:
        with self._pool.connection() as conn:
            try:
                rows = conn.execute(stmt.sql, stmt.params).fetchall()
            except sqlite3.Error as exc:
                raise StorageFailure("query failed") from exc
            return [self._row_to_entity(r) for r in rows]

    def _fetch_one(self, stmt: Statement) -> Optional[TodoEntity]:
        with self._pool.connection() as conn:
            try:
                # fetchall steps RETURNING statements to completion before commit
                rows = conn.execute(stmt.sql, stmt.params).fetchall()
            except sqlite3.Error as exc:
                raise StorageFailure("query failed") from exc
            return self._row_to_entity(rows[0]) if rows else None

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[COLS.id]),
            "title": str(row[COLS.title]),
            "description": row[COLS.description],
            "completed": bool(row[COLS.completed]),
            "priority": str(row[COLS.priority]),
            "due_date": _parse_dt(row[COLS.due_date]),
            "created_at": _parse_dt(row[COLS.created_at]),  # type: ignore
            "updated_at": _parse_dt(row[COLS.updated_at]),  # type: ignore
        }

    def list(self, filters: Optional[ListFilters] = None) -> List[TodoEntity]:
        return self._fetch_all(query.build_list(filters))

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        return self._fetch_one(query.build_get(todo_id))

    def create(self, data: TodoCreate) -> TodoEntity:
        stmt = query.build_insert(
            title=data.title,
            description=data.description,
            priority=data.priority,
            due_date=data.due_date,
            now=self._now(),
        )
        created = self._fetch_one(stmt)
        if created is None:
            raise StorageFailure("insert returned no row")
        return created

    def update(self, todo_id: int, changes: TodoChanges) -> Optional[TodoEntity]:
        return self._fetch_one(query.build_update(todo_id, changes, self._now()))

    def toggle(self, todo_id: int) -> Optional[TodoEntity]:
        return self._fetch_one(query.build_toggle(todo_id, self._now()))

    def delete(self, todo_id: int) -> bool:
        stmt = query.build_delete(todo_id)
        with self._pool.connection() as conn:
            try:
                cur = conn.execute(stmt.sql, stmt.params)
            except sqlite3.Error as exc:
                raise StorageFailure("delete failed") from exc
            return cur.rowcount > 0

    def ping(self) -> None:
        with self._pool.connection() as conn:
            try:
                conn.execute(query.PING.sql).fetchone()
            except sqlite3.Error as exc:
                raise StorageFailure("database ping failed") from exc
