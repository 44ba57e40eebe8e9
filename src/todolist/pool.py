from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Generator, List

from .errors import ResourceExhausted, StorageFailure
from .query import CASEFOLD

logger = logging.getLogger(__name__)


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


# PUBLIC_INTERFACE
class ConnectionPool:
    """
    Bounded pool of sqlite connections shared by all concurrent requests.

    At most `max_size` connections are handed out at once. `acquire` waits up to
    `acquire_timeout` seconds for a free slot and raises ResourceExhausted when
    none frees up. Idle connections are reused most-recently-released first.
    """

    def __init__(self, db_path: str, max_size: int = 10, acquire_timeout: float = 2.0) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._slots = threading.BoundedSemaphore(max_size)
        self._lock = threading.Lock()
        self._idle: List[sqlite3.Connection] = []
        self._closed = False

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def closed(self) -> bool:
        return self._closed

    def _connect(self) -> sqlite3.Connection:
        # Connections are used from FastAPI's worker threads, one thread at a time.
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.create_function(CASEFOLD, 1, _casefold, deterministic=True)
        return conn

    def acquire(self) -> sqlite3.Connection:
        if self._closed:
            raise StorageFailure("connection pool is closed")
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise ResourceExhausted(
                f"no database connection available within {self._acquire_timeout}s"
            )
        try:
            with self._lock:
                if self._idle:
                    return self._idle.pop()
            return self._connect()
        except sqlite3.Error as exc:
            self._slots.release()
            raise StorageFailure("could not open database connection") from exc

    def release(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            if self._closed:
                conn.close()
            else:
                self._idle.append(conn)
        self._slots.release()

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Borrow a connection for one unit of work.

        Commits when the block succeeds, rolls back when it raises, and always
        returns the connection to the pool.
        """
        conn = self.acquire()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageFailure("database error") from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            self.release(conn)

    def close(self) -> None:
        """Close idle connections; connections still in use are closed on release."""
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []
        for conn in idle:
            conn.close()
        logger.info("Connection pool for %s closed", self._db_path)
