"""
Shared SQLite plumbing for the local stores.
Sessions, memories and usage records each live in their own table.
"""
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

from utils.errors import StorageError
from utils.logger import app_logger


class SQLiteStore:
    """
    Base class owning one SQLite connection.

    A single connection is shared between threads and guarded by a lock so that
    in-memory databases (":memory:") behave the same as file databases.
    """

    SCHEMA: str = ""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self._conn.cursor()
            if self._db_path != ":memory:":
                # WAL mode for better concurrent read/write performance
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.execute("PRAGMA busy_timeout=5000")
            cursor.executescript(self.SCHEMA)
            self._conn.commit()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Cursor]:
        """Run statements atomically, translating sqlite errors to StorageError."""
        with self._lock:
            try:
                cursor = self._conn.cursor()
                yield cursor
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                app_logger.error(f"{type(self).__name__}: {operation} failed: {e}")
                raise StorageError(f"{operation} failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()
