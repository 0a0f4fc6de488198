"""
Persistent storage of chat sessions.
"""
import json
import time
from typing import Optional

from config import Config
from models.api_models import ChatSession, Message
from utils.logger import app_logger
from utils.sqlite_store import SQLiteStore


class SessionStore(SQLiteStore):
    """SQLite-backed session store, listed most recently used first."""

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            last_used REAL NOT NULL,
            model_id TEXT NOT NULL,
            rag_directory TEXT,
            messages TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_sessions_last_used ON sessions(last_used);
    """

    def __init__(self, db_path: Optional[str] = None):
        super().__init__(db_path or Config.db_path("sessions.db"))
        app_logger.info(f"Session store initialized with SQLite: {self._db_path}")

    @staticmethod
    def _row_to_session(row) -> ChatSession:
        return ChatSession(
            id=row["id"],
            title=row["title"],
            last_used=row["last_used"],
            model_id=row["model_id"],
            rag_directory=row["rag_directory"],
            messages=[Message.model_validate(m) for m in json.loads(row["messages"])],
        )

    def list(self) -> list[ChatSession]:
        with self._transaction("list sessions") as cursor:
            rows = cursor.execute("SELECT * FROM sessions ORDER BY last_used DESC").fetchall()
        return [self._row_to_session(row) for row in rows]

    def get(self, session_id: str) -> Optional[ChatSession]:
        with self._transaction("get session") as cursor:
            row = cursor.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._row_to_session(row) if row else None

    def put(self, session: ChatSession) -> None:
        """Insert or replace a session, stamping its last-used time."""
        session.last_used = time.time()
        messages = json.dumps([m.model_dump(exclude_none=True) for m in session.messages])

        with self._transaction("save session") as cursor:
            cursor.execute(
                """
                INSERT INTO sessions (id, title, last_used, model_id, rag_directory, messages)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    last_used = excluded.last_used,
                    model_id = excluded.model_id,
                    rag_directory = excluded.rag_directory,
                    messages = excluded.messages
                """,
                (session.id, session.title, session.last_used, session.model_id,
                 session.rag_directory, messages),
            )

        app_logger.debug(f"Session saved: {session.id} ({len(session.messages)} messages)")

    def delete(self, session_id: str) -> bool:
        with self._transaction("delete session") as cursor:
            cursor.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            removed = cursor.rowcount > 0

        if removed:
            app_logger.info(f"Session deleted: {session_id}")
        return removed
