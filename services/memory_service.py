"""
Similarity index over memorized messages.
Linear-scan cosine similarity search backed by SQLite persistence.
"""
import json
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from config import Config
from models.api_models import MemoryEntry
from utils.errors import EmbeddingDimensionError
from utils.logger import app_logger
from utils.sqlite_store import SQLiteStore


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        EmbeddingDimensionError: If the vectors differ in length
    """
    if len(vec_a) != len(vec_b):
        raise EmbeddingDimensionError(
            f"Embedding length mismatch: {len(vec_a)} != {len(vec_b)}"
        )

    dot_product = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot_product += a * b
        norm_a += a * a
        norm_b += b * b

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return dot_product / (math.sqrt(norm_a) * math.sqrt(norm_b))


@dataclass
class MemoryMatch:
    """A memory entry with its similarity to the query."""
    entry: MemoryEntry
    score: float


class MemoryIndex(SQLiteStore):
    """
    Persistent store of content + embedding pairs with nearest-neighbour search.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS memories (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL,
            content TEXT NOT NULL,
            role TEXT NOT NULL,
            embedding TEXT NOT NULL,
            timestamp REAL NOT NULL,
            chat_id TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_memories_id ON memories(id);
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the index.

        Args:
            db_path: Path to SQLite database file (default: <data dir>/memories.db)
        """
        super().__init__(db_path or Config.db_path("memories.db"))
        app_logger.info(f"Memory index initialized with SQLite: {self._db_path}")

    @staticmethod
    def _row_to_entry(row) -> MemoryEntry:
        return MemoryEntry(
            id=row["id"],
            content=row["content"],
            role=row["role"],
            embedding=json.loads(row["embedding"]),
            timestamp=row["timestamp"],
            chat_id=row["chat_id"],
        )

    def add(self, entry: MemoryEntry) -> None:
        """Append an entry."""
        if not entry.embedding:
            raise ValueError("Memory entry has an empty embedding")

        with self._transaction("add memory") as cursor:
            cursor.execute(
                """
                INSERT INTO memories (id, content, role, embedding, timestamp, chat_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (entry.id, entry.content, entry.role, json.dumps(entry.embedding),
                 entry.timestamp, entry.chat_id),
            )

        app_logger.debug(f"Memory stored: {entry.role} {entry.id} ({len(entry.embedding)} dims)")

    def list_entries(self) -> list[MemoryEntry]:
        """All entries in storage order."""
        with self._transaction("list memories") as cursor:
            rows = cursor.execute("SELECT * FROM memories ORDER BY seq").fetchall()
        return [self._row_to_entry(row) for row in rows]

    def count(self) -> int:
        with self._transaction("count memories") as cursor:
            return cursor.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

    def search(
        self,
        query_embedding: Sequence[float],
        limit: int = Config.MEMORY_RESULT_LIMIT,
        threshold: float = Config.MEMORY_SIMILARITY_THRESHOLD,
    ) -> list[MemoryMatch]:
        """
        Score every stored entry against the query.

        Entries scoring at least `threshold` are returned best first, at most
        `limit` of them. Equal scores keep storage order.

        Raises:
            EmbeddingDimensionError: If a stored embedding has a different length
        """
        if not query_embedding:
            raise ValueError("Query embedding is empty")

        scored = []
        for entry in self.list_entries():
            score = cosine_similarity(query_embedding, entry.embedding)
            if score >= threshold:
                scored.append(MemoryMatch(entry=entry, score=score))

        scored.sort(key=lambda match: match.score, reverse=True)
        matches = scored[:limit]

        app_logger.info(f"Memory search: {len(matches)} match(es) above {threshold:.2f}")
        return matches

    def delete_one(self, memory_id: str) -> bool:
        """Delete an entry by id. Returns True if something was removed."""
        with self._transaction("delete memory") as cursor:
            cursor.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            removed = cursor.rowcount > 0

        if removed:
            app_logger.info(f"Memory deleted: {memory_id}")
        return removed

    def delete_all(self) -> int:
        """Delete every entry and return how many were removed."""
        with self._transaction("clear memories") as cursor:
            cursor.execute("DELETE FROM memories")
            count = cursor.rowcount

        app_logger.info(f"Memories cleared: {count} entries removed")
        return count
