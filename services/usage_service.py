"""
Usage audit log.
Append-only record of sent messages and received completions, with totals and
time-bucket aggregation for the usage graph.
"""
import time
from dataclasses import dataclass
from typing import Optional

from config import Config
from models.api_models import UsageEntry
from utils.logger import app_logger
from utils.sqlite_store import SQLiteStore

HOUR = 60 * 60
DAY = 24 * HOUR


@dataclass
class UsageStats:
    """Usage totals."""
    total_messages: int
    total_completions: int
    total_characters: int


class UsageLog(SQLiteStore):
    """SQLite-backed usage log."""

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS usage (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp REAL NOT NULL,
            kind TEXT NOT NULL,
            character_count INTEGER NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_usage_timestamp ON usage(timestamp);
    """

    # Format: range -> (window seconds, bucket count)
    RANGES = {
        "hourly": (24 * HOUR, 24),
        "daily": (7 * DAY, 7),
        "weekly": (12 * 7 * DAY, 12),
        "monthly": (12 * 30 * DAY, 12),
        "yearly": (5 * 365 * DAY, 5),
    }
    ALL_RANGE_BUCKETS = 10

    def __init__(self, db_path: Optional[str] = None):
        super().__init__(db_path or Config.db_path("usage.db"))

    def append(self, entry: UsageEntry) -> None:
        with self._transaction("append usage") as cursor:
            cursor.execute(
                "INSERT INTO usage (timestamp, kind, character_count) VALUES (?, ?, ?)",
                (entry.timestamp, entry.kind, entry.character_count),
            )

    def record(self, kind: str, character_count: int) -> None:
        """Append an entry stamped with the current time."""
        self.append(UsageEntry(timestamp=time.time(), kind=kind, character_count=character_count))

    def query(self, range_start: float, range_end: float) -> list[UsageEntry]:
        """Entries with range_start <= timestamp <= range_end, oldest first."""
        with self._transaction("query usage") as cursor:
            rows = cursor.execute(
                "SELECT timestamp, kind, character_count FROM usage "
                "WHERE timestamp >= ? AND timestamp <= ? ORDER BY seq",
                (range_start, range_end),
            ).fetchall()
        return [UsageEntry(**dict(row)) for row in rows]

    def stats(self) -> UsageStats:
        with self._transaction("usage stats") as cursor:
            row = cursor.execute(
                """
                SELECT
                    COALESCE(SUM(kind = 'message'), 0),
                    COALESCE(SUM(kind = 'completion'), 0),
                    COALESCE(SUM(character_count), 0)
                FROM usage
                """
            ).fetchone()
        return UsageStats(total_messages=row[0], total_completions=row[1], total_characters=row[2])

    def buckets(self, range_name: str, now: Optional[float] = None) -> list[int]:
        """
        Count entries per time bucket for a graph range.

        Args:
            range_name: One of hourly, daily, weekly, monthly, yearly, all
            now: End of the window (defaults to the current time)

        Returns:
            Entry counts, oldest bucket first
        """
        now = time.time() if now is None else now

        if range_name == "all":
            with self._transaction("usage start") as cursor:
                first = cursor.execute("SELECT MIN(timestamp) FROM usage").fetchone()[0]
            if first is None:
                return []
            start = first
            bucket_count = self.ALL_RANGE_BUCKETS
            bucket_size = (now - start) / bucket_count
        elif range_name in self.RANGES:
            window, bucket_count = self.RANGES[range_name]
            start = now - window
            bucket_size = window / bucket_count
        else:
            raise ValueError(f"Unknown usage range '{range_name}'")

        counts = [0] * bucket_count
        for entry in self.query(start, now):
            if bucket_size <= 0:
                counts[-1] += 1
                continue
            index = min(int((entry.timestamp - start) // bucket_size), bucket_count - 1)
            if index >= 0:
                counts[index] += 1

        return counts

    def clear(self) -> None:
        with self._transaction("clear usage") as cursor:
            cursor.execute("DELETE FROM usage")
        app_logger.info("Usage log cleared")
