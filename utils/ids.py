"""
Identifier generation for messages and sessions.
"""
import threading
import time
from typing import Callable


class MessageIdGenerator:
    """
    Millisecond timestamp ids that stay distinct within the same millisecond.

    The first id of a millisecond is the bare timestamp, later ones get a
    "-N" sequence suffix. An optional tag ("call", "result") is appended after
    an underscore.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms: int | None = None
        self._sequence = 0

    def next_id(self, tag: str = "") -> str:
        with self._lock:
            now_ms = int(self._clock() * 1000)
            if self._last_ms is not None and now_ms <= self._last_ms:
                # clock did not advance (or went backwards): keep the last base
                now_ms = self._last_ms
                self._sequence += 1
            else:
                self._last_ms = now_ms
                self._sequence = 0

            base = str(now_ms) if self._sequence == 0 else f"{now_ms}-{self._sequence}"

        return f"{base}_{tag}" if tag else base
