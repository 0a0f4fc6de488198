"""
Memory augmentation step.
Best-effort retrieval of related past messages for a new user turn, and
memorization of finalized messages. Failures are recorded and never block a turn.
"""
import time
from typing import Awaitable, Callable, Optional

from config import Config
from models.api_models import MemoryEntry, Message
from services.memory_service import MemoryIndex
from utils.logger import app_logger

Embedder = Callable[[str], Awaitable[Optional[list[float]]]]


class MemoryAugmentationStep:
    """Embeds, searches, injects context and stores memories."""

    def __init__(
        self,
        index: MemoryIndex,
        embedder: Optional[Embedder],
        enabled: bool = Config.MEMORY_ENABLED,
        threshold: float = Config.MEMORY_SIMILARITY_THRESHOLD,
        limit: int = Config.MEMORY_RESULT_LIMIT,
    ):
        self._index = index
        self._embedder = embedder
        self.enabled = enabled
        self._threshold = threshold
        self._limit = limit

    @property
    def active(self) -> bool:
        return self.enabled and self._embedder is not None

    @staticmethod
    def _is_memorable(message: Message) -> bool:
        return bool(message.content.strip()) and message.content != Config.IMAGE_PLACEHOLDER

    @staticmethod
    def format_context(matches: list, content: str) -> str:
        """Prepend retrieved memories to the user's content."""
        context = "\n".join(f"[Memory]: {match.entry.content}" for match in matches)
        return f"Context:\n{context}\n\nUser Query:\n{content}"

    async def _embed(self, text: str) -> Optional[list[float]]:
        return await self._embedder(text)

    async def augment(
        self,
        message: Message,
        chat_id: str,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> str:
        """
        Return the content to send for a user message.

        Progress is appended to `message.memory_log` in place. The stored memory
        is always the original content, never the augmented one.
        """
        if not self.active or not self._is_memorable(message):
            return message.content

        if message.memory_log is None:
            message.memory_log = []

        def log(line: str) -> None:
            message.memory_log.append(line)
            if on_log is not None:
                on_log(line)

        log("Converting to embeddings...")
        try:
            embedding = await self._embed(message.content)
        except Exception as e:
            app_logger.warning(f"Embedding generation failed: {e}")
            embedding = None
            reason = f"{type(e).__name__}: {e}"
        else:
            reason = "Model not loaded?"

        if not embedding:
            log(f"Failed to generate embedding ({reason})")
            return message.content

        content = message.content
        log("Searching local vector DB...")
        try:
            matches = self._index.search(embedding, limit=self._limit, threshold=self._threshold)
        except Exception as e:
            app_logger.warning(f"Memory search failed: {e}")
            log(f"Memory search failed ({e})")
            matches = []
        else:
            if matches:
                log(f"Found {len(matches)} relevant memories.")
                content = self.format_context(matches, message.content)
            else:
                log("No relevant memories found.")

        if not self._store(message, embedding, chat_id):
            log("Failed to save memory.")

        return content

    async def memorize(self, message: Message, chat_id: str) -> bool:
        """Embed and store a finalized message without retrieval."""
        if not self.active or not self._is_memorable(message):
            return False

        try:
            embedding = await self._embed(message.content)
        except Exception as e:
            app_logger.warning(f"Embedding generation failed for {message.role} message {message.id}: {e}")
            return False

        if not embedding:
            app_logger.warning(f"No embedding returned for {message.role} message {message.id}")
            return False

        return self._store(message, embedding, chat_id)

    def _store(self, message: Message, embedding: list[float], chat_id: str) -> bool:
        try:
            self._index.add(MemoryEntry(
                id=message.id,
                content=message.content,
                role=message.role,
                embedding=embedding,
                timestamp=time.time(),
                chat_id=chat_id,
            ))
        except Exception as e:
            app_logger.error(f"Failed to save memory {message.id}: {e}")
            return False
        return True
