"""
Streaming service containing the transport stream adapters.
Normalizes pull-based chunk readers and poll-based growing buffers into one
sequence of delta/done/error events, and formats outbound SSE frames.
"""
import asyncio
import codecs
import json
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Protocol

import httpx

from config import Config
from utils.logger import app_logger


class StreamEventType(Enum):
    """Kinds of stream events."""
    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


@dataclass
class StreamEvent:
    """One normalized event of a model response stream."""
    type: StreamEventType
    content: str = ""
    error: Optional[str] = None

    @classmethod
    def delta(cls, content: str) -> "StreamEvent":
        return cls(StreamEventType.DELTA, content=content)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(StreamEventType.DONE)

    @classmethod
    def failure(cls, error: str) -> "StreamEvent":
        return cls(StreamEventType.ERROR, error=error)


class SSELineParser:
    """
    Incremental parser for `data: <json>` lines.

    Text may arrive in arbitrary fragments; an unterminated line is kept until
    the rest of it arrives. Once `data: [DONE]` is seen the parser is finished
    and ignores further input.
    """

    DATA_PREFIX = "data:"
    DONE_MARKER = "[DONE]"

    def __init__(self):
        self._pending = ""
        self.finished = False

    def feed(self, text: str) -> list[StreamEvent]:
        """Consume a text fragment and return the events completed by it."""
        if self.finished:
            return []

        self._pending += text
        events = []
        while not self.finished:
            line_end = self._pending.find("\n")
            if line_end == -1:
                break
            line = self._pending[:line_end]
            self._pending = self._pending[line_end + 1:]
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[StreamEvent]:
        """Parse a trailing line that never got its newline."""
        if self.finished or not self._pending:
            return []
        line, self._pending = self._pending, ""
        event = self._parse_line(line)
        return [event] if event is not None else []

    def _parse_line(self, line: str) -> Optional[StreamEvent]:
        line = line.strip()
        if not line.startswith(self.DATA_PREFIX):
            return None

        payload = line[len(self.DATA_PREFIX):].strip()
        if payload == self.DONE_MARKER:
            self.finished = True
            return StreamEvent.done()

        try:
            data = json.loads(payload)
            if isinstance(data, dict) and data.get("error"):
                error = data["error"]
                message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                return StreamEvent.failure(message)
            content = data["choices"][0]["delta"].get("content")
        except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
            app_logger.debug(f"Skipping malformed stream line: {line[:80]}")
            return None

        return StreamEvent.delta(content) if content else None


class ChunkStreamAdapter:
    """Pull-based adapter reading raw bytes from an httpx streaming response."""

    def __init__(self, response: httpx.Response, parser: Optional[SSELineParser] = None):
        self._response = response
        self._parser = parser or SSELineParser()

    async def events(self) -> AsyncIterator[StreamEvent]:
        """
        Yield events in byte-arrival order.

        The response is closed when the stream ends, fails, or the consumer
        stops iterating.
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            async for chunk in self._response.aiter_bytes():
                for event in self._parser.feed(decoder.decode(chunk)):
                    yield event
                    if event.type is StreamEventType.DONE:
                        return

            tail = self._parser.feed(decoder.decode(b"", final=True)) + self._parser.flush()
            for event in tail:
                yield event
                if event.type is StreamEventType.DONE:
                    return
            yield StreamEvent.done()

        except httpx.HTTPError as e:
            app_logger.error(f"Stream read failed: {e}")
            yield StreamEvent.failure(f"Stream read failed: {e}")
        finally:
            await self._response.aclose()


class ProgressiveSource(Protocol):
    """A response whose full text can be inspected while it grows."""

    @property
    def text(self) -> str: ...

    @property
    def finished(self) -> bool: ...

    @property
    def error(self) -> Optional[str]: ...


class PollingStreamAdapter:
    """
    Poll-based adapter over a growing text buffer.

    Each poll looks only at the text after the last seen length. With a parser
    the new suffix is parsed as SSE lines; without one it is emitted as a raw
    delta (used for the local runtime's completion text).
    """

    def __init__(
        self,
        source: ProgressiveSource,
        parser: Optional[SSELineParser] = None,
        poll_interval: float = Config.STREAM_POLL_INTERVAL,
    ):
        self._source = source
        self._parser = parser
        self._poll_interval = poll_interval
        self.seen_length = 0

    def _take_new_text(self) -> str:
        text = self._source.text
        if len(text) <= self.seen_length:
            return ""
        new_text = text[self.seen_length:]
        self.seen_length = len(text)
        return new_text

    def _to_events(self, new_text: str) -> list[StreamEvent]:
        if self._parser is None:
            return [StreamEvent.delta(new_text)] if new_text else []
        return self._parser.feed(new_text)

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            # read the flag first so text appended before completion is never missed
            finished = self._source.finished
            for event in self._to_events(self._take_new_text()):
                yield event
                if event.type is StreamEventType.DONE:
                    return

            if self._source.error:
                yield StreamEvent.failure(self._source.error)
                return

            if finished:
                if self._parser is not None:
                    for event in self._parser.flush():
                        yield event
                        if event.type is StreamEventType.DONE:
                            return
                yield StreamEvent.done()
                return

            await asyncio.sleep(self._poll_interval)


class ProgressiveResponseBuffer:
    """
    Accumulates an httpx streaming response into one growing text buffer.

    Consumers cannot be notified per chunk; they poll `text` and `finished`.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._text = ""
        self._finished = False
        self._error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def error(self) -> Optional[str]:
        return self._error

    def start(self) -> "ProgressiveResponseBuffer":
        self._task = asyncio.create_task(self._read())
        return self

    async def _read(self) -> None:
        try:
            async for text in self._response.aiter_text():
                self._text += text
        except httpx.HTTPError as e:
            app_logger.error(f"Progressive read failed: {e}")
            self._error = f"Stream read failed: {e}"
        finally:
            self._finished = True
            await self._response.aclose()

    async def stop(self) -> None:
        """Cancel the reader and release the connection."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self._response.aclose()


async def poll_response_events(
    buffer: ProgressiveResponseBuffer,
    poll_interval: float = Config.STREAM_POLL_INTERVAL,
) -> AsyncIterator[StreamEvent]:
    """Stream a progressive buffer as SSE events, stopping the reader afterwards."""
    adapter = PollingStreamAdapter(buffer, SSELineParser(), poll_interval)
    try:
        async for event in adapter.events():
            yield event
    finally:
        await buffer.stop()


class StreamService:
    """Outbound event formatting."""

    @staticmethod
    def send_sse_event(event_type: str, data: dict) -> str:
        """Format data as Server-Sent Events (SSE) format."""
        return f"event: {event_type}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"
