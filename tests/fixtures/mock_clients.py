import asyncio
import json
from typing import Callable, Optional

import httpx


def scripted_round(text: str = "", tool_calls: Optional[list] = None, chunks: Optional[list] = None) -> dict:
    """One model round: streamed text chunks followed by optional tool calls."""
    return {
        "chunks": chunks if chunks is not None else ([text] if text else []),
        "tool_calls": tool_calls or [],
    }


def tool_call(name: str, **arguments) -> dict:
    """Tool call in the shape the Ollama client streams it."""
    return {"function": {"name": name, "arguments": arguments}}


class ScriptedOllamaClient:
    """Ollama client fake that plays back one scripted round per chat call."""

    def __init__(
        self,
        rounds: Optional[list] = None,
        embedding: Optional[Callable[[str], list]] = None,
        models: Optional[list] = None,
        capabilities: Optional[dict] = None,
    ):
        self.rounds = list(rounds or [])
        self.call_history = []
        self.embed_calls = []
        self._embedding = embedding
        self._models = models or []
        self._capabilities = capabilities or {}
        # set to hold the stream open after its first chunk
        self.gate: Optional[asyncio.Event] = None
        self.stream_closed = False

    async def chat(self, model, messages, tools=None, stream=False, **kwargs):
        self.call_history.append({
            "model": model,
            "messages": [dict(m) for m in messages],
            "tools": tools,
            "stream": stream,
        })
        script = self.rounds.pop(0) if self.rounds else scripted_round()

        async def streamer():
            try:
                for index, chunk in enumerate(script["chunks"]):
                    yield {"message": {"role": "assistant", "content": chunk}}
                    if index == 0 and self.gate is not None:
                        await self.gate.wait()
                if script["tool_calls"]:
                    yield {"message": {"role": "assistant", "content": "", "tool_calls": script["tool_calls"]}}
            finally:
                self.stream_closed = True

        return streamer()

    async def embed(self, model, input):
        self.embed_calls.append(input)
        if self._embedding is None:
            return {"embeddings": []}
        return {"embeddings": [self._embedding(input)]}

    async def list(self):
        return {"models": [{"model": name} for name in self._models]}

    async def show(self, model):
        return {"capabilities": self._capabilities.get(model, ["completion"])}


def sse_body(*contents: str, done: bool = True) -> list[bytes]:
    """Encode deltas as OpenRouter-style SSE lines."""
    lines = [b": OPENROUTER PROCESSING\n\n"]
    for content in contents:
        payload = {"choices": [{"delta": {"content": content}}]}
        lines.append(f"data: {json.dumps(payload)}\n\n".encode("utf-8"))
    if done:
        lines.append(b"data: [DONE]\n\n")
    return lines


def streaming_response(chunks: list[bytes], status_code: int = 200) -> httpx.Response:
    """httpx response whose body arrives in the given byte chunks."""
    async def body():
        for chunk in chunks:
            yield chunk

    return httpx.Response(status_code, content=body(), headers={"content-type": "text/event-stream"})


class CloudTransport:
    """MockTransport handler recording cloud requests and replying with scripted bodies."""

    def __init__(self, chunks: Optional[list] = None, models: Optional[list] = None, status_code: int = 200):
        self.chunks = chunks or []
        self.models = models or []
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json={"data": self.models})
        return streaming_response(self.chunks, status_code=self.status_code)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), base_url="https://cloud.test/api/v1")
