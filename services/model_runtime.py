"""
Local model runtime backed by Ollama.
Provides pollable in-flight completions, embeddings and model listing with
capabilities resolved once per listing.
"""
import asyncio
from typing import Any, Optional

import httpx
import ollama

from models.chat_models import CompletionResult, LocalModel, ModelCapabilities, ToolCall
from utils.logger import app_logger


class LocalCompletion:
    """
    One in-flight completion on the local runtime.

    While the model streams, `completion_text` grows and `is_generating` stays
    True; callers poll both. Tool calls requested by the model are collected in
    `function_calls`.
    """

    def __init__(self, client: ollama.AsyncClient, model: str, messages: list, tools: Optional[list] = None):
        self._client = client
        self._model = model
        self._messages = messages
        self._tools = tools or None
        self._task: Optional[asyncio.Task] = None
        self.completion_text = ""
        self.is_generating = False
        self.function_calls: list[ToolCall] = []
        self.error: Optional[str] = None

    @property
    def text(self) -> str:
        return self.completion_text

    @property
    def finished(self) -> bool:
        return not self.is_generating

    def start(self) -> "LocalCompletion":
        self.is_generating = True
        self._task = asyncio.create_task(self._run())
        return self

    @staticmethod
    def _parse_tool_call(call: Any) -> ToolCall:
        function = call["function"]
        arguments = function.get("arguments") or {}
        return ToolCall(name=function["name"], arguments=dict(arguments))

    async def _run(self) -> None:
        try:
            stream = await self._client.chat(
                model=self._model,
                messages=self._messages,
                tools=self._tools,
                stream=True
            )
            async for chunk in stream:
                message = chunk["message"]
                self.completion_text += message.get("content") or ""
                for call in message.get("tool_calls") or []:
                    self.function_calls.append(self._parse_tool_call(call))
        except ollama.ResponseError as e:
            app_logger.error(f"Ollama error: {e.error}")
            self.error = f"Ollama error: {e.error}"
        except (httpx.HTTPError, ConnectionError) as e:
            app_logger.error(f"Local runtime unreachable: {e}")
            self.error = f"Local runtime unreachable: {e}"
        except Exception as e:
            app_logger.error(f"Local completion failed: {type(e).__name__}: {e}")
            self.error = f"Local completion failed: {type(e).__name__}: {e}"
        finally:
            self.is_generating = False

    async def wait(self) -> CompletionResult:
        """Wait for the model to stop generating and return what it produced."""
        if self._task is not None:
            await self._task
        return CompletionResult(text=self.completion_text, function_calls=list(self.function_calls))

    async def stop(self) -> None:
        """Cancel generation if it is still running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            app_logger.info(f"Local generation stopped for {self._model}")


class LocalModelRuntime:
    """Adapter around ollama.AsyncClient."""

    def __init__(self, client: Optional[ollama.AsyncClient] = None):
        self._client = client or ollama.AsyncClient()

    def start_completion(self, model: str, messages: list, tools: Optional[list] = None) -> LocalCompletion:
        """Begin a streaming completion and return its pollable handle."""
        return LocalCompletion(self._client, model, messages, tools).start()

    async def complete(self, model: str, messages: list, tools: Optional[list] = None) -> CompletionResult:
        """Run a completion to the end."""
        return await self.start_completion(model, messages, tools).wait()

    async def embed(self, model: str, text: str) -> Optional[list[float]]:
        """
        Embed text with the given embedding model.

        Returns:
            The vector, or None when the runtime returned no embedding
        """
        response = await self._client.embed(model=model, input=text)
        embeddings = response["embeddings"]
        if not embeddings:
            return None
        return [float(value) for value in embeddings[0]]

    async def list_models(self) -> list[LocalModel]:
        """List installed models with their capabilities."""
        models_response = await self._client.list()
        descriptors = []
        for model in models_response["models"]:
            name = model["model"]
            descriptors.append(LocalModel(
                id=name,
                name=name,
                capabilities=await self._resolve_capabilities(name)
            ))
        return descriptors

    async def _resolve_capabilities(self, name: str) -> ModelCapabilities:
        try:
            info = await self._client.show(name)
        except ollama.ResponseError as e:
            app_logger.warning(f"Could not read capabilities for {name}: {e.error}")
            return ModelCapabilities()

        capabilities = info.get("capabilities")
        if capabilities is None:
            app_logger.warning(f"Runtime reported no capabilities for {name}; tools and vision stay off")
            capabilities = []
        return ModelCapabilities(
            supports_vision="vision" in capabilities,
            supports_tools="tools" in capabilities
        )
