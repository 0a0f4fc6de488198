"""
Cloud inference service for the OpenRouter-compatible endpoint.
Lists remote models and streams chat completions through either transport.
"""
from typing import AsyncIterator, Optional

import httpx

from config import Config
from models.chat_models import CloudModel, ModelCapabilities
from services.stream_service import (
    ChunkStreamAdapter,
    ProgressiveResponseBuffer,
    StreamEvent,
    poll_response_events,
)
from utils.errors import TransportError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


class CloudService:
    """Client for remote models."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[str] = None,
        poll_interval: float = Config.STREAM_POLL_INTERVAL,
    ):
        self._api_key = api_key if api_key is not None else Config.OPENROUTER_API_KEY
        self._client = client
        self._transport = transport or Config.CLOUD_STREAM_TRANSPORT
        self._poll_interval = poll_interval

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or HTTPClientManager.get_cloud_client()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _parse_model(item: dict) -> CloudModel:
        modalities = (item.get("architecture") or {}).get("input_modalities") or []
        return CloudModel(
            id=item["id"],
            name=item.get("name") or item["id"],
            description=item.get("description"),
            context_length=item.get("context_length"),
            pricing=item.get("pricing"),
            # tool calls are not forwarded on the cloud wire format
            capabilities=ModelCapabilities(supports_vision="image" in modalities, supports_tools=False),
        )

    async def fetch_models(self, selected: Optional[list[str]] = None) -> list[CloudModel]:
        """
        Fetch the remote model list.

        Args:
            selected: Model ids to keep (defaults to Config.CLOUD_MODELS; empty keeps none)

        Raises:
            TransportError: If the request fails
        """
        selected = Config.CLOUD_MODELS if selected is None else selected
        try:
            response = await self.client.get("/models", headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as e:
            app_logger.error(f"CloudService fetch_models error: {e}")
            raise TransportError(f"Failed to fetch models: {e}") from e

        models = [self._parse_model(item) for item in response.json().get("data", [])]
        return [model for model in models if model.id in selected]

    async def stream_chat(self, model: str, messages: list[dict]) -> AsyncIterator[StreamEvent]:
        """
        Stream a chat completion as normalized events.

        Raises:
            TransportError: If no API key is configured or the request is refused
        """
        if not self._api_key:
            raise TransportError("No API key configured for cloud inference")

        body = {"model": model, "messages": messages, "stream": True}
        request = self.client.build_request("POST", "/chat/completions", json=body, headers=self._headers())

        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            app_logger.error(f"Cloud request failed: {e}")
            raise TransportError(f"Cloud request failed: {e}") from e

        if response.status_code >= 400:
            detail = (await response.aread()).decode("utf-8", errors="replace")[:200]
            await response.aclose()
            app_logger.error(f"Cloud request rejected ({response.status_code}): {detail}")
            raise TransportError(f"Cloud request rejected ({response.status_code}): {detail}")

        app_logger.info(f"Cloud stream opened for {model} via {self._transport} transport")

        if self._transport == "poll":
            events = poll_response_events(ProgressiveResponseBuffer(response).start(), self._poll_interval)
        else:
            events = ChunkStreamAdapter(response).events()

        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()
