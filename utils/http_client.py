"""
HTTP client utilities with connection pooling.
Provides the reusable httpx client for the cloud inference endpoint.
"""
import httpx
from config import Config


class HTTPClientManager:
    """Manages the shared httpx client with connection pooling."""

    _cloud_client: httpx.AsyncClient | None = None

    @classmethod
    def get_cloud_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for cloud inference.

        Features:
        - Connection pooling (reuses TCP connections)
        - Long read timeout for streamed completions

        Returns:
            Configured httpx.AsyncClient for cloud requests
        """
        if cls._cloud_client is None:
            limits = httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0
            )

            cls._cloud_client = httpx.AsyncClient(
                base_url=Config.CLOUD_BASE_URL,
                timeout=httpx.Timeout(Config.CLOUD_TIMEOUT, connect=Config.CLOUD_CONNECT_TIMEOUT),
                limits=limits,
                http2=True
            )

        return cls._cloud_client

    @classmethod
    async def close_all(cls) -> None:
        """
        Close all managed clients and clean up connections.
        """
        if cls._cloud_client is not None:
            await cls._cloud_client.aclose()
            cls._cloud_client = None
