# poster_press/gateways/rest.py
"""Shared HTTP client for the hosted backend (PostgREST tables + object storage)."""

import logging

import httpx

from .retry import rest_retry

logger = logging.getLogger(__name__)


class RestClient:
    """
    Thin async wrapper around httpx.AsyncClient.

    Adds the service-key headers, raises on HTTP errors and retries
    transient failures.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize REST client.

        Args:
            base_url: Backend base URL (e.g. "https://xyz.supabase.co")
            service_key: Service key sent as both apikey and bearer token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config) -> "RestClient":
        """Build from a RestConfig; both base_url and service_key are required."""
        if not config.base_url or not config.service_key:
            raise ValueError("rest.base_url and rest.service_key must be configured")
        return cls(config.base_url, config.service_key, timeout=config.timeout)

    @rest_retry
    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send a request and return the response.

        Raises:
            httpx.HTTPStatusError: On 4xx/5xx after retries
            httpx.TransportError: On network failures after retries
        """
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
