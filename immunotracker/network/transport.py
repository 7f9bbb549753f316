"""HTTP transport carrying router and sync traffic to the backend."""

import logging
from typing import Any, Optional
from urllib.parse import urljoin

import httpx

from ..utils.exceptions import TransientNetworkError
from .models import FetchRequest, FetchResponse

logger = logging.getLogger(__name__)


class HTTPTransport:
    """Async HTTP client turning ``FetchRequest`` into ``FetchResponse``.

    Any HTTP status, including 4xx and 5xx, is returned as a response; only
    transport failures (DNS, refused connection, timeout) raise.
    """

    def __init__(self, settings: Any, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize HTTP transport.

        Args:
            settings: Application settings
            transport: Optional httpx transport (e.g. ``httpx.MockTransport`` in tests)
        """
        self.settings = settings
        self.client: Optional[httpx.AsyncClient] = None
        self._transport = transport

        logger.debug("HTTP transport initialized")

    async def __aenter__(self) -> "HTTPTransport":
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self._close_client()

    async def _ensure_client(self) -> None:
        """Ensure HTTP client exists."""
        if self.client is None or self.client.is_closed:
            timeout = httpx.Timeout(
                connect=10.0, read=self.settings.request_timeout, write=10.0, pool=30.0
            )

            self.client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={
                    "User-Agent": f"{self.settings.app_name}/{self.settings.app_version}",
                    "Accept": "application/json, text/html, */*",
                },
            )

    async def _close_client(self) -> None:
        """Close HTTP client."""
        if self.client and not self.client.is_closed:
            await self.client.aclose()

    async def close(self) -> None:
        await self._close_client()

    def absolute_url(self, url: str) -> str:
        """Resolve a path such as ``/api/stats/summary`` against the configured origin."""
        if url.startswith(("http://", "https://")):
            return url
        return urljoin(self.settings.origin.rstrip("/") + "/", url)

    async def fetch(self, request: FetchRequest) -> FetchResponse:
        """Send a request to the network.

        Args:
            request: Request to send

        Returns:
            Network response, whatever its status

        Raises:
            TransientNetworkError: If the network could not be reached
        """
        await self._ensure_client()
        url = self.absolute_url(request.url)
        if self.client is None:
            raise TransientNetworkError("HTTP client not initialized", url)

        logger.debug(f"{request.method} {url}")

        try:
            response = await self.client.request(
                request.method,
                url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.TransportError as e:
            logger.debug(f"Network unreachable for {request.method} {url}: {e}")
            raise TransientNetworkError(f"Network error: {e}", url=url) from e

        return FetchResponse(
            url=str(response.url),
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def fetch_url(self, url: str, **kwargs: Any) -> FetchResponse:
        """Convenience wrapper building a ``FetchRequest`` from a URL."""
        return await self.fetch(FetchRequest(url=url, **kwargs))
