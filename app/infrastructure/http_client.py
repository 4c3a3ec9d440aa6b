"""Pooled async HTTP client shared by the fetcher and the Graph API client.

One ``httpx.AsyncClient`` is created per worker process and reused for
every download and Graph call. It follows redirects, because Drive and
SharePoint hand out download links through several hops. The connect
timeout is short; the read timeout is long, because stalled transfers
are caught separately by the downloader's stall detection.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from app.core.logging import get_logger

logger = get_logger(__name__)


class HTTPClient:
    """Managed ``httpx.AsyncClient``.

    Example:
        >>> client = HTTPClient(user_agent="Mozilla/5.0")
        >>> async with client.stream("GET", "https://cdn.example.com/clip.mp4") as response:
        ...     async for chunk in response.aiter_bytes():
        ...         ...
        >>> await client.close()
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        max_redirects: int = 10,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTPClient.

        Args:
            connect_timeout: Seconds allowed to open a connection
            read_timeout: Default seconds allowed between received bytes
            max_connections: Pool size
            max_keepalive_connections: Idle connections kept open
            max_redirects: Redirect hops followed before giving up
            user_agent: Default User-Agent header
            transport: Custom transport, e.g. ``httpx.MockTransport``
        """
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            headers={"User-Agent": user_agent} if user_agent else None,
            follow_redirects=True,
            max_redirects=max_redirects,
            transport=transport,
        )
        logger.debug(
            "HTTP client created",
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            max_connections=max_connections,
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and read the full body."""
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    @asynccontextmanager
    async def stream(self, method: str, url: str, **kwargs: Any) -> AsyncIterator[httpx.Response]:
        """Send a request without reading the body.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Passed to httpx (headers, params, timeout)

        Yields:
            Response whose body is consumed by the caller
        """
        async with self._client.stream(method, url, **kwargs) as response:
            yield response

    async def close(self) -> None:
        """Close pooled connections. Safe to call twice."""
        if self._client.is_closed:
            return
        await self._client.aclose()
        logger.debug("HTTP client closed")


__all__ = ["HTTPClient"]
