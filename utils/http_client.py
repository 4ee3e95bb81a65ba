"""HTTP client utilities for provider API calls.

This module provides a single shared aiohttp session for every outbound
provider check, with connection pooling, a request timeout and simple
per-status statistics.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from utils.exceptions import ExternalServiceError


@dataclass
class HTTPResult:
    """The parts of a response the provider strategies look at."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None


class HTTPClient:
    """HTTP client utility class with connection pooling.

    The session is created lazily on first use and shared by every caller
    for the lifetime of the process. Requests are never retried; a failed
    call surfaces as ``ExternalServiceError`` and the caller decides what a
    failure means.
    """

    def __init__(
        self,
        timeout: float = 10,
        max_connections: int = 100,
        max_connections_per_host: int = 30,
        max_concurrent_requests: int = 100,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            timeout: Total timeout for a request in seconds.
            max_connections: Maximum number of connections to keep in the pool.
            max_connections_per_host: Maximum connections to a single host.
            max_concurrent_requests: Maximum number of requests in flight.
            logger: Logger instance to use for logging.
        """
        self.timeout = timeout
        self.max_connections = max_connections
        self.max_connections_per_host = max_connections_per_host
        self.logger = logger or logging.getLogger("http_client")
        self._session: ClientSession | None = None
        self._lock = asyncio.Lock()
        self._request_semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._stats: dict[str, Any] = {
            "requests": 0,
            "errors": 0,
            "timeouts": 0,
            "status_codes": {},
        }

    async def get_session(self) -> ClientSession:
        """Get the shared ClientSession, creating it if it doesn't exist."""
        if self._session is None or self._session.closed:
            async with self._lock:
                if self._session is None or self._session.closed:
                    connector = aiohttp.TCPConnector(
                        limit=self.max_connections,
                        limit_per_host=self.max_connections_per_host,
                        ttl_dns_cache=300,  # Cache DNS results for 5 minutes
                    )
                    self._session = ClientSession(
                        connector=connector,
                        timeout=ClientTimeout(total=self.timeout),
                        raise_for_status=False,
                    )
                    self.logger.debug(
                        f"Created new HTTP client session with max_connections={self.max_connections}"
                    )
        return self._session

    async def close(self) -> None:
        """Close the shared ClientSession."""
        if self._session and not self._session.closed:
            await self._session.close()
            self.logger.info(f"Closed HTTP client session, stats: {self.get_stats()}")

    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> HTTPResult:
        """Make a GET request.

        Args:
            url: URL to request.
            headers: Extra request headers.
            params: Query string parameters.

        Returns:
            The response status, headers and decoded JSON body (None when the
            body is not JSON).

        Raises:
            ExternalServiceError: If the request could not be completed.
        """
        service_name = urlparse(url).netloc or url
        session = await self.get_session()

        async with self._request_semaphore:
            self._stats["requests"] += 1
            try:
                async with session.get(url, headers=headers, params=params) as response:
                    try:
                        data = await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        data = None
                    self._record_status(response.status)
                    return HTTPResult(
                        status=response.status,
                        headers=dict(response.headers),
                        data=data,
                    )
            except asyncio.TimeoutError as e:
                self._stats["timeouts"] += 1
                self.logger.warning(f"Request to {service_name} timed out")
                raise ExternalServiceError(
                    service_name, f"Request to {service_name} timed out"
                ) from e
            except aiohttp.ClientError as e:
                self._stats["errors"] += 1
                self.logger.warning(f"Request to {service_name} failed: {e}")
                raise ExternalServiceError(
                    service_name, f"Request to {service_name} failed: {e}"
                ) from e

    def _record_status(self, status: int) -> None:
        codes = self._stats["status_codes"]
        codes[status] = codes.get(status, 0) + 1

    def get_stats(self) -> dict[str, Any]:
        """Get a copy of the request statistics."""
        return {
            **self._stats,
            "status_codes": dict(self._stats["status_codes"]),
        }
