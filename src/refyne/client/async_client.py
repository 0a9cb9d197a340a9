"""Asynchronous Refyne client -- mirrors :class:`~refyne.client.sync_client.Client`.

:class:`AsyncClient` runs the same pipeline with ``await`` and
:func:`asyncio.sleep`, so it can be used inside an event loop. Cancelling
the calling task aborts the in-flight attempt or backoff sleep
immediately; :class:`asyncio.CancelledError` propagates unchanged.

The cache and the version-check gate are shared, thread-safe objects, so
one :class:`AsyncClient` may also be driven from several event loops in
different threads.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from refyne.client.base import _MISS, BaseClient
from refyne.exceptions import NetworkError
from refyne.transport import AsyncHTTPXTransport, AsyncTransport


class AsyncClient(BaseClient):
    """Non-blocking client for the Refyne API.

    Endpoint methods (``extract``, ``jobs.list``, ...) return awaitables.

    Args:
        transport: Sends each attempt. Defaults to
            :class:`~refyne.transport.AsyncHTTPXTransport`.

    Raises:
        asyncio.CancelledError: From any pending call when its task is
            cancelled. No :class:`~refyne.exceptions.RequestCancelledError`
            is raised here, unlike the blocking client.

    Example::

        async with AsyncClient("your-api-key") as client:
            job = await client.crawl("https://example.com", {"title": "string"})
            status = await client.jobs.get(job.job_id)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        transport: Optional[AsyncTransport] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, **kwargs)
        self._owns_transport = transport is None
        self._transport: AsyncTransport = transport or AsyncHTTPXTransport()

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this client created it, and the cache if asked to."""
        if self._owns_transport:
            await self._transport.aclose()
        if self._close_cache:
            self._cache.close()

    # ------------------------------------------------------------------ #
    # Public request method
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        result_type: Optional[type[BaseModel]] = None,
        skip_cache: bool = False,
    ) -> Any:
        """Execute an API request through the full pipeline.

        Behaves identically to
        :meth:`~refyne.client.sync_client.Client.request` but is
        non-blocking. Cancellation uses the standard task mechanism.
        """
        url = self._url(path)
        key = self._cache_key(method, url)

        cached = self._cached_result(method, key, result_type, skip_cache)
        if cached is not _MISS:
            return cached

        response = await self._execute_with_retry(method, url, body)
        return self._finish(method, key, response, result_type)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _execute_with_retry(self, method: str, url: str, body: Any) -> httpx.Response:
        attempt = 1
        while True:
            request = self._build_request(method, url, body)
            try:
                response = await self._transport.send(request)
            except httpx.TransportError as exc:
                delay = self._retry_delay(attempt, error=exc)
                if delay is None:
                    raise NetworkError(
                        f"request failed after {attempt} attempt(s)", error=exc
                    ) from exc
                await asyncio.sleep(delay)
                attempt += 1
                continue

            delay = self._retry_delay(attempt, response=response)
            if delay is None:
                return response

            await response.aclose()
            await asyncio.sleep(delay)
            attempt += 1
