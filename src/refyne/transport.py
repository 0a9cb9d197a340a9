"""Pluggable HTTP transports.

A transport sends one fully built :class:`httpx.Request` and returns the
fully read :class:`httpx.Response`. Network failures must surface as
:class:`httpx.TransportError` (timeouts included) so the clients can retry
them. Substitute a transport to add proxies, custom TLS, or recording in
tests; the defaults wrap :class:`httpx.Client` and
:class:`httpx.AsyncClient`.

Example::

    import httpx
    from refyne import Client
    from refyne.transport import HTTPXTransport

    transport = HTTPXTransport(proxy="http://proxy.internal:3128")
    client = Client("key", transport=transport)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx


class Transport(ABC):
    """Blocking transport used by :class:`~refyne.client.Client`."""

    @abstractmethod
    def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the response with its body read.

        Raises:
            httpx.TransportError: On any network-level failure.
        """
        ...

    def close(self) -> None:
        """Release pooled connections. The default does nothing."""


class AsyncTransport(ABC):
    """Non-blocking transport used by :class:`~refyne.client.AsyncClient`."""

    @abstractmethod
    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the response with its body read."""
        ...

    async def aclose(self) -> None:
        """Release pooled connections. The default does nothing."""


class HTTPXTransport(Transport):
    """:class:`Transport` backed by a pooled :class:`httpx.Client`.

    Args:
        client: Pre-configured client to use. When omitted one is created
            from *client_kwargs* and owned (closed) by this transport.
        **client_kwargs: Forwarded to :class:`httpx.Client` (e.g.
            ``verify``, ``proxy``, ``transport``).
    """

    def __init__(self, client: Optional[httpx.Client] = None, **client_kwargs: Any) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True, **client_kwargs)

    def send(self, request: httpx.Request) -> httpx.Response:
        return self._client.send(request)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class AsyncHTTPXTransport(AsyncTransport):
    """:class:`AsyncTransport` backed by a pooled :class:`httpx.AsyncClient`."""

    def __init__(
        self, client: Optional[httpx.AsyncClient] = None, **client_kwargs: Any
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True, **client_kwargs)

    async def send(self, request: httpx.Request) -> httpx.Response:
        return await self._client.send(request)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
