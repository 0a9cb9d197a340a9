"""Synchronous Refyne client.

:class:`Client` runs the request pipeline on the calling thread:

1. **Cache lookup** -- GET requests are answered from the response cache
   when a fresh (or stale-while-revalidate) entry exists.
2. **Retry loop** -- transport errors, HTTP 429 and HTTP 5xx are retried
   up to ``max_retries`` times with a blocking sleep between attempts.
3. **Version check** -- the first response received is checked for API
   version compatibility, once per client.
4. **Error mapping** -- statuses >= 400 raise typed exceptions.
5. **Cache store** -- successful GET responses are stored when the
   ``Cache-Control`` header allows it.

See Also:
    :class:`~refyne.client.async_client.AsyncClient` for the
    equivalent non-blocking implementation.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from refyne.client.base import _MISS, BaseClient
from refyne.exceptions import NetworkError, RequestCancelledError
from refyne.transport import HTTPXTransport, Transport

_CANCEL_POLL_INTERVAL = 0.05


class Client(BaseClient):
    """Blocking client for the Refyne API.

    Accepts every argument of :class:`~refyne.client.base.BaseClient`
    plus a *transport*. Safe to share between threads; use as a context
    manager (or call :meth:`close`) to release the default transport's
    connection pool.

    Args:
        transport: Sends each attempt. Defaults to
            :class:`~refyne.transport.HTTPXTransport`.

    Example::

        with Client("your-api-key") as client:
            usage = client.get_usage()
            jobs = client.jobs.list(limit=10)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        transport: Optional[Transport] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, **kwargs)
        self._owns_transport = transport is None
        self._transport: Transport = transport or HTTPXTransport()

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport if this client created it, and the cache if asked to."""
        if self._owns_transport:
            self._transport.close()
        if self._close_cache:
            self._cache.close()

    # ------------------------------------------------------------------ #
    # Public request method
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        result_type: Optional[type[BaseModel]] = None,
        skip_cache: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        """Execute an API request through the full pipeline.

        Args:
            method: HTTP method.
            path: Path below the base URL, including any query string.
            body: JSON-serialisable body or a Pydantic model.
            result_type: Model to validate the response into. When
                ``None`` the decoded JSON is returned as-is.
            skip_cache: Bypass the cache lookup (the response may still be
                stored).
            cancel: Setting this event aborts the call, including an
                attempt that is already in flight or a backoff wait.

        Returns:
            The decoded response, or ``None`` for an empty body.

        Raises:
            ValidationError: On HTTP 400.
            AuthenticationError: On HTTP 401.
            ForbiddenError: On HTTP 403.
            NotFoundError: On HTTP 404.
            RateLimitError: On HTTP 429 after all retries.
            APIError: On any other status >= 400 after all retries.
            NetworkError: On transport failure after all retries.
            RequestCancelledError: When *cancel* is set.
            UnsupportedAPIVersionError: When the server is too old.
        """
        url = self._url(path)
        key = self._cache_key(method, url)

        cached = self._cached_result(method, key, result_type, skip_cache)
        if cached is not _MISS:
            return cached

        response = self._execute_with_retry(method, url, body, cancel)
        return self._finish(method, key, response, result_type)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(
        self,
        method: str,
        url: str,
        body: Any,
        cancel: Optional[threading.Event],
    ) -> httpx.Response:
        """Send attempts until one is final, sleeping between them."""
        attempt = 1
        while True:
            if cancel is not None and cancel.is_set():
                raise RequestCancelledError()

            request = self._build_request(method, url, body)
            try:
                response = self._send(request, cancel)
            except httpx.TransportError as exc:
                delay = self._retry_delay(attempt, error=exc)
                if delay is None:
                    raise NetworkError(
                        f"request failed after {attempt} attempt(s)", error=exc
                    ) from exc
                self._sleep(delay, cancel)
                attempt += 1
                continue

            delay = self._retry_delay(attempt, response=response)
            if delay is None:
                return response

            response.close()
            self._sleep(delay, cancel)
            attempt += 1

    def _send(
        self, request: httpx.Request, cancel: Optional[threading.Event]
    ) -> httpx.Response:
        """Send one attempt, returning early with an error if *cancel* is set.

        With an event the send runs on a worker thread. A response that
        arrives after cancellation is closed by that thread.
        """
        if cancel is None:
            return self._transport.send(request)

        done = threading.Event()
        lock = threading.Lock()
        outcome: dict[str, Any] = {}

        def run() -> None:
            try:
                response = self._transport.send(request)
            except BaseException as exc:
                with lock:
                    outcome["error"] = exc
            else:
                with lock:
                    if outcome.get("abandoned"):
                        response.close()
                    else:
                        outcome["response"] = response
            finally:
                done.set()

        threading.Thread(target=run, name="refyne-send", daemon=True).start()
        while not done.wait(_CANCEL_POLL_INTERVAL):
            if cancel.is_set():
                with lock:
                    outcome["abandoned"] = True
                    late = outcome.pop("response", None)
                if late is not None:
                    late.close()
                raise RequestCancelledError()

        if cancel.is_set():
            if "response" in outcome:
                outcome["response"].close()
            raise RequestCancelledError()
        if "error" in outcome:
            raise outcome["error"]
        return outcome["response"]

    def _sleep(self, delay: float, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            if delay > 0:
                time.sleep(delay)
            return
        if cancel.wait(delay):
            raise RequestCancelledError()
