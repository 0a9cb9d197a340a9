"""Backoff and ``Retry-After`` helpers for the retry loop.

The clients retry transport errors, HTTP 429 and HTTP 5xx. Rate-limited
attempts wait for the server's ``Retry-After`` value; every other retry
waits an exponential backoff of 1 s, 2 s, 4 s, ... capped at 30 s.
"""

from __future__ import annotations

from typing import Optional

MAX_BACKOFF_SECONDS = 30
"""Upper bound for :func:`backoff`."""

DEFAULT_RETRY_AFTER_SECONDS = 1
"""Wait before retrying a 429 whose ``Retry-After`` is missing or invalid."""

DEFAULT_RATE_LIMIT_RETRY_AFTER_SECONDS = 60
"""``retry_after`` reported on a final :class:`~refyne.exceptions.RateLimitError`
when the header is missing or invalid."""


def backoff(attempt: int) -> int:
    """Return the wait in seconds after failed attempt number *attempt*.

    Args:
        attempt: 1-based attempt counter.

    Returns:
        ``2 ** (attempt - 1)`` capped at :data:`MAX_BACKOFF_SECONDS`.

    Example::

        >>> [backoff(n) for n in range(1, 8)]
        [1, 2, 4, 8, 16, 30, 30]
    """
    if attempt < 1:
        attempt = 1
    # Avoid building huge integers for large attempt counts.
    if attempt > 6:
        return MAX_BACKOFF_SECONDS
    return min(2 ** (attempt - 1), MAX_BACKOFF_SECONDS)


def parse_retry_after(
    header: Optional[str],
    default: int = DEFAULT_RETRY_AFTER_SECONDS,
) -> int:
    """Parse a ``Retry-After`` header given in delta-seconds.

    HTTP-date values are not supported and fall back to *default*, as do
    missing and non-numeric values. ``"0"`` is honoured and means retry
    immediately.

    Args:
        header: Raw header value or ``None``.
        default: Value returned when *header* is unusable.

    Returns:
        The number of seconds to wait.
    """
    if not header:
        return default
    try:
        return int(header)
    except ValueError:
        return default
