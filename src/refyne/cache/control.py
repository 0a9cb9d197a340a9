"""``Cache-Control`` parsing and cache key construction.

Only the directives the SDK acts on are recognised: ``no-store``,
``no-cache``, ``private``, ``max-age=<int>`` and
``stale-while-revalidate=<int>``. Anything else, including a directive
with a non-integer value, is ignored. A response is stored only when the
server gives an explicit freshness window (``max-age``) and does not
forbid storage (``no-store``).
"""

from __future__ import annotations

import time
from typing import Any, Optional

from refyne.models import CacheControlDirectives, CacheEntry

_MAX_AGE = "max-age="
_STALE_WHILE_REVALIDATE = "stale-while-revalidate="


def _parse_seconds(raw: str) -> Optional[int]:
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_cache_control(header: Optional[str]) -> CacheControlDirectives:
    """Parse a ``Cache-Control`` header value into directives.

    Parsing is case-insensitive and tolerant of surrounding whitespace.
    An empty or missing header yields all-default directives.

    Args:
        header: Raw header value, e.g. ``"public, max-age=3600"``.

    Returns:
        The parsed :class:`~refyne.models.CacheControlDirectives`.
    """
    if not header:
        return CacheControlDirectives()

    fields: dict[str, Any] = {}
    for token in header.lower().split(","):
        token = token.strip()
        if token == "no-store":
            fields["no_store"] = True
        elif token == "no-cache":
            fields["no_cache"] = True
        elif token == "private":
            fields["private"] = True
        elif token.startswith(_MAX_AGE):
            seconds = _parse_seconds(token[len(_MAX_AGE):])
            if seconds is not None:
                fields["max_age"] = seconds
        elif token.startswith(_STALE_WHILE_REVALIDATE):
            seconds = _parse_seconds(token[len(_STALE_WHILE_REVALIDATE):])
            if seconds is not None:
                fields["stale_while_revalidate"] = seconds

    return CacheControlDirectives(**fields)


def create_cache_entry(
    value: Any,
    cache_control: Optional[str],
    now: Optional[float] = None,
) -> Optional[CacheEntry]:
    """Build a cache entry for *value*, or ``None`` if it must not be cached.

    Args:
        value: The decoded response payload.
        cache_control: The response's ``Cache-Control`` header.
        now: Current epoch time; defaults to :func:`time.time`.

    Returns:
        A :class:`~refyne.models.CacheEntry` expiring ``max-age`` seconds
        from *now*, or ``None`` when the header says ``no-store`` or has no
        ``max-age``.
    """
    directives = parse_cache_control(cache_control)
    if directives.no_store or directives.max_age is None:
        return None

    current = int(time.time() if now is None else now)
    return CacheEntry(
        value=value,
        expires_at=current + directives.max_age,
        directives=directives,
    )


def generate_cache_key(method: str, url: str, auth_hash: str = "") -> str:
    """Return the cache key ``METHOD:url[:auth_hash]``.

    Including a hash of the credential keeps responses for different API
    keys apart when a store is shared between clients.
    """
    parts = [method.upper(), url]
    if auth_hash:
        parts.append(auth_hash)
    return ":".join(parts)
