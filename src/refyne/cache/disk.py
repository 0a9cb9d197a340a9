"""Disk-backed response cache using :mod:`diskcache`.

Entries survive process restarts, so repeated CLI invocations can reuse
responses the server marked cacheable. Freshness rules are the same as
:class:`~refyne.cache.memory.MemoryCache`; in addition each record is
written with a physical expiry of ``max-age + stale-while-revalidate`` so
diskcache purges it even if it is never read again.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Optional

import diskcache

from refyne.cache.base import Cache, is_servable
from refyne.models import CacheEntry

_DEFAULT_SIZE_LIMIT = 64 * 1024 * 1024


class DiskCache(Cache):
    """Persistent :class:`~refyne.cache.base.Cache` stored under *directory*.

    Args:
        directory: Root directory; a ``responses/`` subdirectory is created
            inside it.
        size_limit: Maximum size on disk in bytes. diskcache evicts the
            least recently stored records beyond it.
        clock: Returns the current epoch time in seconds.

    Example::

        from refyne.cache import DiskCache
        from refyne.config import get_cache_dir

        cache = DiskCache(get_cache_dir())
    """

    def __init__(
        self,
        directory: str | Path,
        size_limit: int = _DEFAULT_SIZE_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory) / "responses"
        self._clock = clock
        self._cache = diskcache.Cache(
            str(self._directory),
            size_limit=size_limit,
            eviction_policy="least-recently-stored",
        )

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, key: str) -> Optional[CacheEntry]:
        raw = self._cache.get(key)
        if raw is None:
            return None
        entry = CacheEntry.model_validate(raw)
        if is_servable(entry, int(self._clock())):
            return entry
        self._cache.delete(key)
        return None

    def set(self, key: str, entry: CacheEntry) -> None:
        if entry.directives.no_store:
            return
        grace = entry.directives.stale_while_revalidate or 0
        ttl = entry.expires_at + grace - int(self._clock())
        if ttl <= 0:
            return
        record: dict[str, Any] = entry.model_dump(mode="json")
        self._cache.set(key, record, expire=ttl)

    def delete(self, key: str) -> None:
        self._cache.delete(key)

    def clear(self) -> None:
        """Remove all entries from the cache."""
        self._cache.clear()

    def size(self) -> int:
        """Return the number of records on disk."""
        return len(self._cache)

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()

    def __enter__(self) -> DiskCache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
