"""Abstract cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from refyne.models import CacheEntry


class Cache(ABC):
    """Key-value store for cached responses.

    Implementations decide freshness: :meth:`get` returns ``None`` for an
    entry that may no longer be served. Implementations must be safe to
    call from several threads at once, since one client may run many
    requests concurrently.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key* if it may be served, else ``None``."""
        ...

    @abstractmethod
    def set(self, key: str, entry: CacheEntry) -> None:
        """Store *entry* under *key*."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key* if present."""
        ...

    def close(self) -> None:
        """Release any resources held by the store."""


def is_servable(entry: CacheEntry, now: int) -> bool:
    """Return whether *entry* is fresh, or stale but inside its revalidate window."""
    if now <= entry.expires_at:
        return True
    swr = entry.directives.stale_while_revalidate
    return swr is not None and now < entry.expires_at + swr
