"""Bounded in-memory response cache with FIFO eviction."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from refyne.cache.base import Cache, is_servable
from refyne.models import CacheEntry


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue
    behind it so a steady stream of lookups cannot starve a store.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MemoryCache(Cache):
    """In-memory :class:`~refyne.cache.base.Cache` holding at most *max_entries*.

    When a new key is inserted at capacity, the oldest-inserted key is
    evicted. Reads never change eviction order, and overwriting an existing
    key keeps its original position.

    Expired entries are removed lazily on lookup. An entry past its
    ``max-age`` but inside its ``stale-while-revalidate`` window is still
    returned unchanged; no revalidation request is made.

    Args:
        max_entries: Capacity (at least 1).
        clock: Returns the current epoch time in seconds.

    Example::

        cache = MemoryCache(max_entries=2)
        cache.set("a", entry_a)
        cache.set("b", entry_b)
        cache.set("c", entry_c)   # evicts "a"
    """

    def __init__(
        self,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._clock = clock
        # OrderedDict keeps insertion order; re-assigning a key does not move it.
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = ReadWriteLock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock.read():
            entry = self._store.get(key)
        if entry is None:
            return None

        if is_servable(entry, int(self._clock())):
            return entry

        self._delete_if_same(key, entry)
        return None

    def set(self, key: str, entry: CacheEntry) -> None:
        if entry.directives.no_store:
            return

        with self._lock.write():
            if key not in self._store:
                while len(self._store) >= self._max_entries:
                    self._store.popitem(last=False)
            self._store[key] = entry

    def delete(self, key: str) -> None:
        with self._lock.write():
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock.write():
            self._store.clear()

    def size(self) -> int:
        """Return the number of stored entries, including not-yet-purged expired ones."""
        with self._lock.read():
            return len(self._store)

    def __len__(self) -> int:
        return self.size()

    def _delete_if_same(self, key: str, entry: CacheEntry) -> None:
        # A concurrent set() may have replaced the expired entry with a fresh one.
        with self._lock.write():
            if self._store.get(key) is entry:
                del self._store[key]
