"""Response caching for refyne.

This package provides the pieces the request pipeline uses to cache GET
responses according to the server's ``Cache-Control`` header:

- :func:`parse_cache_control` / :func:`create_cache_entry` -- header
  parsing and the "may this be stored" decision.
- :class:`Cache` -- the store interface (``get`` / ``set`` / ``delete``).
- :class:`MemoryCache` -- bounded in-memory store with FIFO eviction; the
  default for every client.
- :class:`DiskCache` -- persistent store backed by :mod:`diskcache`, used
  by the CLI when ``disk_cache`` is enabled.
"""

from refyne.cache.base import Cache
from refyne.cache.control import create_cache_entry, generate_cache_key, parse_cache_control
from refyne.cache.disk import DiskCache
from refyne.cache.memory import MemoryCache

__all__ = [
    "Cache",
    "MemoryCache",
    "DiskCache",
    "parse_cache_control",
    "create_cache_entry",
    "generate_cache_key",
]
