"""Built-in CLI sub-commands for refyne.

* :mod:`~refyne.commands.extract` -- ``extract``, ``crawl``, ``analyze``
  and ``usage``, registered directly on the root app.
* :mod:`~refyne.commands.jobs` -- the ``jobs`` group for crawl jobs.
* :mod:`~refyne.commands.config` -- the ``config`` group for the settings
  file.

Commands build their client with :func:`build_client` from the options the
root callback stored in ``ctx.obj``.
"""

from __future__ import annotations

import typer

from refyne.client import Client


def build_client(ctx: typer.Context) -> Client:
    """Create a :class:`~refyne.client.Client` from the resolved CLI configuration.

    SDK diagnostics are routed to stderr through
    :class:`~refyne.logger.OutputLogger`. When the ``disk_cache`` setting is
    on, cacheable responses are shared across invocations via
    :class:`~refyne.cache.DiskCache`.
    """
    from refyne.cache import DiskCache
    from refyne.config import get_cache_dir, resolve_config
    from refyne.logger import OutputLogger

    obj = ctx.obj or {}
    config, settings = resolve_config(
        cli_api_key=obj.get("api_key"),
        cli_base_url=obj.get("base_url"),
        cli_no_cache=obj.get("no_cache", False),
    )
    cache = None
    if settings.disk_cache and config.cache_enabled:
        cache = DiskCache(get_cache_dir())
    return Client(config=config, cache=cache, close_cache=True, logger=OutputLogger())
