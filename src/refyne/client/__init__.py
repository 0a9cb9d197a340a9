"""HTTP clients for the Refyne API.

Classes:
    :class:`Client` -- blocking client; retries sleep on the calling thread.
    :class:`AsyncClient` -- non-blocking client for asyncio code.

Both share :class:`~refyne.client.base.BaseClient`, which holds the
configuration, the response cache, and the one-shot API version check,
and both expose the same endpoint methods and resource services
(``jobs``, ``schemas``, ``sites``, ``keys``, ``llm``).

Example::

    from refyne.client import Client

    with Client("your-api-key") as client:
        result = client.extract("https://example.com", {"title": "string"})
"""

from refyne.client.async_client import AsyncClient
from refyne.client.sync_client import Client

__all__ = ["Client", "AsyncClient"]
