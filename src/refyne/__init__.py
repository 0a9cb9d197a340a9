"""refyne -- Python SDK for the Refyne web-extraction API.

Refyne is an LLM-powered extraction service that turns unstructured web
pages into typed JSON. This package wraps its HTTP API with a request
pipeline that handles bearer auth, response caching driven by
``Cache-Control``, retry with exponential backoff, and typed errors.

Typical usage::

    from refyne import Client

    with Client("your-api-key") as client:
        result = client.extract(
            url="https://example.com/product",
            schema={"name": "string", "price": "number"},
        )
        print(result.data)

Modules:
    client: Synchronous and asynchronous clients.
    cache: Cache-Control parsing and response cache stores.
    retry: Backoff and Retry-After helpers.
    version: API version compatibility checks.
    models: Pydantic models for configuration and API payloads.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

DEFAULT_BASE_URL = "https://api.refyne.uk"
"""Base URL used when none is configured."""

MIN_API_VERSION = "0.0.0"
"""Oldest API version this SDK can talk to."""

MAX_KNOWN_API_VERSION = "1.0.0"
"""Newest API version this SDK was built against."""

from refyne.client import AsyncClient, Client  # noqa: E402
from refyne.exceptions import (  # noqa: E402
    APIError,
    AuthenticationError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RefyneError,
    RequestCancelledError,
    UnsupportedAPIVersionError,
    ValidationError,
)

__all__ = [
    "__version__",
    "DEFAULT_BASE_URL",
    "MIN_API_VERSION",
    "MAX_KNOWN_API_VERSION",
    "Client",
    "AsyncClient",
    "RefyneError",
    "APIError",
    "ValidationError",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "RateLimitError",
    "NetworkError",
    "RequestCancelledError",
    "UnsupportedAPIVersionError",
]
