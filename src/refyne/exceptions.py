"""Exception hierarchy for refyne.

All exceptions inherit from :class:`RefyneError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`refyne.exit_codes`.
The CLI entry point in :func:`refyne.app.main` catches ``RefyneError`` and
exits with the matching code; library callers catch the specific subclass
they can act on.

Subclass hierarchy::

    RefyneError                   (exit 1)
    +-- APIError                  (exit 5)  any other HTTP status >= 400
    |   +-- ValidationError       (exit 2)  HTTP 400, carries field errors
    |   +-- AuthenticationError   (exit 3)  HTTP 401
    |   +-- ForbiddenError        (exit 3)  HTTP 403
    |   +-- NotFoundError         (exit 4)  HTTP 404
    |   +-- RateLimitError        (exit 7)  HTTP 429, carries retry_after
    +-- NetworkError              (exit 6)  transport failure after retries
    |   +-- RequestCancelledError (exit 6)
    +-- UnsupportedAPIVersionError (exit 8)
    +-- ConfigError               (exit 1)
"""

from __future__ import annotations

from typing import Optional

from refyne.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_RATE_LIMITED,
    EXIT_SERVER_ERROR,
    EXIT_UNSUPPORTED_VERSION,
)


class RefyneError(Exception):
    """Base exception for all refyne errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class APIError(RefyneError):
    """Raised when the API answers with an error status.

    This is also the generic variant for statuses without a dedicated
    subclass (e.g. 409, 422, or a 5xx left over after retries).

    Args:
        message: Message from the response body, or the HTTP reason phrase.
        status: The HTTP status code.
        detail: Optional ``detail`` string from the response body.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status: int, detail: str = ""):
        super().__init__(message)
        self.status = status
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class ValidationError(APIError):
    """Raised on HTTP 400. ``errors`` maps field names to messages."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(
        self,
        message: str,
        status: int = 400,
        errors: Optional[dict[str, str]] = None,
    ):
        super().__init__(message, status)
        self.errors: dict[str, str] = dict(errors or {})

    def __str__(self) -> str:
        return f"validation error: {self.message}"


class AuthenticationError(APIError):
    """Raised on HTTP 401 (missing, invalid or revoked API key)."""

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, status: int = 401):
        super().__init__(message, status)

    def __str__(self) -> str:
        return f"authentication error: {self.message}"


class ForbiddenError(APIError):
    """Raised on HTTP 403."""

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, status: int = 403):
        super().__init__(message, status)

    def __str__(self) -> str:
        return f"forbidden: {self.message}"


class NotFoundError(APIError):
    """Raised on HTTP 404."""

    exit_code = EXIT_NOT_FOUND

    def __init__(self, message: str, status: int = 404):
        super().__init__(message, status)

    def __str__(self) -> str:
        return f"not found: {self.message}"


class RateLimitError(APIError):
    """Raised when HTTP 429 persists after all retries.

    ``retry_after`` is the number of seconds the server asked the caller to
    wait, taken from the ``Retry-After`` header (60 when missing).
    """

    exit_code = EXIT_RATE_LIMITED

    def __init__(self, message: str, status: int = 429, retry_after: int = 60):
        super().__init__(message, status)
        self.retry_after = retry_after

    def __str__(self) -> str:
        return f"rate limit exceeded: {self.message}"


class NetworkError(RefyneError):
    """Raised on transport failures (DNS, refused connection, timeout) after retries.

    The underlying exception is available as ``error`` and as
    ``__cause__``.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, error: Optional[BaseException] = None):
        super().__init__(message)
        self.error = error

    def __str__(self) -> str:
        if self.error is not None:
            return f"network error: {self.message}: {self.error}"
        return f"network error: {self.message}"


class RequestCancelledError(NetworkError):
    """Raised when the caller cancels a request before it completes."""

    def __init__(self, message: str = "request cancelled"):
        super().__init__(message)


class UnsupportedAPIVersionError(RefyneError):
    """Raised when the server API version is older than the SDK supports."""

    exit_code = EXIT_UNSUPPORTED_VERSION

    def __init__(self, api_version: str, min_version: str, max_known_version: str):
        super().__init__(
            f"API version {api_version} is not supported. "
            f"This SDK requires API version >= {min_version}. "
            "Please upgrade the API or use an older SDK version."
        )
        self.api_version = api_version
        self.min_version = min_version
        self.max_known_version = max_known_version


class ConfigError(RefyneError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
