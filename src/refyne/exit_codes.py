"""Numeric process exit codes used by the ``refyne`` CLI.

Each constant maps to an error category and is referenced by the
corresponding :class:`~refyne.exceptions.RefyneError` subclass, so shell
scripts can branch on the failure class without parsing stderr.

Example::

    $ refyne usage
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the API key was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The request was rejected as invalid (HTTP 400) or the CLI was misused."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The API returned an error status the SDK has no specific mapping for."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error persisted after all retries."""

EXIT_RATE_LIMITED = 7
"""The API kept answering HTTP 429 after all retries."""

EXIT_UNSUPPORTED_VERSION = 8
"""The server API version is older than this SDK supports."""
