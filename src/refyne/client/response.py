"""Response decoding and error classification.

This module sits between the raw :class:`httpx.Response` returned by the
transport and the values or exceptions the clients hand back to callers:

- :func:`extract_response_data` decodes a JSON body (``None`` when empty).
- :func:`decode_result` validates decoded data into a Pydantic model.
- :func:`error_from_response` maps an error status to the matching
  :class:`~refyne.exceptions.APIError` subclass.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from refyne.exceptions import (
    APIError,
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    RefyneError,
    ValidationError,
)
from refyne.retry import DEFAULT_RATE_LIMIT_RETRY_AFTER_SECONDS, parse_retry_after


def extract_response_data(response: httpx.Response) -> Any:
    """Decode the JSON body of *response*.

    Returns:
        The decoded value, or ``None`` for an empty body (e.g. HTTP 204).

    Raises:
        RefyneError: If the body is not valid JSON.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RefyneError(f"Failed to parse response: {exc}") from exc


def decode_result(data: Any, result_type: Optional[type[BaseModel]]) -> Any:
    """Validate *data* into *result_type*, or return it unchanged when no type is given.

    Raises:
        RefyneError: If *data* does not match *result_type*.
    """
    if result_type is None or data is None:
        return data
    try:
        return result_type.model_validate(data)
    except PydanticValidationError as exc:
        raise RefyneError(
            f"Failed to parse response as {result_type.__name__}: {exc}"
        ) from exc


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def error_from_response(response: httpx.Response) -> APIError:
    """Build the typed exception for an error response (status >= 400).

    The body may be JSON with ``error`` (message), ``detail`` (extra text)
    and ``errors`` (field name -> message). Without a usable ``error`` the
    message falls back to the HTTP reason phrase.

    Args:
        response: A response with status code >= 400.

    Returns:
        The :class:`~refyne.exceptions.APIError` subclass for the status.
    """
    status = response.status_code
    body = _error_body(response)

    message = body.get("error")
    if not isinstance(message, str) or not message:
        message = httpx.codes.get_reason_phrase(status) or f"HTTP {status}"

    if status == 400:
        raw_errors = body.get("errors")
        errors: dict[str, str] = {}
        if isinstance(raw_errors, dict):
            errors = {str(field): str(text) for field, text in raw_errors.items()}
        return ValidationError(message, status=status, errors=errors)
    if status == 401:
        return AuthenticationError(message, status=status)
    if status == 403:
        return ForbiddenError(message, status=status)
    if status == 404:
        return NotFoundError(message, status=status)
    if status == 429:
        retry_after = parse_retry_after(
            response.headers.get("Retry-After"),
            default=DEFAULT_RATE_LIMIT_RETRY_AFTER_SECONDS,
        )
        return RateLimitError(message, status=status, retry_after=retry_after)

    detail = body.get("detail")
    return APIError(message, status=status, detail=detail if isinstance(detail, str) else "")
