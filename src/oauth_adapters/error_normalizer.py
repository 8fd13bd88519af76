"""Normalize heterogeneous error values into :class:`OAuthError`.

Errors reach the adapters from many places: OAuth error bodies, HTTP client
exceptions that wrap a response (``httpx.HTTPStatusError``), bare response
objects, native exceptions and plain strings. :func:`normalize_error` maps
any of them onto the single canonical error shape.

Each ``_try_*`` parser returns an :class:`OAuthError` or ``None``; the first
match in the fixed order below wins:

1. an OAuth-shaped value (string ``error`` plus a numeric status)
2. a client exception wrapping a ``response`` with a numeric status
3. a response-like value with a direct numeric status
4. a native exception, classified by type and message heuristics
5. a string
6. anything else (fallback)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from http import HTTPStatus
from typing import Any

import httpx

from oauth_adapters.contracts import OAuthError

ErrorContext = Mapping[str, str | None]
ErrorNormalizerFn = Callable[[object, ErrorContext], OAuthError]

_TIMEOUT_RE = re.compile(r"timeout", re.IGNORECASE)
_NETWORK_RE = re.compile(r"network|fetch|ECONNREFUSED", re.IGNORECASE)
_UNAUTHORIZED_RE = re.compile(r"unauthorized|401", re.IGNORECASE)
_FORBIDDEN_RE = re.compile(r"forbidden|403", re.IGNORECASE)

_STATUS_TO_OAUTH_ERROR = {
    400: "invalid_request",
    401: "unauthorized",
    403: "access_denied",
    404: "invalid_request",
    429: "temporarily_unavailable",
}


def normalize_error(
    value: object,
    context: ErrorContext | None = None,
    default_issuer: str | None = None,
) -> OAuthError:
    """Map any raised or returned value to an :class:`OAuthError`. Never raises."""
    context = context or {}
    endpoint = context.get("endpoint")
    issuer = context.get("issuer")

    parsers: tuple[Callable[[object], OAuthError | None], ...] = (
        _try_oauth_error_shape,
        _try_wrapped_response_shape,
        _try_response_shape,
        _try_native_error_shape,
        _try_string_shape,
    )
    result: OAuthError | None = None
    for parser in parsers:
        try:
            result = parser(value)
        except Exception:
            # A value whose attributes blow up on access is treated as unrecognized.
            result = None
        if result is not None:
            break
    if result is None:
        result = _fallback_error()

    result = result.with_context(endpoint=endpoint, issuer=issuer)
    if result.issuer is None and default_issuer:
        result = result.with_context(issuer=default_issuer)
    return result


def status_to_oauth_error(status_code: int) -> str:
    """Default OAuth error code for an HTTP status without an explicit ``error``."""
    if status_code in _STATUS_TO_OAUTH_ERROR:
        return _STATUS_TO_OAUTH_ERROR[status_code]
    if 400 <= status_code < 500:
        return "invalid_request"
    return "server_error"


def reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return f"HTTP {status_code}"


def is_normalized_oauth_error(value: object) -> bool:
    """True when ``value`` already carries a string ``error`` and a numeric status."""
    return _try_oauth_error_shape(value) is not None


# ── shape parsers ─────────────────────────────────────────────────────────


def _build_error(status_code: int, error: str | None, description: str | None) -> OAuthError:
    # Only HTTP error statuses are meaningful in the canonical shape.
    if not 400 <= status_code < 600:
        status_code = 500
    return OAuthError(error or reason_phrase(status_code), description or None, status_code)


def _try_oauth_error_shape(value: object) -> OAuthError | None:
    obj = _as_object(value)
    if obj is None:
        return None
    error = _read_str(obj, "error")
    status = _read_int(obj, "status_code")
    if status is None:
        status = _read_int(obj, "statusCode")
    if status is None:
        status = _read_int(obj, "status")
    if not error or status is None:
        return None
    description = _read_str(obj, "error_description") or _read_str(obj, "message")
    return _build_error(status, error, description).with_context(
        endpoint=_read_str(obj, "endpoint"), issuer=_read_str(obj, "issuer")
    )


def _try_wrapped_response_shape(value: object) -> OAuthError | None:
    obj = _as_object(value)
    if obj is None:
        return None
    response = _as_object(_read(obj, "response"))
    if response is None:
        return None
    status = _response_status(response)
    if status is None:
        return None

    data = _as_object(_read(response, "data"))
    if data is None:
        data = _as_object(_read_json_body(response))
    error = _read_str(data, "error") if data is not None else None
    description = (
        (_read_str(data, "error_description") if data is not None else None)
        or _response_reason(response)
        or reason_phrase(status)
    )
    return _build_error(status, error or status_to_oauth_error(status), description)


def _try_response_shape(value: object) -> OAuthError | None:
    obj = _as_object(value)
    if obj is None:
        return None
    status = _response_status(obj)
    if status is None:
        return None
    description = _response_reason(obj) or reason_phrase(status)
    error = _read_str(obj, "error")
    return _build_error(status, error or status_to_oauth_error(status), description)


def _try_native_error_shape(value: object) -> OAuthError | None:
    if not isinstance(value, BaseException):
        return None
    message = str(value)

    if isinstance(value, (TimeoutError, httpx.TimeoutException)) or _TIMEOUT_RE.search(message):
        return _build_error(504, "temporarily_unavailable", message)
    if isinstance(value, (ConnectionError, httpx.TransportError)) or _NETWORK_RE.search(message):
        return _build_error(503, "server_error", message)
    if _UNAUTHORIZED_RE.search(message):
        return _build_error(401, "unauthorized", message)
    if _FORBIDDEN_RE.search(message):
        return _build_error(403, "access_denied", message)
    return _build_error(500, "server_error", message)


def _try_string_shape(value: object) -> OAuthError | None:
    if isinstance(value, str):
        return _build_error(500, "server_error", value)
    return None


def _fallback_error() -> OAuthError:
    return _build_error(500, "server_error", reason_phrase(500))


# ── safe readers ──────────────────────────────────────────────────────────


def _as_object(value: object) -> Any | None:
    if value is None or isinstance(value, (str, bytes, bytearray, int, float)):
        return None
    return value


def _read(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _read_str(obj: Any, key: str) -> str | None:
    value = _read(obj, key)
    return value if isinstance(value, str) else None


def _read_int(obj: Any, key: str) -> int | None:
    value = _read(obj, key)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _response_status(response: Any) -> int | None:
    status = _read_int(response, "status")
    if status is None:
        status = _read_int(response, "status_code")
    return status


def _response_reason(response: Any) -> str | None:
    return _read_str(response, "statusText") or _read_str(response, "reason_phrase")


def _read_json_body(response: Any) -> Any:
    if isinstance(response, Mapping):
        return None
    json_method = getattr(response, "json", None)
    if not callable(json_method):
        return None
    try:
        return json_method()
    except Exception:
        return None


__all__ = [
    "ErrorContext",
    "ErrorNormalizerFn",
    "is_normalized_oauth_error",
    "normalize_error",
    "reason_phrase",
    "status_to_oauth_error",
]
