"""HTTP client factory used for discovery and token requests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from oauth_adapters.config import TimeoutsConfigModel

DEFAULT_TIMEOUT_SECONDS = 8.0

# Any zero-argument callable returning an async context manager that exposes
# httpx-style ``get``/``post`` coroutines.
HttpClientFactory = Callable[[], Any]


def create_http_client(timeouts: TimeoutsConfigModel | None = None) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` honoring configured timeouts (milliseconds)."""
    timeout = httpx.Timeout(DEFAULT_TIMEOUT_SECONDS)
    if timeouts is not None:
        timeout = httpx.Timeout(
            DEFAULT_TIMEOUT_SECONDS,
            connect=timeouts.connect / 1000 if timeouts.connect else DEFAULT_TIMEOUT_SECONDS,
            read=timeouts.response / 1000 if timeouts.response else DEFAULT_TIMEOUT_SECONDS,
        )
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


def http_client_factory_for(timeouts: TimeoutsConfigModel | None) -> HttpClientFactory:
    return lambda: create_http_client(timeouts)


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "HttpClientFactory",
    "create_http_client",
    "http_client_factory_for",
]
