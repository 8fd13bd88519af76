"""Build an :class:`OIDCProviderAdapter` from legacy ``IDENTITY_*`` environment variables.

=========================  ==========================================
Variable                   Config field
=========================  ==========================================
``IDENTITY_CLIENT_ID``     ``client_id``
``IDENTITY_CLIENT_SECRET`` ``client_secret``
``IDENTITY_SERVER_URL``    ``issuer`` (trailing slash removed)
``IDENTITY_REDIRECT_URI``  ``redirect_uri``
``IDENTITY_SCOPE``         ``scopes`` (split on spaces and commas)
=========================  ==========================================

Identity servers of this profile do not always publish ``jwks_uri``, so it
is not required in their metadata.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from typing import Any

from oauth_adapters.config import DEFAULT_SCOPES, split_scopes
from oauth_adapters.contracts import create_standard_error
from oauth_adapters.http import HttpClientFactory
from oauth_adapters.providers.oidc import OIDCProviderAdapter
from oauth_adapters.resilience import ResilienceManager
from oauth_adapters.storage import PKCEStorageHook

REQUIRED_VARIABLES = (
    "IDENTITY_CLIENT_ID",
    "IDENTITY_CLIENT_SECRET",
    "IDENTITY_SERVER_URL",
    "IDENTITY_REDIRECT_URI",
)


def from_environment(
    env: Mapping[str, str] | None = None,
    *,
    default_scopes: Sequence[str] | None = None,
    custom_parameters: Mapping[str, str] | None = None,
    storage_hook: PKCEStorageHook | None = None,
    http_client_factory: HttpClientFactory | None = None,
    resilience: ResilienceManager | None = None,
) -> OIDCProviderAdapter:
    """Create an uninitialized adapter from ``env`` (defaults to ``os.environ``).

    Raises:
        OAuthError: ``invalid_request`` naming the first missing variable.
    """
    env = os.environ if env is None else env
    for name in REQUIRED_VARIABLES:
        if not env.get(name):
            raise create_standard_error(
                "invalid_request", f"Missing required environment variable: {name}"
            )

    scopes = split_scopes(env.get("IDENTITY_SCOPE") or "")
    if not scopes:
        scopes = list(default_scopes or DEFAULT_SCOPES)

    config: dict[str, Any] = {
        "client_id": env["IDENTITY_CLIENT_ID"],
        "client_secret": env["IDENTITY_CLIENT_SECRET"],
        "issuer": env["IDENTITY_SERVER_URL"].rstrip("/"),
        "redirect_uri": env["IDENTITY_REDIRECT_URI"],
        "scopes": scopes,
        "require_jwks_uri": False,
    }
    if custom_parameters:
        config["custom_parameters"] = dict(custom_parameters)

    return OIDCProviderAdapter(
        config,
        storage_hook=storage_hook,
        http_client_factory=http_client_factory,
        resilience=resilience,
    )


async def from_environment_async(
    env: Mapping[str, str] | None = None,
    *,
    default_scopes: Sequence[str] | None = None,
    custom_parameters: Mapping[str, str] | None = None,
    storage_hook: PKCEStorageHook | None = None,
    http_client_factory: HttpClientFactory | None = None,
    resilience: ResilienceManager | None = None,
) -> OIDCProviderAdapter:
    """Like :func:`from_environment`, then ``initialize()`` the adapter."""
    adapter = from_environment(
        env,
        default_scopes=default_scopes,
        custom_parameters=custom_parameters,
        storage_hook=storage_hook,
        http_client_factory=http_client_factory,
        resilience=resilience,
    )
    await adapter.initialize()
    return adapter


__all__ = ["REQUIRED_VARIABLES", "from_environment", "from_environment_async"]
