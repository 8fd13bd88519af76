"""Configuration models for OIDC provider adapters.

Security-relevant fields:

- ``scopes`` and ``custom_parameters`` decide what the upstream IdP is asked for.
- ``require_jwks_uri`` relaxes metadata validation for providers that do not
  publish a JWKS endpoint (legacy Identity servers).
- ``require_storage_hook`` refuses to fall back to volatile in-memory PKCE storage.

The cross-field invariants (non-empty ``client_id``, non-empty ``scopes``,
exactly one of ``issuer``/``metadata``) are checked by the adapter's
``initialize()`` and surface as ``invalid_request`` errors.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from oauth_adapters.models import AdapterBaseModel
from oauth_adapters.resilience import (
    DEFAULT_BACKOFF_MS,
    DEFAULT_CIRCUIT_FAILURE_THRESHOLD,
    DEFAULT_CIRCUIT_OPEN_MS,
    DEFAULT_MAX_RETRIES,
)

DEFAULT_SCOPES = ["openid", "profile", "email"]
DEFAULT_PKCE_STATE_EXPIRATION_SECONDS = 600

_SCOPE_SPLIT_RE = re.compile(r"[,\s]+")


def split_scopes(value: str) -> list[str]:
    """Split a space- and/or comma-delimited scope string."""
    return [scope for scope in _SCOPE_SPLIT_RE.split(value) if scope]


class TimeoutsConfigModel(AdapterBaseModel):
    """HTTP timeouts in milliseconds, consumed by the transport layer."""

    connect: int | None = Field(default=None, gt=0)
    response: int | None = Field(default=None, gt=0)


class DiscoveryConfigModel(AdapterBaseModel):
    """Retry and circuit-breaker settings for the discovery request."""

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    backoff_ms: int = Field(default=DEFAULT_BACKOFF_MS, ge=0)
    failure_threshold: int = Field(default=DEFAULT_CIRCUIT_FAILURE_THRESHOLD, ge=1)
    circuit_open_ms: int = Field(default=DEFAULT_CIRCUIT_OPEN_MS, ge=0)


class OIDCProviderConfig(AdapterBaseModel):
    """OIDC provider adapter configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    client_id: str
    client_secret: str | None = None
    issuer: str | None = None
    # Validated by the metadata resolver, not here, so missing endpoints are
    # reported as invalid_request naming the field.
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("metadata", "server_metadata")
    )
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    custom_parameters: dict[str, str] = Field(default_factory=dict)
    redirect_uri: str | None = None
    timeouts: TimeoutsConfigModel | None = None
    pkce_state_expiration_seconds: int = Field(default=DEFAULT_PKCE_STATE_EXPIRATION_SECONDS, gt=0)
    require_jwks_uri: bool = True
    require_storage_hook: bool = False
    discovery: DiscoveryConfigModel = Field(default_factory=DiscoveryConfigModel)
    storage_hook: Any | None = Field(default=None, exclude=True, repr=False)

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scope_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return split_scopes(value)
        return value


__all__ = [
    "DEFAULT_PKCE_STATE_EXPIRATION_SECONDS",
    "DEFAULT_SCOPES",
    "DiscoveryConfigModel",
    "OIDCProviderConfig",
    "TimeoutsConfigModel",
    "split_scopes",
]
