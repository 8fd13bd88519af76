"""Contracts and shared types for the OAuth provider adapters."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from oauth_adapters.models import AdapterBaseModel

# Default HTTP status for each OAuth error code used by this package.
OAUTH_ERROR_STATUS: dict[str, int] = {
    "invalid_request": 400,
    "invalid_grant": 400,
    "invalid_client": 401,
    "unauthorized": 401,
    "access_denied": 403,
    "unsupported_grant_type": 400,
    "server_error": 500,
    "temporarily_unavailable": 503,
}


class OAuthError(Exception):
    """Canonical OAuth error raised across every public adapter method."""

    def __init__(
        self,
        error: str,
        error_description: str | None = None,
        status_code: int = 500,
        *,
        endpoint: str | None = None,
        issuer: str | None = None,
    ):
        super().__init__(error_description or error)
        self.error = error
        self.error_description = error_description
        self.status_code = status_code
        self.endpoint = endpoint
        self.issuer = issuer

    def with_context(self, endpoint: str | None = None, issuer: str | None = None) -> OAuthError:
        """Return a copy with ``endpoint``/``issuer`` merged in when provided."""
        return OAuthError(
            self.error,
            self.error_description,
            self.status_code,
            endpoint=endpoint if endpoint is not None else self.endpoint,
            issuer=issuer if issuer is not None else self.issuer,
        )

    def to_dict(self) -> dict[str, Any]:
        """Canonical error record, omitting unset optional fields."""
        result: dict[str, Any] = {"status_code": self.status_code, "error": self.error}
        if self.error_description is not None:
            result["error_description"] = self.error_description
        if self.endpoint is not None:
            result["endpoint"] = self.endpoint
        if self.issuer is not None:
            result["issuer"] = self.issuer
        return result

    def __repr__(self) -> str:
        return f"OAuthError({self.to_dict()!r})"


def create_standard_error(
    error: str,
    description: str | None = None,
    *,
    status_code: int | None = None,
    endpoint: str | None = None,
    issuer: str | None = None,
) -> OAuthError:
    """Build an :class:`OAuthError`, deriving the status from the error code if needed."""
    if status_code is None:
        status_code = OAUTH_ERROR_STATUS.get(error, 500)
    return OAuthError(error, description, status_code, endpoint=endpoint, issuer=issuer)


class TokenResponse(AdapterBaseModel):
    """Normalized result of a code exchange or token refresh."""

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_in: float | None = None
    scope: str | None = None
    user_data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Dump without the fields the provider did not return."""
        return self.model_dump(exclude_none=True)


class ProviderQuirks(AdapterBaseModel):
    """Provider-specific capabilities and requirements."""

    supports_oidc_discovery: bool
    requires_pkce: bool
    supports_refresh_tokens: bool
    custom_parameters: list[str]


@runtime_checkable
class ProviderAdapter(Protocol):
    """Interface all provider adapters implement."""

    provider_name: str

    async def initialize(self) -> None:
        """Resolve provider metadata and make the adapter ready."""

    async def generate_auth_url(self, interaction_id: str, redirect_url: str) -> str:
        """Create and persist a PKCE pair and return the authorization URL."""

    async def exchange_code(self, code: str, verifier: str, redirect_url: str) -> TokenResponse:
        """Exchange an authorization code for tokens."""

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Refresh provider tokens."""

    def get_provider_metadata(self) -> Any:
        """Return the resolved provider metadata, if initialized."""

    def get_provider_quirks(self) -> ProviderQuirks:
        """Return the provider capability record."""


__all__ = [
    "OAUTH_ERROR_STATUS",
    "OAuthError",
    "ProviderAdapter",
    "ProviderQuirks",
    "TokenResponse",
    "create_standard_error",
]
