"""Generic OIDC provider adapter.

Metadata comes either from discovery against ``issuer`` or from a static
``metadata`` mapping. Call :meth:`OIDCProviderAdapter.initialize` exactly
once before use::

    adapter = OIDCProviderAdapter(
        {"client_id": "c1", "issuer": "https://idp.example.com"},
        storage_hook=my_store,
    )
    await adapter.initialize()
    url = await adapter.generate_auth_url(interaction_id, "https://app/callback")

The OAuth ``state`` parameter always equals the interaction id, which is
also the key the PKCE verifier is stored under.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from oauth_adapters.config import OIDCProviderConfig
from oauth_adapters.contracts import OAuthError, ProviderQuirks, TokenResponse
from oauth_adapters.http import HttpClientFactory, http_client_factory_for
from oauth_adapters.pkce import generate_pkce_pair
from oauth_adapters.providers.base import AdapterState, BaseOAuthAdapter
from oauth_adapters.providers.oidc_discovery import (
    OIDCProviderMetadata,
    resolve_provider_metadata,
)
from oauth_adapters.providers.token_exchange import TokenExchangeService
from oauth_adapters.resilience import ResilienceManager
from oauth_adapters.storage import (
    InMemoryPKCEStorage,
    PKCEStorageHook,
    now_ms,
    validate_storage_hook,
)

STORE_PKCE_STATE_ENDPOINT = "storage_hook.store_pkce_state"
RETRIEVE_PKCE_STATE_ENDPOINT = "storage_hook.retrieve_pkce_state"
CLEANUP_EXPIRED_STATE_ENDPOINT = "storage_hook.cleanup_expired_state"


class OIDCProviderAdapter(BaseOAuthAdapter):
    """OIDC authorization-code adapter with PKCE and resilient discovery."""

    provider_name = "oidc"

    def __init__(
        self,
        config: OIDCProviderConfig | Mapping[str, Any],
        *,
        storage_hook: PKCEStorageHook | None = None,
        http_client_factory: HttpClientFactory | None = None,
        resilience: ResilienceManager | None = None,
    ):
        super().__init__(self._coerce_config(config), resilience=resilience)
        self._storage_hook: Any = (
            storage_hook if storage_hook is not None else self.config.storage_hook
        )
        self._http_client_factory = http_client_factory or http_client_factory_for(
            self.config.timeouts
        )
        self._metadata: OIDCProviderMetadata | None = None
        self._tokens: TokenExchangeService | None = None

    @staticmethod
    def _coerce_config(config: OIDCProviderConfig | Mapping[str, Any]) -> OIDCProviderConfig:
        if isinstance(config, OIDCProviderConfig):
            return config
        try:
            return OIDCProviderConfig.model_validate(dict(config))
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "config"
            raise OAuthError(
                "invalid_request",
                f"Invalid configuration: {location}: {first['msg']}",
                status_code=400,
            ) from exc

    @property
    def storage_hook(self) -> PKCEStorageHook | None:
        return self._storage_hook

    # ── lifecycle ───────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Validate configuration, check the storage hook and resolve metadata.

        Calling this again once ready is a no-op. A failed initialization is
        terminal; build a new adapter to retry.

        Raises:
            OAuthError: The normalized cause of the failure.
        """
        if self.state is AdapterState.READY:
            return
        if self.state is AdapterState.INITIALIZING:
            raise self.create_standard_error(
                "invalid_request", "Adapter initialization is already in progress"
            )
        if self.state is AdapterState.FAILED:
            raise self.create_standard_error(
                "invalid_request",
                "Adapter initialization previously failed; create a new adapter",
            )

        self.state = AdapterState.INITIALIZING
        self.logger.info("Initializing OIDC adapter", extra={"stage": "initialize"})
        try:
            self._validate_config()
            await self._prepare_storage()
            metadata = await resolve_provider_metadata(
                self.config,
                resilience=self.resilience,
                http_client_factory=self._http_client_factory,
            )
        except Exception as exc:
            self.state = AdapterState.FAILED
            error = self.normalize_error(exc)
            self.logger.error(
                "OIDC adapter initialization failed",
                extra={
                    "stage": "initialize",
                    "error": error.error,
                    "error_description": error.error_description,
                    "endpoint": error.endpoint,
                },
            )
            raise error from exc

        self._metadata = metadata
        self._tokens = TokenExchangeService(
            self.config, metadata, self._http_client_factory, self.logger
        )
        self.state = AdapterState.READY
        self.logger.info(
            "OIDC adapter initialized",
            extra={
                "stage": "initialize",
                "issuer": metadata.issuer,
                "authorization_endpoint": metadata.authorization_endpoint,
                "token_endpoint": metadata.token_endpoint,
            },
        )

    def _validate_config(self) -> None:
        config = self.config
        if not config.client_id.strip():
            raise self.create_standard_error("invalid_request", "client_id is required")
        if not config.scopes:
            raise self.create_standard_error("invalid_request", "At least one scope is required")
        if config.issuer and config.metadata is not None:
            raise self.create_standard_error(
                "invalid_request", "Cannot specify both issuer and metadata"
            )
        if not config.issuer and config.metadata is None:
            raise self.create_standard_error(
                "invalid_request", "Either issuer or metadata must be provided"
            )

    async def _prepare_storage(self) -> None:
        if self._storage_hook is None:
            if self.config.require_storage_hook:
                raise self.create_standard_error(
                    "invalid_request", "storage_hook is required by configuration"
                )
            self.logger.warning(
                "No PKCE storage hook configured, using in-memory storage; "
                "state is lost on restart and not shared between processes",
                extra={"stage": "initialize"},
            )
            self._storage_hook = InMemoryPKCEStorage()

        validate_storage_hook(self._storage_hook)
        await self.cleanup_expired_state()

    # ── authorization ───────────────────────────────────────────────────

    async def generate_auth_url(self, interaction_id: str, redirect_url: str) -> str:
        """Create and store a PKCE pair for ``interaction_id`` and return the authorize URL."""
        self.require_ready("generating an authorization URL")
        assert self._metadata is not None

        self.logger.info(
            "Generating authorization URL",
            extra={"stage": "generate_auth_url", "state": interaction_id},
        )
        pkce = generate_pkce_pair()
        expires_at = now_ms() + self.config.pkce_state_expiration_seconds * 1000
        try:
            await self._storage_hook.store_pkce_state(
                interaction_id, interaction_id, pkce.code_verifier, expires_at
            )
        except Exception as exc:
            self.logger.error(
                "Failed to store PKCE state",
                extra={"stage": "generate_auth_url", "state": interaction_id},
            )
            raise self.normalize_error(exc, {"endpoint": STORE_PKCE_STATE_ENDPOINT}) from exc

        params: dict[str, str] = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "state": interaction_id,
            "code_challenge": pkce.code_challenge,
            "code_challenge_method": pkce.code_challenge_method,
            "redirect_uri": redirect_url,
        }
        params.update(self.config.custom_parameters)

        url = self.build_authorize_url(self._metadata.authorization_endpoint, params)
        self.logger.info(
            "Authorization URL generated",
            extra={
                "stage": "generate_auth_url",
                "state": interaction_id,
                "code_challenge_method": pkce.code_challenge_method,
            },
        )
        return url

    async def retrieve_code_verifier(self, interaction_id: str, state: str) -> str | None:
        """Look up the stored PKCE verifier for a callback; ``None`` when unknown or expired."""
        self.require_ready("retrieving PKCE state")
        try:
            return await self._storage_hook.retrieve_pkce_state(interaction_id, state)
        except Exception as exc:
            raise self.normalize_error(exc, {"endpoint": RETRIEVE_PKCE_STATE_ENDPOINT}) from exc

    async def cleanup_expired_state(self) -> None:
        """Ask the storage hook to drop PKCE records that expired before now."""
        try:
            await self._storage_hook.cleanup_expired_state(now_ms())
        except Exception as exc:
            raise self.normalize_error(exc, {"endpoint": CLEANUP_EXPIRED_STATE_ENDPOINT}) from exc

    # ── tokens ──────────────────────────────────────────────────────────

    async def exchange_code(self, code: str, verifier: str, redirect_url: str) -> TokenResponse:
        self.require_ready("exchanging an authorization code")
        assert self._tokens is not None
        return await self._tokens.exchange_code(code, verifier, redirect_url)

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        self.require_ready("refreshing tokens")
        assert self._metadata is not None and self._tokens is not None

        grant_types = self._metadata.grant_types_supported
        if grant_types is not None and "refresh_token" not in grant_types:
            raise self.create_standard_error(
                "unsupported_grant_type",
                "Provider does not support the refresh_token grant",
                endpoint="token_endpoint",
            )
        return await self._tokens.refresh_token(refresh_token)

    # ── metadata ────────────────────────────────────────────────────────

    def get_provider_metadata(self) -> OIDCProviderMetadata | None:
        return self._metadata

    def compute_provider_quirks(
        self, config: OIDCProviderConfig, metadata: OIDCProviderMetadata | None
    ) -> ProviderQuirks:
        grant_types = metadata.grant_types_supported if metadata is not None else None
        return ProviderQuirks(
            supports_oidc_discovery=bool(config.issuer),
            requires_pkce=True,
            supports_refresh_tokens="refresh_token" in (grant_types or []),
            custom_parameters=list(config.custom_parameters),
        )


__all__ = [
    "CLEANUP_EXPIRED_STATE_ENDPOINT",
    "OIDCProviderAdapter",
    "RETRIEVE_PKCE_STATE_ENDPOINT",
    "STORE_PKCE_STATE_ENDPOINT",
]
