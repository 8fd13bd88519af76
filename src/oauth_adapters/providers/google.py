"""Google OIDC adapter preset."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from oauth_adapters.config import OIDCProviderConfig
from oauth_adapters.contracts import ProviderQuirks
from oauth_adapters.http import HttpClientFactory
from oauth_adapters.providers.oidc import OIDCProviderAdapter
from oauth_adapters.providers.oidc_discovery import OIDCProviderMetadata
from oauth_adapters.resilience import ResilienceManager
from oauth_adapters.storage import PKCEStorageHook

GOOGLE_ISSUER = "https://accounts.google.com"

# Google only issues refresh tokens for offline access, and only re-issues
# them on an explicit consent prompt.
GOOGLE_DEFAULT_CUSTOM_PARAMETERS = {"access_type": "offline", "prompt": "consent"}


class GoogleProviderAdapter(OIDCProviderAdapter):
    """OIDC adapter with Google's issuer and authorize parameters filled in.

    ``issuer`` is always Google's; static ``metadata`` is not accepted.
    Configured ``custom_parameters`` override the defaults key by key.
    """

    provider_name = "google"

    def __init__(
        self,
        config: OIDCProviderConfig | Mapping[str, Any],
        *,
        storage_hook: PKCEStorageHook | None = None,
        http_client_factory: HttpClientFactory | None = None,
        resilience: ResilienceManager | None = None,
    ):
        if isinstance(config, OIDCProviderConfig):
            values = config.model_dump(exclude={"storage_hook"}, exclude_unset=True)
            storage_hook = storage_hook if storage_hook is not None else config.storage_hook
        else:
            values = dict(config)
        values["issuer"] = GOOGLE_ISSUER
        values["custom_parameters"] = {
            **GOOGLE_DEFAULT_CUSTOM_PARAMETERS,
            **(values.get("custom_parameters") or {}),
        }
        super().__init__(
            values,
            storage_hook=storage_hook,
            http_client_factory=http_client_factory,
            resilience=resilience,
        )

    def compute_provider_quirks(
        self, config: OIDCProviderConfig, metadata: OIDCProviderMetadata | None
    ) -> ProviderQuirks:
        quirks = super().compute_provider_quirks(config, metadata)
        if config.custom_parameters.get("access_type") == "offline":
            quirks = quirks.model_copy(update={"supports_refresh_tokens": True})
        return quirks


__all__ = ["GOOGLE_DEFAULT_CUSTOM_PARAMETERS", "GOOGLE_ISSUER", "GoogleProviderAdapter"]
