"""Shared machinery for OAuth provider adapters."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar
from urllib.parse import urlencode

from oauth_adapters.config import OIDCProviderConfig
from oauth_adapters.contracts import OAuthError, ProviderQuirks, create_standard_error
from oauth_adapters.error_normalizer import ErrorContext, normalize_error
from oauth_adapters.log import ContextLoggerAdapter, get_logger
from oauth_adapters.resilience import ResilienceContext, ResilienceManager

T = TypeVar("T")


class AdapterState(enum.Enum):
    UNCONFIGURED = "unconfigured"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class BaseOAuthAdapter(ABC):
    """Base class for provider adapters.

    Subclasses supply ``provider_name``, resolve metadata in ``initialize()``
    and describe their capabilities through :meth:`compute_provider_quirks`.
    The quirks record is computed once, after metadata is known, and cached.
    """

    provider_name = "base"

    def __init__(
        self,
        config: OIDCProviderConfig,
        *,
        resilience: ResilienceManager | None = None,
    ):
        self.config = config
        self.state = AdapterState.UNCONFIGURED
        self.resilience = resilience or ResilienceManager()
        self.logger: ContextLoggerAdapter = get_logger(
            f"oauth_adapters.providers.{self.provider_name}",
            provider=self.provider_name,
            client_id=config.client_id,
        )
        self._quirks: ProviderQuirks | None = None

    @property
    def is_ready(self) -> bool:
        return self.state is AdapterState.READY

    @abstractmethod
    def get_provider_metadata(self) -> Any:
        """Return the resolved provider metadata, or ``None`` before initialize."""

    @abstractmethod
    def compute_provider_quirks(self, config: OIDCProviderConfig, metadata: Any) -> ProviderQuirks:
        """Derive the capability record from configuration and metadata. Must not do I/O."""

    def get_provider_quirks(self) -> ProviderQuirks:
        if self._quirks is not None:
            return self._quirks
        metadata = self.get_provider_metadata()
        quirks = self.compute_provider_quirks(self.config, metadata)
        if metadata is not None:
            self._quirks = quirks
        return quirks

    def default_issuer(self) -> str | None:
        metadata = self.get_provider_metadata()
        issuer = getattr(metadata, "issuer", None)
        return issuer or self.config.issuer

    def normalize_error(self, error: object, context: ErrorContext | None = None) -> OAuthError:
        return normalize_error(error, context, default_issuer=self.default_issuer())

    def create_standard_error(
        self,
        error: str,
        description: str | None = None,
        *,
        status_code: int | None = None,
        endpoint: str | None = None,
    ) -> OAuthError:
        return create_standard_error(
            error,
            description,
            status_code=status_code,
            endpoint=endpoint,
            issuer=self.default_issuer(),
        )

    async def execute_with_resilience(
        self, operation: Callable[[], Awaitable[T]], context: ResilienceContext
    ) -> T:
        return await self.resilience.execute_with_resilience(
            operation, context, self.normalize_error
        )

    @staticmethod
    def build_authorize_url(endpoint: str, params: Mapping[str, str]) -> str:
        """Append ``params`` to ``endpoint``, keeping any query it already has."""
        query = urlencode(list(params.items()))
        if not query:
            return endpoint
        separator = "&" if "?" in endpoint else "?"
        if endpoint.endswith(("?", "&")):
            separator = ""
        return f"{endpoint}{separator}{query}"

    def require_ready(self, action: str) -> None:
        """Raise ``invalid_request`` unless the adapter finished initializing."""
        if self.state is not AdapterState.READY:
            raise self.create_standard_error(
                "invalid_request", f"Adapter must be initialized before {action}"
            )


__all__ = ["AdapterState", "BaseOAuthAdapter"]
