"""Provider adapter implementations."""

from .base import AdapterState, BaseOAuthAdapter
from .environment import from_environment, from_environment_async
from .google import GoogleProviderAdapter
from .oidc import OIDCProviderAdapter
from .oidc_discovery import OIDCProviderMetadata

__all__ = [
    "AdapterState",
    "BaseOAuthAdapter",
    "GoogleProviderAdapter",
    "OIDCProviderAdapter",
    "OIDCProviderMetadata",
    "from_environment",
    "from_environment_async",
]
