"""OAuth provider adapters - OIDC authorization-code flow with PKCE.

This package lets an authorization server delegate user login to an upstream
OpenID Connect identity provider.

## Key Components

### Adapters
- `OIDCProviderAdapter`: Generic OIDC adapter (discovery or static metadata)
- `GoogleProviderAdapter`: Preset for Google accounts
- `from_environment()`: Build an adapter from `IDENTITY_*` variables

### Building blocks
- `generate_pkce_pair()`: S256 PKCE verifier/challenge pairs
- `PKCEStorageHook`, `InMemoryPKCEStorage`: PKCE state persistence seam
- `ResilienceManager`: Retries with exponential backoff behind a circuit breaker
- `normalize_error()`: Maps any failure onto `OAuthError`

## Quick Examples

### Static metadata
```python
from oauth_adapters import OIDCProviderAdapter

adapter = OIDCProviderAdapter(
    {
        "client_id": "c1",
        "scopes": ["openid"],
        "metadata": {
            "authorization_endpoint": "https://idp.example.com/auth",
            "token_endpoint": "https://idp.example.com/token",
            "jwks_uri": "https://idp.example.com/jwks",
        },
    },
    storage_hook=my_pkce_store,
)
await adapter.initialize()
url = await adapter.generate_auth_url("interaction-1", "https://app/callback")
```

### Handling errors
```python
from oauth_adapters import OAuthError

try:
    tokens = await adapter.exchange_code(code, verifier, "https://app/callback")
except OAuthError as exc:
    print(exc.to_dict())  # {"status_code": 400, "error": "invalid_grant", ...}
```
"""

from .contracts import (
    OAuthError,
    ProviderAdapter,
    ProviderQuirks,
    TokenResponse,
    create_standard_error,
)
from .config import DiscoveryConfigModel, OIDCProviderConfig, TimeoutsConfigModel
from .error_normalizer import normalize_error
from .pkce import PKCEPair, generate_code_challenge, generate_code_verifier, generate_pkce_pair
from .providers import (
    AdapterState,
    BaseOAuthAdapter,
    GoogleProviderAdapter,
    OIDCProviderAdapter,
    OIDCProviderMetadata,
    from_environment,
    from_environment_async,
)
from .resilience import (
    CircuitBreakerRegistry,
    CircuitBreakerState,
    ResilienceContext,
    ResilienceManager,
    get_circuit_state,
    get_circuit_stats,
    reset_all_circuits,
    reset_circuit,
)
from .storage import InMemoryPKCEStorage, PKCEStorageHook

__version__ = "0.1.0"

__all__ = [
    # Contracts
    "OAuthError",
    "ProviderAdapter",
    "ProviderQuirks",
    "TokenResponse",
    "create_standard_error",
    "normalize_error",
    # Configuration
    "DiscoveryConfigModel",
    "OIDCProviderConfig",
    "TimeoutsConfigModel",
    # PKCE
    "PKCEPair",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_pkce_pair",
    "InMemoryPKCEStorage",
    "PKCEStorageHook",
    # Adapters
    "AdapterState",
    "BaseOAuthAdapter",
    "GoogleProviderAdapter",
    "OIDCProviderAdapter",
    "OIDCProviderMetadata",
    "from_environment",
    "from_environment_async",
    # Resilience
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    "ResilienceContext",
    "ResilienceManager",
    "get_circuit_state",
    "get_circuit_stats",
    "reset_all_circuits",
    "reset_circuit",
]
