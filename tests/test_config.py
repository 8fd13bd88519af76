"""Tests for configuration models and the IDENTITY_* environment factory."""

from typing import Any

import httpx
import pytest
from pydantic import ValidationError

from oauth_adapters.config import (
    DEFAULT_SCOPES,
    OIDCProviderConfig,
    TimeoutsConfigModel,
    split_scopes,
)
from oauth_adapters.contracts import OAuthError
from oauth_adapters.http import DEFAULT_TIMEOUT_SECONDS, create_http_client
from oauth_adapters.providers.environment import from_environment, from_environment_async
from oauth_adapters.providers.oidc import OIDCProviderAdapter
from oauth_adapters.resilience import ResilienceManager
from oauth_adapters.storage import InMemoryPKCEStorage
from tests.provider_adapter_testkit import (
    DISCOVERY_DOCUMENT,
    FakeAsyncHttpClient,
    FakeResponse,
    factory_for,
)

IDENTITY_ENV = {
    "IDENTITY_CLIENT_ID": "legacy-client",
    "IDENTITY_CLIENT_SECRET": "legacy-secret",
    "IDENTITY_SERVER_URL": "https://identity.example.com/",
    "IDENTITY_REDIRECT_URI": "https://app.example.com/callback",
}


# ── config models ──────────────────────────────────────────────────────


def test_config_defaults() -> None:
    config = OIDCProviderConfig(client_id="c1")
    assert config.scopes == DEFAULT_SCOPES
    assert config.pkce_state_expiration_seconds == 600
    assert config.require_jwks_uri is True
    assert config.require_storage_hook is False
    assert config.discovery.max_retries == 2
    assert config.discovery.backoff_ms == 300
    assert config.discovery.failure_threshold == 3
    assert config.discovery.circuit_open_ms == 60_000


def test_config_scopes_from_string() -> None:
    config = OIDCProviderConfig.model_validate(
        {"client_id": "c1", "scopes": "openid, profile email"}
    )
    assert config.scopes == ["openid", "profile", "email"]


def test_config_is_frozen() -> None:
    config = OIDCProviderConfig(client_id="c1")
    with pytest.raises(ValidationError):
        config.client_id = "c2"  # type: ignore[misc]


def test_config_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        OIDCProviderConfig.model_validate({"client_id": "c1", "clientId": "c1"})


def test_config_rejects_non_positive_expiration() -> None:
    with pytest.raises(ValidationError):
        OIDCProviderConfig(client_id="c1", pkce_state_expiration_seconds=0)


def test_storage_hook_excluded_from_dump() -> None:
    config = OIDCProviderConfig(client_id="c1", storage_hook=InMemoryPKCEStorage())
    assert "storage_hook" not in config.model_dump()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("openid profile", ["openid", "profile"]),
        ("openid,profile", ["openid", "profile"]),
        (" openid , profile ,, email ", ["openid", "profile", "email"]),
        ("", []),
    ],
)
def test_split_scopes(raw: str, expected: list[str]) -> None:
    assert split_scopes(raw) == expected


# ── transport ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_http_client_uses_configured_timeouts() -> None:
    async with create_http_client(TimeoutsConfigModel(connect=2_000, response=5_000)) as client:
        assert isinstance(client, httpx.AsyncClient)
        assert client.timeout.connect == 2.0
        assert client.timeout.read == 5.0
        assert client.follow_redirects is True


@pytest.mark.asyncio
async def test_http_client_default_timeout() -> None:
    async with create_http_client() as client:
        assert client.timeout.connect == DEFAULT_TIMEOUT_SECONDS
        assert client.timeout.read == DEFAULT_TIMEOUT_SECONDS


# ── environment factory ────────────────────────────────────────────────


def test_from_environment_maps_variables() -> None:
    adapter = from_environment(IDENTITY_ENV)

    assert isinstance(adapter, OIDCProviderAdapter)
    config = adapter.config
    assert config.client_id == "legacy-client"
    assert config.client_secret == "legacy-secret"
    assert config.issuer == "https://identity.example.com"
    assert config.redirect_uri == "https://app.example.com/callback"
    assert config.scopes == DEFAULT_SCOPES
    assert config.require_jwks_uri is False


def test_from_environment_splits_scope_variable() -> None:
    env = {**IDENTITY_ENV, "IDENTITY_SCOPE": "openid,profile  offline_access"}
    assert from_environment(env).config.scopes == ["openid", "profile", "offline_access"]


def test_from_environment_default_scopes_option() -> None:
    adapter = from_environment(IDENTITY_ENV, default_scopes=["openid"])
    assert adapter.config.scopes == ["openid"]


def test_from_environment_passes_options() -> None:
    store = InMemoryPKCEStorage()
    adapter = from_environment(
        IDENTITY_ENV, custom_parameters={"acr_values": "mfa"}, storage_hook=store
    )
    assert adapter.config.custom_parameters == {"acr_values": "mfa"}
    assert adapter.storage_hook is store


def test_from_environment_reads_os_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in IDENTITY_ENV.items():
        monkeypatch.setenv(key, value)
    assert from_environment().config.client_id == "legacy-client"


@pytest.mark.parametrize("missing", sorted(IDENTITY_ENV))
def test_from_environment_missing_variable(missing: str) -> None:
    env = {k: v for k, v in IDENTITY_ENV.items() if k != missing}
    with pytest.raises(OAuthError) as exc_info:
        from_environment(env)
    assert exc_info.value.error == "invalid_request"
    assert exc_info.value.error_description == f"Missing required environment variable: {missing}"


@pytest.mark.asyncio
async def test_from_environment_async_initializes_without_jwks() -> None:
    async def no_sleep(delay_ms: float) -> None:
        return None

    document: dict[str, Any] = {
        k: v for k, v in DISCOVERY_DOCUMENT.items() if k != "jwks_uri"
    }
    document["issuer"] = "https://identity.example.com"
    client = FakeAsyncHttpClient(get_response=FakeResponse(200, document))

    adapter = await from_environment_async(
        IDENTITY_ENV,
        storage_hook=InMemoryPKCEStorage(),
        http_client_factory=factory_for(client),
        resilience=ResilienceManager(sleep=no_sleep),
    )

    assert adapter.is_ready
    assert client.requests[0].url == (
        "https://identity.example.com/.well-known/openid-configuration"
    )
