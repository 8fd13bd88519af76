"""Tests for OIDC metadata validation, discovery and resolution."""

import pytest

from oauth_adapters.config import DiscoveryConfigModel, OIDCProviderConfig
from oauth_adapters.contracts import OAuthError
from oauth_adapters.providers.oidc_discovery import (
    OIDCProviderMetadata,
    discovery_url,
    fetch_oidc_discovery,
    resolve_provider_metadata,
    validate_provider_metadata,
)
from oauth_adapters.resilience import CircuitBreakerRegistry, ResilienceManager
from tests.provider_adapter_testkit import (
    DISCOVERY_DOCUMENT,
    ISSUER,
    STATIC_METADATA,
    FakeAsyncHttpClient,
    FakeResponse,
    FakeResponseJsonError,
    factory_for,
)


async def _no_sleep(delay_ms: float) -> None:
    return None


@pytest.fixture
def resilience() -> ResilienceManager:
    return ResilienceManager(CircuitBreakerRegistry(), sleep=_no_sleep)


async def _fetch(client: FakeAsyncHttpClient, resilience: ResilienceManager, **overrides: int):
    options = {"max_retries": 2, "backoff_ms": 0, "failure_threshold": 3, "circuit_open_ms": 60_000}
    options.update(overrides)
    return await fetch_oidc_discovery(
        ISSUER, resilience=resilience, http_client_factory=factory_for(client), **options
    )


# ── validation ─────────────────────────────────────────────────────────


def test_validate_complete_metadata() -> None:
    metadata = validate_provider_metadata(DISCOVERY_DOCUMENT)
    assert isinstance(metadata, OIDCProviderMetadata)
    assert metadata.issuer == ISSUER
    assert metadata.token_endpoint == f"{ISSUER}/token"
    assert metadata.grant_types_supported == ["authorization_code", "refresh_token"]


def test_validate_keeps_unknown_fields() -> None:
    metadata = validate_provider_metadata(
        {**STATIC_METADATA, "end_session_endpoint": "https://a/out"}
    )
    assert metadata.model_extra == {"end_session_endpoint": "https://a/out"}


@pytest.mark.parametrize("field", ["authorization_endpoint", "token_endpoint", "jwks_uri"])
def test_validate_missing_required_field(field: str) -> None:
    data = dict(DISCOVERY_DOCUMENT)
    del data[field]
    with pytest.raises(OAuthError) as exc_info:
        validate_provider_metadata(data)
    assert exc_info.value.error == "invalid_request"
    assert exc_info.value.status_code == 400
    assert field in (exc_info.value.error_description or "")
    assert exc_info.value.issuer == ISSUER


def test_validate_jwks_uri_optional_when_relaxed() -> None:
    data = {k: v for k, v in STATIC_METADATA.items() if k != "jwks_uri"}
    metadata = validate_provider_metadata(data, require_jwks_uri=False)
    assert metadata.jwks_uri is None


def test_validate_rejects_wrong_types() -> None:
    with pytest.raises(OAuthError) as exc_info:
        validate_provider_metadata({**STATIC_METADATA, "grant_types_supported": "refresh_token"})
    assert exc_info.value.error == "invalid_request"


def test_validate_wrong_type_names_the_field() -> None:
    with pytest.raises(OAuthError) as exc_info:
        validate_provider_metadata({**STATIC_METADATA, "authorization_endpoint": 123})
    assert exc_info.value.error == "invalid_request"
    assert exc_info.value.error_description is not None
    assert exc_info.value.error_description.startswith(
        "Invalid provider metadata: authorization_endpoint: "
    )


@pytest.mark.parametrize("issuer", ["https://idp.example.com", "https://idp.example.com/"])
def test_discovery_url(issuer: str) -> None:
    assert discovery_url(issuer) == "https://idp.example.com/.well-known/openid-configuration"


# ── fetching ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fetch_success(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient()
    data = await _fetch(client, resilience)
    assert data == DISCOVERY_DOCUMENT
    assert client.requests[0].url == f"{ISSUER}/.well-known/openid-configuration"
    assert client.requests[0].headers == {"Accept": "application/json"}


@pytest.mark.asyncio
async def test_fetch_non_2xx_is_retried_then_raised(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient(get_response=FakeResponse(404, {}, "Not Found"))
    with pytest.raises(OAuthError) as exc_info:
        await _fetch(client, resilience)

    assert client.get_calls == 3
    err = exc_info.value
    assert err.error == "invalid_request"
    assert err.status_code == 404
    assert err.error_description == "Discovery failed: 404 Not Found"
    assert err.endpoint == f"{ISSUER}/.well-known/openid-configuration"
    assert err.issuer == ISSUER


@pytest.mark.asyncio
async def test_fetch_invalid_json(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient(get_response=FakeResponseJsonError(200, None))
    with pytest.raises(OAuthError) as exc_info:
        await _fetch(client, resilience, max_retries=0)
    assert exc_info.value.error == "server_error"
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_fetch_non_object_json(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient(get_response=FakeResponse(200, ["not", "an", "object"]))
    with pytest.raises(OAuthError) as exc_info:
        await _fetch(client, resilience, max_retries=0)
    assert exc_info.value.error == "server_error"


@pytest.mark.asyncio
async def test_fetch_network_error_opens_issuer_circuit(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient(get_exception=ConnectionError("network unreachable"))
    for _ in range(3):
        with pytest.raises(OAuthError):
            await _fetch(client, resilience, max_retries=0)

    state = resilience.registry.get(ISSUER)
    assert state is not None and state.consecutive_failures == 3

    with pytest.raises(OAuthError) as exc_info:
        await _fetch(client, resilience, max_retries=0)
    assert client.get_calls == 3
    assert exc_info.value.error == "temporarily_unavailable"
    assert exc_info.value.issuer == ISSUER


@pytest.mark.asyncio
async def test_fetch_trailing_slash_shares_issuer_circuit(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient(get_exception=ConnectionError("network unreachable"))
    options = {"max_retries": 0, "backoff_ms": 0, "failure_threshold": 2, "circuit_open_ms": 60_000}
    for issuer in (ISSUER, ISSUER + "/"):
        with pytest.raises(OAuthError):
            await fetch_oidc_discovery(
                issuer, resilience=resilience, http_client_factory=factory_for(client), **options
            )

    state = resilience.registry.get(ISSUER)
    assert state is not None and state.consecutive_failures == 2
    assert resilience.registry.get(ISSUER + "/") is None

    with pytest.raises(OAuthError) as exc_info:
        await _fetch(client, resilience, max_retries=0)
    assert exc_info.value.error == "temporarily_unavailable"
    assert client.get_calls == 2


# ── resolution ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_resolve_static_metadata_does_no_io(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient()
    config = OIDCProviderConfig(client_id="c1", metadata=STATIC_METADATA)
    metadata = await resolve_provider_metadata(
        config, resilience=resilience, http_client_factory=factory_for(client)
    )
    assert metadata.authorization_endpoint == "https://a/auth"
    assert client.requests == []


@pytest.mark.asyncio
async def test_resolve_accepts_server_metadata_alias(resilience: ResilienceManager) -> None:
    config = OIDCProviderConfig.model_validate(
        {"client_id": "c1", "server_metadata": STATIC_METADATA}
    )
    metadata = await resolve_provider_metadata(
        config, resilience=resilience, http_client_factory=factory_for(FakeAsyncHttpClient())
    )
    assert metadata.token_endpoint == "https://a/token"


@pytest.mark.asyncio
async def test_resolve_discovery_uses_config_retry_budget(resilience: ResilienceManager) -> None:
    client = FakeAsyncHttpClient(get_response=FakeResponse(500, {}))
    config = OIDCProviderConfig(
        client_id="c1",
        issuer=ISSUER,
        discovery=DiscoveryConfigModel(max_retries=1, backoff_ms=0),
    )
    with pytest.raises(OAuthError):
        await resolve_provider_metadata(
            config, resilience=resilience, http_client_factory=factory_for(client)
        )
    assert client.get_calls == 2


@pytest.mark.asyncio
async def test_resolve_discovery_validates_document(resilience: ResilienceManager) -> None:
    document = {k: v for k, v in DISCOVERY_DOCUMENT.items() if k != "jwks_uri"}
    client = FakeAsyncHttpClient(get_response=FakeResponse(200, document))
    config = OIDCProviderConfig(client_id="c1", issuer=ISSUER)
    with pytest.raises(OAuthError) as exc_info:
        await resolve_provider_metadata(
            config, resilience=resilience, http_client_factory=factory_for(client)
        )
    assert "jwks_uri" in (exc_info.value.error_description or "")


@pytest.mark.asyncio
async def test_resolve_without_source_is_invalid(resilience: ResilienceManager) -> None:
    with pytest.raises(OAuthError) as exc_info:
        await resolve_provider_metadata(
            OIDCProviderConfig(client_id="c1"),
            resilience=resilience,
            http_client_factory=factory_for(FakeAsyncHttpClient()),
        )
    assert exc_info.value.error == "invalid_request"
