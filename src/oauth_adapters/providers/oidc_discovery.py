"""OpenID Connect provider metadata: discovery, static metadata and validation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ConfigDict, ValidationError

from oauth_adapters.config import OIDCProviderConfig
from oauth_adapters.contracts import OAuthError, create_standard_error
from oauth_adapters.error_normalizer import ErrorContext, normalize_error, status_to_oauth_error
from oauth_adapters.http import HttpClientFactory
from oauth_adapters.models import AdapterBaseModel
from oauth_adapters.resilience import ResilienceContext, ResilienceManager

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


class OIDCProviderMetadata(AdapterBaseModel):
    """Provider metadata from discovery or static configuration.

    Unknown fields are kept (``extra="allow"``) so callers can read any
    provider-specific entries.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    issuer: str | None = None
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str | None = None
    userinfo_endpoint: str | None = None
    revocation_endpoint: str | None = None
    scopes_supported: list[str] | None = None
    response_types_supported: list[str] | None = None
    response_modes_supported: list[str] | None = None
    grant_types_supported: list[str] | None = None
    subject_types_supported: list[str] | None = None
    id_token_signing_alg_values_supported: list[str] | None = None
    token_endpoint_auth_methods_supported: list[str] | None = None
    code_challenge_methods_supported: list[str] | None = None
    claims_supported: list[str] | None = None


def discovery_url(issuer: str) -> str:
    return issuer.rstrip("/") + WELL_KNOWN_PATH


def validate_provider_metadata(
    data: Mapping[str, Any], *, require_jwks_uri: bool = True
) -> OIDCProviderMetadata:
    """Check required endpoints and parse ``data``.

    Raises:
        OAuthError: ``invalid_request`` naming the first missing field.
    """
    issuer = data.get("issuer") if isinstance(data.get("issuer"), str) else None
    required = ["authorization_endpoint", "token_endpoint"]
    if require_jwks_uri:
        required.append("jwks_uri")
    for field in required:
        if not data.get(field):
            raise create_standard_error(
                "invalid_request",
                f"Missing {field} in provider metadata",
                issuer=issuer,
            )

    try:
        return OIDCProviderMetadata.model_validate(dict(data))
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "metadata"
        raise create_standard_error(
            "invalid_request",
            f"Invalid provider metadata: {location}: {first['msg']}",
            issuer=issuer,
        ) from exc


async def fetch_oidc_discovery(
    issuer: str,
    *,
    resilience: ResilienceManager,
    http_client_factory: HttpClientFactory,
    max_retries: int,
    backoff_ms: int,
    failure_threshold: int,
    circuit_open_ms: int,
) -> dict[str, Any]:
    """Fetch the discovery document for ``issuer``.

    Non-2xx responses and unparseable bodies count as failed attempts and are
    retried; the circuit is keyed by the issuer.
    """
    url = discovery_url(issuer)

    async def _fetch() -> dict[str, Any]:
        async with http_client_factory() as client:
            resp = await client.get(url, headers={"Accept": "application/json"})

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "OIDC discovery endpoint returned non-2xx",
                extra={"stage": "discovery", "endpoint": url, "status_code": resp.status_code},
            )
            reason = getattr(resp, "reason_phrase", "") or ""
            raise OAuthError(
                status_to_oauth_error(resp.status_code),
                f"Discovery failed: {resp.status_code} {reason}".strip(),
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise create_standard_error(
                "server_error", "OIDC discovery response was invalid JSON"
            ) from exc
        if not isinstance(data, dict):
            raise create_standard_error(
                "server_error", "OIDC discovery response was not a JSON object"
            )
        return data

    def _normalize(error: object, context: ErrorContext) -> OAuthError:
        return normalize_error(error, context, default_issuer=issuer)

    return await resilience.execute_with_resilience(
        _fetch,
        ResilienceContext(
            endpoint=url,
            max_retries=max_retries,
            backoff_ms=backoff_ms,
            circuit_key=issuer.rstrip("/"),
            failure_threshold=failure_threshold,
            circuit_open_ms=circuit_open_ms,
        ),
        _normalize,
    )


async def resolve_provider_metadata(
    config: OIDCProviderConfig,
    *,
    resilience: ResilienceManager,
    http_client_factory: HttpClientFactory,
) -> OIDCProviderMetadata:
    """Resolve metadata through discovery (``issuer``) or static ``metadata``."""
    if config.issuer:
        url = discovery_url(config.issuer)
        logger.info(
            "Performing OIDC discovery",
            extra={"stage": "discovery", "endpoint": url, "issuer": config.issuer},
        )
        data = await fetch_oidc_discovery(
            config.issuer,
            resilience=resilience,
            http_client_factory=http_client_factory,
            max_retries=config.discovery.max_retries,
            backoff_ms=config.discovery.backoff_ms,
            failure_threshold=config.discovery.failure_threshold,
            circuit_open_ms=config.discovery.circuit_open_ms,
        )
        metadata = validate_provider_metadata(data, require_jwks_uri=config.require_jwks_uri)
        logger.info(
            "OIDC discovery completed",
            extra={
                "stage": "discovery",
                "endpoint": url,
                "issuer": metadata.issuer,
                "has_userinfo_endpoint": metadata.userinfo_endpoint is not None,
            },
        )
        return metadata

    if config.metadata is not None:
        logger.info(
            "Using static OIDC provider metadata",
            extra={"stage": "initialize", "issuer": config.metadata.get("issuer")},
        )
        return validate_provider_metadata(config.metadata, require_jwks_uri=config.require_jwks_uri)

    raise create_standard_error("invalid_request", "Either issuer or metadata must be provided")


__all__ = [
    "OIDCProviderMetadata",
    "WELL_KNOWN_PATH",
    "discovery_url",
    "fetch_oidc_discovery",
    "resolve_provider_metadata",
    "validate_provider_metadata",
]
