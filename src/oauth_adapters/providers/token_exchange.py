"""Token endpoint calls (authorization-code exchange and refresh)."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from oauth_adapters.config import OIDCProviderConfig
from oauth_adapters.contracts import OAuthError, TokenResponse, create_standard_error
from oauth_adapters.error_normalizer import normalize_error, reason_phrase
from oauth_adapters.http import HttpClientFactory
from oauth_adapters.log import ContextLoggerAdapter
from oauth_adapters.providers.oidc_discovery import OIDCProviderMetadata

TOKEN_ENDPOINT = "token_endpoint"

STANDARD_TOKEN_FIELDS = frozenset(
    {"access_token", "refresh_token", "id_token", "expires_in", "scope"}
)
SENSITIVE_FIELDS = frozenset({"client_secret", "code_verifier", "authorization_code", "code"})

_SCOPE_DELIMITER_RE = re.compile(r"[,\s]+")


def normalize_scope(provider_scope: str | None, configured_scopes: Sequence[str]) -> str:
    """Normalize a provider ``scope`` to single-space delimited form.

    Some providers return comma-delimited scopes; any run of commas and
    whitespace is treated as one delimiter. Falls back to the configured
    scopes when the provider returned nothing usable.
    """
    if provider_scope and provider_scope.strip():
        scopes = [s.strip() for s in _SCOPE_DELIMITER_RE.split(provider_scope)]
        scopes = [s for s in scopes if s]
        if scopes:
            return " ".join(scopes)
    return " ".join(configured_scopes)


def extract_user_data(raw: Mapping[str, Any]) -> dict[str, Any] | None:
    """Collect non-standard, non-sensitive token response fields.

    Returns ``None`` rather than an empty dict when nothing remains.
    """
    user_data = {
        key: value
        for key, value in raw.items()
        if key not in STANDARD_TOKEN_FIELDS and key not in SENSITIVE_FIELDS
    }
    return user_data or None


class TokenExchangeService:
    """Posts grants to the provider token endpoint and normalizes the result."""

    def __init__(
        self,
        config: OIDCProviderConfig,
        metadata: OIDCProviderMetadata,
        http_client_factory: HttpClientFactory,
        logger: ContextLoggerAdapter,
    ):
        self.config = config
        self.metadata = metadata
        self._http_client_factory = http_client_factory
        self._logger = logger.child(endpoint=metadata.token_endpoint, issuer=metadata.issuer)

    async def exchange_code(self, code: str, verifier: str, redirect_url: str) -> TokenResponse:
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": verifier,
            "redirect_uri": redirect_url,
            "client_id": self.config.client_id,
        }
        return await self._request_token(payload, stage="exchange_code", action="Token exchange")

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.client_id,
        }
        return await self._request_token(payload, stage="refresh_token", action="Token refresh")

    async def _request_token(
        self, payload: dict[str, str], *, stage: str, action: str
    ) -> TokenResponse:
        if self.config.client_secret:
            payload["client_secret"] = self.config.client_secret

        self._logger.info("Requesting tokens", extra={"stage": stage})
        try:
            async with self._http_client_factory() as client:
                resp = await client.post(
                    self.metadata.token_endpoint,
                    data=payload,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Accept": "application/json",
                    },
                )
            token = self._build_token_response(resp, action=action)
        except OAuthError as exc:
            self._logger.error(
                "Token request failed",
                extra={"stage": stage, "error": exc.error, "status_code": exc.status_code},
            )
            raise
        except Exception as exc:
            self._logger.error(
                "Token request failed",
                extra={"stage": stage, "error_type": exc.__class__.__name__},
            )
            raise normalize_error(
                exc, {"endpoint": TOKEN_ENDPOINT}, default_issuer=self.metadata.issuer
            ) from exc

        self._logger.info(
            "Token request completed",
            extra={
                "stage": stage,
                "has_refresh_token": token.refresh_token is not None,
                "has_id_token": token.id_token is not None,
                "expires_in": token.expires_in,
            },
        )
        return token

    def _build_token_response(self, resp: Any, *, action: str) -> TokenResponse:
        status = resp.status_code
        ok = 200 <= status < 300

        try:
            data = resp.json()
        except ValueError as exc:
            raise self._error(
                "server_error",
                "Invalid JSON response from token endpoint",
                status_code=status if not ok else None,
            ) from exc
        if not isinstance(data, dict):
            raise self._error(
                "server_error",
                "Invalid JSON response from token endpoint",
                status_code=status if not ok else None,
            )

        provider_error = data.get("error") if isinstance(data.get("error"), str) else None
        if not ok or provider_error:
            description = data.get("error_description")
            if not isinstance(description, str) or not description:
                reason = getattr(resp, "reason_phrase", "") or reason_phrase(status)
                description = f"{action} failed: {status} {reason}"
            raise self._error(
                provider_error or "server_error",
                description,
                status_code=status if not ok else 400,
            )

        access_token = data.get("access_token")
        if not access_token:
            raise self._error("server_error", "Missing access_token in provider response")

        scope = data.get("scope")
        if not isinstance(scope, str):
            scope = None
        try:
            return TokenResponse(
                access_token=access_token,
                refresh_token=data.get("refresh_token") or None,
                id_token=data.get("id_token") or None,
                expires_in=data.get("expires_in") or None,
                scope=normalize_scope(scope, self.config.scopes),
                user_data=extract_user_data(data),
            )
        except ValueError as exc:
            # pydantic's ValidationError is a ValueError
            raise self._error("server_error", "Invalid token response payload") from exc

    def _error(
        self, error: str, description: str, *, status_code: int | None = None
    ) -> OAuthError:
        return create_standard_error(
            error,
            description,
            status_code=status_code,
            endpoint=TOKEN_ENDPOINT,
            issuer=self.metadata.issuer,
        )


__all__ = [
    "SENSITIVE_FIELDS",
    "STANDARD_TOKEN_FIELDS",
    "TOKEN_ENDPOINT",
    "TokenExchangeService",
    "extract_user_data",
    "normalize_scope",
]
