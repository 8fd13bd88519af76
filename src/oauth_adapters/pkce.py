"""PKCE (RFC 7636) code verifier and S256 challenge generation."""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Literal

from oauth_adapters.models import AdapterBaseModel

MIN_VERIFIER_BYTES = 32


class PKCEPair(AdapterBaseModel):
    """A code verifier and the challenge derived from it."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: Literal["S256"] = "S256"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier(num_bytes: int = MIN_VERIFIER_BYTES) -> str:
    """Return a base64url (unpadded) verifier built from ``num_bytes`` random bytes."""
    if num_bytes < MIN_VERIFIER_BYTES:
        raise ValueError(f"PKCE verifier needs at least {MIN_VERIFIER_BYTES} bytes of entropy")
    return _b64url(secrets.token_bytes(num_bytes))


def generate_code_challenge(verifier: str) -> str:
    """Return the S256 challenge for ``verifier``."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce_pair() -> PKCEPair:
    verifier = generate_code_verifier()
    return PKCEPair(code_verifier=verifier, code_challenge=generate_code_challenge(verifier))


__all__ = [
    "PKCEPair",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_pkce_pair",
]
