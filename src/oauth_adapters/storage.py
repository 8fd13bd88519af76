"""PKCE state storage contract and an in-memory reference implementation.

The adapter only calls the three contract methods of :class:`PKCEStorageHook`;
the store itself is owned and closed by the integrating application.

Backends must ensure:
- ``retrieve_pkce_state`` returns ``None`` for unknown ids, a mismatched
  ``state`` or an expired record (``now > expires_at``).
- ``cleanup_expired_state(t)`` removes every record with ``expires_at < t``.
- All timestamps are epoch milliseconds.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from oauth_adapters.contracts import create_standard_error
from oauth_adapters.models import AdapterBaseModel

logger = logging.getLogger(__name__)

STORAGE_HOOK_METHODS = ("store_pkce_state", "retrieve_pkce_state", "cleanup_expired_state")


def now_ms() -> int:
    return int(time.time() * 1000)


@runtime_checkable
class PKCEStorageHook(Protocol):
    """Persistence seam for PKCE verifiers keyed by interaction id."""

    async def store_pkce_state(
        self, interaction_id: str, state: str, code_verifier: str, expires_at: int
    ) -> None: ...

    async def retrieve_pkce_state(self, interaction_id: str, state: str) -> str | None: ...

    async def cleanup_expired_state(self, before_timestamp: int) -> None: ...


class PKCEStateRecord(AdapterBaseModel):
    """Stored PKCE state for one interaction."""

    state: str
    code_verifier: str
    expires_at: int


class InMemoryPKCEStorage(PKCEStorageHook):
    """Dict-backed PKCE store.

    Records live in process memory only, so this is suitable for development
    and tests. Production deployments need a persistent, multi-process-safe
    implementation of :class:`PKCEStorageHook`.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self._clock = clock
        self._records: dict[str, PKCEStateRecord] = {}

    async def store_pkce_state(
        self, interaction_id: str, state: str, code_verifier: str, expires_at: int
    ) -> None:
        self._records[interaction_id] = PKCEStateRecord(
            state=state, code_verifier=code_verifier, expires_at=expires_at
        )

    async def retrieve_pkce_state(self, interaction_id: str, state: str) -> str | None:
        record = self._records.get(interaction_id)
        if record is None:
            return None
        if record.state != state:
            return None
        if self._clock() > record.expires_at:
            del self._records[interaction_id]
            return None
        return record.code_verifier

    async def cleanup_expired_state(self, before_timestamp: int) -> None:
        expired = [key for key, rec in self._records.items() if rec.expires_at < before_timestamp]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("Evicted expired PKCE state", extra={"evicted": len(expired)})

    def __len__(self) -> int:
        return len(self._records)


def validate_storage_hook(hook: object) -> None:
    """Raise ``invalid_request`` unless ``hook`` exposes the full contract."""
    missing = [name for name in STORAGE_HOOK_METHODS if not callable(getattr(hook, name, None))]
    if hook is None or missing:
        raise create_standard_error(
            "invalid_request",
            "storage_hook must implement store_pkce_state, retrieve_pkce_state, "
            "and cleanup_expired_state",
        )


__all__ = [
    "InMemoryPKCEStorage",
    "PKCEStateRecord",
    "PKCEStorageHook",
    "STORAGE_HOOK_METHODS",
    "now_ms",
    "validate_storage_hook",
]
