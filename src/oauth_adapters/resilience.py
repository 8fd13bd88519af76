"""Retry with exponential backoff and per-key circuit breaking.

Circuit state lives in a :class:`CircuitBreakerRegistry` keyed by a plain
string (usually the issuer). The default registry is shared by every
:class:`ResilienceManager` in the process, so adapters talking to the same
issuer share one breaker. Updates are last-write-wins: two calls failing
concurrently at the threshold may open the circuit one cycle late.

Example:
    >>> manager = ResilienceManager()
    >>> result = await manager.execute_with_resilience(
    ...     fetch_document,
    ...     ResilienceContext(endpoint="https://idp.example.com/.well-known/openid-configuration"),
    ...     normalize_error,
    ... )
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TypeVar

from oauth_adapters.contracts import OAuthError
from oauth_adapters.error_normalizer import ErrorNormalizerFn

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_MS = 300
DEFAULT_CIRCUIT_FAILURE_THRESHOLD = 3
DEFAULT_CIRCUIT_OPEN_MS = 60_000

CIRCUIT_OPEN_DESCRIPTION = "Circuit breaker is open due to recent failures. Try again later."


@dataclass(frozen=True)
class CircuitBreakerState:
    """Failure bookkeeping for one circuit key.

    Attributes:
        consecutive_failures: Exhausted executions since the last success.
        opened_until: Epoch milliseconds until which calls fail fast.
    """

    consecutive_failures: int = 0
    opened_until: float | None = None

    def is_open(self, now_ms: float) -> bool:
        return self.opened_until is not None and now_ms < self.opened_until


@dataclass(frozen=True)
class ResilienceContext:
    """Options for one resilient execution."""

    endpoint: str
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_ms: int = DEFAULT_BACKOFF_MS
    circuit_key: str | None = None
    failure_threshold: int = DEFAULT_CIRCUIT_FAILURE_THRESHOLD
    circuit_open_ms: int = DEFAULT_CIRCUIT_OPEN_MS

    @property
    def key(self) -> str:
        return self.circuit_key or self.endpoint


class CircuitBreakerRegistry:
    """String-keyed store of circuit states."""

    def __init__(self) -> None:
        self._circuits: dict[str, CircuitBreakerState] = {}

    def get(self, key: str) -> CircuitBreakerState | None:
        return self._circuits.get(key)

    def set(self, key: str, state: CircuitBreakerState) -> None:
        self._circuits[key] = state

    def reset(self, key: str) -> None:
        self._circuits.pop(key, None)

    def reset_all(self) -> None:
        self._circuits.clear()

    def snapshot(self) -> dict[str, CircuitBreakerState]:
        return dict(self._circuits)


default_circuit_registry = CircuitBreakerRegistry()


async def _sleep_ms(delay_ms: float) -> None:
    await asyncio.sleep(delay_ms / 1000)


def _clock_ms() -> float:
    return time.time() * 1000


class ResilienceManager:
    """Runs async operations with retries and circuit breaking."""

    def __init__(
        self,
        registry: CircuitBreakerRegistry | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = _sleep_ms,
        clock: Callable[[], float] = _clock_ms,
    ):
        """
        Args:
            registry: Circuit store; defaults to the process-wide registry.
            sleep: Awaitable sleep taking milliseconds.
            clock: Current time in epoch milliseconds.
        """
        self.registry = registry if registry is not None else default_circuit_registry
        self._sleep = sleep
        self._clock = clock

    async def execute_with_resilience(
        self,
        operation: Callable[[], Awaitable[T]],
        context: ResilienceContext,
        error_normalizer: ErrorNormalizerFn,
    ) -> T:
        """Run ``operation`` with retry/backoff behind the circuit for ``context.key``.

        Raises:
            OAuthError: The normalized last error once attempts are exhausted, or
                a ``temporarily_unavailable`` error when the circuit is open.
        """
        key = context.key
        circuit = self.registry.get(key) or CircuitBreakerState()

        if circuit.is_open(self._clock()):
            logger.warning(
                "Circuit open, failing fast",
                extra={"endpoint": context.endpoint, "circuit_key": key},
            )
            circuit_error = OAuthError(
                "temporarily_unavailable", CIRCUIT_OPEN_DESCRIPTION, status_code=503
            )
            raise error_normalizer(circuit_error, {"endpoint": context.endpoint})

        last_error: BaseException | None = None
        for attempt in range(context.max_retries + 1):
            try:
                result = await operation()
            except Exception as exc:
                last_error = exc
                if attempt < context.max_retries:
                    delay_ms = context.backoff_ms * 2**attempt
                    logger.info(
                        "Operation failed, retrying",
                        extra={
                            "endpoint": context.endpoint,
                            "attempt": attempt + 1,
                            "delay_ms": delay_ms,
                            "error_type": exc.__class__.__name__,
                        },
                    )
                    await self._sleep(delay_ms)
                continue
            self.registry.set(key, CircuitBreakerState())
            return result

        failures = circuit.consecutive_failures + 1
        new_state = replace(circuit, consecutive_failures=failures, opened_until=None)
        if failures >= context.failure_threshold:
            new_state = replace(new_state, opened_until=self._clock() + context.circuit_open_ms)
            logger.warning(
                "Circuit opened after repeated failures",
                extra={
                    "endpoint": context.endpoint,
                    "circuit_key": key,
                    "consecutive_failures": failures,
                    "open_ms": context.circuit_open_ms,
                },
            )
        self.registry.set(key, new_state)

        raise error_normalizer(last_error, {"endpoint": context.endpoint}) from last_error


def get_circuit_state(circuit_key: str) -> CircuitBreakerState | None:
    return default_circuit_registry.get(circuit_key)


def reset_circuit(circuit_key: str) -> None:
    default_circuit_registry.reset(circuit_key)


def reset_all_circuits() -> None:
    default_circuit_registry.reset_all()


def get_circuit_stats() -> dict[str, CircuitBreakerState]:
    return default_circuit_registry.snapshot()


__all__ = [
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    "DEFAULT_BACKOFF_MS",
    "DEFAULT_CIRCUIT_FAILURE_THRESHOLD",
    "DEFAULT_CIRCUIT_OPEN_MS",
    "DEFAULT_MAX_RETRIES",
    "ResilienceContext",
    "ResilienceManager",
    "default_circuit_registry",
    "get_circuit_state",
    "get_circuit_stats",
    "reset_all_circuits",
    "reset_circuit",
]
