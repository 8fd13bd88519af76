"""Logging helpers: contextual child loggers and redaction of record extras.

The package logs through standard :mod:`logging` with structured fields
passed as ``extra``. It never installs handlers; applications configure
output themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping, Sequence
from typing import Any

from oauth_adapters.redaction import REDACTED, redact

DEFAULT_REDACT_PATHS: tuple[str, ...] = (
    "client_secret",
    "code_verifier",
    "access_token",
    "refresh_token",
    "id_token",
    "code",
)

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime"}
)


class RedactionFilter(logging.Filter):
    """Redact sensitive ``extra`` fields on log records.

    Top-level extras are matched by the first path segment; deeper segments
    are applied to mapping or list values with :func:`redact`.
    """

    def __init__(self, paths: Sequence[str] = DEFAULT_REDACT_PATHS, redaction: str = REDACTED):
        super().__init__()
        self.paths = list(paths)
        self.redaction = redaction

    def filter(self, record: logging.LogRecord) -> bool:
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_ATTRS
        }
        if extras:
            for key, value in redact(extras, self.paths, self.redaction).items():
                setattr(record, key, value)
        return True


class ContextLoggerAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that merges bound context into every record's ``extra``.

    Call-site ``extra`` values win over bound context on key collision.
    """

    def __init__(self, logger: logging.Logger, context: Mapping[str, Any] | None = None):
        super().__init__(logger, dict(context or {}))

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs

    def child(self, **context: Any) -> ContextLoggerAdapter:
        """Return a logger inheriting this context plus ``context``."""
        return ContextLoggerAdapter(self.logger, {**(self.extra or {}), **context})


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """Return a context logger for ``name`` with the default redaction filter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, RedactionFilter) for f in logger.filters):
        logger.addFilter(RedactionFilter())
    return ContextLoggerAdapter(logger, context)


__all__ = [
    "ContextLoggerAdapter",
    "DEFAULT_REDACT_PATHS",
    "RedactionFilter",
    "get_logger",
]
