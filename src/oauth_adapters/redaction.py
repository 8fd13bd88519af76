"""Path-based redaction of sensitive values in nested data.

Paths use dot notation. A segment matches a mapping key or a list index; a
non-numeric segment applied to a list matches that key in every element:

    >>> redact({"user": {"token": "abc", "name": "bob"}}, ["user.token"])
    {'user': {'token': '[REDACTED]', 'name': 'bob'}}
    >>> redact({"items": [{"secret": 1}, {"secret": 2}]}, ["items.secret"])
    {'items': [{'secret': '[REDACTED]'}, {'secret': '[REDACTED]'}]}
"""

from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "[REDACTED]"


def redact(value: Any, paths: Sequence[str], redaction: str = REDACTED) -> Any:
    """Return a copy of ``value`` with the values at ``paths`` replaced.

    Non-container values are returned unchanged.
    """
    if not paths:
        return value
    if isinstance(value, Mapping):
        return {
            key: _redact_member(str(key), member, paths, redaction) for key, member in value.items()
        }
    if isinstance(value, list):
        general = [p for p in paths if not p.split(".", 1)[0].isdigit()]
        result = []
        for index, item in enumerate(value):
            indexed = _nested(paths, str(index))
            if str(index) in paths:
                result.append(redaction)
            else:
                result.append(redact(item, indexed + general, redaction))
        return result
    return value


def _redact_member(key: str, member: Any, paths: Sequence[str], redaction: str) -> Any:
    if key in paths:
        return redaction
    nested = _nested(paths, key)
    return redact(member, nested, redaction) if nested else member


def _nested(paths: Sequence[str], prefix: str) -> list[str]:
    marker = prefix + "."
    return [p[len(marker) :] for p in paths if p.startswith(marker)]


__all__ = ["REDACTED", "redact"]
