"""
Mask or strip sensitive fields from nested data before it is logged or
returned.

Fields are matched by key name at any depth, not by path: "password" is
caught at the top level and inside any nested mapping. Lists and tuples are
walked too, so a list of user dicts is handled the same as a single one.
Inputs are never mutated; containers are copied on the way through.
"""

from __future__ import annotations

from typing import Any, Collection, Mapping

REDACTED = "[REDACTED]"


def _walk(value: Any, sensitive: frozenset[str], mask: Any, remove: bool) -> Any:
    if isinstance(value, Mapping):
        out: dict[Any, Any] = {}
        for key, item in value.items():
            if key in sensitive:
                if not remove:
                    out[key] = mask
                continue
            out[key] = _walk(item, sensitive, mask, remove)
        return out
    if isinstance(value, list):
        return [_walk(item, sensitive, mask, remove) for item in value]
    if isinstance(value, tuple):
        return tuple(_walk(item, sensitive, mask, remove) for item in value)
    return value


def sanitize_object(obj: Any, sensitive_fields: Collection[str], mask: Any = REDACTED) -> Any:
    """
    Return a copy of `obj` with every sensitive key's value replaced by `mask`.

    Anything that is not a mapping is returned as-is.
    """
    if not isinstance(obj, Mapping):
        return obj
    return _walk(obj, frozenset(sensitive_fields), mask, remove=False)


def remove_sensitive_fields(obj: Any, sensitive_fields: Collection[str]) -> Any:
    """
    Return a copy of `obj` with every sensitive key dropped.
    """
    if not isinstance(obj, Mapping):
        return obj
    return _walk(obj, frozenset(sensitive_fields), None, remove=True)
