"""Deep merge for layered configuration."""
from __future__ import annotations

from typing import Any, Dict


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Nested mappings merge key by key; any other value (lists included)
    replaces the base value.

        >>> deep_merge({"engine": {"a": 1, "b": 2}}, {"engine": {"b": 3}})
        {'engine': {'a': 1, 'b': 3}}
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in (override or {}).items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


__all__ = ["deep_merge"]
