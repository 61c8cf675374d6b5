"""Deterministic JSON rendering for signed Lalamove request bodies.

The string returned by :func:`canonical_json` is both the input to the HMAC
signature and the literal HTTP body, so the two can never drift apart.
"""

from __future__ import annotations

import json
from typing import Any

_OMIT = object()


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (dict, list, tuple)) and not value)


def clean_payload(value: Any) -> Any:
    """Drop None, empty strings and empty containers at every nesting level.

    Returns the module sentinel ``_OMIT`` when the value itself is empty.
    """
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            result = clean_payload(item)
            if result is not _OMIT:
                cleaned[str(key)] = result
        return cleaned if cleaned else _OMIT
    if isinstance(value, (list, tuple)):
        items = [clean_payload(item) for item in value]
        items = [item for item in items if item is not _OMIT]
        return items if items else _OMIT
    if _is_empty(value):
        return _OMIT
    return value


def canonical_json(value: Any) -> str:
    """Serialize ``value`` with sorted keys and empty values stripped.

    A payload that is empty after cleaning renders as ``""`` rather than ``"{}"``.
    """
    cleaned = clean_payload(value)
    if cleaned is _OMIT:
        return ""
    return json.dumps(cleaned, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
