"""
Key normalization - single source of truth for record identity.

Every component compares record identifiers through this module.
Keys are trimmed and case-folded; the empty string is never a valid
key and must be filtered out before a key enters any set or queue.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

# Whitespace, punctuation and underscores all collapse away for type matching
_TYPE_NOISE = re.compile(r"[\W_]+", re.UNICODE)


def normalize_key(value: Any) -> str:
    """
    Normalize a record identifier or cell value for comparison.

    Args:
        value: Any cell value (None is treated as blank)

    Returns:
        Trimmed, case-folded string ("" for blank input)
    """
    if value is None:
        return ""
    return str(value).strip().casefold()


def normalize_type(value: Any) -> str:
    """
    Normalize a record type for literal comparison.

    Differently punctuated spellings of one type normalize identically:
    "Relo App", "relo-app", "Relo. App" and "RELO_APP" all become "reloapp".
    """
    return _TYPE_NOISE.sub("", normalize_key(value))


def is_blank(value: Any) -> bool:
    """Check if a cell value is empty or whitespace-only."""
    return normalize_key(value) == ""


def dedupe_keys(values: Iterable[Any]) -> list[str]:
    """
    Normalize and deduplicate keys, preserving first-seen order.

    Blank values are dropped.

    Args:
        values: Raw key values in scan order

    Returns:
        Unique normalized keys
    """
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        key = normalize_key(value)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(key)
    return result


def display_key(key: str) -> str:
    """Uppercased form of a key, used in reports."""
    return key.upper()
