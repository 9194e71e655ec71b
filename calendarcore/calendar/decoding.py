"""Field normalizers used when decoding structural maps.

Each helper accepts a small, fixed set of source representations and either
normalizes the value or falls back to the caller's default (logging a
warning). None of them raise; callers decide which fields are mandatory.

Accepted representations:

- integers: ``int`` (not ``bool``) or a string holding a base-10 integer
- booleans: ``bool``; ``int`` 0/1; strings true/false, yes/no, on/off, 1/0
- integer sets: list/tuple/set of integers-or-numeric-strings, or a
  comma-separated string ("1,3,5")
- enums: an enum member, its value, or its name (case-insensitive)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_TRUE_TOKENS = {"true", "yes", "on", "1"}
_FALSE_TOKENS = {"false", "no", "off", "0"}

_MISSING = object()


def pick(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the value of the first key present in ``data`` (None if none are)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_int(value: Any) -> Any:
    if isinstance(value, bool):
        return _MISSING
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return _MISSING
    return _MISSING


def coerce_int(value: Any, default: int, field: str) -> int:
    """Normalize an integer field, falling back to ``default``."""
    if value is None:
        return default
    parsed = _parse_int(value)
    if parsed is _MISSING:
        logger.warning("Invalid integer for %s: %r; using %d", field, value, default)
        return default
    return parsed


def coerce_bool(value: Any, default: bool, field: str) -> bool:
    """Normalize a boolean field, falling back to ``default``."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    logger.warning("Invalid boolean for %s: %r; using %s", field, value, default)
    return default


def coerce_int_set(value: Any, low: int, high: int, field: str) -> Optional[list[int]]:
    """Normalize an optional integer filter; out-of-range or junk entries are dropped.

    Returns None when the field is absent or not a recognized collection.
    """
    if value is None:
        return None
    if isinstance(value, str):
        items: list[Any] = [part for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        logger.warning("Invalid value for %s: %r; ignoring filter", field, value)
        return None

    result: list[int] = []
    for item in items:
        parsed = _parse_int(item)
        if parsed is _MISSING or not low <= parsed <= high:
            logger.warning("Dropping invalid %s entry %r (expected %d-%d)", field, item, low, high)
            continue
        result.append(parsed)
    return result


def coerce_enum(enum_cls: type[E], value: Any, default: E, field: str) -> E:
    """Normalize an enum token, falling back to ``default`` for unknown tokens."""
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value

    token = str(value.value if isinstance(value, Enum) else value).strip()
    for member in enum_cls:
        if token == str(member.value) or token.lower() == member.name.lower():
            return member
        if isinstance(member.value, str) and token.lower() == member.value.lower():
            return member

    logger.warning("Unknown %s token %r; using %s", field, value, default.value)
    return default


def coerce_optional_str(value: Any) -> Optional[str]:
    """Keep non-empty strings; stringify scalars; everything else becomes None."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None
