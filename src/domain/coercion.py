from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar


T = TypeVar("T")


def to_text(value: Any) -> str:
    """Coerce scalars to a trimmed string; anything else becomes ''."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def to_optional_text(value: Any) -> str | None:
    text = to_text(value)
    return text or None


def to_optional_timestamp(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return to_optional_text(value)


def first_defined(*values: T | None) -> T | None:
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item is not None]
