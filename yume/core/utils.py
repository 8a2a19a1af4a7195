"""
Utility helpers.
"""

from __future__ import annotations

import time
from typing import Any


def now_ms() -> int:
    return int(time.time() * 1000)


def to_int_safe(value: Any, default: int = 0) -> int:
    """
    Coerce a loosely-typed remote value to int.

    Accepts ints, decimal strings (u64 values arrive as strings) and nested
    Move records shaped like {"fields": {"value": ...}} or {"value": ...}.
    Bools, floats and anything unparseable fall back to ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        digits = s[1:] if s.startswith("-") else s
        # isdigit() also accepts superscripts and other non-decimal digits
        if digits.isascii() and digits.isdigit():
            return int(s)
        return default
    if isinstance(value, dict):
        if "fields" in value and isinstance(value["fields"], dict):
            return to_int_safe(value["fields"].get("value"), default)
        if "value" in value:
            return to_int_safe(value["value"], default)
    return default


def to_str_safe(value: Any, default: str = "") -> str:
    """Coerce an address, ID or UID record ({"id": "0x.."}) to str."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        inner = value.get("id")
        if isinstance(inner, dict):
            return to_str_safe(inner, default)
        if isinstance(inner, str):
            return inner
        if "bytes" in value and isinstance(value["bytes"], str):
            return value["bytes"]
    return default


def to_bool_safe(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        low = value.strip().lower()
        if low in {"true", "1"}:
            return True
        if low in {"false", "0"}:
            return False
    if isinstance(value, int):
        return value != 0
    return default
