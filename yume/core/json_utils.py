"""
Fast JSON helpers for structured log payloads.

Usage:
    from yume.core.json_utils import dumps

    log.info(dumps({"event": "order_book_polled", "asks": 5}))
"""

from __future__ import annotations

from typing import Any

import orjson


def dumps(obj: Any) -> str:
    """Encode to a compact JSON string. Non-native types fall back to str()."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def loads(s: str | bytes) -> Any:
    return orjson.loads(s)
