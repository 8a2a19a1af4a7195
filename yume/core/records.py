"""
Per-record-kind schemas for loosely-typed remote JSON.

Each parser pulls the Move struct fields out of a decoded object and maps
them onto a typed record. Failures are isolated to the record being parsed:

- parse_order is strict on identity fields and raises PartialParseSkipped,
  so a bulk traversal can drop the single bad entry and carry on.
- parse_position / parse_pool never raise on field contents; numbers
  default to 0 and identities to "" so readers degrade gracefully while
  remote indexing catches up.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from yume.core.errors import PartialParseSkipped
from yume.core.types import (
    LoanPosition,
    Order,
    OrderBookSummary,
    OrderSide,
    PoolState,
)
from yume.core.utils import to_bool_safe, to_int_safe, to_str_safe


def object_id_of(obj: Any) -> str:
    if isinstance(obj, dict):
        return to_str_safe(obj.get("objectId")) or to_str_safe(move_fields(obj, strict=False).get("id"))
    return ""


def move_fields(obj: Any, strict: bool = True) -> Dict[str, Any]:
    """
    Return the struct fields of a decoded object.

    Accepts the full object data ({"content": {"fields": ...}}), a bare
    content record ({"fields": ...}) or an already-flat field mapping.
    """
    if isinstance(obj, dict):
        content = obj.get("content")
        if isinstance(content, dict) and isinstance(content.get("fields"), dict):
            return content["fields"]
        if isinstance(obj.get("fields"), dict):
            return obj["fields"]
        if "content" not in obj and "objectId" not in obj and obj:
            return obj
    if strict:
        raise PartialParseSkipped("record has no struct fields", object_id_of_raw(obj))
    return {}


def object_id_of_raw(obj: Any) -> Optional[str]:
    if isinstance(obj, dict) and isinstance(obj.get("objectId"), str):
        return obj["objectId"]
    return None


def unwrap_dynamic_field(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Field<K, V> wrappers carry the payload under "value"."""
    value = fields.get("value")
    if isinstance(value, dict) and isinstance(value.get("fields"), dict) and "name" in fields:
        return value["fields"]
    return fields


# ===== Orders =====

def parse_order(obj: Any) -> Order:
    """Parse one order-table entry. Raises PartialParseSkipped on bad data."""
    outer = move_fields(obj)
    fields = unwrap_dynamic_field(outer)
    record_id = object_id_of_raw(obj)

    order_id = to_int_safe(fields.get("order_id", fields.get("id")), -1)
    if order_id < 0:
        # Table entries are keyed by the order id
        order_id = to_int_safe(outer.get("name"), -1)
    if order_id < 0:
        raise PartialParseSkipped("missing order id", record_id)

    side_raw = to_int_safe(fields.get("side"), -1)
    if side_raw not in (OrderSide.LEND, OrderSide.BORROW):
        raise PartialParseSkipped(f"bad side {fields.get('side')!r}", record_id)

    for key in ("amount", "rate", "is_active"):
        if key not in fields:
            raise PartialParseSkipped(f"missing {key}", record_id)

    amount = to_int_safe(fields["amount"], -1)
    rate = to_int_safe(fields["rate"], -1)
    if amount < 0 or rate < 0:
        raise PartialParseSkipped("negative or unparseable amount/rate", record_id)

    return Order(
        order_id=order_id,
        owner=to_str_safe(fields.get("owner")),
        side=OrderSide(side_raw),
        amount=amount,
        rate=rate,
        timestamp=to_int_safe(fields.get("timestamp", fields.get("created_at"))),
        is_active=to_bool_safe(fields["is_active"]),
    )


def parse_order_book_summary(obj: Any) -> OrderBookSummary:
    fields = move_fields(obj)
    if "next_order_id" not in fields:
        raise PartialParseSkipped("order book has no next_order_id", object_id_of_raw(obj))
    return OrderBookSummary(
        id=object_id_of(obj),
        next_order_id=to_int_safe(fields.get("next_order_id")),
        orders_table_id=_table_id(fields.get("orders")),
        total_bids=to_int_safe(fields.get("total_bids")),
        total_asks=to_int_safe(fields.get("total_asks")),
        duration_bucket=to_int_safe(fields.get("duration_bucket")),
        risk_tier=to_int_safe(fields.get("risk_tier")),
        max_ltv_bps=to_int_safe(fields.get("max_ltv_bps")),
        is_active=to_bool_safe(fields.get("is_active")),
    )


def _table_id(raw: Any) -> str:
    """Table<K, V> decodes as {"fields": {"id": {"id": "0x.."}, "size": "N"}}."""
    if isinstance(raw, dict):
        inner = raw.get("fields", raw)
        if isinstance(inner, dict):
            return to_str_safe(inner.get("id"))
    return to_str_safe(raw)


# ===== Positions =====

def parse_position(obj: Any) -> LoanPosition:
    """Lenient: only a record without any struct fields is skipped."""
    fields = move_fields(obj)
    return LoanPosition(
        id=object_id_of(obj),
        loan_id=to_str_safe(fields.get("loan_id")),
        side=to_int_safe(fields.get("side")),
        lender=to_str_safe(fields.get("lender")),
        borrower=to_str_safe(fields.get("borrower")),
        principal=to_int_safe(fields.get("principal")),
        rate=to_int_safe(fields.get("rate")),
        duration=to_int_safe(fields.get("duration")),
        collateral_amount=to_int_safe(fields.get("collateral_amount")),
        start_time=to_int_safe(fields.get("start_time")),
        maturity_time=to_int_safe(fields.get("maturity_time")),
        status=to_int_safe(fields.get("status")),
        book_id=to_str_safe(fields.get("book_id")),
    )


# ===== Pool =====

def inline_available_balance(fields: Dict[str, Any]) -> Optional[int]:
    """Return the available balance when it is decoded inline, else None."""
    raw = fields.get("available_balance")
    if raw is None:
        return None
    value = to_int_safe(raw, -1)
    return value if value >= 0 else None


def parse_pool(obj: Any, available_balance: Optional[int] = None) -> PoolState:
    # a pool not yet indexed still yields a zero-filled state
    fields = move_fields(obj, strict=False)
    if available_balance is None:
        available_balance = inline_available_balance(fields) or 0
    return PoolState(
        id=object_id_of(obj),
        admin=to_str_safe(fields.get("admin")),
        book_id=to_str_safe(fields.get("book_id")),
        total_shares=to_int_safe(fields.get("total_shares")),
        available_balance=available_balance,
        deployed_balance=to_int_safe(fields.get("deployed_balance")),
        min_rate=to_int_safe(fields.get("min_rate")),
        max_rate=to_int_safe(fields.get("max_rate")),
        num_buckets=to_int_safe(fields.get("num_buckets")),
        is_active=to_bool_safe(fields.get("is_active")),
    )
