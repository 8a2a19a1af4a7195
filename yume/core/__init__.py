"""
Core package.

Error taxonomy, record types, defensive parsers and derived-value math.
"""

from yume.core.errors import (
    InvalidInput,
    LinearResourceError,
    NotAuthorized,
    PartialParseSkipped,
    RemoteReadFailure,
    RemoteWriteFailure,
    YumeError,
)
from yume.core.rates import interest, required_collateral, total_due
from yume.core.types import LoanPosition, Order, OrderBookSummary, OrderSide, PoolState, PositionStatus

__all__ = [
    "YumeError",
    "NotAuthorized",
    "InvalidInput",
    "LinearResourceError",
    "RemoteReadFailure",
    "RemoteWriteFailure",
    "PartialParseSkipped",
    "interest",
    "required_collateral",
    "total_due",
    "Order",
    "OrderSide",
    "LoanPosition",
    "PositionStatus",
    "PoolState",
    "OrderBookSummary",
]
