"""
Protocol constants and the typed records mirrored from remote state.

Records are immutable snapshots: readers replace them wholesale on every
successful refetch and never patch them in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict

# ===== Well-known objects =====

SUI_CLOCK_ID = "0x6"
SUI_TYPE = "0x2::sui::SUI"

BPS_DENOMINATOR = 10_000


class OrderSide(IntEnum):
    LEND = 0    # offering capital (ask)
    BORROW = 1  # requesting capital (bid)


class PositionStatus(IntEnum):
    ACTIVE = 0
    REPAID = 1
    LIQUIDATED = 2
    DEFAULTED = 3


STATUS_LABELS: Dict[int, str] = {
    PositionStatus.ACTIVE: "Active",
    PositionStatus.REPAID: "Repaid",
    PositionStatus.LIQUIDATED: "Liquidated",
    PositionStatus.DEFAULTED: "Defaulted",
}

# ===== Duration buckets (seconds) =====

DURATION_OPEN = 0
DURATION_7_DAY = 604_800
DURATION_30_DAY = 2_592_000
DURATION_90_DAY = 7_776_000

DURATION_LABELS: Dict[int, str] = {
    DURATION_OPEN: "Open",
    DURATION_7_DAY: "7 Day",
    DURATION_30_DAY: "30 Day",
    DURATION_90_DAY: "90 Day",
}

# ===== Risk tiers =====

RISK_TIER_A = 0  # blue-chip collateral, high LTV
RISK_TIER_B = 1  # volatile collateral, low LTV

RISK_TIER_LABELS: Dict[int, str] = {
    RISK_TIER_A: "Tier A",
    RISK_TIER_B: "Tier B",
}


def duration_label(seconds: int) -> str:
    return DURATION_LABELS.get(seconds, f"{seconds}s")


@dataclass(frozen=True)
class Order:
    """A resting order from the order-book table."""
    order_id: int
    owner: str
    side: OrderSide
    amount: int
    rate: int
    timestamp: int
    is_active: bool

    @property
    def is_lend(self) -> bool:
        return self.side == OrderSide.LEND


@dataclass(frozen=True)
class LoanPosition:
    """One side of a settled loan, owned by the lender or the borrower."""
    id: str = ""
    loan_id: str = ""
    side: int = OrderSide.LEND
    lender: str = ""
    borrower: str = ""
    principal: int = 0
    rate: int = 0
    duration: int = 0
    collateral_amount: int = 0
    start_time: int = 0
    maturity_time: int = 0
    status: int = PositionStatus.ACTIVE
    book_id: str = ""

    @property
    def is_lend(self) -> bool:
        return self.side == OrderSide.LEND

    @property
    def is_active(self) -> bool:
        return self.status == PositionStatus.ACTIVE

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, f"Unknown({self.status})")


@dataclass(frozen=True)
class PoolState:
    id: str = ""
    admin: str = ""
    book_id: str = ""
    total_shares: int = 0
    available_balance: int = 0
    deployed_balance: int = 0
    min_rate: int = 0
    max_rate: int = 0
    num_buckets: int = 0
    is_active: bool = False


@dataclass(frozen=True)
class OrderBookSummary:
    """The order-book shared object itself, without its order table."""
    id: str = ""
    next_order_id: int = 0
    orders_table_id: str = ""
    total_bids: int = 0
    total_asks: int = 0
    duration_bucket: int = 0
    risk_tier: int = 0
    max_ltv_bps: int = 0
    is_active: bool = False
