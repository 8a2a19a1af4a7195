"""
Derived-value calculators shared by builders, previews and tests.

All arithmetic is integer with truncating division so previews agree with
the authoritative remote computation. Display conversions go through
Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import List

from yume.core.errors import InvalidInput
from yume.core.types import BPS_DENOMINATOR, LoanPosition, PoolState, PositionStatus


def _require_non_negative(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidInput(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise InvalidInput(f"{name} must be >= 0, got {value}")
    return value


# ===== Loan math =====

def interest(principal: int, rate_bps: int) -> int:
    """floor(principal * rate_bps / 10_000)"""
    _require_non_negative("principal", principal)
    _require_non_negative("rate_bps", rate_bps)
    return principal * rate_bps // BPS_DENOMINATOR


def required_collateral(amount: int, ltv_bps: int) -> int:
    """floor(amount * 10_000 / ltv_bps)"""
    _require_non_negative("amount", amount)
    _require_non_negative("ltv_bps", ltv_bps)
    if ltv_bps == 0:
        raise InvalidInput("ltv_bps must be > 0")
    return amount * BPS_DENOMINATOR // ltv_bps


def total_due(principal: int, rate_bps: int) -> int:
    return principal + interest(principal, rate_bps)


# ===== Display conversions =====

def bps_to_percent(bps: int) -> str:
    """500 -> "5.00%" """
    return f"{(Decimal(bps) / 100).quantize(Decimal('0.01'))}%"


def percent_to_bps(percent: str | int | Decimal) -> int:
    """ "5.25" -> 525; fractional basis points are truncated."""
    try:
        value = Decimal(str(percent).strip().rstrip("%"))
    except InvalidOperation as exc:
        raise InvalidInput(f"not a percentage: {percent!r}") from exc
    if not value.is_finite() or value < 0:
        raise InvalidInput(f"not a percentage: {percent!r}")
    return int((value * 100).to_integral_value(rounding=ROUND_DOWN))


def to_base_units(amount: str | int | Decimal, decimals: int) -> int:
    """ "1.5" with 9 decimals -> 1_500_000_000 (excess precision truncated)."""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise InvalidInput(f"not an amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise InvalidInput(f"not an amount: {amount!r}")
    return int((value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


def format_token_amount(units: int, decimals: int, places: int = 4) -> str:
    value = Decimal(units) / (Decimal(10) ** decimals)
    return f"{value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN):,}"


# ===== Pool math =====

@dataclass(frozen=True)
class LadderRung:
    rate: int
    amount: int


def rate_ladder(min_rate: int, max_rate: int, num_buckets: int) -> List[int]:
    """
    Linear rate curve between min_rate and max_rate (inclusive).

    rung i = min_rate + round(i * (max_rate - min_rate) / (num_buckets - 1)),
    rounding half up.
    """
    if num_buckets <= 0:
        return []
    if num_buckets == 1:
        return [min_rate]
    spread = max_rate - min_rate
    steps = num_buckets - 1
    return [min_rate + (2 * i * spread + steps) // (2 * steps) for i in range(num_buckets)]


def ladder_allocation(pool: PoolState) -> List[LadderRung]:
    """Deployed balance split evenly across the pool's rungs."""
    rates = rate_ladder(pool.min_rate, pool.max_rate, pool.num_buckets)
    if not rates:
        return []
    per_rung = pool.deployed_balance // len(rates)
    return [LadderRung(rate=r, amount=per_rung) for r in rates]


def pool_total_value(pool: PoolState) -> int:
    return pool.available_balance + pool.deployed_balance


def pool_utilization_bps(pool: PoolState) -> int:
    total = pool_total_value(pool)
    if total == 0:
        return 0
    return pool.deployed_balance * BPS_DENOMINATOR // total


def preview_deposit_shares(pool: PoolState, amount: int) -> int:
    """Shares minted for a deposit, proportional to contribution vs pool value."""
    _require_non_negative("amount", amount)
    total = pool_total_value(pool)
    if pool.total_shares == 0 or total == 0:
        return amount
    return amount * pool.total_shares // total


def preview_withdraw_amount(pool: PoolState, shares: int) -> int:
    """Pro-rata share of the *available* balance only."""
    _require_non_negative("shares", shares)
    if pool.total_shares == 0:
        return 0
    return shares * pool.available_balance // pool.total_shares


def share_value(pool: PoolState, shares: int) -> int:
    """Value of shares against the whole pool (available + deployed)."""
    if pool.total_shares == 0:
        return 0
    return shares * pool_total_value(pool) // pool.total_shares


# ===== Positions =====

def is_liquidatable(position: LoanPosition, now_ms: int) -> bool:
    """Active and past maturity. The remote side makes the final call."""
    return (
        position.status == PositionStatus.ACTIVE
        and position.maturity_time > 0
        and now_ms > position.maturity_time
    )


def time_remaining(maturity_ms: int, now_ms: int) -> str:
    diff = maturity_ms - now_ms
    if diff <= 0:
        return "Expired"
    days = diff // 86_400_000
    hours = (diff % 86_400_000) // 3_600_000
    if days > 0:
        return f"{days}d {hours}h"
    return f"{hours}h"
