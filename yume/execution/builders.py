"""
Transaction builders: one pure function per protocol action.

Each builder validates its inputs, assembles a TransactionBatch against the
given MarketDescriptor and returns it sealed. Builders never touch the
network; every failure is a local InvalidInput raised before a batch exists.

Match/settle:
    match_orders yields a MatchReceipt that only settle may consume. The two
    steps (_add_match_orders, _add_settle) are private; the public builders
    that use them always emit both inside one invocation, and seal() rejects
    any batch still holding an open receipt.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from yume.config.markets import MarketDescriptor, MarketTypeArgs
from yume.core.errors import InvalidInput
from yume.core.rates import required_collateral, total_due
from yume.core.types import BPS_DENOMINATOR, SUI_CLOCK_ID, Order, OrderSide
from yume.execution.batch import (
    U8_MAX,
    Argument,
    MatchReceipt,
    TransactionBatch,
    require_address,
)

MARKET_MODULE = "market"
POOL_MODULE = "pool"
LIQUIDATION_MODULE = "liquidation"


# ===== Validation =====

def _positive(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidInput(f"{name} must be > 0, got {value}")
    return value


def _order_id(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidInput(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _check_type_args(type_args: MarketTypeArgs) -> MarketTypeArgs:
    if not type_args.base or not type_args.collateral:
        raise InvalidInput("market type arguments are missing")
    for t in (type_args.base, type_args.collateral):
        if t.count("::") < 2:
            raise InvalidInput(f"not a fully-qualified coin type: {t!r}")
    return type_args


def _check_market(market: MarketDescriptor, *, vault: bool = False, pool: bool = False) -> MarketDescriptor:
    require_address("package_id", market.package_id)
    _check_type_args(market.type_args)
    require_address("orderbook_id", market.orderbook_id)
    if vault:
        require_address("vault_id", market.vault_id)
    if pool:
        if not market.pool_id:
            raise InvalidInput(f"market {market.id} has no liquidity pool")
        require_address("pool_id", market.pool_id)
    return market


def _target(package_id: str, module: str, function: str) -> str:
    return f"{package_id}::{module}::{function}"


def _is_sui(coin_type: str) -> bool:
    addr, _, rest = coin_type.partition("::")
    try:
        return int(addr, 16) == 2 and rest == "sui::SUI"
    except ValueError:
        return False


def _coin(
    batch: TransactionBatch,
    coin_type: str,
    label: str,
    coin_id: Optional[str],
    amount: Optional[int],
    source_coin_id: Optional[str],
) -> Argument:
    """
    Resolve a coin argument: an existing coin object, or `amount` split off
    `source_coin_id` (or off the gas coin when no source is given).
    """
    if coin_id is not None:
        if amount is not None or source_coin_id is not None:
            raise InvalidInput(f"{label}: pass either a coin id or an amount, not both")
        return batch.object(require_address(f"{label} coin id", coin_id))
    if amount is None:
        raise InvalidInput(f"{label}: a coin id or an amount is required")
    _positive(f"{label} amount", amount)
    if source_coin_id is not None:
        source = batch.object(require_address(f"{label} source coin id", source_coin_id))
    elif _is_sui(coin_type):
        source = batch.gas
    else:
        raise InvalidInput(f"{label}: splitting from gas needs a SUI coin type, got {coin_type}")
    [coin] = batch.split_coins(source, [amount])
    return coin


# ===== Market administration =====

def build_create_market(
    type_args: MarketTypeArgs,
    *,
    package_id: str,
    duration_bucket: int,
    risk_tier: int,
    max_ltv_bps: int,
) -> TransactionBatch:
    """Declare a new order book + collateral vault pair for (base, collateral)."""
    require_address("package_id", package_id)
    _check_type_args(type_args)
    _order_id("duration_bucket", duration_bucket)
    if not isinstance(risk_tier, int) or not 0 <= risk_tier <= U8_MAX:
        raise InvalidInput(f"risk_tier must fit in a u8, got {risk_tier!r}")
    _positive("max_ltv_bps", max_ltv_bps)
    if max_ltv_bps > BPS_DENOMINATOR:
        raise InvalidInput(f"max_ltv_bps must be <= {BPS_DENOMINATOR}, got {max_ltv_bps}")

    batch = TransactionBatch()
    batch.move_call(
        _target(package_id, MARKET_MODULE, "create_market"),
        [
            batch.pure(duration_bucket, "u64"),
            batch.pure(risk_tier, "u8"),
            batch.pure(max_ltv_bps, "u64"),
        ],
        [type_args.base, type_args.collateral],
    )
    return batch.seal()


def build_create_pool(
    market: MarketDescriptor,
    *,
    min_rate: int,
    max_rate: int,
    num_buckets: int,
) -> TransactionBatch:
    """Attach a hybrid liquidity pool to an existing order book."""
    _check_market(market)
    _positive("min_rate", min_rate)
    _positive("max_rate", max_rate)
    _positive("num_buckets", num_buckets)
    if max_rate < min_rate:
        raise InvalidInput(f"max_rate {max_rate} is below min_rate {min_rate}")

    batch = TransactionBatch()
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "create_pool"),
        [
            batch.object(market.orderbook_id),
            batch.pure(min_rate),
            batch.pure(max_rate),
            batch.pure(num_buckets),
        ],
        [market.base_type, market.collateral_type],
    )
    return batch.seal()


# ===== Orders =====

def build_place_lend_order(
    market: MarketDescriptor,
    *,
    rate: int,
    deposit_coin_id: Optional[str] = None,
    amount: Optional[int] = None,
    source_coin_id: Optional[str] = None,
) -> TransactionBatch:
    """
    Deposit base coin into the book at `rate`.

    Either pass an existing `deposit_coin_id`, or an `amount` to split off
    `source_coin_id` (the gas coin when omitted and the base asset is SUI).
    The deposit stays locked until the order is settled or cancelled.
    """
    _check_market(market)
    _positive("rate", rate)

    batch = TransactionBatch()
    deposit = _coin(batch, market.base_type, "deposit", deposit_coin_id, amount, source_coin_id)
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "place_lend_order"),
        [batch.object(market.orderbook_id), deposit, batch.pure(rate), batch.object(SUI_CLOCK_ID)],
        [market.base_type, market.collateral_type],
    )
    return batch.seal()


def _add_place_borrow_order(batch: TransactionBatch, market: MarketDescriptor, amount: int, rate: int) -> None:
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "place_borrow_order"),
        [batch.object(market.orderbook_id), batch.pure(amount), batch.pure(rate), batch.object(SUI_CLOCK_ID)],
        [market.base_type, market.collateral_type],
    )


def build_place_borrow_order(market: MarketDescriptor, *, amount: int, rate: int) -> TransactionBatch:
    """Declare intent to borrow `amount` at up to `rate`. No deposit; collateral comes at settle."""
    _check_market(market)
    _positive("amount", amount)
    _positive("rate", rate)

    batch = TransactionBatch()
    _add_place_borrow_order(batch, market, amount, rate)
    return batch.seal()


def build_cancel_order(market: MarketDescriptor, *, order_id: int) -> TransactionBatch:
    """Remove an order; the remote side refunds a lend order's deposit."""
    _check_market(market)
    _order_id("order_id", order_id)

    batch = TransactionBatch()
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "cancel_order"),
        [batch.object(market.orderbook_id), batch.pure(order_id)],
        [market.base_type, market.collateral_type],
    )
    return batch.seal()


# ===== Match + settle =====

def _add_match_orders(
    batch: TransactionBatch, market: MarketDescriptor, taker_order_id: int, maker_order_id: int
) -> MatchReceipt:
    """
    Append match_orders and return its receipt.

    Internal step: the caller must hand the receipt to _add_settle within
    the same batch, otherwise seal() fails.
    """
    [result] = batch.move_call(
        _target(market.package_id, MARKET_MODULE, "match_orders"),
        [
            batch.object(market.orderbook_id),
            batch.pure(taker_order_id),
            batch.pure(maker_order_id),
            batch.object(SUI_CLOCK_ID),
        ],
        [market.base_type, market.collateral_type],
        returns=1,
    )
    return batch.receipt(result)


def _add_settle(
    batch: TransactionBatch, market: MarketDescriptor, receipt: MatchReceipt, collateral: Argument
) -> None:
    """Consume the receipt: lock collateral, move principal, mint both positions."""
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "settle"),
        [
            receipt.consume(batch),
            collateral,
            batch.object(market.orderbook_id),
            batch.object(market.vault_id),
            batch.object(SUI_CLOCK_ID),
        ],
        [market.base_type, market.collateral_type],
    )


def _check_pair(taker_order_id: int, maker_order_id: int) -> None:
    _order_id("taker_order_id", taker_order_id)
    _order_id("maker_order_id", maker_order_id)
    if taker_order_id == maker_order_id:
        raise InvalidInput("taker and maker must be different orders")


def build_match_and_settle(
    market: MarketDescriptor,
    *,
    taker_order_id: int,
    maker_order_id: int,
    collateral_coin_id: Optional[str] = None,
    collateral_amount: Optional[int] = None,
    source_collateral_coin_id: Optional[str] = None,
) -> TransactionBatch:
    """
    Match two resting orders and settle the match in one batch.

    Collateral is an existing coin (`collateral_coin_id`) or
    `collateral_amount` split off `source_collateral_coin_id` / gas. If
    settle aborts remotely the whole batch reverts, match included.
    """
    _check_market(market, vault=True)
    _check_pair(taker_order_id, maker_order_id)

    batch = TransactionBatch()
    collateral = _coin(
        batch, market.collateral_type, "collateral",
        collateral_coin_id, collateral_amount, source_collateral_coin_id,
    )
    receipt = _add_match_orders(batch, market, taker_order_id, maker_order_id)
    _add_settle(batch, market, receipt, collateral)
    return batch.seal()


def build_borrow_and_settle(
    market: MarketDescriptor,
    *,
    maker_order_id: int,
    next_order_id: int,
    amount: int,
    rate: int,
    collateral_amount: Optional[int] = None,
    source_collateral_coin_id: Optional[str] = None,
) -> TransactionBatch:
    """
    One-click borrow against a resting lend order.

    place_borrow_order -> match_orders(taker=new borrow order) -> settle.
    The new order's id is not known at build time; `next_order_id` is the
    book's next sequence number read just before building, and the batch
    aborts remotely if another order took that id first. Collateral
    defaults to required_collateral(amount, market.max_ltv_bps).
    """
    _check_market(market, vault=True)
    _positive("amount", amount)
    _positive("rate", rate)
    _check_pair(next_order_id, maker_order_id)
    if collateral_amount is None:
        _positive("max_ltv_bps", market.max_ltv_bps)
        collateral_amount = required_collateral(amount, market.max_ltv_bps)

    batch = TransactionBatch()
    _add_place_borrow_order(batch, market, amount, rate)
    receipt = _add_match_orders(batch, market, next_order_id, maker_order_id)
    collateral = _coin(
        batch, market.collateral_type, "collateral", None, collateral_amount, source_collateral_coin_id
    )
    _add_settle(batch, market, receipt, collateral)
    return batch.seal()


def available_lend_orders(asks: Iterable[Order], owner: Optional[str]) -> List[Order]:
    """Asks the caller may match against; the remote side rejects self-matches."""
    asks = [o for o in asks if o.side == OrderSide.LEND]
    if not owner:
        return asks
    me = owner.lower()
    return [o for o in asks if o.owner.lower() != me]


# ===== Loan lifecycle =====

def build_repay(
    market: MarketDescriptor,
    *,
    position_id: str,
    repayment_coin_id: Optional[str] = None,
    principal: Optional[int] = None,
    rate_bps: Optional[int] = None,
    source_coin_id: Optional[str] = None,
) -> TransactionBatch:
    """
    Repay a borrower position, releasing its collateral.

    Pass a `repayment_coin_id` covering principal + interest, or the
    position's `principal` and `rate_bps` to split exactly total_due() off
    `source_coin_id` / gas.
    """
    _check_market(market, vault=True)
    require_address("position_id", position_id)

    amount: Optional[int] = None
    if repayment_coin_id is None:
        if principal is None or rate_bps is None:
            raise InvalidInput("repay needs a repayment coin or principal and rate_bps")
        _positive("principal", principal)
        _positive("rate_bps", rate_bps)
        amount = total_due(principal, rate_bps)

    batch = TransactionBatch()
    repayment = _coin(batch, market.base_type, "repayment", repayment_coin_id, amount, source_coin_id)
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "repay"),
        [batch.object(position_id), repayment, batch.object(market.vault_id), batch.object(SUI_CLOCK_ID)],
        [market.base_type, market.collateral_type],
    )
    return batch.seal()


def build_liquidate(market: MarketDescriptor, *, loan_id: str) -> TransactionBatch:
    """
    Permissionless liquidation of an expired loan.

    Succeeds remotely only after maturity and while the collateral is still
    locked; the collateral goes to the lender.
    """
    _check_market(market, vault=True)
    require_address("loan_id", loan_id)

    batch = TransactionBatch()
    batch.move_call(
        _target(market.package_id, LIQUIDATION_MODULE, "liquidate"),
        [batch.object(market.vault_id), batch.pure(loan_id, "id"), batch.object(SUI_CLOCK_ID)],
        [market.collateral_type],
    )
    return batch.seal()


# ===== Pool =====

def build_pool_deposit(
    market: MarketDescriptor,
    *,
    deposit_coin_id: Optional[str] = None,
    amount: Optional[int] = None,
    source_coin_id: Optional[str] = None,
) -> TransactionBatch:
    """Deposit base coin; LP shares are minted pro-rata to pool value."""
    _check_market(market, pool=True)

    batch = TransactionBatch()
    deposit = _coin(batch, market.base_type, "deposit", deposit_coin_id, amount, source_coin_id)
    batch.move_call(
        _target(market.package_id, POOL_MODULE, "deposit"),
        [batch.object(market.pool_id), deposit],
        [market.base_type],
    )
    return batch.seal()


def build_pool_withdraw(market: MarketDescriptor, *, shares: int) -> TransactionBatch:
    """Burn shares for a pro-rata slice of the available (undeployed) balance."""
    _check_market(market, pool=True)
    _positive("shares", shares)

    batch = TransactionBatch()
    batch.move_call(
        _target(market.package_id, POOL_MODULE, "withdraw"),
        [batch.object(market.pool_id), batch.pure(shares)],
        [market.base_type],
    )
    return batch.seal()


def build_rebalance_pool(market: MarketDescriptor) -> TransactionBatch:
    """
    Cancel and re-place the pool's resting orders along its linear rate
    ladder. Admin-only, enforced remotely.
    """
    _check_market(market, pool=True)

    batch = TransactionBatch()
    batch.move_call(
        _target(market.package_id, MARKET_MODULE, "rebalance_pool"),
        [batch.object(market.pool_id), batch.object(market.orderbook_id), batch.object(SUI_CLOCK_ID)],
        [market.base_type, market.collateral_type],
    )
    return batch.seal()
