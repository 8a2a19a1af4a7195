from yume.execution.batch import MatchReceipt, TransactionBatch
from yume.execution.builders import (
    available_lend_orders,
    build_borrow_and_settle,
    build_cancel_order,
    build_create_market,
    build_create_pool,
    build_liquidate,
    build_match_and_settle,
    build_place_borrow_order,
    build_place_lend_order,
    build_pool_deposit,
    build_pool_withdraw,
    build_rebalance_pool,
    build_repay,
)
from yume.execution.executor import Signer, TransactionExecutor, TxPhase, TxState, extract_digest

__all__ = [
    "MatchReceipt",
    "TransactionBatch",
    "available_lend_orders",
    "build_borrow_and_settle",
    "build_cancel_order",
    "build_create_market",
    "build_create_pool",
    "build_liquidate",
    "build_match_and_settle",
    "build_place_borrow_order",
    "build_place_lend_order",
    "build_pool_deposit",
    "build_pool_withdraw",
    "build_rebalance_pool",
    "build_repay",
    "Signer",
    "TransactionExecutor",
    "TxPhase",
    "TxState",
    "extract_digest",
]
