"""
MarketSession: one selected market's readers and executor.

Architecture:
    The session holds an explicit MarketDescriptor and builds every reader
    and batch against it; there is no global "current market". Switching
    markets stops the old readers and starts new ones, so no state from the
    previous market can leak into the new one.

    Action shortcuts build a batch, run it through the executor and
    schedule a refetch of the affected readers after the settle delay.
    Build-time InvalidInput is recorded as an executor failure instead of
    raised, so a UI caller only ever observes executor.state.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from yume.config.config import Settings
from yume.config.markets import MarketDescriptor
from yume.core.errors import InvalidInput
from yume.core.types import LoanPosition
from yume.execution import builders
from yume.execution.batch import TransactionBatch
from yume.execution.executor import Signer, TransactionExecutor, TxState
from yume.infra.logging_cfg import log_event
from yume.infra.sui_client import SuiReadClient
from yume.readers.order_book import OrderBookReader, OrderBookSnapshot
from yume.readers.polling import PollingReader
from yume.readers.pool import PoolReader
from yume.readers.positions import PositionsReader

log = logging.getLogger("yume")


class MarketSession:
    def __init__(
        self,
        client: SuiReadClient,
        market: MarketDescriptor,
        settings: Settings,
        signer: Optional[Signer] = None,
        metrics: Optional[Any] = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.metrics = metrics
        self.executor = TransactionExecutor(
            signer, metrics=metrics, settle_delay_sec=settings.settle_delay_sec
        )
        self._running = False
        self._listeners: List[Callable[[PollingReader[Any]], Any]] = []
        self._install(market)

    # ===== Readers =====

    def _install(self, market: MarketDescriptor) -> None:
        interval = self.settings.poll_interval_sec
        self.market = market
        self.order_book = OrderBookReader(
            self.client, market, interval_sec=interval,
            page_size=self.settings.page_size, metrics=self.metrics,
        )
        self.positions = PositionsReader(
            self.client, market, self.owner, interval_sec=interval,
            page_size=self.settings.page_size, metrics=self.metrics,
        )
        self.pool = PoolReader(self.client, market, interval_sec=interval, metrics=self.metrics)
        for reader in self.readers:
            self._attach(reader)

    def _attach(self, reader: PollingReader[Any]) -> None:
        for listener in self._listeners:
            reader.add_listener(listener)

    @property
    def readers(self) -> List[PollingReader[Any]]:
        return [self.order_book, self.positions, self.pool]

    @property
    def owner(self) -> Optional[str]:
        signer = self.executor.signer
        address = getattr(signer, "address", None) if signer is not None else None
        return address or self.settings.owner_address

    @property
    def tx_state(self) -> TxState:
        return self.executor.state

    def start(self) -> None:
        self._running = True
        for reader in self.readers:
            reader.start()
        log_event(log, "session_started", market=self.market.id)

    async def stop(self) -> None:
        self._running = False
        for reader in self.readers:
            await reader.stop()
        log_event(log, "session_stopped", market=self.market.id)

    async def switch_market(self, market: MarketDescriptor) -> None:
        """Replace every reader; the executor's state is reset as well."""
        was_running = self._running
        old = self.market.id
        for reader in self.readers:
            await reader.stop()
        self._install(market)
        self.executor.reset()
        log_event(log, "market_switched", previous=old, market=market.id)
        if was_running:
            for reader in self.readers:
                reader.start()

    async def set_signer(self, signer: Optional[Signer]) -> None:
        """Wallet changed: positions are re-read for the new owner."""
        self.executor.set_signer(signer)
        await self.positions.stop()
        self.positions = PositionsReader(
            self.client, self.market, self.owner, interval_sec=self.settings.poll_interval_sec,
            page_size=self.settings.page_size, metrics=self.metrics,
        )
        self._attach(self.positions)
        if self._running:
            self.positions.start()

    def add_listener(self, listener: Callable[[PollingReader[Any]], Any]) -> None:
        """Listeners outlive reader rebuilds on market or wallet change."""
        self._listeners.append(listener)
        for reader in self.readers:
            reader.add_listener(listener)

    # ===== Actions =====

    async def _submit(
        self,
        action: str,
        build: Callable[[], TransactionBatch],
        *readers: PollingReader[Any],
    ) -> Optional[str]:
        try:
            batch = build()
        except InvalidInput as exc:
            self.executor.record_failure(exc, action=action)
            return None
        return await self.executor.execute_and_refetch(batch, *readers, action=action)

    async def place_lend_order(
        self,
        *,
        rate: int,
        deposit_coin_id: Optional[str] = None,
        amount: Optional[int] = None,
        source_coin_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self._submit(
            "place_lend_order",
            lambda: builders.build_place_lend_order(
                self.market, rate=rate, deposit_coin_id=deposit_coin_id,
                amount=amount, source_coin_id=source_coin_id,
            ),
            self.order_book,
        )

    async def place_borrow_order(self, *, amount: int, rate: int) -> Optional[str]:
        return await self._submit(
            "place_borrow_order",
            lambda: builders.build_place_borrow_order(self.market, amount=amount, rate=rate),
            self.order_book,
        )

    async def cancel_order(self, *, order_id: int) -> Optional[str]:
        return await self._submit(
            "cancel_order",
            lambda: builders.build_cancel_order(self.market, order_id=order_id),
            self.order_book,
        )

    async def match_and_settle(
        self,
        *,
        taker_order_id: int,
        maker_order_id: int,
        collateral_coin_id: Optional[str] = None,
        collateral_amount: Optional[int] = None,
        source_collateral_coin_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self._submit(
            "match_and_settle",
            lambda: builders.build_match_and_settle(
                self.market,
                taker_order_id=taker_order_id,
                maker_order_id=maker_order_id,
                collateral_coin_id=collateral_coin_id,
                collateral_amount=collateral_amount,
                source_collateral_coin_id=source_collateral_coin_id,
            ),
            self.order_book, self.positions,
        )

    async def quick_borrow(
        self,
        *,
        maker_order_id: int,
        amount: Optional[int] = None,
        collateral_amount: Optional[int] = None,
        source_collateral_coin_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Borrow against a resting lend order in one batch, at the maker's rate.
        Uses the last order-book snapshot for the maker and next order id.
        """
        def build() -> TransactionBatch:
            snap = self.order_book.data
            if snap is None:
                raise InvalidInput("order book not loaded yet")
            maker = _find_ask(snap, maker_order_id)
            if maker is None:
                raise InvalidInput(f"lend order {maker_order_id} is not resting on the book")
            owner = self.owner
            if owner and maker.owner.lower() == owner.lower():
                raise InvalidInput("cannot borrow from your own lend order")
            return builders.build_borrow_and_settle(
                self.market,
                maker_order_id=maker.order_id,
                next_order_id=snap.next_order_id,
                amount=maker.amount if amount is None else amount,
                rate=maker.rate,
                collateral_amount=collateral_amount,
                source_collateral_coin_id=source_collateral_coin_id,
            )

        return await self._submit("quick_borrow", build, self.order_book, self.positions)

    async def repay(
        self,
        *,
        position_id: str,
        repayment_coin_id: Optional[str] = None,
        source_coin_id: Optional[str] = None,
    ) -> Optional[str]:
        """Without a repayment coin, total_due is split using the position's terms."""
        def build() -> TransactionBatch:
            principal = rate = None
            if repayment_coin_id is None:
                position = self._find_position(position_id)
                if position is None:
                    raise InvalidInput(f"position {position_id} is not loaded")
                principal, rate = position.principal, position.rate
            return builders.build_repay(
                self.market,
                position_id=position_id,
                repayment_coin_id=repayment_coin_id,
                principal=principal,
                rate_bps=rate,
                source_coin_id=source_coin_id,
            )

        return await self._submit("repay", build, self.positions)

    async def liquidate(self, *, loan_id: str) -> Optional[str]:
        return await self._submit(
            "liquidate",
            lambda: builders.build_liquidate(self.market, loan_id=loan_id),
            self.positions,
        )

    async def pool_deposit(
        self,
        *,
        deposit_coin_id: Optional[str] = None,
        amount: Optional[int] = None,
        source_coin_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self._submit(
            "pool_deposit",
            lambda: builders.build_pool_deposit(
                self.market, deposit_coin_id=deposit_coin_id, amount=amount, source_coin_id=source_coin_id
            ),
            self.pool,
        )

    async def pool_withdraw(self, *, shares: int) -> Optional[str]:
        return await self._submit(
            "pool_withdraw",
            lambda: builders.build_pool_withdraw(self.market, shares=shares),
            self.pool,
        )

    async def rebalance_pool(self) -> Optional[str]:
        return await self._submit(
            "rebalance_pool",
            lambda: builders.build_rebalance_pool(self.market),
            self.pool, self.order_book,
        )

    def _find_position(self, position_id: str) -> Optional[LoanPosition]:
        for p in self.positions.data or []:
            if p.id.lower() == position_id.lower():
                return p
        return None


def _find_ask(snap: OrderBookSnapshot, order_id: int):
    for o in snap.asks:
        if o.order_id == order_id:
            return o
    return None
