"""
Order-book reconstruction.

The book's orders live in a child table that can only be enumerated page by
page. reconstruct_order_book() walks it into an OrderBookSnapshot:

    1. read the book summary (next_order_id, order table handle)
    2. next_order_id == 0 -> empty snapshot, no pagination
    3. page the table until hasNextPage is false
    4. fetch + parse each entry; malformed entries are skipped one by one
    5. drop inactive orders, split by side, sort (asks by rate ascending,
       bids by rate descending; ties keep fetch order)

A transport failure anywhere aborts the whole reconstruction with
RemoteReadFailure; the reader then keeps its previous snapshot.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple

from yume.config.markets import MarketDescriptor
from yume.core.errors import PartialParseSkipped, RemoteReadFailure
from yume.core.records import parse_order, parse_order_book_summary
from yume.core.types import Order, OrderBookSummary, OrderSide
from yume.infra.sui_client import DynamicFieldEntry, SuiReadClient
from yume.readers.polling import PollingReader


DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class DepthLevel:
    rate: int
    amount: int
    orders: int


@dataclass(frozen=True)
class OrderBookSnapshot:
    asks: Tuple[Order, ...] = ()
    bids: Tuple[Order, ...] = ()
    next_order_id: int = 0
    summary: Optional[OrderBookSummary] = None
    skipped: int = 0

    @property
    def best_ask(self) -> Optional[Order]:
        return self.asks[0] if self.asks else None

    @property
    def best_bid(self) -> Optional[Order]:
        return self.bids[0] if self.bids else None

    @property
    def spread(self) -> Optional[int]:
        """best ask rate - best bid rate; None when either side is empty."""
        if not self.asks or not self.bids:
            return None
        return self.asks[0].rate - self.bids[0].rate

    @property
    def ask_volume(self) -> int:
        return sum(o.amount for o in self.asks)

    @property
    def bid_volume(self) -> int:
        return sum(o.amount for o in self.bids)

    @property
    def is_empty(self) -> bool:
        return not self.asks and not self.bids

    def depth(self, side: OrderSide) -> List[DepthLevel]:
        """Aggregate one side by rate, in book order."""
        orders = self.asks if side == OrderSide.LEND else self.bids
        levels: List[DepthLevel] = []
        for o in orders:
            if levels and levels[-1].rate == o.rate:
                last = levels[-1]
                levels[-1] = DepthLevel(o.rate, last.amount + o.amount, last.orders + 1)
            else:
                levels.append(DepthLevel(o.rate, o.amount, 1))
        return levels

    def orders_by_owner(self, owner: str) -> List[Order]:
        me = owner.lower()
        return [o for o in (*self.asks, *self.bids) if o.owner.lower() == me]


@dataclass(frozen=True)
class MarketStats:
    best_ask_rate: Optional[int] = None
    best_bid_rate: Optional[int] = None
    spread: Optional[int] = None
    ask_count: int = 0
    bid_count: int = 0
    ask_volume: int = 0
    bid_volume: int = 0
    weighted_ask_rate: Optional[int] = None

    @classmethod
    def from_snapshot(cls, snap: OrderBookSnapshot) -> "MarketStats":
        ask_volume = snap.ask_volume
        weighted = None
        if ask_volume > 0:
            weighted = sum(o.rate * o.amount for o in snap.asks) // ask_volume
        return cls(
            best_ask_rate=snap.best_ask.rate if snap.best_ask else None,
            best_bid_rate=snap.best_bid.rate if snap.best_bid else None,
            spread=snap.spread,
            ask_count=len(snap.asks),
            bid_count=len(snap.bids),
            ask_volume=ask_volume,
            bid_volume=snap.bid_volume,
            weighted_ask_rate=weighted,
        )


SkipCallback = Callable[[PartialParseSkipped], None]


async def _fetch_entry(client: SuiReadClient, entry: DynamicFieldEntry) -> Order:
    obj = await client.get_object(entry.object_id)
    return parse_order(obj)


async def reconstruct_order_book(
    client: SuiReadClient,
    market: MarketDescriptor,
    page_size: int = DEFAULT_PAGE_SIZE,
    on_skip: Optional[SkipCallback] = None,
) -> OrderBookSnapshot:
    summary = parse_order_book_summary(await client.get_object(market.orderbook_id))
    if summary.next_order_id == 0:
        return OrderBookSnapshot(next_order_id=0, summary=summary)
    if not summary.orders_table_id:
        raise RemoteReadFailure(f"order book {market.orderbook_id} has no order table")

    orders: List[Order] = []
    seen_ids: Set[int] = set()
    seen_cursors: Set[Any] = set()
    skipped = 0
    cursor: Optional[str] = None

    while True:
        page = await client.get_dynamic_fields(summary.orders_table_id, cursor, page_size)
        results = await asyncio.gather(
            *(_fetch_entry(client, e) for e in page.entries), return_exceptions=True
        )
        for entry, res in zip(page.entries, results):
            if isinstance(res, PartialParseSkipped):
                skipped += 1
                if res.record_id is None:
                    res.record_id = entry.object_id
                if on_skip:
                    on_skip(res)
                continue
            if isinstance(res, BaseException):
                raise res
            if res.order_id in seen_ids:
                continue
            seen_ids.add(res.order_id)
            orders.append(res)

        if not page.has_next_page or page.next_cursor is None:
            break
        if page.next_cursor in seen_cursors:
            raise RemoteReadFailure(f"order table pagination repeated cursor {page.next_cursor!r}")
        seen_cursors.add(page.next_cursor)
        cursor = page.next_cursor

    active = [o for o in orders if o.is_active]
    # sorted() is stable: equal rates keep fetch order
    asks = sorted((o for o in active if o.side == OrderSide.LEND), key=lambda o: o.rate)
    bids = sorted((o for o in active if o.side == OrderSide.BORROW), key=lambda o: -o.rate)
    return OrderBookSnapshot(
        asks=tuple(asks),
        bids=tuple(bids),
        next_order_id=summary.next_order_id,
        summary=summary,
        skipped=skipped,
    )


class OrderBookReader(PollingReader[OrderBookSnapshot]):
    """
    Polls one market's book. `data` holds the last good snapshot.

    Usage:
        reader = OrderBookReader(client, market, interval_sec=15)
        reader.start()
        ...
        reader.data.asks, reader.data.spread
    """
    name = "order_book"

    def __init__(
        self,
        client: SuiReadClient,
        market: MarketDescriptor,
        interval_sec: float = 15.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        metrics: Optional[Any] = None,
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        super().__init__(interval_sec, market.id, metrics, log_event_callback)
        self.client = client
        self.market = market
        self.page_size = page_size

    @property
    def asks(self) -> Tuple[Order, ...]:
        return self.data.asks if self.data else ()

    @property
    def bids(self) -> Tuple[Order, ...]:
        return self.data.bids if self.data else ()

    @property
    def stats(self) -> MarketStats:
        return MarketStats.from_snapshot(self.data or OrderBookSnapshot())

    async def fetch(self) -> OrderBookSnapshot:
        return await reconstruct_order_book(self.client, self.market, self.page_size, self._on_skip)

    def _on_skip(self, exc: PartialParseSkipped) -> None:
        if self.metrics:
            self.metrics.records_skipped.labels(reader=self.name, market=self.market_id).inc()
        self._log_event("record_skipped", record_id=exc.record_id, reason=exc.reason)

    def _on_applied(self, snap: OrderBookSnapshot) -> None:
        if not self.metrics:
            return
        self.metrics.resting_orders.labels(market=self.market_id, side="ask").set(len(snap.asks))
        self.metrics.resting_orders.labels(market=self.market_id, side="bid").set(len(snap.bids))
        spread = snap.spread
        self.metrics.spread_bps.labels(market=self.market_id).set(float("nan") if spread is None else spread)
