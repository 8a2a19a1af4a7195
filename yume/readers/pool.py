"""
Liquidity pool state.

The pool object does not always carry its available balance inline: the
balance can live in a child record keyed "available_balance". When it is
not decoded inline, fetch_pool_state() resolves it with a secondary lookup
over the pool's dynamic fields. A missing child record reads as 0.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from yume.config.markets import MarketDescriptor
from yume.core.errors import PartialParseSkipped
from yume.core.records import inline_available_balance, move_fields, parse_pool, unwrap_dynamic_field
from yume.core.types import PoolState
from yume.core.utils import to_int_safe
from yume.infra.sui_client import DynamicFieldEntry, SuiReadClient
from yume.readers.polling import PollingReader

AVAILABLE_BALANCE_KEY = "available_balance"
MAX_PAGES = 20


def _is_balance_entry(entry: DynamicFieldEntry) -> bool:
    return entry.name_value == AVAILABLE_BALANCE_KEY or entry.name_type.endswith("AvailableBalanceKey")


async def fetch_available_balance(client: SuiReadClient, pool_id: str, page_size: int = 50) -> int:
    """Secondary lookup of the available-balance child record."""
    cursor: Optional[str] = None
    for _ in range(MAX_PAGES):
        page = await client.get_dynamic_fields(pool_id, cursor, page_size)
        for entry in page.entries:
            if not _is_balance_entry(entry):
                continue
            try:
                fields = unwrap_dynamic_field(move_fields(await client.get_object(entry.object_id)))
            except PartialParseSkipped:
                return 0
            value = fields.get("value", fields.get("balance"))
            return max(to_int_safe(value), 0)
        if not page.has_next_page or page.next_cursor is None or page.next_cursor == cursor:
            break
        cursor = page.next_cursor
    return 0


async def fetch_pool_state(client: SuiReadClient, market: MarketDescriptor) -> Optional[PoolState]:
    """None when the market has no pool; no network call is made then."""
    if not market.pool_id:
        return None
    obj = await client.get_object(market.pool_id)
    available = inline_available_balance(move_fields(obj, strict=False))
    if available is None:
        available = await fetch_available_balance(client, market.pool_id)
    return parse_pool(obj, available_balance=available)


class PoolReader(PollingReader[Optional[PoolState]]):
    name = "pool"

    def __init__(
        self,
        client: SuiReadClient,
        market: MarketDescriptor,
        interval_sec: float = 15.0,
        metrics: Optional[Any] = None,
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        super().__init__(interval_sec, market.id, metrics, log_event_callback)
        self.client = client
        self.market = market

    async def fetch(self) -> Optional[PoolState]:
        return await fetch_pool_state(self.client, self.market)

    def _on_applied(self, pool: Optional[PoolState]) -> None:
        if self.metrics and pool is not None:
            self.metrics.pool_available.labels(market=self.market_id).set(pool.available_balance)
            self.metrics.pool_deployed.labels(market=self.market_id).set(pool.deployed_balance)
