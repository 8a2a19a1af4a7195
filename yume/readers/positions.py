"""
Owned LoanPosition objects for one wallet.

Positions are owned objects, so they are listed through the owner index
filtered by struct type rather than through the book. Records are parsed
leniently: a position with missing fields still shows up, zero-filled,
while remote indexing catches up.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from yume.config.markets import MarketDescriptor
from yume.core.errors import PartialParseSkipped, RemoteReadFailure
from yume.core.records import parse_position
from yume.core.types import LoanPosition
from yume.infra.sui_client import SuiReadClient
from yume.readers.polling import PollingReader

MAX_PAGES = 100


def position_struct_type(package_id: str) -> str:
    return f"{package_id}::position::LoanPosition"


async def fetch_positions(
    client: SuiReadClient,
    owner: str,
    package_id: str,
    book_id: Optional[str] = None,
    page_size: int = 50,
    on_skip: Optional[Callable[[PartialParseSkipped], None]] = None,
) -> List[LoanPosition]:
    """All positions owned by `owner`; only `book_id`'s when given."""
    struct_type = position_struct_type(package_id)
    positions: List[LoanPosition] = []
    cursor: Optional[str] = None
    for _ in range(MAX_PAGES):
        page = await client.get_owned_objects(owner, struct_type, cursor, page_size)
        for obj in page.objects:
            try:
                positions.append(parse_position(obj))
            except PartialParseSkipped as exc:
                if on_skip:
                    on_skip(exc)
        if not page.has_next_page or page.next_cursor is None or page.next_cursor == cursor:
            break
        cursor = page.next_cursor
    else:
        raise RemoteReadFailure(f"owned objects of {owner} did not finish paging after {MAX_PAGES} pages")

    if book_id:
        book = book_id.lower()
        positions = [p for p in positions if p.book_id.lower() == book]
    return positions


async def fetch_all_positions(
    client: SuiReadClient,
    owner: str,
    markets: Iterable[MarketDescriptor],
    page_size: int = 50,
) -> Dict[str, List[LoanPosition]]:
    """
    Positions grouped by market id, one owner-index walk per package.
    Positions whose book matches no configured market are dropped.
    """
    by_package: Dict[str, List[MarketDescriptor]] = {}
    for m in markets:
        by_package.setdefault(m.package_id, []).append(m)

    out: Dict[str, List[LoanPosition]] = {}
    for package_id, group in by_package.items():
        books = {m.orderbook_id.lower(): m.id for m in group}
        for m in group:
            out.setdefault(m.id, [])
        for p in await fetch_positions(client, owner, package_id, page_size=page_size):
            market_id = books.get(p.book_id.lower())
            if market_id is not None:
                out[market_id].append(p)
    return out


class PositionsReader(PollingReader[List[LoanPosition]]):
    """The connected wallet's positions in one market. No owner -> empty list."""
    name = "positions"

    def __init__(
        self,
        client: SuiReadClient,
        market: MarketDescriptor,
        owner: Optional[str],
        interval_sec: float = 15.0,
        page_size: int = 50,
        metrics: Optional[Any] = None,
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        super().__init__(interval_sec, market.id, metrics, log_event_callback)
        self.client = client
        self.market = market
        self.owner = owner
        self.page_size = page_size

    @property
    def active(self) -> List[LoanPosition]:
        return [p for p in (self.data or []) if p.is_active]

    async def fetch(self) -> List[LoanPosition]:
        if not self.owner:
            return []
        return await fetch_positions(
            self.client,
            self.owner,
            self.market.package_id,
            book_id=self.market.orderbook_id,
            page_size=self.page_size,
            on_skip=self._on_skip,
        )

    def _on_skip(self, exc: PartialParseSkipped) -> None:
        if self.metrics:
            self.metrics.records_skipped.labels(reader=self.name, market=self.market_id).inc()
        self._log_event("record_skipped", record_id=exc.record_id, reason=exc.reason)
