from yume.readers.order_book import (
    DepthLevel,
    MarketStats,
    OrderBookReader,
    OrderBookSnapshot,
    reconstruct_order_book,
)
from yume.readers.polling import PollingReader
from yume.readers.pool import PoolReader, fetch_available_balance, fetch_pool_state
from yume.readers.positions import (
    PositionsReader,
    fetch_all_positions,
    fetch_positions,
    position_struct_type,
)

__all__ = [
    "DepthLevel",
    "MarketStats",
    "OrderBookReader",
    "OrderBookSnapshot",
    "reconstruct_order_book",
    "PollingReader",
    "PoolReader",
    "fetch_available_balance",
    "fetch_pool_state",
    "PositionsReader",
    "fetch_all_positions",
    "fetch_positions",
    "position_struct_type",
]
