"""
Configuration package.

Environment settings and the market descriptor registry.
"""

from yume.config.config import Settings
from yume.config.markets import (
    MarketDescriptor,
    MarketTypeArgs,
    default_market,
    find_market,
    find_market_by_book,
    load_markets,
)

__all__ = [
    "Settings",
    "MarketDescriptor",
    "MarketTypeArgs",
    "load_markets",
    "find_market",
    "find_market_by_book",
    "default_market",
]
