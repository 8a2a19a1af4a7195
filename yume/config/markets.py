"""
Market descriptors and their YAML registry.

Markets file path comes from `Settings.markets_file` (env `YUME_MARKETS_FILE`,
default `configs/markets.yaml`). The file holds either a list of market
mappings or a mapping of market id -> mapping. Descriptors are immutable;
switching markets means selecting a different descriptor, never mutating one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from yume.core.types import (
    DURATION_LABELS,
    RISK_TIER_LABELS,
    SUI_TYPE,
    duration_label,
)
from yume.infra.logging_cfg import log_event

log = logging.getLogger("yume")


@dataclass(frozen=True)
class MarketTypeArgs:
    """Fully-qualified Move coin types for one market."""
    base: str
    collateral: str


@dataclass(frozen=True)
class MarketDescriptor:
    id: str
    label: str
    base_type: str
    collateral_type: str
    base_decimals: int
    duration: int
    risk_tier: int
    max_ltv_bps: int
    orderbook_id: str
    vault_id: str
    pool_id: Optional[str] = None
    package_id: str = ""
    base_symbol: str = ""
    collateral_symbol: str = ""
    collateral_decimals: int = 9

    @property
    def type_args(self) -> MarketTypeArgs:
        return MarketTypeArgs(base=self.base_type, collateral=self.collateral_type)

    @property
    def has_pool(self) -> bool:
        return bool(self.pool_id)

    @property
    def duration_label(self) -> str:
        return duration_label(self.duration)

    @property
    def risk_tier_label(self) -> str:
        return RISK_TIER_LABELS.get(self.risk_tier, f"Tier {self.risk_tier}")


_REQUIRED = ("orderbook_id", "vault_id")


def _symbol_of(coin_type: str) -> str:
    return coin_type.rsplit("::", 1)[-1] if coin_type else ""


def market_from_mapping(market_id: str, raw: Dict[str, Any], package_id: str = "") -> MarketDescriptor:
    """Build one descriptor. Raises ValueError/TypeError on bad entries."""
    missing = [k for k in _REQUIRED if not raw.get(k)]
    if missing:
        raise ValueError(f"market {market_id} missing {', '.join(missing)}")
    base_type = str(raw.get("base_type", raw.get("base", SUI_TYPE)))
    collateral_type = str(raw.get("collateral_type", raw.get("collateral", SUI_TYPE)))
    duration = int(raw.get("duration", 0))
    if duration < 0:
        raise ValueError(f"market {market_id} has negative duration")
    if duration not in DURATION_LABELS:
        log_event(log, "market_nonstandard_duration", logging.WARNING, market=market_id, duration=duration)
    return MarketDescriptor(
        id=market_id,
        label=str(raw.get("label", market_id)),
        base_type=base_type,
        collateral_type=collateral_type,
        base_decimals=int(raw.get("base_decimals", 9)),
        duration=duration,
        risk_tier=int(raw.get("risk_tier", 0)),
        max_ltv_bps=int(raw.get("max_ltv_bps", 0)),
        orderbook_id=str(raw["orderbook_id"]),
        vault_id=str(raw["vault_id"]),
        pool_id=str(raw["pool_id"]) if raw.get("pool_id") else None,
        package_id=str(raw.get("package_id") or package_id),
        base_symbol=str(raw.get("base_symbol") or _symbol_of(base_type)),
        collateral_symbol=str(raw.get("collateral_symbol") or _symbol_of(collateral_type)),
        collateral_decimals=int(raw.get("collateral_decimals", 9)),
    )


def _entries(data: Any) -> Iterable[Tuple[str, Dict[str, Any]]]:
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, dict):
                yield str(value.get("id", key)), value
    elif isinstance(data, list):
        for idx, value in enumerate(data):
            if isinstance(value, dict):
                yield str(value.get("id", f"market-{idx}")), value


def load_markets(path: str | Path, package_id: str = "") -> Tuple[MarketDescriptor, ...]:
    """
    Load market descriptors from YAML.

    A missing file yields no markets. Invalid entries are skipped with a
    warning; a file that is not valid YAML raises.
    """
    p = Path(path)
    if not p.exists():
        log_event(log, "markets_file_missing", logging.WARNING, path=str(p))
        return ()
    with p.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    markets: List[MarketDescriptor] = []
    seen: set[str] = set()
    for market_id, raw in _entries(data):
        if market_id in seen:
            log_event(log, "market_duplicate_id", logging.WARNING, market=market_id)
            continue
        try:
            markets.append(market_from_mapping(market_id, raw, package_id))
        except (ValueError, TypeError) as exc:
            log_event(log, "market_skipped", logging.WARNING, market=market_id, error=str(exc))
            continue
        seen.add(market_id)
    log_event(log, "markets_loaded", count=len(markets), ids=[m.id for m in markets])
    return tuple(markets)


def find_market(markets: Iterable[MarketDescriptor], market_id: str) -> Optional[MarketDescriptor]:
    return next((m for m in markets if m.id == market_id), None)


def find_market_by_book(markets: Iterable[MarketDescriptor], book_id: str) -> Optional[MarketDescriptor]:
    return next((m for m in markets if m.orderbook_id == book_id), None)


def default_market(
    markets: Iterable[MarketDescriptor], preferred_id: Optional[str] = None
) -> Optional[MarketDescriptor]:
    markets = tuple(markets)
    if preferred_id:
        found = find_market(markets, preferred_id)
        if found is not None:
            return found
        log_event(log, "default_market_not_found", logging.WARNING, market=preferred_id)
    return markets[0] if markets else None
