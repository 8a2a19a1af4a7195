"""
yume-watch: follow one market's order book, positions and pool from a terminal.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from typing import Any

from yume.config.config import Settings
from yume.config.markets import default_market, load_markets
from yume.core.rates import bps_to_percent, is_liquidatable, pool_utilization_bps
from yume.core.utils import now_ms
from yume.infra.logging_cfg import build_logger, log_event
from yume.infra.sui_client import SuiReadClient
from yume.monitoring.metrics import YumeMetrics, start_metrics_server
from yume.readers.order_book import MarketStats, OrderBookReader
from yume.readers.polling import PollingReader
from yume.readers.pool import PoolReader
from yume.readers.positions import PositionsReader
from yume.session import MarketSession

log = build_logger(
    "yume",
    level=os.getenv("YUME_LOG_LEVEL", "INFO").upper(),
    file_path=os.getenv("YUME_LOG_FILE") or None,
)


def log_summary(reader: PollingReader[Any]) -> None:
    """Listener: one line per applied snapshot."""
    if reader.error is not None:
        return
    payload = {"market": reader.market_id}
    if isinstance(reader, OrderBookReader):
        stats = MarketStats.from_snapshot(reader.data)
        payload.update(
            event="book_snapshot",
            asks=stats.ask_count,
            bids=stats.bid_count,
            best_ask=None if stats.best_ask_rate is None else bps_to_percent(stats.best_ask_rate),
            best_bid=None if stats.best_bid_rate is None else bps_to_percent(stats.best_bid_rate),
            spread_bps=stats.spread,
            ask_volume=stats.ask_volume,
        )
    elif isinstance(reader, PoolReader):
        pool = reader.data
        if pool is None:
            return
        payload.update(
            event="pool_snapshot",
            available=pool.available_balance,
            deployed=pool.deployed_balance,
            shares=pool.total_shares,
            utilization=bps_to_percent(pool_utilization_bps(pool)),
        )
    elif isinstance(reader, PositionsReader):
        if reader.owner is None:
            return
        now = now_ms()
        payload.update(
            event="positions_snapshot",
            total=len(reader.data or []),
            active=len(reader.active),
            liquidatable=sum(1 for p in reader.data or [] if is_liquidatable(p, now)),
        )
    else:
        return
    log_event(log, payload.pop("event"), **payload)


async def main() -> int:
    cfg = Settings.load()
    markets = load_markets(cfg.markets_file, cfg.package_id)
    market = default_market(markets, cfg.default_market)
    if market is None:
        log_event(log, "no_markets", logging.ERROR, markets_file=cfg.markets_file)
        return 1

    metrics = YumeMetrics()
    start_metrics_server(metrics, cfg.metrics_port)

    client = SuiReadClient(cfg.rpc_url, timeout=cfg.http_timeout, retries=cfg.http_retries, http2=cfg.http2)
    session = MarketSession(client, market, cfg, metrics=metrics)
    session.add_listener(log_summary)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    log_event(
        log,
        "startup",
        market=market.id,
        label=market.label,
        duration=market.duration_label,
        risk_tier=market.risk_tier_label,
        owner=session.owner,
    )
    session.start()
    try:
        await stop_event.wait()
    finally:
        log.info("Shutting down...")
        await session.stop()
        await client.close()
        log.info("Shutdown complete")
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()
