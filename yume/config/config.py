"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from yume.infra.logging_cfg import log_event

load_dotenv()

log = logging.getLogger("yume")

# suix_getDynamicFields / suix_getOwnedObjects cap a page at 50 entries
MAX_PAGE_SIZE = 50


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    package_id: str
    markets_file: str
    default_market: Optional[str]
    owner_address: Optional[str]
    poll_interval_sec: float
    settle_delay_sec: float
    page_size: int
    http_timeout: float
    http_retries: int
    http2: bool
    log_level: str
    log_file: Optional[str]
    metrics_port: int  # 0 disables the metrics endpoint

    @classmethod
    def load(cls) -> "Settings":
        def _int_env(key: str, default: int) -> int:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return int(raw)

        def _float_env(key: str, default: float) -> float:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return float(raw)

        cfg = cls(
            rpc_url=os.getenv("YUME_RPC_URL", "https://fullnode.mainnet.sui.io:443"),
            package_id=os.getenv("YUME_PACKAGE_ID", ""),
            markets_file=os.getenv("YUME_MARKETS_FILE", "configs/markets.yaml"),
            default_market=os.getenv("YUME_DEFAULT_MARKET") or None,
            owner_address=os.getenv("YUME_OWNER_ADDRESS") or None,
            poll_interval_sec=_float_env("YUME_POLL_INTERVAL_SEC", 15.0),
            settle_delay_sec=_float_env("YUME_SETTLE_DELAY_SEC", 2.0),
            page_size=_int_env("YUME_PAGE_SIZE", MAX_PAGE_SIZE),
            http_timeout=_float_env("YUME_HTTP_TIMEOUT", 10.0),
            http_retries=_int_env("YUME_HTTP_RETRIES", 2),
            http2=env_bool("YUME_HTTP2", True),
            log_level=os.getenv("YUME_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("YUME_LOG_FILE") or None,
            metrics_port=_int_env("YUME_METRICS_PORT", 0),
        )
        cfg._validate()
        _sanity_check(cfg)
        return cfg

    def _validate(self) -> None:
        if not self.rpc_url:
            raise ValueError("YUME_RPC_URL must be set")
        if not 1 <= self.poll_interval_sec <= 300:
            raise ValueError("YUME_POLL_INTERVAL_SEC must be within 1..300")
        if self.settle_delay_sec < 0:
            raise ValueError("YUME_SETTLE_DELAY_SEC must be >= 0")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"YUME_PAGE_SIZE must be within 1..{MAX_PAGE_SIZE}")
        if self.http_timeout <= 0:
            raise ValueError("YUME_HTTP_TIMEOUT must be > 0")
        if self.http_retries < 0:
            raise ValueError("YUME_HTTP_RETRIES must be >= 0")
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"YUME_LOG_LEVEL={self.log_level} is not a log level")
        if self.metrics_port < 0:
            raise ValueError("YUME_METRICS_PORT must be >= 0")

        if not self.package_id:
            log.warning(
                "WARNING: YUME_PACKAGE_ID not set. "
                "Markets must carry their own package_id or builders will reject them."
            )
        if self.poll_interval_sec < 15 or self.poll_interval_sec > 30:
            log.warning(
                f"WARNING: YUME_POLL_INTERVAL_SEC is {self.poll_interval_sec}s. "
                "15-30s keeps the book fresh without hammering the fullnode."
            )


def _sanity_check(cfg: Settings) -> None:
    """Log critical settings once at startup so overrides are obvious."""
    log_event(
        log,
        "config_loaded",
        rpc_url=cfg.rpc_url,
        package_id=cfg.package_id,
        markets_file=cfg.markets_file,
        poll_interval_sec=cfg.poll_interval_sec,
        settle_delay_sec=cfg.settle_delay_sec,
        page_size=cfg.page_size,
    )
