"""
Prometheus metrics for readers and the executor.

Organized into: reads, book, pool, transactions.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class YumeMetrics:
    """Client-side observability. Every component takes metrics=None too."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()
        self.registry = reg

        # === Read Metrics ===
        self.reader_polls = Counter(
            'reader_polls_total',
            'Reader refreshes attempted',
            labelnames=['reader', 'market'],
            registry=reg
        )
        self.reader_failures = Counter(
            'reader_failures_total',
            'Reader refreshes that kept the previous snapshot',
            labelnames=['reader', 'market'],
            registry=reg
        )
        self.records_skipped = Counter(
            'records_skipped_total',
            'Malformed records skipped during bulk traversal',
            labelnames=['reader', 'market'],
            registry=reg
        )
        self.reader_latency_ms = Histogram(
            'reader_latency_ms',
            'Wall time of one reader refresh (milliseconds)',
            labelnames=['reader'],
            buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000],
            registry=reg
        )

        # === Book Metrics ===
        self.resting_orders = Gauge(
            'resting_orders',
            'Active resting orders in the last snapshot',
            labelnames=['market', 'side'],
            registry=reg
        )
        self.spread_bps = Gauge(
            'spread_bps',
            'Best ask minus best bid (bps); NaN when one side is empty',
            labelnames=['market'],
            registry=reg
        )

        # === Pool Metrics ===
        self.pool_available = Gauge(
            'pool_available_balance',
            'Undeployed pool balance (base units)',
            labelnames=['market'],
            registry=reg
        )
        self.pool_deployed = Gauge(
            'pool_deployed_balance',
            'Deployed pool balance (base units)',
            labelnames=['market'],
            registry=reg
        )

        # === Transaction Metrics ===
        self.tx_submitted = Counter(
            'tx_submitted_total',
            'Batches handed to the signer',
            labelnames=['action'],
            registry=reg
        )
        self.tx_failed = Counter(
            'tx_failed_total',
            'Batches that resolved to a failure',
            labelnames=['action', 'reason'],
            registry=reg
        )
        self.tx_latency_ms = Histogram(
            'tx_latency_ms',
            'Time from submit to resolution (milliseconds)',
            labelnames=['action'],
            buckets=[250, 500, 1000, 2000, 5000, 10000, 30000],
            registry=reg
        )


def start_metrics_server(metrics: YumeMetrics, port: int) -> None:
    """Expose metrics.registry on /metrics. Port 0 is a no-op."""
    if port > 0:
        start_http_server(port, registry=metrics.registry)
