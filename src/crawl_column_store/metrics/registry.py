"""
Writer pool and submission metrics in the Prometheus global REGISTRY.
Simply import this module at app startup; exporting is left to the host.
"""

from prometheus_client import Counter, Gauge, Histogram


SUBMIT_TOTAL = Counter(
    "ccs_submit_total",
    "Total number of record submissions",
    ["outcome"],
)

SUBMIT_LATENCY = Histogram(
    "ccs_submit_latency_seconds",
    "Record submission latency including retries",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

RECONNECTS_TOTAL = Counter(
    "ccs_reconnects_total",
    "Reconnect attempts after transport failures",
    ["outcome"],
)

POOL_BORROWED = Gauge(
    "ccs_pool_borrowed",
    "Writers currently lent out",
)

POOL_LIVE = Gauge(
    "ccs_pool_live",
    "Writers currently alive (idle + borrowed)",
)

BYTES_WRITTEN_TOTAL = Counter(
    "ccs_bytes_written_total",
    "Column payload bytes committed",
)


class MetricsRegistry:
    """Centralized access to the crawl column store metrics."""

    submit_total = SUBMIT_TOTAL
    submit_latency = SUBMIT_LATENCY
    reconnects_total = RECONNECTS_TOTAL
    pool_borrowed = POOL_BORROWED
    pool_live = POOL_LIVE
    bytes_written_total = BYTES_WRITTEN_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
