"""Prometheus metrics for fan-out rounds.

Usage:
    from fanout.observability.metrics import PROVIDER_REQUESTS, SEARCHES

    PROVIDER_REQUESTS.labels(provider="arxiv", outcome="success").inc()
    SEARCHES.labels(status="success").inc()

All collectors live on a private registry so several orchestrators (and
tests) can coexist in one process without clashing with the default
prometheus_client registry.
"""

from typing import Any, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

SEARCHES = Counter(
    name="fanout_searches_total",
    documentation="Total fan-out searches",
    labelnames=["status"],  # success, cached, shared, cancelled, failed
    registry=REGISTRY,
)

PROVIDER_REQUESTS = Counter(
    name="fanout_provider_requests_total",
    documentation="Provider task outcomes",
    # success, unhealthy, rate_limited, timeout, upstream, cancelled
    labelnames=["provider", "outcome"],
    registry=REGISTRY,
)

CACHE_OPERATIONS = Counter(
    name="fanout_cache_operations_total",
    documentation="Result cache operations",
    labelnames=["operation"],  # hit, miss, set, evict, expire
    registry=REGISTRY,
)

# =============================================================================
# GAUGES
# =============================================================================

INFLIGHT_REQUESTS = Gauge(
    name="fanout_inflight_requests",
    documentation="Provider calls currently holding a concurrency permit",
    registry=REGISTRY,
)

PROVIDER_HEALTHY = Gauge(
    name="fanout_provider_healthy",
    documentation="1 if the provider is healthy, 0 otherwise",
    labelnames=["provider"],
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

PROVIDER_LATENCY = Histogram(
    name="fanout_provider_latency_seconds",
    documentation="Provider call latency in seconds",
    labelnames=["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, float("inf")),
    registry=REGISTRY,
)

SEARCH_DURATION = Histogram(
    name="fanout_search_duration_seconds",
    documentation="End-to-end fan-out round duration in seconds",
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Render all fanout metrics in Prometheus exposition format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


class MetricsContext:
    """Time an operation and bump a success or failure counter.

    Example:
        with MetricsContext(
            histogram=SEARCH_DURATION,
            success_counter=SEARCHES.labels(status="success"),
            failure_counter=SEARCHES.labels(status="failed"),
        ) as ctx:
            result = await run_round()
            ctx.mark_success()

    Leaving the block without mark_success() counts as a failure.
    """

    def __init__(
        self,
        histogram: Optional[Any] = None,
        success_counter: Optional[Any] = None,
        failure_counter: Optional[Any] = None,
    ):
        self._histogram = histogram
        self._success_counter = success_counter
        self._failure_counter = failure_counter
        self._timer: Any = None
        self._success = False

    def __enter__(self) -> "MetricsContext":
        if self._histogram is not None:
            self._timer = self._histogram.time()
            self._timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._timer is not None:
            self._timer.__exit__(exc_type, exc_val, exc_tb)

        if exc_type is None and self._success:
            if self._success_counter is not None:
                self._success_counter.inc()
        elif self._failure_counter is not None:
            self._failure_counter.inc()

    def mark_success(self) -> None:
        self._success = True
