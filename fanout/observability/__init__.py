"""Observability for fan-out rounds.

Provides:
- Correlation ID context management for request tracing
- Structured logging with correlation ID injection
- Prometheus metrics for provider outcomes, cache and concurrency

Usage:
    from fanout.observability import configure_logging, get_logger

    configure_logging(level="INFO", json_output=False)
    logger = get_logger("cli")
"""

from fanout.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    set_correlation_id,
)
from fanout.observability.logging import (
    add_correlation_id_processor,
    bind_context,
    clear_context,
    clip_query_processor,
    configure_logging,
    get_logger,
    unbind_context,
)
from fanout.observability.metrics import (
    CACHE_OPERATIONS,
    INFLIGHT_REQUESTS,
    PROVIDER_HEALTHY,
    PROVIDER_LATENCY,
    PROVIDER_REQUESTS,
    SEARCH_DURATION,
    SEARCHES,
    MetricsContext,
    get_metrics_text,
)

__all__ = [
    # Context
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Logging
    "get_logger",
    "configure_logging",
    "add_correlation_id_processor",
    "bind_context",
    "unbind_context",
    "clear_context",
    "clip_query_processor",
    # Metrics
    "SEARCHES",
    "PROVIDER_REQUESTS",
    "CACHE_OPERATIONS",
    "INFLIGHT_REQUESTS",
    "PROVIDER_HEALTHY",
    "PROVIDER_LATENCY",
    "SEARCH_DURATION",
    "MetricsContext",
    "get_metrics_text",
]
