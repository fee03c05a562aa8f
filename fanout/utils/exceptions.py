"""Custom exceptions for the search fan-out layer.

This module defines the exception hierarchy used across fanout:
- Base exception for all fan-out errors
- Provider-level errors raised by search provider clients
- Orchestration-level errors raised to callers of the orchestrator

Individual provider failures never escape a fan-out round; the task
executor captures them into ProviderResult.error. Only the
orchestration-level errors below reach callers of
SearchOrchestrator.search().
"""


class FanoutError(Exception):
    """Base exception for all fan-out errors

    Use this to catch any error raised by the package:
    ```python
    try:
        result = await orchestrator.search(request)
    except FanoutError as e:
        logger.error("search_failed", error=str(e))
    ```
    """

    pass


class ProviderError(FanoutError):
    """Base for errors raised by a single search provider call."""

    pass


class UpstreamError(ProviderError):
    """Provider call failed

    Raised when:
    - HTTP request returns a non-2xx status
    - Network/connection errors
    - Provider client raised an unexpected exception
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitError(UpstreamError):
    """Provider answered with a rate limit response (HTTP 429).

    Carries optional retry-after metadata from the response headers.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status=429)
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """Provider call did not settle before its deadline."""

    def __init__(self, provider_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Provider '{provider_id}' timed out after {timeout_seconds:.2f}s"
        )
        self.provider_id = provider_id
        self.timeout_seconds = timeout_seconds


class NoSourcesSelectedError(FanoutError):
    """No provider matched the request

    Raised when:
    - Filter criteria matched nothing in the registry
    - Matching sources have no bound provider client
    """

    pass


class AggregationError(FanoutError):
    """Aggregation of provider results failed.

    Indicates a programming-level bug (e.g. a scorer raised), not an
    upstream condition.
    """

    pass


class ConfigValidationError(FanoutError):
    """Configuration validation failed"""

    pass
