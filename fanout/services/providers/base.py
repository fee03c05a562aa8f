from abc import ABC, abstractmethod
from typing import Any, Dict


class SearchProvider(ABC):
    """Abstract base class for search provider clients

    The orchestration core treats every provider as an opaque async call.
    Implementations return one of the raw shapes the normalizer knows:
    a list of items, {"results": [...]}, or {"data": [...]}. Anything
    else is treated as a successful call with zero results.
    """

    @abstractmethod
    async def execute(self, query: str, params: Dict[str, Any]) -> Any:
        """Run one search against the provider

        Args:
            query: Search query text
            params: Resolved per-call parameters (e.g. max_results)

        Returns:
            Raw provider response

        Raises:
            UpstreamError: If the provider call fails
            RateLimitError: If the provider rejected the call as rate limited
        """
        pass

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Registry id this client is bound to"""
        pass

    async def close(self) -> None:
        """Release network resources. No-op by default."""
        return None
