"""In-memory providers shared by the test suite."""

import asyncio
from typing import Any, Dict, List, Optional

from fanout.services.providers.base import SearchProvider
from fanout.utils.exceptions import UpstreamError


class StaticProvider(SearchProvider):
    """In-memory provider returning a fixed response.

    Every call is counted in `calls` so tests can assert whether a provider
    was dispatched.
    """

    def __init__(
        self,
        provider_id: str,
        items: Optional[List[Dict[str, Any]]] = None,
        response: Any = None,
        delay_seconds: float = 0.0,
        error: Optional[Exception] = None,
    ):
        """Initialize static provider.

        Args:
            provider_id: Registry id the provider is bound to
            items: Items to return as a plain list
            response: Raw response to return verbatim (overrides items)
            delay_seconds: Simulated network latency
            error: Exception to raise instead of answering
        """
        self._provider_id = provider_id
        self._response = response if response is not None else list(items or [])
        self.delay_seconds = delay_seconds
        self.error = error
        self.calls: List[str] = []

    @property
    def provider_id(self) -> str:
        return self._provider_id

    async def execute(self, query: str, params: Dict[str, Any]) -> Any:
        self.calls.append(query)

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self.error is not None:
            raise self.error

        if isinstance(self._response, list):
            limit = params.get("max_results")
            if limit:
                return self._response[:limit]
        return self._response

    @property
    def call_count(self) -> int:
        return len(self.calls)


class FailingProvider(StaticProvider):
    """Provider that always raises UpstreamError"""

    def __init__(self, provider_id: str, message: str = "upstream unavailable"):
        super().__init__(provider_id, error=UpstreamError(message))
