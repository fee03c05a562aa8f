"""Request, task and result models for one fan-out round."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fanout.models.source import ProviderDescriptor, SourceFilter


class ErrorKind(str, Enum):
    """Why a provider contributed no results to a round."""

    UNHEALTHY = "unhealthy"  # skipped, health monitor marked it unhealthy
    RATE_LIMITED = "rate_limited"  # skipped, minute budget exhausted
    TIMEOUT = "timeout"
    UPSTREAM = "upstream"
    CANCELLED = "cancelled"

    @property
    def counts_as_failure(self) -> bool:
        return self in (ErrorKind.TIMEOUT, ErrorKind.UPSTREAM)


class ResponseShape(str, Enum):
    """Raw response shapes recognised by the normalizer"""

    ARRAY = "array"
    RESULTS = "results"
    DATA = "data"
    UNRECOGNIZED = "unrecognized"
    NONE = "none"  # no call was made


class SearchItem(BaseModel):
    """One normalized search result item.

    Consumers must tolerate missing optional fields (content, published_at).
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    url: str = ""
    snippet: str = ""
    content: Optional[str] = None
    source: str = Field("", description="Provider id that returned the item")
    score: float = 0.0
    published_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("published_at", mode="before")
    @classmethod
    def lenient_date(cls, v):
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
            except ValueError:
                return None
        return None


class SearchOptions(BaseModel):
    """Per-request knobs. Unset values fall back to FanoutSettings."""

    max_results: Optional[int] = Field(default=None, ge=1, le=10000)
    timeout_seconds: Optional[float] = Field(default=None, gt=0.0)
    task_timeout_seconds: Optional[float] = Field(default=None, gt=0.0)
    max_concurrent: Optional[int] = Field(default=None, ge=1, le=1000)
    use_cache: bool = True
    expand_query: bool = False


class SearchRequest(BaseModel):
    """A single logical query to fan out"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    query: str = Field(..., min_length=1, max_length=2000)
    source_filter: SourceFilter = Field(default_factory=SourceFilter)
    options: SearchOptions = Field(default_factory=SearchOptions)
    params: Dict[str, Any] = Field(
        default_factory=dict, description="Extra params passed to every provider"
    )

    def fingerprint_options(self) -> Dict[str, Any]:
        """Option fields that change the aggregate and so key the cache."""
        return {
            "max_results": self.options.max_results,
            "filter": self.source_filter.canonical(),
            "params": self.params,
            "expand_query": self.options.expand_query,
        }


@dataclass
class SearchTask:
    """One (provider, query) pair inside a single fan-out round"""

    provider: ProviderDescriptor
    query: str
    params: Dict[str, Any] = field(default_factory=dict)
    timeout_seconds: float = 10.0
    dispatched: bool = False
    created_at: float = field(default_factory=time.monotonic)

    @property
    def provider_id(self) -> str:
        return self.provider.id


class ProviderError(BaseModel):
    """Error entry surfaced in ProviderResult and AggregateResult"""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    kind: ErrorKind
    message: str


class ProviderResult(BaseModel):
    """Outcome of one provider task; never mutated after creation"""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_name: str = ""
    items: List[SearchItem] = Field(default_factory=list)
    success: bool = True
    error: Optional[ProviderError] = None
    latency_ms: float = Field(0.0, ge=0.0)
    shape: ResponseShape = ResponseShape.NONE

    @property
    def item_count(self) -> int:
        return len(self.items)

    @classmethod
    def failure(
        cls,
        provider: ProviderDescriptor,
        kind: ErrorKind,
        message: str,
        latency_ms: float = 0.0,
    ) -> "ProviderResult":
        return cls(
            provider_id=provider.id,
            provider_name=provider.name,
            success=False,
            error=ProviderError(provider_id=provider.id, kind=kind, message=message),
            latency_ms=latency_ms,
        )


class AggregateResult(BaseModel):
    """Externally visible outcome of a fan-out round. Immutable."""

    model_config = ConfigDict(frozen=True)

    request_id: str = ""
    query: str = ""
    fingerprint: str = ""
    success: bool = True
    cache_hit: bool = False
    # Set only when query expansion produced more than the original query
    expanded_queries: List[str] = Field(default_factory=list)

    results: List[SearchItem] = Field(default_factory=list)
    provider_timings: Dict[str, float] = Field(default_factory=dict)

    sources_attempted: List[str] = Field(default_factory=list)
    sources_used: List[str] = Field(default_factory=list)
    failed_providers: List[str] = Field(default_factory=list)
    errors: List[ProviderError] = Field(default_factory=list)

    total_sources: int = 0
    successful_sources: int = 0
    failed_sources: int = 0
    total_results_raw: int = 0
    total_results: int = 0
    duplicates_removed: int = 0

    average_response_time_ms: float = 0.0
    average_score: float = 0.0
    slowest_provider: Optional[str] = None
    fastest_provider: Optional[str] = None
    search_duration_ms: float = 0.0
    completed_at: datetime = Field(default_factory=datetime.utcnow)

    def errors_by_kind(self, kind: ErrorKind) -> List[ProviderError]:
        return [e for e in self.errors if e.kind == kind]
