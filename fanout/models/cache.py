"""
Data models for the result cache.

Defines cache configuration, entries and statistics models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fanout.models.search import AggregateResult


class CacheConfig(BaseModel):
    """Cache configuration"""

    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True
    ttl_seconds: float = Field(1800.0, gt=0.0)  # 30 minutes
    sweep_interval_seconds: float = Field(60.0, gt=0.0)
    max_entries: Optional[int] = Field(default=None, ge=1)


class CacheEntry(BaseModel):
    """One cached aggregate keyed by request fingerprint"""

    model_config = ConfigDict(protected_namespaces=())

    fingerprint: str
    result: AggregateResult
    created_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStats(BaseModel):
    """Cache statistics"""

    model_config = ConfigDict(protected_namespaces=())

    size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    inflight_shared: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate"""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total
