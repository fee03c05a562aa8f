"""
In-memory result cache for fan-out rounds.

Keyed by a request fingerprint (normalized query + selected providers +
options). Entries expire after a TTL; expired entries are never served
and are removed lazily on read and by periodic sweeps on write.
"""

import hashlib
import json
import re
import threading
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

import structlog

from fanout.models.cache import CacheConfig, CacheEntry, CacheStats
from fanout.models.search import AggregateResult
from fanout.observability.metrics import CACHE_OPERATIONS

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    return _WHITESPACE.sub(" ", query.casefold()).strip()


def compute_fingerprint(
    query: str,
    provider_ids: Iterable[str],
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Stable cache key for a fan-out request.

    Equivalent requests (same query modulo case and whitespace, same
    provider set in any order, same options) map to the same key.

    Args:
        query: Search query
        provider_ids: Ids of the providers selected for the round
        options: Options that change the aggregate

    Returns:
        SHA-256 hex digest
    """
    canonical = json.dumps(
        {
            "query": normalize_query(query),
            "providers": sorted(set(provider_ids)),
            "options": options or {},
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResultCache:
    """
    TTL cache of AggregateResults.

    Thread-safe. Writes are last-write-wins.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize result cache.

        Args:
            config: Cache configuration
            clock: Monotonic clock, injectable for tests
        """
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._last_sweep = clock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._inflight_shared = 0

        if not self.config.enabled:
            logger.info("result_cache_disabled")
        else:
            logger.info(
                "result_cache_initialized",
                ttl_seconds=self.config.ttl_seconds,
                max_entries=self.config.max_entries,
            )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def max_entries(self) -> Optional[int]:
        return self.config.max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, fingerprint: str) -> Optional[AggregateResult]:
        """
        Get a live cached result.

        Returns:
            Cached result, or None if absent, expired or cache disabled
        """
        if not self.enabled:
            return None

        with self._lock:
            entry = self._entries.get(fingerprint)

            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[fingerprint]
                self._evictions += 1
                CACHE_OPERATIONS.labels(operation="expire").inc()
                entry = None

            if entry is None:
                self._misses += 1
                CACHE_OPERATIONS.labels(operation="miss").inc()
                logger.debug("result_cache_miss", fingerprint=fingerprint[:12])
                return None

            self._hits += 1
            CACHE_OPERATIONS.labels(operation="hit").inc()
            logger.info("result_cache_hit", fingerprint=fingerprint[:12])
            return entry.result

    def put(
        self,
        fingerprint: str,
        result: AggregateResult,
        ttl_seconds: Optional[float] = None,
    ) -> None:
        """
        Store a result.

        Args:
            fingerprint: Request fingerprint
            result: Aggregate to cache
            ttl_seconds: Override of the configured TTL

        Raises:
            ValueError: If ttl_seconds is not positive
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if not self.enabled:
            return

        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.config.sweep_interval_seconds:
                self.sweep()

            # Re-insert so dict order tracks write recency
            self._entries.pop(fingerprint, None)
            self._entries[fingerprint] = CacheEntry(
                fingerprint=fingerprint,
                result=result,
                created_at=now,
                ttl_seconds=(
                    self.config.ttl_seconds if ttl_seconds is None else ttl_seconds
                ),
            )
            CACHE_OPERATIONS.labels(operation="set").inc()

            limit = self.config.max_entries
            while limit is not None and len(self._entries) > limit:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                self._evictions += 1
                CACHE_OPERATIONS.labels(operation="evict").inc()

            logger.debug(
                "result_cached",
                fingerprint=fingerprint[:12],
                results=result.total_results,
            )

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            self._last_sweep = now
            expired = [fp for fp, e in self._entries.items() if e.is_expired(now)]
            for fp in expired:
                del self._entries[fp]

            if expired:
                self._evictions += len(expired)
                CACHE_OPERATIONS.labels(operation="expire").inc(len(expired))
                logger.debug("result_cache_swept", removed=len(expired))
            return len(expired)

    def delete(self, fingerprint: str) -> bool:
        with self._lock:
            return self._entries.pop(fingerprint, None) is not None

    def clear(self) -> None:
        """Drop all entries. Statistics are kept."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            logger.info("result_cache_cleared", removed=count)

    def record_shared(self) -> None:
        """Count a request served by an identical in-flight round."""
        with self._lock:
            self._inflight_shared += 1

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                inflight_shared=self._inflight_shared,
            )
