"""Merge, deduplicate and rank provider results into one aggregate."""

import time
from typing import Callable, List, Optional, Sequence, Set, Tuple

import structlog

from fanout.models.search import (
    AggregateResult,
    ProviderError,
    ProviderResult,
    SearchItem,
    SearchRequest,
)
from fanout.utils.exceptions import AggregationError
from fanout.utils.normalize import dedup_key

logger = structlog.get_logger()

Scorer = Callable[[SearchItem], float]


def default_scorer(item: SearchItem) -> float:
    return item.score


def deduplicate(items: Sequence[SearchItem]) -> Tuple[List[SearchItem], int]:
    """Drop repeats of (normalized url, normalized title); first wins.

    Returns:
        Tuple of (unique items in input order, duplicates removed)
    """
    seen: Set[Tuple[str, str]] = set()
    unique: List[SearchItem] = []
    for item in items:
        key = dedup_key(item)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique, len(items) - len(unique)


def merge_provider_results(results: Sequence[ProviderResult]) -> ProviderResult:
    """Fold one provider's per-query results into a single result.

    The provider counts as successful if any of its queries succeeded;
    items are concatenated in query order and latency is the slowest
    successful call, since the calls ran concurrently. If every query
    failed, the outcome of the first (original) query is reported.
    """
    if len(results) == 1:
        return results[0]

    successes = [r for r in results if r.success]
    if not successes:
        return results[0]

    first = successes[0]
    return first.model_copy(
        update={
            "items": [item for r in successes for item in r.items],
            "latency_ms": max(r.latency_ms for r in successes),
        }
    )


class Aggregator:
    """Stateless combiner of ProviderResults.

    Ranking is a stable descending sort by a pluggable scorer, so items
    with equal scores keep the merge order (provider selection order,
    then the provider's own order).
    """

    def __init__(
        self,
        scorer: Optional[Scorer] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.scorer = scorer or default_scorer
        self._clock = clock

    def aggregate(
        self,
        provider_results: Sequence[ProviderResult],
        started_at: float,
        request: Optional[SearchRequest] = None,
        fingerprint: str = "",
    ) -> AggregateResult:
        """Build the AggregateResult for one round.

        Args:
            provider_results: Results in provider selection order
            started_at: Round start, on the aggregator's clock
            request: Originating request (query, max_results)
            fingerprint: Cache key of the request

        Raises:
            AggregationError: If the scorer fails
        """
        successes = [r for r in provider_results if r.success]
        failures = [r for r in provider_results if not r.success]

        merged = [item for r in successes for item in r.items]
        unique, duplicates = deduplicate(merged)

        try:
            ranked = sorted(unique, key=self.scorer, reverse=True)
        except Exception as e:
            raise AggregationError(f"Scoring failed: {e}") from e

        max_results = request.options.max_results if request else None
        if max_results is not None:
            ranked = ranked[:max_results]

        errors: List[ProviderError] = [r.error for r in failures if r.error]
        timings = {r.provider_id: round(r.latency_ms, 3) for r in provider_results}

        slowest = fastest = None
        if successes:
            slowest = max(successes, key=lambda r: r.latency_ms).provider_id
            fastest = min(successes, key=lambda r: r.latency_ms).provider_id

        attempted = len(provider_results)
        average_latency = (
            sum(r.latency_ms for r in provider_results) / attempted if attempted else 0.0
        )
        average_score = (
            sum(item.score for item in ranked) / len(ranked) if ranked else 0.0
        )

        result = AggregateResult(
            request_id=request.id if request else "",
            query=request.query if request else "",
            fingerprint=fingerprint,
            success=True,
            results=ranked,
            provider_timings=timings,
            sources_attempted=[r.provider_id for r in provider_results],
            sources_used=[r.provider_id for r in successes],
            failed_providers=[r.provider_id for r in failures],
            errors=errors,
            total_sources=attempted,
            successful_sources=len(successes),
            failed_sources=len(failures),
            total_results_raw=len(merged),
            total_results=len(ranked),
            duplicates_removed=duplicates,
            average_response_time_ms=average_latency,
            average_score=average_score,
            slowest_provider=slowest,
            fastest_provider=fastest,
            search_duration_ms=max(0.0, (self._clock() - started_at) * 1000),
        )

        logger.info(
            "results_aggregated",
            sources=attempted,
            successful=len(successes),
            raw=len(merged),
            unique=len(unique),
            returned=len(ranked),
        )
        return result
