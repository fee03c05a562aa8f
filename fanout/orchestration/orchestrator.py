"""Search fan-out orchestrator.

Runs one fan-out round per request:
1. Source selection (registry filter, restricted to bound clients)
2. Cache lookup by request fingerprint
3. Sharing of an identical round already in flight
4. Concurrent execution of provider tasks under a round deadline
5. Aggregation and cache write

Health, rate limit and cache state are passed in explicitly so several
orchestrators (or tests) never share hidden module state.
"""

import asyncio
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from fanout.models.config import FanoutConfig, FanoutSettings
from fanout.models.search import (
    AggregateResult,
    ErrorKind,
    ProviderResult,
    SearchOptions,
    SearchRequest,
    SearchTask,
)
from fanout.models.source import ProviderDescriptor, SourceFilter
from fanout.observability.context import correlation_id_context
from fanout.observability.metrics import SEARCH_DURATION, SEARCHES
from fanout.services.aggregator import Aggregator, merge_provider_results
from fanout.services.cache_service import ResultCache, compute_fingerprint
from fanout.services.executor import TaskExecutor
from fanout.services.health_monitor import HealthMonitor
from fanout.services.providers.base import SearchProvider
from fanout.services.providers.http_json import build_http_providers
from fanout.services.query_expander import QueryExpander, SynonymExpander, expand_query
from fanout.services.registry_service import SourceRegistry
from fanout.utils.exceptions import NoSourcesSelectedError
from fanout.utils.rate_limiter import RateLimiter
from fanout.utils.semaphore import ConcurrencyLimiter

logger = structlog.get_logger()


class SearchOrchestrator:
    """Fan a query out to many providers and aggregate what comes back.

    Individual provider failures never fail a round. search() raises only
    when no provider can be selected or aggregation itself fails.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        providers: Mapping[str, SearchProvider],
        health_monitor: Optional[HealthMonitor] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResultCache] = None,
        aggregator: Optional[Aggregator] = None,
        settings: Optional[FanoutSettings] = None,
        query_expander: Optional[QueryExpander] = None,
    ):
        """Initialize orchestrator.

        Args:
            registry: Source registry to select providers from
            providers: Provider clients keyed by registry id
            health_monitor: Shared health state (fresh one if omitted)
            rate_limiter: Shared rate windows (registry limits if omitted)
            cache: Result cache (configured from settings if omitted)
            aggregator: Result aggregator with scorer
            settings: Concurrency, timeout, health and cache settings
            query_expander: Used when a request sets options.expand_query
        """
        self.settings = settings or FanoutSettings()
        self.registry = registry
        self.providers = dict(providers)
        self.health_monitor = health_monitor or HealthMonitor(self.settings.health)
        self.rate_limiter = rate_limiter or RateLimiter(registry.all())
        self.cache = cache or ResultCache(self.settings.cache)
        self.aggregator = aggregator or Aggregator()
        self.query_expander = query_expander or SynonymExpander()

        self.limiter = ConcurrencyLimiter(self.settings.max_concurrent)
        self.executor = TaskExecutor(
            self.providers, self.health_monitor, self.rate_limiter, self.limiter
        )

        self._inflight: Dict[str, asyncio.Future] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}

        unbound = [pid for pid in self.providers if pid not in registry]
        if unbound:
            logger.warning("providers_without_descriptor", providers=unbound)

        self.health_monitor.register_many(
            pid for pid in self.providers if pid in registry
        )

        logger.info(
            "orchestrator_initialized",
            sources=len(registry),
            bound_providers=len(self.providers),
            max_concurrent=self.settings.max_concurrent,
            round_timeout_seconds=self.settings.round_timeout_seconds,
        )

    @classmethod
    def from_config(
        cls,
        config: FanoutConfig,
        providers: Optional[Mapping[str, SearchProvider]] = None,
    ) -> "SearchOrchestrator":
        """Build an orchestrator from a loaded configuration document.

        HTTP providers declared in the config are instantiated; explicitly
        passed clients take precedence for the same id.
        """
        if config.include_builtin_sources:
            registry = SourceRegistry.with_builtin(config.sources)
        else:
            registry = SourceRegistry(config.sources)

        clients: Dict[str, SearchProvider] = build_http_providers(config.http_providers)
        clients.update(providers or {})

        return cls(registry, clients, settings=config.settings)

    # ==================== Selection ====================

    def select_sources(self, request: SearchRequest) -> List[ProviderDescriptor]:
        """Registry selection restricted to providers with a bound client.

        Raises:
            NoSourcesSelectedError: If nothing can be dispatched
        """
        selected = [
            s
            for s in self.registry.select_sources(request.source_filter)
            if s.id in self.providers
        ]
        if not selected:
            raise NoSourcesSelectedError(
                f"No providers available for query '{request.query[:50]}'"
            )
        return selected

    def _params_for(
        self, source: ProviderDescriptor, request: SearchRequest
    ) -> Dict[str, Any]:
        params = dict(request.params)
        wanted = (
            request.options.max_results
            or self.settings.default_max_results
            or source.max_results
        )
        params["max_results"] = min(wanted, source.max_results)
        return params

    # ==================== Search ====================

    async def search(self, request: SearchRequest) -> AggregateResult:
        """Run a fan-out round for the request.

        Args:
            request: Query, source filter and options

        Returns:
            Aggregate of every provider that answered in time. If the
            round is cancelled via cancel(), the partial aggregate.

        Raises:
            NoSourcesSelectedError: If no provider can be selected
            AggregationError: If ranking fails
            asyncio.CancelledError: If the calling task is cancelled
        """
        with correlation_id_context(request.id):
            started = time.perf_counter()

            try:
                sources = self.select_sources(request)
            except NoSourcesSelectedError:
                SEARCHES.labels(status="failed").inc()
                logger.warning("no_sources_selected", query=request.query[:100])
                raise

            fingerprint = compute_fingerprint(
                request.query,
                [s.id for s in sources],
                request.fingerprint_options(),
            )

            logger.info(
                "search_started",
                query=request.query[:100],
                sources=len(sources),
                fingerprint=fingerprint[:12],
            )

            if request.options.use_cache:
                cached = self.cache.get(fingerprint)
                if cached is not None:
                    SEARCHES.labels(status="cached").inc()
                    return cached.model_copy(
                        update={"cache_hit": True, "request_id": request.id}
                    )

                shared = self._inflight.get(fingerprint)
                if shared is not None:
                    result = await self._await_shared(shared, request)
                    if result is not None:
                        return result

            return await self._run_owned(request, sources, fingerprint, started)

    async def _await_shared(
        self, shared: asyncio.Future, request: SearchRequest
    ) -> Optional[AggregateResult]:
        """Wait for an identical in-flight round.

        Returns:
            The shared result, or None if the owning round was aborted and
            this request has to run its own.
        """
        self.cache.record_shared()
        logger.info("search_joined_inflight", request_id=request.id)
        try:
            result = await asyncio.shield(shared)
        except asyncio.CancelledError:
            if shared.cancelled():
                logger.info("inflight_round_aborted", request_id=request.id)
                return None
            raise

        SEARCHES.labels(status="shared").inc()
        return result.model_copy(update={"request_id": request.id})

    async def _run_owned(
        self,
        request: SearchRequest,
        sources: List[ProviderDescriptor],
        fingerprint: str,
        started: float,
    ) -> AggregateResult:
        shared: asyncio.Future = asyncio.get_running_loop().create_future()
        if request.options.use_cache:
            self._inflight[fingerprint] = shared

        try:
            with SEARCH_DURATION.time():
                result, cancelled = await self._run_round(
                    request, sources, fingerprint, started
                )

            # Partial rounds and full outages are not worth serving again
            if not cancelled and result.successful_sources > 0:
                self.cache.put(fingerprint, result)

            shared.set_result(result)
        finally:
            if self._inflight.get(fingerprint) is shared:
                del self._inflight[fingerprint]
            if not shared.done():
                shared.cancel()

        SEARCHES.labels(status="cancelled" if cancelled else "success").inc()
        logger.info(
            "search_complete",
            cancelled=cancelled,
            sources_used=len(result.sources_used),
            errors=len(result.errors),
            results=result.total_results,
            duration_ms=round(result.search_duration_ms, 1),
        )
        return result

    async def _run_round(
        self,
        request: SearchRequest,
        sources: List[ProviderDescriptor],
        fingerprint: str,
        started: float,
    ) -> Tuple[AggregateResult, bool]:
        """Execute all provider tasks under the round deadline.

        With query expansion each provider gets one task per query; its
        per-query outcomes are merged into a single ProviderResult before
        aggregation.

        Returns:
            Tuple of (aggregate, whether the round was cancelled)
        """
        options = request.options
        round_timeout = options.timeout_seconds or self.settings.round_timeout_seconds
        task_timeout = min(
            options.task_timeout_seconds or self.settings.task_timeout_seconds,
            round_timeout,
        )
        # Narrows the shared limiter for this round; the executor takes both
        limiter = (
            ConcurrencyLimiter(options.max_concurrent)
            if options.max_concurrent
            else None
        )
        queries = (
            expand_query(request.query, self.query_expander)
            if options.expand_query
            else [request.query]
        )

        tasks = [
            SearchTask(
                provider=source,
                query=query,
                params=self._params_for(source, request),
                timeout_seconds=task_timeout,
            )
            for source in sources
            for query in queries
        ]

        loop = asyncio.get_running_loop()
        deadline = loop.time() + round_timeout
        cancel_event = asyncio.Event()
        self._cancel_events[request.id] = cancel_event

        running = {
            asyncio.create_task(self.executor.run_task(task, limiter)): index
            for index, task in enumerate(tasks)
        }
        cancel_waiter = asyncio.create_task(cancel_event.wait())
        pending = set(running)
        outcomes: Dict[int, ProviderResult] = {}
        cancelled = False

        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break

                done, _ = await asyncio.wait(
                    pending | {cancel_waiter},
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for finished in done:
                    if finished is cancel_waiter:
                        continue
                    pending.discard(finished)
                    outcomes[running[finished]] = finished.result()

                if cancel_event.is_set():
                    cancelled = True
                    break
        finally:
            cancel_waiter.cancel()
            self._cancel_events.pop(request.id, None)
            for leftover in pending:
                leftover.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if pending:
            self._settle_unfinished(
                pending, running, tasks, outcomes, cancelled, started
            )

        per_query = len(queries)
        results = [
            merge_provider_results(
                [outcomes[i * per_query + q] for q in range(per_query)]
            )
            for i in range(len(sources))
        ]
        result = self.aggregator.aggregate(results, started, request, fingerprint)
        if len(queries) > 1:
            result = result.model_copy(update={"expanded_queries": queries})
        return result, cancelled

    def _settle_unfinished(
        self,
        pending: set,
        running: Dict[asyncio.Task, int],
        tasks: List[SearchTask],
        outcomes: Dict[int, ProviderResult],
        cancelled: bool,
        started: float,
    ) -> None:
        """Turn tasks cut off by the deadline or a cancel into results."""
        elapsed_ms = (time.perf_counter() - started) * 1000
        kind = ErrorKind.CANCELLED if cancelled else ErrorKind.TIMEOUT

        for leftover in pending:
            index = running[leftover]
            task = tasks[index]

            # Finished in the window between wait() returning and cancel()
            if not leftover.cancelled() and leftover.exception() is None:
                outcomes[index] = leftover.result()
                continue

            if kind == ErrorKind.TIMEOUT and task.dispatched:
                self.health_monitor.record_failure(
                    task.provider_id, "round deadline exceeded"
                )

            message = (
                "search cancelled before provider answered"
                if cancelled
                else "round deadline exceeded"
            )
            outcomes[index] = ProviderResult.failure(
                task.provider,
                kind,
                message,
                elapsed_ms if task.dispatched else 0.0,
            )

        logger.warning(
            "round_cut_short",
            reason=kind.value,
            unfinished=sorted({tasks[running[t]].provider_id for t in pending}),
        )

    def cancel(self, request_id: str) -> bool:
        """Stop a running round; its search() returns a partial result.

        Returns:
            True if a running round with that id was found
        """
        event = self._cancel_events.get(request_id)
        if event is None:
            return False
        event.set()
        logger.info("search_cancel_requested", request_id=request_id)
        return True

    async def search_topic(
        self,
        topic: str,
        domains: Optional[List[str]] = None,
        languages: Optional[List[str]] = None,
        min_priority: Optional[int] = None,
        include_auth_required: bool = False,
        max_results: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        expand_query: bool = False,
    ) -> AggregateResult:
        """Convenience wrapper building a SearchRequest for a topic."""
        request = SearchRequest(
            query=topic,
            source_filter=SourceFilter(
                domains=domains or [],
                languages=languages or [],
                min_priority=min_priority,
                include_auth_required=include_auth_required,
            ),
            options=SearchOptions(
                max_results=max_results,
                timeout_seconds=timeout_seconds,
                expand_query=expand_query,
            ),
        )
        return await self.search(request)

    # ==================== Status ====================

    def get_engine_status(self) -> Dict[str, Dict[str, Any]]:
        """Per-provider status for operators and the CLI."""
        status: Dict[str, Dict[str, Any]] = {}
        for source in self.registry.all():
            bound = source.id in self.providers
            health = self.health_monitor.get_health(source.id)
            status[source.id] = {
                "name": source.name,
                "category": source.category.value,
                "priority": source.priority,
                "enabled": source.is_active and bound,
                "bound": bound,
                "healthy": health.is_healthy if health else True,
                "consecutive_failures": health.consecutive_failures if health else 0,
                "average_latency_ms": health.average_latency_ms if health else 0.0,
                "rate_limit": source.rate_limit,
                "rate_remaining": self.rate_limiter.remaining(source.id),
            }
        return status

    def get_cache_stats(self):
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    async def check_health(self) -> Dict[str, bool]:
        """Run a health sweep over every bound provider."""
        return await self.health_monitor.check_all(
            {pid: p for pid, p in self.providers.items() if pid in self.registry}
        )

    def start_health_monitoring(self, interval_seconds: float) -> asyncio.Task:
        return self.health_monitor.start_monitoring(
            {pid: p for pid, p in self.providers.items() if pid in self.registry},
            interval_seconds,
        )

    async def close(self) -> None:
        """Stop background monitoring and release provider resources."""
        await self.health_monitor.stop_monitoring()
        for provider in self.providers.values():
            await provider.close()
