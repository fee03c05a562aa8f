"""Task executor: runs one provider call under every gate.

Order of gates for a single SearchTask:
1. health check (skip unhealthy providers without a call)
2. rate limit pre-check (skip exhausted providers without a call)
3. concurrency permit (round limiter, if any, then the shared one)
4. atomic rate slot at dispatch
5. provider call under the per-task timeout

Every outcome becomes a ProviderResult. Individual provider failures
never raise out of run_task(); only cancellation propagates.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional

import structlog

from fanout.models.search import ErrorKind, ProviderResult, SearchTask
from fanout.observability.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS
from fanout.services.health_monitor import HealthMonitor
from fanout.services.providers.base import SearchProvider
from fanout.utils.exceptions import ProviderTimeoutError
from fanout.utils.normalize import normalize_response
from fanout.utils.rate_limiter import RateLimiter
from fanout.utils.semaphore import ConcurrencyLimiter

logger = structlog.get_logger()


class TaskExecutor:
    """Execute provider tasks with health, rate and concurrency gating"""

    def __init__(
        self,
        providers: Mapping[str, SearchProvider],
        health_monitor: HealthMonitor,
        rate_limiter: RateLimiter,
        limiter: ConcurrencyLimiter,
    ):
        self.providers = providers
        self.health_monitor = health_monitor
        self.rate_limiter = rate_limiter
        self.limiter = limiter

    def _skip(self, task: SearchTask, kind: ErrorKind, message: str) -> ProviderResult:
        PROVIDER_REQUESTS.labels(provider=task.provider_id, outcome=kind.value).inc()
        logger.debug("provider_skipped", provider=task.provider_id, reason=kind.value)
        return ProviderResult.failure(task.provider, kind, message)

    async def run_task(
        self, task: SearchTask, limiter: Optional[ConcurrencyLimiter] = None
    ) -> ProviderResult:
        """Run one provider task to a ProviderResult.

        Args:
            task: Provider/query pair with resolved params and timeout
            limiter: Extra per-round limiter. Permits are taken from it and
                from the shared limiter, so a round can narrow but never
                widen the process-wide bound.

        Returns:
            ProviderResult describing success, skip or failure

        Raises:
            asyncio.CancelledError: If the task is cancelled. The permit,
                if held, is released first.
        """
        provider_id = task.provider_id

        if not self.health_monitor.allow_request(provider_id):
            return self._skip(task, ErrorKind.UNHEALTHY, "provider marked unhealthy")

        if not self.rate_limiter.try_acquire(provider_id):
            self.health_monitor.release_probe(provider_id)
            return self._skip(task, ErrorKind.RATE_LIMITED, "rate limit exhausted")

        client = self.providers.get(provider_id)
        if client is None:
            self.health_monitor.release_probe(provider_id)
            return self._skip(task, ErrorKind.UPSTREAM, "no client bound to provider")

        try:
            async with self._permits(limiter):
                # Re-check atomically: a concurrent round may have used the
                # last slot while this task waited for a permit.
                if not self.rate_limiter.acquire(provider_id):
                    self.health_monitor.release_probe(provider_id)
                    return self._skip(
                        task, ErrorKind.RATE_LIMITED, "rate limit exhausted"
                    )

                task.dispatched = True
                return await self._dispatch(task, client)
        except asyncio.CancelledError:
            self.health_monitor.release_probe(provider_id, used=task.dispatched)
            raise

    @asynccontextmanager
    async def _permits(
        self, round_limiter: Optional[ConcurrencyLimiter]
    ) -> AsyncIterator[None]:
        if round_limiter is None or round_limiter is self.limiter:
            async with self.limiter.slot():
                yield
        else:
            async with round_limiter.slot():
                async with self.limiter.slot():
                    yield

    async def _dispatch(self, task: SearchTask, client: SearchProvider) -> ProviderResult:
        provider_id = task.provider_id
        start = time.perf_counter()

        try:
            raw = await asyncio.wait_for(
                client.execute(task.query, task.params),
                timeout=task.timeout_seconds,
            )
        except asyncio.TimeoutError:
            latency_ms = (time.perf_counter() - start) * 1000
            message = str(ProviderTimeoutError(provider_id, task.timeout_seconds))
            self.health_monitor.record_failure(provider_id, message)
            PROVIDER_REQUESTS.labels(provider=provider_id, outcome="timeout").inc()
            logger.warning(
                "provider_timeout",
                provider=provider_id,
                timeout_seconds=task.timeout_seconds,
            )
            return ProviderResult.failure(
                task.provider, ErrorKind.TIMEOUT, message, latency_ms
            )
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            self.health_monitor.record_failure(provider_id, e)
            PROVIDER_REQUESTS.labels(provider=provider_id, outcome="upstream").inc()
            logger.warning(
                "provider_error",
                provider=provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ProviderResult.failure(
                task.provider, ErrorKind.UPSTREAM, str(e) or type(e).__name__, latency_ms
            )

        latency_ms = (time.perf_counter() - start) * 1000
        self.health_monitor.record_success(provider_id, latency_ms)
        PROVIDER_REQUESTS.labels(provider=provider_id, outcome="success").inc()
        PROVIDER_LATENCY.labels(provider=provider_id).observe(latency_ms / 1000)

        items, shape = normalize_response(raw, provider_id)

        logger.info(
            "provider_search_ok",
            provider=provider_id,
            items=len(items),
            shape=shape.value,
            latency_ms=round(latency_ms, 1),
        )

        return ProviderResult(
            provider_id=provider_id,
            provider_name=task.provider.name,
            items=items,
            success=True,
            latency_ms=latency_ms,
            shape=shape,
        )
