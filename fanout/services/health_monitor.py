"""Provider health monitor.

Tracks per-provider health and flips providers between healthy and
unhealthy based on consecutive failures.

States:
- HEALTHY: requests allowed
- UNHEALTHY: after failover_threshold consecutive failures, requests skipped

Transitions:
- HEALTHY -> UNHEALTHY: consecutive_failures >= failover_threshold
- UNHEALTHY -> HEALTHY: the next recorded success (no success threshold)

Recovery of an unhealthy provider happens through one of:
- a half-open probe: when probe_interval_seconds is configured, one trial
  call per interval is let through allow_request()
- a health sweep: check_all() / start_monitoring() issue a lightweight
  query against every provider and record the outcome
- reset(): manual operator action
"""

import asyncio
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import structlog

from fanout.models.health import HealthConfig, MonitoringStats, ProviderHealth
from fanout.observability.metrics import PROVIDER_HEALTHY
from fanout.services.providers.base import SearchProvider

logger = structlog.get_logger()


class HealthMonitor:
    """Thread-safe per-provider health tracker.

    Single mutation point per provider: the task executor reports each
    call outcome exactly once via record_success / record_failure.
    """

    def __init__(
        self,
        config: Optional[HealthConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize health monitor.

        Args:
            config: Health configuration (threshold, EMA factor, probing)
            clock: Monotonic clock, injectable for tests
        """
        self.config = config or HealthConfig()
        self._clock = clock
        self._health: Dict[str, ProviderHealth] = {}
        self._lock = threading.RLock()
        self._monitor_task: Optional[asyncio.Task] = None

    def register(self, provider_id: str) -> ProviderHealth:
        """Register a provider; unknown providers start healthy."""
        with self._lock:
            if provider_id not in self._health:
                self._health[provider_id] = ProviderHealth(provider_id=provider_id)
                PROVIDER_HEALTHY.labels(provider=provider_id).set(1)
            return self._health[provider_id]

    def register_many(self, provider_ids: Iterable[str]) -> None:
        for provider_id in provider_ids:
            self.register(provider_id)

    def is_healthy(self, provider_id: str) -> bool:
        with self._lock:
            return self.register(provider_id).is_healthy

    def allow_request(self, provider_id: str) -> bool:
        """Check if a call to this provider should be dispatched.

        Healthy providers are always allowed. Unhealthy providers are
        allowed exactly one trial call once probe_interval_seconds has
        elapsed since they went unhealthy or since their last probe.

        Returns:
            True if the call should proceed, False if it should be skipped
        """
        with self._lock:
            health = self.register(provider_id)
            if health.is_healthy:
                return True

            interval = self.config.probe_interval_seconds
            if interval is None or health.probe_in_flight:
                return False

            now = self._clock()
            since = max(
                health.unhealthy_since or 0.0,
                health.last_probe_at or 0.0,
            )
            if now - since < interval:
                return False

            health.probe_in_flight = True
            health.last_probe_at = now
            logger.info("health_probe_allowed", provider=provider_id)
            return True

    def release_probe(self, provider_id: str, used: bool = False) -> None:
        """End a granted probe that produced no recorded outcome.

        Args:
            provider_id: Provider the probe was granted for
            used: True if the call was already sent (then cancelled). The
                probe time is kept so the next probe still waits a full
                probe interval. False hands the slot back untouched.
        """
        with self._lock:
            health = self._health.get(provider_id)
            if health is not None and health.probe_in_flight:
                health.probe_in_flight = False
                if not used:
                    health.last_probe_at = None

    def record_success(self, provider_id: str, latency_ms: Optional[float] = None) -> None:
        """Record a successful call."""
        with self._lock:
            health = self.register(provider_id)
            health.total_requests += 1
            health.consecutive_failures = 0
            health.probe_in_flight = False

            if latency_ms is not None:
                alpha = self.config.latency_smoothing
                health.last_latency_ms = latency_ms
                health.average_latency_ms = (
                    health.average_latency_ms * (1 - alpha) + latency_ms * alpha
                )

            health.success_rate = self._success_rate(health)
            health.last_checked_at = datetime.utcnow()

            if not health.is_healthy:
                health.is_healthy = True
                health.unhealthy_since = None
                health.last_probe_at = None
                PROVIDER_HEALTHY.labels(provider=provider_id).set(1)
                logger.info("provider_recovered", provider=provider_id)

    def record_failure(self, provider_id: str, error: object = None) -> None:
        """Record a failed call (timeout or upstream error)."""
        with self._lock:
            health = self.register(provider_id)
            health.total_requests += 1
            health.error_count += 1
            health.consecutive_failures += 1
            health.probe_in_flight = False
            health.last_error = str(error) if error is not None else None
            health.success_rate = self._success_rate(health)
            health.last_checked_at = datetime.utcnow()

            logger.warning(
                "provider_failure_recorded",
                provider=provider_id,
                consecutive_failures=health.consecutive_failures,
                error=health.last_error,
            )

            if (
                health.is_healthy
                and health.consecutive_failures >= self.config.failover_threshold
            ):
                health.is_healthy = False
                health.unhealthy_since = self._clock()
                PROVIDER_HEALTHY.labels(provider=provider_id).set(0)
                logger.error(
                    "provider_marked_unhealthy",
                    provider=provider_id,
                    consecutive_failures=health.consecutive_failures,
                )

    @staticmethod
    def _success_rate(health: ProviderHealth) -> float:
        if health.total_requests == 0:
            return 1.0
        return (health.total_requests - health.error_count) / health.total_requests

    def get_health(self, provider_id: str) -> Optional[ProviderHealth]:
        """Snapshot of one provider's health, or None if never seen."""
        with self._lock:
            health = self._health.get(provider_id)
            return health.model_copy() if health else None

    def get_all_health(self) -> Dict[str, ProviderHealth]:
        with self._lock:
            return {pid: h.model_copy() for pid, h in self._health.items()}

    def healthy_ids(self) -> List[str]:
        with self._lock:
            return sorted(pid for pid, h in self._health.items() if h.is_healthy)

    def reset(self, provider_id: Optional[str] = None) -> None:
        """Reset one provider (or all) to a fresh healthy record."""
        with self._lock:
            targets = [provider_id] if provider_id else list(self._health)
            for pid in targets:
                self._health[pid] = ProviderHealth(provider_id=pid)
                PROVIDER_HEALTHY.labels(provider=pid).set(1)
                logger.info("provider_health_reset", provider=pid)

    def get_monitoring_stats(self) -> MonitoringStats:
        """Aggregate health statistics across all providers."""
        with self._lock:
            records = list(self._health.values())

            total_requests = sum(h.total_requests for h in records)
            successful = sum(h.total_requests - h.error_count for h in records)
            weighted_latency = sum(
                h.average_latency_ms * h.total_requests for h in records
            )
            healthy = sum(1 for h in records if h.is_healthy)

            return MonitoringStats(
                total_providers=len(records),
                healthy_providers=healthy,
                unhealthy_providers=len(records) - healthy,
                average_latency_ms=(
                    weighted_latency / total_requests if total_requests else 0.0
                ),
                overall_success_rate=(
                    successful / total_requests if total_requests else 1.0
                ),
            )

    # ==================== Health Sweeps ====================

    async def check_provider(self, provider_id: str, provider: SearchProvider) -> bool:
        """Issue one lightweight query against a provider and record it."""
        start = time.perf_counter()
        try:
            await asyncio.wait_for(
                provider.execute(self.config.check_query, {"max_results": 1}),
                timeout=self.config.check_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self.record_failure(provider_id, "health check timed out")
            return False
        except Exception as e:
            self.record_failure(provider_id, e)
            return False

        self.record_success(provider_id, (time.perf_counter() - start) * 1000)
        return True

    async def check_all(self, providers: Mapping[str, SearchProvider]) -> Dict[str, bool]:
        """Health-check every provider concurrently.

        Returns:
            Mapping of provider id to check outcome
        """
        if not providers:
            return {}

        logger.debug("health_sweep_started", providers=len(providers))
        ids = list(providers)
        outcomes = await asyncio.gather(
            *(self.check_provider(pid, providers[pid]) for pid in ids)
        )
        results = dict(zip(ids, outcomes))

        logger.info(
            "health_sweep_complete",
            checked=len(results),
            healthy=sum(1 for ok in results.values() if ok),
        )
        return results

    def start_monitoring(
        self, providers: Mapping[str, SearchProvider], interval_seconds: float
    ) -> asyncio.Task:
        """Run check_all every interval_seconds on the running loop."""
        if self._monitor_task is not None and not self._monitor_task.done():
            return self._monitor_task

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                try:
                    await self.check_all(providers)
                except Exception as e:
                    logger.error("health_sweep_error", error=str(e), exc_info=True)

        self._monitor_task = asyncio.create_task(_loop())
        logger.info("health_monitoring_started", interval_seconds=interval_seconds)
        return self._monitor_task

    async def stop_monitoring(self) -> None:
        task, self._monitor_task = self._monitor_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("health_monitoring_stopped")
