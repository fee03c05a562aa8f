"""Unit tests for TaskExecutor gating and outcome handling."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from fakes import FailingProvider, StaticProvider
from fanout.models.health import HealthConfig
from fanout.models.search import ErrorKind, ResponseShape, SearchTask
from fanout.services.executor import TaskExecutor
from fanout.services.health_monitor import HealthMonitor
from fanout.utils.rate_limiter import RateLimiter
from fanout.utils.semaphore import ConcurrencyLimiter


@pytest.fixture
def arxiv(descriptor_factory):
    return descriptor_factory("arxiv", rate_limit=2)


@pytest.fixture
def health():
    return HealthMonitor(HealthConfig(failover_threshold=2))


@pytest.fixture
def rate_limiter(arxiv):
    return RateLimiter([arxiv])


def _executor(provider, health, rate_limiter, max_concurrent=2):
    return TaskExecutor(
        {provider.provider_id: provider},
        health,
        rate_limiter,
        ConcurrencyLimiter(max_concurrent),
    )


class TestRunTask:
    """Tests for single task execution."""

    @pytest.mark.asyncio
    async def test_success_normalizes_and_records(
        self, arxiv, health, rate_limiter, items_factory
    ):
        """Test a successful call yields items and a health success."""
        provider = StaticProvider("arxiv", response={"results": items_factory("arxiv", 3)})
        executor = _executor(provider, health, rate_limiter)

        result = await executor.run_task(SearchTask(provider=arxiv, query="q"))

        assert result.success
        assert result.item_count == 3
        assert result.shape == ResponseShape.RESULTS
        assert result.latency_ms >= 0
        assert health.get_health("arxiv").total_requests == 1
        assert rate_limiter.remaining("arxiv") == 1

    @pytest.mark.asyncio
    async def test_unhealthy_provider_skipped_without_call(
        self, arxiv, health, rate_limiter
    ):
        """Test unhealthy providers are never called or counted."""
        provider = StaticProvider("arxiv")
        health.record_failure("arxiv")
        health.record_failure("arxiv")
        executor = _executor(provider, health, rate_limiter)

        result = await executor.run_task(SearchTask(provider=arxiv, query="q"))

        assert result.error.kind == ErrorKind.UNHEALTHY
        assert provider.call_count == 0
        assert rate_limiter.remaining("arxiv") == 2
        assert health.get_health("arxiv").total_requests == 2

    @pytest.mark.asyncio
    async def test_rate_limited_provider_skipped(self, arxiv, health, rate_limiter):
        """Test exhausted budgets skip the call without a health penalty."""
        provider = StaticProvider("arxiv")
        rate_limiter.acquire("arxiv")
        rate_limiter.acquire("arxiv")
        executor = _executor(provider, health, rate_limiter)

        result = await executor.run_task(SearchTask(provider=arxiv, query="q"))

        assert result.error.kind == ErrorKind.RATE_LIMITED
        assert provider.call_count == 0
        assert health.get_health("arxiv").error_count == 0

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, arxiv, health, rate_limiter):
        """Test slow providers time out and release their permit."""
        provider = StaticProvider("arxiv", delay_seconds=1.0)
        executor = _executor(provider, health, rate_limiter)

        result = await executor.run_task(
            SearchTask(provider=arxiv, query="q", timeout_seconds=0.05)
        )

        assert result.error.kind == ErrorKind.TIMEOUT
        assert health.get_health("arxiv").consecutive_failures == 1
        assert executor.limiter.in_flight == 0

    @pytest.mark.asyncio
    async def test_upstream_error_captured(self, arxiv, health, rate_limiter):
        """Test provider exceptions become upstream errors."""
        executor = _executor(FailingProvider("arxiv", "HTTP 503"), health, rate_limiter)

        result = await executor.run_task(SearchTask(provider=arxiv, query="q"))

        assert not result.success
        assert result.error.kind == ErrorKind.UPSTREAM
        assert "503" in result.error.message
        assert health.get_health("arxiv").last_error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_malformed_response_is_empty_success(
        self, arxiv, health, rate_limiter
    ):
        """Test unrecognised shapes are a zero-result success."""
        provider = StaticProvider("arxiv", response={"unexpected": True})
        executor = _executor(provider, health, rate_limiter)

        result = await executor.run_task(SearchTask(provider=arxiv, query="q"))

        assert result.success
        assert result.items == []
        assert result.shape == ResponseShape.UNRECOGNIZED
        assert health.is_healthy("arxiv")

    @pytest.mark.asyncio
    async def test_params_passed_to_provider(self, arxiv, health, rate_limiter):
        """Test query and params reach the provider unchanged."""
        provider = Mock()
        provider.provider_id = "arxiv"
        provider.execute = AsyncMock(return_value=[])
        executor = _executor(provider, health, rate_limiter)

        await executor.run_task(
            SearchTask(provider=arxiv, query="q", params={"max_results": 7})
        )

        provider.execute.assert_awaited_once_with("q", {"max_results": 7})

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_releases_permit(
        self, arxiv, health, rate_limiter
    ):
        """Test cancelling a running task frees its permit without a health update."""
        provider = StaticProvider("arxiv", delay_seconds=5.0)
        executor = _executor(provider, health, rate_limiter)
        search_task = SearchTask(provider=arxiv, query="q")

        running = asyncio.create_task(executor.run_task(search_task))
        await asyncio.sleep(0.01)
        assert search_task.dispatched
        running.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running

        assert executor.limiter.in_flight == 0
        assert health.get_health("arxiv").total_requests == 0

    @pytest.mark.asyncio
    async def test_concurrent_tasks_respect_rate_window(
        self, arxiv, health, rate_limiter
    ):
        """Test racing tasks for one provider cannot exceed its window."""
        provider = StaticProvider("arxiv", delay_seconds=0.01)
        executor = _executor(provider, health, rate_limiter, max_concurrent=1)

        results = await asyncio.gather(
            *(executor.run_task(SearchTask(provider=arxiv, query="q")) for _ in range(5))
        )

        assert sum(1 for r in results if r.success) == 2
        assert provider.call_count == 2
        assert rate_limiter.get_window("arxiv").request_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_trial_call_keeps_interval(
        self, arxiv, rate_limiter, fake_clock
    ):
        """Test a half-open call cancelled after dispatch is not granted again at once."""
        health = HealthMonitor(
            HealthConfig(failover_threshold=1, probe_interval_seconds=60.0),
            clock=fake_clock,
        )
        health.record_failure("arxiv")
        fake_clock.advance(61.0)
        executor = _executor(StaticProvider("arxiv", delay_seconds=1.0), health, rate_limiter)
        search_task = SearchTask(provider=arxiv, query="q")

        running = asyncio.create_task(executor.run_task(search_task))
        await asyncio.sleep(0.01)
        assert search_task.dispatched
        running.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running

        assert not health.get_health("arxiv").probe_in_flight
        assert not health.allow_request("arxiv")

    @pytest.mark.asyncio
    async def test_round_limiter_cannot_widen_shared_limit(
        self, descriptor_factory, health
    ):
        """Test a wider per-round limiter still obeys the shared one."""
        sources = [descriptor_factory(f"p{i}") for i in range(6)]
        providers = {s.id: StaticProvider(s.id, delay_seconds=0.02) for s in sources}
        shared = ConcurrencyLimiter(2)
        executor = TaskExecutor(providers, health, RateLimiter(sources), shared)

        results = await asyncio.gather(
            *(
                executor.run_task(SearchTask(provider=s, query="q"), ConcurrencyLimiter(8))
                for s in sources
            )
        )

        assert all(r.success for r in results)
        assert shared.peak_in_flight == 2
