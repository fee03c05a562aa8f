"""FIFO concurrency limiter for provider calls.

Bounds the number of provider calls in flight across a fan-out round.
A released permit is handed directly to the oldest waiter, so waiters
are served in arrival order and a burst of new arrivals cannot starve
tasks that queued earlier.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Deque

import structlog

from fanout.observability.metrics import INFLIGHT_REQUESTS

logger = structlog.get_logger()

Release = Callable[[], None]


class ConcurrencyLimiter:
    """Counting semaphore with FIFO hand-off and idempotent release.

    Invariant: in_flight <= max_concurrent at every instant.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")

        self.max_concurrent = max_concurrent
        self._available = max_concurrent
        self._waiters: Deque[asyncio.Future] = deque()

        # Instrumentation
        self.in_flight = 0
        self.peak_in_flight = 0
        self.total_acquired = 0
        self.total_released = 0

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    @property
    def available(self) -> int:
        return self._available

    async def acquire(self) -> Release:
        """Wait for a permit.

        Returns:
            Release callback. Calling it more than once is a no-op.

        Raises:
            asyncio.CancelledError: If cancelled while queued. A cancelled
                waiter never holds a permit.
        """
        if self._available > 0 and not self._waiters:
            self._available -= 1
            return self._on_acquired()

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Granted just before cancellation; pass it on
                self._hand_off()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

        return self._on_acquired()

    def _on_acquired(self) -> Release:
        self.in_flight += 1
        self.total_acquired += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        INFLIGHT_REQUESTS.inc()

        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            self.in_flight -= 1
            self.total_released += 1
            INFLIGHT_REQUESTS.dec()
            self._hand_off()

        return release

    def _hand_off(self) -> None:
        """Give a freed permit to the oldest live waiter, or to the pool."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._available += 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a permit for the duration of the block."""
        release = await self.acquire()
        try:
            yield
        finally:
            release()

    def get_stats(self) -> dict:
        return {
            "max_concurrent": self.max_concurrent,
            "in_flight": self.in_flight,
            "peak_in_flight": self.peak_in_flight,
            "available": self._available,
            "waiting": self.waiting,
            "total_acquired": self.total_acquired,
            "total_released": self.total_released,
        }
