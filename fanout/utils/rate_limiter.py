import threading
import time
from typing import Callable, Dict, Iterable, Optional

import structlog

from fanout.models.rate_limit import WINDOW_SECONDS, RateWindow
from fanout.models.source import ProviderDescriptor

logger = structlog.get_logger()


class RateLimiter:
    """Per-provider request budget over one-minute windows.

    Windows reset lazily: the first observation after `window_reset_at`
    starts a fresh window. A provider whose budget is exhausted is skipped
    for the round, never queued.
    """

    def __init__(
        self,
        providers: Optional[Iterable[ProviderDescriptor]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._limits: Dict[str, int] = {}
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.RLock()

        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ProviderDescriptor) -> None:
        with self._lock:
            self._limits[provider.id] = provider.rate_limit
            self._windows.pop(provider.id, None)

    def _current_window(self, provider_id: str) -> Optional[RateWindow]:
        """Return the live window, resetting it if expired. Caller holds lock."""
        limit = self._limits.get(provider_id)
        if limit is None:
            return None

        now = self._clock()
        window = self._windows.get(provider_id)
        if window is None or window.is_expired(now):
            window = RateWindow(
                provider_id=provider_id,
                limit=limit,
                request_count=0,
                window_reset_at=now + WINDOW_SECONDS,
            )
            self._windows[provider_id] = window
        return window

    def try_acquire(self, provider_id: str) -> bool:
        """Check whether a call may be dispatched now. Does not count it."""
        with self._lock:
            window = self._current_window(provider_id)
            if window is None:
                return True
            return window.request_count < window.limit

    def record_usage(self, provider_id: str) -> None:
        """Count one dispatched call against the current window."""
        with self._lock:
            window = self._current_window(provider_id)
            if window is None:
                return
            window.request_count += 1

            if window.request_count > window.limit:  # pragma: no cover
                logger.warning(
                    "rate_limit_overrun",
                    provider=provider_id,
                    request_count=window.request_count,
                    limit=window.limit,
                )

    def acquire(self, provider_id: str) -> bool:
        """Atomically check and count one call.

        Used at the dispatch point so concurrent rounds touching the same
        provider cannot push the window past its limit.
        """
        with self._lock:
            if not self.try_acquire(provider_id):
                logger.debug("rate_limit_exhausted", provider=provider_id)
                return False
            self.record_usage(provider_id)
            return True

    def remaining(self, provider_id: str) -> Optional[int]:
        """Calls left in the current window, or None if unlimited."""
        with self._lock:
            window = self._current_window(provider_id)
            return window.remaining if window else None

    def get_window(self, provider_id: str) -> Optional[RateWindow]:
        with self._lock:
            window = self._current_window(provider_id)
            return window.model_copy() if window else None

    def reset(self, provider_id: Optional[str] = None) -> None:
        """Drop window state for one provider, or for all."""
        with self._lock:
            if provider_id is None:
                self._windows.clear()
            else:
                self._windows.pop(provider_id, None)
