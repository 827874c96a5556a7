"""
Provides an adaptive rate limiter that keeps the mirror polite towards the registry.
"""

import asyncio
import logging

log = logging.getLogger(__name__)


class AdaptiveRateLimiter:
    """
    Spaces requests evenly at a target rate that adapts to registry feedback.

    Each caller reserves the next free time slot and sleeps outside the lock,
    so waiting callers do not hold each other up. A 429 response halves the
    rate; after ``recovery_after`` seconds without one the rate creeps back up
    towards ``max_calls_per_second``.
    """

    def __init__(
        self,
        initial_calls_per_second: float = 10.0,
        max_calls_per_second: float | None = None,
        min_calls_per_second: float = 0.5,
        recovery_after: float = 300.0,
    ):
        """
        Initializes the rate limiter.

        Args:
            initial_calls_per_second: The starting rate of calls per second.
            max_calls_per_second: The ceiling for recovery. Defaults to one and a
                half times the initial rate.
            min_calls_per_second: The floor when throttled repeatedly.
            recovery_after: Seconds without a 429 before the rate grows again.
        """
        self._rate = initial_calls_per_second
        self._max_rate = max_calls_per_second or initial_calls_per_second * 1.5
        self._min_rate = min(min_calls_per_second, initial_calls_per_second)
        self._recovery_after = recovery_after
        self._next_slot = 0.0
        self._last_throttle: float | None = None
        self._lock = asyncio.Lock()
        self.throttle_count = 0

    @property
    def rate(self) -> float:
        return self._rate

    async def on_429(self) -> None:
        """Halves the request rate after the registry answered 429."""
        async with self._lock:
            self._rate = max(self._min_rate, self._rate * 0.5)
            self._last_throttle = asyncio.get_running_loop().time()
            self.throttle_count += 1
            log.warning(
                f"[yellow]Rate limited by the registry. New rate: "
                f"{self._rate:.1f} requests/s[/yellow]"
            )

    def _recover(self, now: float) -> None:
        if self._last_throttle is None or now - self._last_throttle > self._recovery_after:
            self._rate = min(self._max_rate, self._rate * 1.005)

    async def acquire(self) -> None:
        """Waits for this caller's slot under the current rate."""
        loop = asyncio.get_running_loop()
        async with self._lock:
            now = loop.time()
            self._recover(now)
            slot = max(now, self._next_slot)
            self._next_slot = slot + 1.0 / self._rate

        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)
