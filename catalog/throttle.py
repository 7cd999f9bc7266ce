"""Courtesy throttle for outbound calls to a single upstream."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger("throttle")

# Configuration
MIN_API_INTERVAL_SECONDS = 1.0  # Minimum spacing between upstream calls


class RequestThrottle:
    """
    Serialized admission gate spacing calls by at least min_interval.

    Grants are computed one at a time under a single asyncio.Lock, whose
    waiters are woken in FIFO order, so grants follow request order and the
    grant for call N+1 always sees the last_call_at written by call N.

    A caller cancelled while waiting leaves the state untouched. A grant,
    once given, is spent: abandoning the call afterwards does not hand the
    slot back.
    """

    def __init__(
        self,
        min_interval: float = MIN_API_INTERVAL_SECONDS,
        name: str = "upstream",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.min_interval = min_interval
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call_at: float = float("-inf")
        self._grants = 0
        self._pending = 0
        self._total_wait = 0.0

    async def acquire(self) -> float:
        """
        Wait until the next upstream call may be issued.

        Returns:
            The grant timestamp (on the throttle's clock)
        """
        self._pending += 1
        try:
            async with self._lock:
                return await self._grant()
        finally:
            self._pending -= 1

    async def _grant(self) -> float:
        started = self._clock()
        while True:
            wait = self._last_call_at + self.min_interval - self._clock()
            if wait <= 0:
                break
            logger.debug(f"[{self.name}] Waiting {wait * 1000:.0f}ms before next API call")
            await self._sleep(wait)

        granted_at = self._clock()
        self._last_call_at = granted_at
        self._grants += 1
        self._total_wait += granted_at - started
        return granted_at

    async def __aenter__(self) -> float:
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    @property
    def last_call_at(self) -> float:
        """Timestamp of the most recent grant."""
        return self._last_call_at

    def get_stats(self) -> Dict[str, Any]:
        """Get throttle statistics."""
        return {
            "name": self.name,
            "min_interval_seconds": self.min_interval,
            "grants": self._grants,
            "total_wait_seconds": round(self._total_wait, 3),
            "pending": self._pending,
        }
