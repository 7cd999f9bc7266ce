"""
Request coalescing to prevent duplicate upstream API calls.

When multiple concurrent requests miss the cache for the same key, only one
upstream fetch runs and all requesters share its result.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger("cache.coalescer")


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one upstream call.

    Pattern:
    - First request for a key starts the fetch as a task
    - Subsequent requests for the same key await that task
    - Each caller awaits through asyncio.shield, so a caller that gets
      cancelled only abandons its own wait; the shared fetch keeps running
      for everyone else

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="styles:catalog",
            fetch_fn=lambda: fetch_styles(),
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._waiters: Dict[str, int] = {}

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Coroutine function to call if we need to fetch

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            Exception: Any error from fetch_fn is propagated to every caller
        """
        task = self._in_flight.get(cache_key)
        if task is not None:
            self._waiters[cache_key] = self._waiters.get(cache_key, 0) + 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {self._waiters[cache_key]})"
            )
        else:
            logger.debug(f"Initiating fetch for {cache_key}")
            task = asyncio.ensure_future(fetch_fn())
            self._in_flight[cache_key] = task
            self._waiters[cache_key] = 0
            task.add_done_callback(lambda t, key=cache_key: self._finish(key, t))

        return await asyncio.shield(task)

    def _finish(self, cache_key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(cache_key) is task:
            del self._in_flight[cache_key]
            self._waiters.pop(cache_key, None)
        if not task.cancelled() and task.exception() is not None:
            # Retrieved here so an error nobody is still awaiting is not reported twice
            logger.warning(f"Fetch failed for {cache_key}: {task.exception()}")

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }
