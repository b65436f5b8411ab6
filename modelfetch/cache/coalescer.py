"""
Request coalescing to prevent duplicate remote calls.

When multiple concurrent fetches ask for the same identity, only one
remote call is made and all requesters share the result.
"""
import asyncio
import time
import logging
from typing import Dict, Callable, Any, Awaitable
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress remote request."""
    future: asyncio.Future
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent fetches for the same key share one remote call.

    Pattern:
    - First request for a key initiates the fetch
    - Subsequent requests for the same key await the same future
    - When the fetch completes, all waiters receive the same result or error
    - The key is released as soon as the fetch settles

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="entity:User:42",
            fetch_fn=lambda: remote.fetch(spec),
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self.coalesced_count = 0

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Coroutine factory to call if we need to fetch

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            Exception: Any error from fetch_fn is propagated to every caller
        """
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None:
            in_flight.waiter_count += 1
            self.coalesced_count += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count})"
            )
            # A cancelled waiter must not cancel the shared fetch
            return await asyncio.shield(in_flight.future)

        future = asyncio.get_running_loop().create_future()
        self._in_flight[cache_key] = InFlightRequest(future=future)
        logger.debug(f"Initiating fetch for {cache_key}")

        try:
            result = await fetch_fn()
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a fetch nobody joined does not log on GC
            future.exception()
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if not future.done():
                future.cancel()
            self._in_flight.pop(cache_key, None)

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
            "coalesced": self.coalesced_count,
        }
