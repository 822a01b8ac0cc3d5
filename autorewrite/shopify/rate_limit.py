import asyncio
import time


class RateLimiter:
    """Process-wide minimum-interval gate for outbound Shopify calls.

    Every caller waits out whatever remains of `min_interval` since the
    previous call before proceeding. Calls are serialized by a lock so the
    spacing holds even when several coroutines share one limiter.
    """

    def __init__(self, min_interval: float = 0.6, clock=time.monotonic, sleep=asyncio.sleep):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last_call_at: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last_call_at is not None:
                remaining = self.min_interval - (self._clock() - self._last_call_at)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last_call_at = self._clock()
