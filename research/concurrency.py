# research/concurrency.py
import asyncio
import time
from typing import Optional


class ConcurrencyLimiter:
    """
    Counting permit shared by every external call of one research session.

    Usage: `async with limiter: await provider_call()`. The permit is held only
    for the duration of the call itself.
    """
    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Concurrency capacity must be at least 1.")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self.in_flight = 0
        self.peak = 0

    async def __aenter__(self):
        await self._semaphore.acquire()
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.in_flight -= 1
        self._semaphore.release()
        return False


class CancellationToken:
    """Signals a research session to stop spawning new work, manually or at a deadline."""
    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = False
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled: return True
        return self.deadline is not None and time.monotonic() >= self.deadline
