"""FIFO counting semaphore bounding in-flight step executions."""

import asyncio
from collections import deque


class ConcurrencyLimiter:
    """
    Counting semaphore with strict FIFO wake-up order.

    release() hands the permit straight to the oldest waiter, so a newcomer
    calling acquire() can never overtake a task that is already queued.
    """

    def __init__(self, permits: int):
        if permits < 1:
            raise ValueError("permits must be at least 1")
        self._permits = permits
        self._available = permits
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def permits(self) -> int:
        return self._permits

    @property
    def available(self) -> int:
        return self._available

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    @property
    def in_use(self) -> int:
        return self._permits - self._available

    async def acquire(self) -> None:
        """Wait until a permit is granted."""
        if self._available > 0 and not self.waiting:
            self._available -= 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Permit was handed over before cancellation landed
                self.release()
            else:
                self._remove(waiter)
            raise

    def release(self) -> None:
        """Return a permit, waking the oldest waiter if any."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

        if self._available >= self._permits:
            raise ValueError("ConcurrencyLimiter released more times than acquired")
        self._available += 1

    def _remove(self, waiter: asyncio.Future) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
