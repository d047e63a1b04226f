"""Admission control for bounded-parallel async workloads."""

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Runs async units of work with at most ``max_concurrency`` in flight.

    Units that cannot start immediately wait in FIFO order and start as soon
    as any running unit finishes, whether it succeeded or failed. The limiter
    only decides when a unit may start: results are returned and exceptions
    re-raised to the caller of execute() unchanged.

    One instance bounds all concurrent execute() calls made on it, so share
    the instance across every task of the same workload.
    """

    def __init__(self, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._running = 0
        self._waiting = 0

    @property
    def running(self) -> int:
        """Number of units currently executing."""
        return self._running

    @property
    def waiting(self) -> int:
        """Number of units queued for a free slot."""
        return self._waiting

    async def execute(self, unit: Callable[[], Awaitable[T]]) -> T:
        """Run ``unit`` once a slot is free and return its result.

        Args:
            unit (Callable[[], Awaitable[T]]): Zero-argument coroutine function.

        Returns:
            T: Whatever the unit returns.

        Raises:
            Exception: Any exception raised by the unit.
        """
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1

        self._running += 1
        try:
            return await unit()
        finally:
            self._running -= 1
            self._semaphore.release()
