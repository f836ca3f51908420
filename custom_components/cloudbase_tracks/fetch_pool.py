"""
BoundedFetchPool - runs feed jobs with a fixed ceiling on concurrency.

This is a pure asyncio concurrency primitive with no HA or network dependencies.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from .const import MAX_CONCURRENT_FETCHES

_LOGGER = logging.getLogger(__name__)


class BoundedFetchPool:
    """
    Runs coroutine factories on a fixed set of worker tasks.

    At most max_concurrent jobs execute at any moment. Jobs beyond the ceiling wait in a
    FIFO queue and start in submission order as workers free up. Waiting jobs suspend on
    the queue; nothing polls.
    """

    def __init__(self, max_concurrent: int = MAX_CONCURRENT_FETCHES) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        # FIFO of (coro_factory, Future) pairs
        self._queue: asyncio.Queue | None = None
        self._workers: list[asyncio.Task] = []
        self._in_flight = 0
        self._peak_in_flight = 0

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        """Number of jobs executing right now."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of jobs ever observed executing together."""
        return self._peak_in_flight

    async def submit(self, coro_factory: Callable[[], Awaitable[Any]]) -> asyncio.Future:
        """
        Queue coro_factory() and return a Future resolved with its result.

        Exceptions raised by the job are set on the Future, not raised here.
        """
        self._ensure_workers()
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        await self._queue.put((coro_factory, fut))
        return fut

    async def run_all(self, coro_factories: Sequence[Callable[[], Awaitable[Any]]]) -> list:
        """
        Run every factory through the pool and wait for all of them.

        Results come back in submission order regardless of completion order. A failing
        job contributes its exception object instead of a result.
        """
        futures = [await self.submit(factory) for factory in coro_factories]
        return list(await asyncio.gather(*futures, return_exceptions=True))

    async def shutdown(self) -> None:
        """Cancel all worker tasks and drain the queue."""
        for task in self._workers:
            task.cancel()
        results = await asyncio.gather(*self._workers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                _LOGGER.debug("BoundedFetchPool worker error during shutdown: %s", result)
        if self._queue is not None:
            while not self._queue.empty():
                _, fut = self._queue.get_nowait()
                if not fut.done():
                    fut.cancel()
        self._workers.clear()
        self._queue = None
        self._in_flight = 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_workers(self) -> None:
        """Create the queue and worker tasks on first use."""
        if self._queue is None:
            self._queue = asyncio.Queue()
            self._workers = [
                asyncio.ensure_future(self._worker())
                for _ in range(self._max_concurrent)
            ]

    async def _worker(self) -> None:
        """Consume jobs from the shared queue indefinitely."""
        while True:
            coro_factory, fut = await self._queue.get()
            if fut.cancelled():
                self._queue.task_done()
                continue
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                result = await coro_factory()
                if not fut.done():
                    fut.set_result(result)
            except asyncio.CancelledError:
                if not fut.done():
                    fut.cancel()
                raise
            except Exception as exc:  # noqa: BLE001
                if not fut.done():
                    fut.set_exception(exc)
            finally:
                self._in_flight -= 1
                self._queue.task_done()
