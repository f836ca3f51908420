"""
TrackFetchOrchestrator - fan-out/fan-in of tracker feed fetches.

Consults the TrackCache, runs the misses through a BoundedFetchPool and merges
everything into one time-ordered point list. No HA imports.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Protocol

from .coordinator_utils import dedupe_points
from .fetch_pool import BoundedFetchPool
from .kml import parse_track_feed
from .models import Clock, Tracker, TrackPoint, system_clock
from .track_cache import TrackCache
from .api.feeds import FeedError

_LOGGER = logging.getLogger(__name__)

CompletionCallback = Callable[[list[TrackPoint]], None]


class Fetcher(Protocol):
    async def fetch(self, tracker: Tracker, days: int) -> bytes | str: ...


class TrackFetchOrchestrator:
    """
    Fetches tracks for a set of trackers over a day-window.

    Batches are serialized: a second call waits for the first to finish so the cache
    always sees one writer at a time.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        cache: TrackCache | None = None,
        clock: Clock = system_clock,
        pool: BoundedFetchPool | None = None,
        parser: Callable[..., list[TrackPoint]] = parse_track_feed,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache if cache is not None else TrackCache()
        self._clock = clock
        self._pool = pool if pool is not None else BoundedFetchPool()
        self._parser = parser
        self._batch_lock = asyncio.Lock()

    @property
    def cache(self) -> TrackCache:
        return self._cache

    @property
    def pool(self) -> BoundedFetchPool:
        return self._pool

    async def fetch_tracks(
        self,
        trackers: Iterable[Tracker],
        days: int,
        on_complete: CompletionCallback | None = None,
    ) -> list[TrackPoint]:
        """
        Return all points for trackers, deduplicated and sorted by timestamp.

        A tracker whose fetch or parse fails contributes no points; the batch itself
        never fails. on_complete, when given, receives the same list before it is returned.
        """
        unique: dict[str, Tracker] = {}
        for tracker in trackers:
            unique.setdefault(tracker.name, tracker)

        async with self._batch_lock:
            reuse, to_fetch = self._cache.partition(unique.values(), days, self._clock())
            _LOGGER.debug(
                "Track batch: %s cached, %s to fetch (days=%s)", len(unique) - len(to_fetch), len(to_fetch), days
            )

            results = await self._pool.run_all([self._job(tracker, days) for tracker in to_fetch])

            fresh: list[TrackPoint] = []
            fetched_at = self._clock()
            for tracker, result in zip(to_fetch, results):
                if isinstance(result, BaseException):
                    # Job wrappers never raise; a cancelled pool future lands here
                    _LOGGER.warning("Fetch for %s did not complete: %r", tracker.name, result)
                    continue
                self._cache.store(tracker.name, days, result, fetched_at)
                fresh.extend(result)

        merged = dedupe_points([*reuse, *fresh])
        # sorted() is stable, so equal timestamps keep reuse-then-fresh order
        merged = sorted(merged, key=lambda p: p.timestamp)

        if on_complete is not None:
            on_complete(merged)
        return merged

    async def shutdown(self) -> None:
        await self._pool.shutdown()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _job(self, tracker: Tracker, days: int) -> Callable[[], Awaitable[list[TrackPoint]]]:
        """
        Build the pool job for one tracker.

        The job resolves to the parsed points. A failed fetch or parse resolves to an
        empty list, which is cached like any other result until the entry goes stale.
        """
        async def run() -> list[TrackPoint]:
            try:
                body = await self._fetcher.fetch(tracker, days)
            except FeedError as e:
                _LOGGER.warning("Track feed unavailable for %s: %s", tracker.name, e)
                return []
            except Exception as e:  # noqa: BLE001
                _LOGGER.error("Unexpected error fetching track feed for %s: %s", tracker.name, e)
                return []
            try:
                return self._parser(body, tracker.name, now=self._clock())
            except Exception as e:  # noqa: BLE001
                _LOGGER.error("Unexpected error parsing track feed for %s: %s", tracker.name, e)
                return []

        return run
