"""
TrackCache - per-tracker memo of the last feed fetch.

This is a pure data module with no HA or network dependencies. All methods are
synchronous and run on the event loop, so each call is atomic with respect to other
coroutines; rollover replaces the whole entry mapping in a single assignment.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable

from .const import TRACKS_INTERVAL
from .models import CacheEntry, Tracker, TrackPoint

_LOGGER = logging.getLogger(__name__)


class TrackCache:
    """
    Cache of track points keyed by tracker name.

    An entry is reusable only for the same day-window and while younger than the
    refresh interval. Crossing a local calendar day empties the cache.
    """

    def __init__(self, refresh_interval: timedelta = timedelta(seconds=TRACKS_INTERVAL)) -> None:
        self._refresh_interval = refresh_interval
        self._entries: dict[str, CacheEntry] = {}
        # Local calendar day the cache was built on (None until the first rollover check)
        self._built_on: date | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tracker_name: str) -> bool:
        return tracker_name in self._entries

    @property
    def refresh_interval(self) -> timedelta:
        return self._refresh_interval

    @property
    def built_on(self) -> date | None:
        return self._built_on

    def get(self, tracker_name: str) -> CacheEntry | None:
        """Return the raw entry regardless of freshness."""
        return self._entries.get(tracker_name)

    def lookup(self, tracker_name: str, days: int, now: datetime) -> tuple[TrackPoint, ...] | None:
        """Return cached points on a hit, or None when missing, stale or for another window."""
        entry = self._entries.get(tracker_name)
        if entry is None or entry.days != days:
            return None
        if now - entry.fetched_at >= self._refresh_interval:
            return None
        return entry.points

    def store(self, tracker_name: str, days: int, points: Iterable[TrackPoint], fetched_at: datetime) -> None:
        """Record a fetch result, replacing any previous entry."""
        self._entries[tracker_name] = CacheEntry(fetched_at=fetched_at, days=days, points=tuple(points))

    def clear(self) -> None:
        self._entries = {}

    def rollover_check(self, now: datetime) -> bool:
        """
        Empty the cache when now falls on a later local day than the cache was built on.

        Returns True when a rollover happened.
        """
        today = now.date()
        if self._built_on is not None and today > self._built_on:
            _LOGGER.debug("Calendar day changed (%s -> %s), clearing track cache", self._built_on, today)
            self._entries = {}
            self._built_on = today
            return True
        if self._built_on is None:
            self._built_on = today
        return False

    def partition(
        self, trackers: Iterable[Tracker], days: int, now: datetime
    ) -> tuple[list[TrackPoint], list[Tracker]]:
        """
        Split trackers into cached points to reuse and trackers that need a fetch.

        Runs the rollover check first so that a batch never reuses yesterday's data.
        """
        self.rollover_check(now)
        reuse: list[TrackPoint] = []
        to_fetch: list[Tracker] = []
        for tracker in trackers:
            cached = self.lookup(tracker.name, days, now)
            if cached is None:
                to_fetch.append(tracker)
            else:
                reuse.extend(cached)
        return reuse, to_fetch
