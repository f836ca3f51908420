"""
DataUpdateCoordinator for the Cloudbase tracks integration.

Responsibilities:
- Own the feed fetcher, track cache and fetch orchestrator for the lifetime of a config entry.
- Drive two update tiers at different frequencies:
    Tier 1 - tracker list  every TRACKERS_INTERVAL seconds
    Tier 2 - track points  every TRACKS_INTERVAL seconds
- Delegate bounded concurrent feed fetching to TrackFetchOrchestrator (tracks.py).
- Delegate pruning and grouping of points to coordinator_utils.py.
- Push CoordinatorData snapshots to entities as soon as each tier completes.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from datetime import timedelta

from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .api.feeds import FeedFetcher
from .api.trackers import fetch_trackers
from .const import (
    DOMAIN,
    VERSION,
    TRACKERS_INTERVAL,
    TRACKS_INTERVAL,
    DEFAULT_TRACK_DAYS,
    CONF_SPREADSHEET_ID,
    CONF_API_KEY,
    CONF_TRACK_DAYS,
    CONF_INCLUDE_INACTIVE,
    CONF_TRACKER_NAMES,
)
from .coordinator_data import CoordinatorData
from .coordinator_utils import filter_points_since, group_track_segments, latest_points
from .models import Tracker
from .track_cache import TrackCache
from .tracks import TrackFetchOrchestrator

__all__ = ["CoordinatorData", "CloudbaseTracksCoordinator"]

_LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CloudbaseTracksCoordinator - main coordinator
# ---------------------------------------------------------------------------

class CloudbaseTracksCoordinator(DataUpdateCoordinator[CoordinatorData]):
    """
    Coordinator for the Cloudbase tracks integration.

    Drives two update tiers at different rates and pushes data snapshots to
    entities as soon as each tier completes.
    """

    def __init__(self, hass: HomeAssistant, entry_data: dict) -> None:
        """Initialize the coordinator from config-entry data (options already merged in)."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            # Use the fastest tier as the HA poll interval; each tier is gated
            # internally with its own timestamp.
            update_interval=timedelta(seconds=TRACKS_INTERVAL),
        )

        self._entry_data = entry_data
        self._clock = dt_util.now
        self.fetcher = FeedFetcher(clock=self._clock)
        self.orchestrator = TrackFetchOrchestrator(
            self.fetcher,
            cache=TrackCache(timedelta(seconds=TRACKS_INTERVAL)),
            clock=self._clock,
        )

        # Tier timestamps - initialized to 0 so every tier fires on first call
        self._last_trackers_fetch: float = 0.0
        self._last_tracks_fetch: float = 0.0

        # Flag to distinguish first call from subsequent ones
        self._initial_refresh_done: bool = False

        # Snapshot starts empty; entities must handle missing points until first refresh
        self.data = CoordinatorData()

    # ------------------------------------------------------------------
    # HA entry point
    # ------------------------------------------------------------------

    async def _async_update_data(self) -> CoordinatorData:
        """
        Called by HA on every update_interval tick.

        First call: runs both tiers sequentially and returns a fully populated
        snapshot (so async_config_entry_first_refresh() succeeds). Fails when the
        tracker sheet cannot be read, since nothing can be tracked without it.

        Subsequent calls: fires due tiers as independent background tasks and
        returns the current snapshot immediately; entities receive push updates
        via async_set_updated_data() as each task completes.
        """
        if not self._initial_refresh_done:
            if not await self._run_trackers_tier():
                raise UpdateFailed("Tracker sheet could not be read")
            await self._run_tracks_tier()
            self._initial_refresh_done = True
            return self.data

        now = time.monotonic()

        if now - self._last_trackers_fetch >= TRACKERS_INTERVAL:
            self.hass.async_create_task(self._run_trackers_tier())

        if now - self._last_tracks_fetch >= TRACKS_INTERVAL:
            self.hass.async_create_task(self._run_tracks_tier())

        return self.data

    # ------------------------------------------------------------------
    # Tier 1 - tracker list
    # ------------------------------------------------------------------

    async def _run_trackers_tier(self) -> bool:
        """Fetch the tracker list and push an updated snapshot. Returns False on failure."""
        self._last_trackers_fetch = time.monotonic()
        try:
            trackers = await fetch_trackers(
                self._entry_data[CONF_SPREADSHEET_ID],
                self._entry_data[CONF_API_KEY],
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Failed to fetch tracker list: %s", exc)
            return False

        new_data = dataclasses.replace(self.data, trackers=trackers)
        self.async_set_updated_data(new_data)
        return True

    # ------------------------------------------------------------------
    # Tier 2 - track points
    # ------------------------------------------------------------------

    async def _run_tracks_tier(self) -> None:
        """Fetch tracks of all selected trackers and push an updated snapshot."""
        self._last_tracks_fetch = time.monotonic()
        trackers = self.selected_trackers()
        if not trackers:
            return

        days = self.track_days
        try:
            points = await self.orchestrator.fetch_tracks(trackers, days)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Failed to fetch tracks: %s", exc)
            return

        now = self._clock()
        points = filter_points_since(points, days, now)
        new_data = dataclasses.replace(
            self.data,
            points=points,
            latest=latest_points(points),
            segments=group_track_segments(points, tz=now.tzinfo),
        )
        self.async_set_updated_data(new_data)

    # ------------------------------------------------------------------
    # Selection helpers
    # ------------------------------------------------------------------

    @property
    def track_days(self) -> int:
        return int(self._entry_data.get(CONF_TRACK_DAYS, DEFAULT_TRACK_DAYS))

    def selected_trackers(self) -> list[Tracker]:
        """
        Trackers whose feeds are fetched.

        Inactive trackers are skipped unless include_inactive is set. A non-empty
        tracker_names selection further limits the list.
        """
        include_inactive = self._entry_data.get(CONF_INCLUDE_INACTIVE, False)
        names = set(self._entry_data.get(CONF_TRACKER_NAMES) or [])
        return [
            t for t in self.data.trackers
            if (include_inactive or not t.inactive) and (not names or t.name in names)
        ]

    # ------------------------------------------------------------------
    # Entity helper - device info dict
    # ------------------------------------------------------------------

    def get_device_info(self, tracker_name: str) -> dict | None:
        """Return the HA DeviceInfo dict for the given tracker."""
        tracker = self.data.get_tracker(tracker_name)
        if tracker is None:
            return None
        return {
            "identifiers": {(DOMAIN, f"{self._entry_data['guid']}_{tracker.name}")},
            "name": tracker.name,
            "manufacturer": "Garmin",
            "model": "inReach MapShare",
            "sw_version": VERSION,
            "configuration_url": tracker.share_url,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_shutdown(self) -> None:
        """Clean up all resources owned by this coordinator."""
        await self.orchestrator.shutdown()
        self.orchestrator.cache.clear()

    @property
    def entry_data(self):
        return self._entry_data
