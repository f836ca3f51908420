"""
Low-level track feed fetching from the tracker share service.

Responsible for:
- Building the feed query URL for a tracker and day-window
- Performing the GET with the browser-like header set the provider insists on
- Translating transport problems into typed FeedError subclasses
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import aiohttp
from yarl import URL

from custom_components.cloudbase_tracks.const import FEED_HEADERS, FEED_REQUEST_TIMEOUT
from custom_components.cloudbase_tracks.coordinator_utils import day_window_start
from custom_components.cloudbase_tracks.models import Clock, Tracker, system_clock

_LOGGER = logging.getLogger(__name__)


class FeedError(Exception):
    """Base class for failures fetching one tracker feed."""

    def __init__(self, tracker_name: str, message: str) -> None:
        self.tracker_name = tracker_name
        super().__init__(f"{tracker_name}: {message}")


class InvalidFeedUrlError(FeedError):
    """The tracker's feed URL cannot be requested."""


class FeedNetworkError(FeedError):
    """Timeout or connection failure while fetching the feed."""


class FeedStatusError(FeedError):
    """The feed answered with a non-2xx status."""

    def __init__(self, tracker_name: str, status: int) -> None:
        self.status = status
        super().__init__(tracker_name, f"HTTP {status}")


def build_feed_url(feed_url: str, days: int, now: datetime) -> URL:
    """
    Return the feed URL restricted to records newer than the day-window start.

    Corresponding request:
    GET https://share.garmin.com/Feed/Share/<id>?d1=2025-05-17T06:01:00Z
    """
    url = URL(feed_url)
    if not url.is_absolute() or url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"Not an absolute http(s) URL: {feed_url!r}")
    cutoff = day_window_start(days, now).astimezone(timezone.utc)
    return url.with_query({"d1": cutoff.strftime("%Y-%m-%dT%H:%M:%SZ")})


class FeedFetcher:
    """
    Fetches raw feed bodies, one GET per call and no retries.

    A shared aiohttp session can be injected (Home Assistant's client session);
    otherwise a private session is opened per request.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        clock: Clock = system_clock,
        timeout: int = FEED_REQUEST_TIMEOUT,
    ) -> None:
        self._session = session
        self._clock = clock
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self, tracker: Tracker, days: int) -> bytes:
        """Return the raw feed body for tracker, or raise a FeedError."""
        try:
            url = build_feed_url(tracker.feed_url, days, self._clock())
        except ValueError as exc:
            raise InvalidFeedUrlError(tracker.name, str(exc)) from exc

        own_session = self._session is None
        session = aiohttp.ClientSession(timeout=self._timeout) if own_session else self._session
        try:
            async with session.get(url, headers=FEED_HEADERS, timeout=self._timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise FeedStatusError(tracker.name, resp.status)
                body = await resp.read()
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise FeedNetworkError(tracker.name, "timeout") from exc
        except aiohttp.InvalidURL as exc:
            raise InvalidFeedUrlError(tracker.name, str(exc)) from exc
        except aiohttp.ClientError as exc:
            raise FeedNetworkError(tracker.name, str(exc)) from exc
        finally:
            if own_session:
                await session.close()

        _LOGGER.debug("Fetched %s bytes of feed data for %s", len(body), tracker.name)
        return body
