"""
Domain models for the Cloudbase tracks integration.

This module contains pure data classes representing trackers, track points and map
annotations. These classes have no dependencies on HTTP, feed parsing, or Home Assistant
internals.
"""
from __future__ import annotations

import dataclasses
import enum
from datetime import date, datetime
from typing import Callable

from .const import FEED_URL_PREFIX

# Returns the current instant as a timezone-aware datetime in local time.
Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Default clock: the current time in the host's local timezone."""
    return datetime.now().astimezone()


def feed_url_for(share_url: str) -> str:
    """Derive the feed URL from the trailing path segment of a share URL."""
    share_id = share_url.rstrip("/").split("/")[-1] if share_url else ""
    return f"{FEED_URL_PREFIX}{share_id}"


@dataclasses.dataclass(frozen=True)
class Tracker:
    """A person carrying a satellite tracking device, identified by name."""

    name: str
    share_url: str
    inactive: bool = False

    @property
    def feed_url(self) -> str:
        # Always recomputed so it can never drift from share_url
        return feed_url_for(self.share_url)

    @classmethod
    def from_share_url(cls, name: str, share_url: str, inactive: bool = False) -> "Tracker":
        return cls(name=name.strip(), share_url=share_url.strip(), inactive=inactive)


@dataclasses.dataclass(frozen=True)
class TrackPoint:
    """Single position report parsed from a tracker feed. Never mutated after creation."""

    tracker_name: str
    display_name: str
    timestamp: datetime          # UTC
    latitude: float
    longitude: float
    speed: float = 0.0           # mph, whole units
    altitude: float = 0.0        # feet
    heading: float = 0.0         # degrees
    emergency: bool = False
    message: str | None = None

    @property
    def has_message(self) -> bool:
        return bool(self.message and self.message.strip())

    @property
    def key(self) -> tuple[str, datetime]:
        """Identity used to collapse duplicate reports of the same instant."""
        return self.tracker_name, self.timestamp

    def as_dict(self) -> dict:
        return {
            "tracker_name": self.tracker_name,
            "display_name": self.display_name,
            "timestamp": self.timestamp.isoformat(),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "speed": self.speed,
            "altitude": self.altitude,
            "heading": self.heading,
            "emergency": self.emergency,
            "message": self.message,
        }


@dataclasses.dataclass(frozen=True)
class CacheEntry:
    """Result of the last feed fetch for one tracker. An empty point tuple is a cached fact."""

    fetched_at: datetime
    days: int
    points: tuple[TrackPoint, ...] = ()


class AnnotationCategory(str, enum.Enum):
    """Kinds of map markers fed to the clusterer."""

    TRACKER = "tracker"
    STATION = "station"
    SITE = "site"
    CAMERA = "camera"


@dataclasses.dataclass(frozen=True)
class AnnotatedItem:
    """Geo-tagged marker. Only some categories take part in proximity clustering."""

    item_id: str
    name: str
    latitude: float
    longitude: float
    category: AnnotationCategory = AnnotationCategory.STATION
    source: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "AnnotatedItem":
        return cls(
            item_id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            category=AnnotationCategory(data.get("category", AnnotationCategory.STATION.value)),
            source=str(data.get("source", "")),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.item_id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "category": self.category.value,
            "source": self.source,
        }


@dataclasses.dataclass(frozen=True)
class ViewportSpan:
    """Visible map extent in degrees."""

    lat_delta: float
    lon_delta: float


@dataclasses.dataclass(frozen=True)
class TrackSegment:
    """Time-ordered points of one display name on one local calendar day."""

    display_name: str
    day: date
    points: tuple[TrackPoint, ...]

    @property
    def first(self) -> TrackPoint:
        return self.points[0]

    @property
    def last(self) -> TrackPoint:
        return self.points[-1]
