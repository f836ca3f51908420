"""
Low-level utility functions for the Cloudbase tracks coordinator.

Responsibilities:
- Compute the day-window cutoff shared by feed queries and point pruning.
- Collapse, prune and group track points for entities and map consumers.

No HA imports - these functions are pure data primitives.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from itertools import groupby
from typing import Iterable

from .models import TrackPoint, TrackSegment


def day_window_start(days: int, now: datetime) -> datetime:
    """
    Return the oldest instant covered by a day-window, in now's timezone.

    days=1 covers today, days=2 today and yesterday, and so on. The window opens at
    00:01 local time on its first day.
    """
    base = now.replace(hour=0, minute=1, second=0, microsecond=0)
    return base - timedelta(days=max(int(days), 1) - 1)


def dedupe_points(points: Iterable[TrackPoint]) -> list[TrackPoint]:
    """Drop repeated reports of the same tracker and instant, keeping the first."""
    seen: set[tuple[str, datetime]] = set()
    unique = []
    for point in points:
        if point.key in seen:
            continue
        seen.add(point.key)
        unique.append(point)
    return unique


def filter_points_since(points: Iterable[TrackPoint], days: int, now: datetime) -> list[TrackPoint]:
    """Keep only points inside the day-window ending at now."""
    cutoff = day_window_start(days, now)
    return [p for p in points if p.timestamp >= cutoff]


def latest_points(points: Iterable[TrackPoint]) -> dict[str, TrackPoint]:
    """Map each tracker name to its newest point."""
    latest: dict[str, TrackPoint] = {}
    for point in points:
        current = latest.get(point.tracker_name)
        if current is None or point.timestamp >= current.timestamp:
            latest[point.tracker_name] = point
    return latest


def group_track_segments(points: Iterable[TrackPoint], tz=None) -> list[TrackSegment]:
    """
    Group points into per-name, per-local-day segments ordered by time.

    tz selects the calendar used to split days; the host's local timezone by default.
    Segments are returned ordered by (display name, day).
    """
    def segment_key(point: TrackPoint):
        return point.display_name, point.timestamp.astimezone(tz).date()

    ordered = sorted(points, key=lambda p: (segment_key(p), p.timestamp))
    return [
        TrackSegment(display_name=name, day=day, points=tuple(group))
        for (name, day), group in groupby(ordered, key=segment_key)
    ]


def visible_nodes(segment: TrackSegment, show_all: bool = False) -> list[TrackPoint]:
    """
    Points of a segment worth a map marker.

    Unless show_all is set, intermediate nodes are hidden; the first and last nodes,
    emergencies and nodes carrying a message are always shown.
    """
    if show_all:
        return list(segment.points)
    last_index = len(segment.points) - 1
    return [
        point for index, point in enumerate(segment.points)
        if index in (0, last_index) or point.emergency or point.has_message
    ]
