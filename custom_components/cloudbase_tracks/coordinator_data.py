"""
CoordinatorData - immutable snapshot of all tracker data shared with entities.

This is a pure data module with no HA or network dependencies.
"""
from __future__ import annotations

import dataclasses

from .models import Tracker, TrackPoint, TrackSegment


@dataclasses.dataclass(frozen=True)
class CoordinatorData:
    """
    Typed, copy-on-write snapshot of all tracker data.

    Always replace via dataclasses.replace() - never mutate in place.
    """

    # All trackers listed in the reference sheet (active and inactive)
    trackers: list[Tracker] = dataclasses.field(default_factory=list)

    # Every point of the current day-window, sorted by timestamp
    points: list[TrackPoint] = dataclasses.field(default_factory=list)

    # tracker name → newest TrackPoint
    latest: dict[str, TrackPoint] = dataclasses.field(default_factory=dict)

    # Per-name, per-day segments for map consumers
    segments: list[TrackSegment] = dataclasses.field(default_factory=list)

    def get_tracker(self, name: str) -> Tracker | None:
        for tracker in self.trackers:
            if tracker.name == name:
                return tracker
        return None
