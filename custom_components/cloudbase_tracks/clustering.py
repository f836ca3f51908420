"""
Greedy proximity clustering of map annotations.

Distances are plain Euclidean on raw latitude/longitude degrees. The deployment area is
small enough that the distortion at its latitude does not matter.
"""
from __future__ import annotations

import math
from typing import Collection, Iterable

from .const import CLUSTER_THRESHOLD_FACTOR, PREFERRED_STATION_SOURCE
from .models import AnnotatedItem, AnnotationCategory, ViewportSpan

STATION_CATEGORIES = frozenset({AnnotationCategory.STATION})


def cluster_threshold(span: ViewportSpan, factor: float = CLUSTER_THRESHOLD_FACTOR) -> float:
    """Proximity threshold in degrees for the given viewport."""
    return max(abs(span.lat_delta), abs(span.lon_delta)) * factor


def _distance(a: AnnotatedItem, b: AnnotatedItem) -> float:
    return math.hypot(a.latitude - b.latitude, a.longitude - b.longitude)


def cluster_items(
    items: Iterable[AnnotatedItem],
    threshold: float,
    preferred_source: str | None = PREFERRED_STATION_SOURCE,
    clustered_categories: Collection[AnnotationCategory] = STATION_CATEGORIES,
) -> list[AnnotatedItem]:
    """
    Reduce items so that no two clustered items lie within threshold of each other.

    Clustered items from preferred_source are considered first, so they win against
    co-located items from other sources. Items outside clustered_categories are always
    kept and never compared. The result keeps the input order.
    """
    items = list(items)
    candidates = [i for i, item in enumerate(items) if item.category in clustered_categories]
    # Stable sort: preferred source first, otherwise input order
    candidates.sort(key=lambda i: items[i].source != preferred_source if preferred_source else False)

    accepted: list[AnnotatedItem] = []
    kept: set[int] = set()
    for index in candidates:
        item = items[index]
        if all(_distance(item, other) > threshold for other in accepted):
            accepted.append(item)
            kept.add(index)

    return [
        item for i, item in enumerate(items)
        if item.category not in clustered_categories or i in kept
    ]


def cluster_annotations(
    items: Iterable[AnnotatedItem],
    span: ViewportSpan,
    threshold_factor: float = CLUSTER_THRESHOLD_FACTOR,
    preferred_source: str | None = PREFERRED_STATION_SOURCE,
    clustered_categories: Collection[AnnotationCategory] = STATION_CATEGORIES,
) -> list[AnnotatedItem]:
    """Cluster items for a viewport span; see cluster_items."""
    return cluster_items(
        items,
        cluster_threshold(span, threshold_factor),
        preferred_source=preferred_source,
        clustered_categories=clustered_categories,
    )
