"""
Tolerant parser for the KML documents served by tracker share feeds.

The feed wraps every position report in a <Placemark> element holding
<Data name="X"><value>Y</value></Data> pairs. Feeds are not always well formed, so
records and values are located by scanning for delimiter pairs instead of building an
XML tree. Nothing in this module raises: bad records are dropped, bad values default.
"""
from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone

from .const import KMH_TO_MPH, METERS_TO_FEET
from .models import TrackPoint

_LOGGER = logging.getLogger(__name__)

PLACEMARK_START = "<Placemark>"
PLACEMARK_END = "</Placemark>"
VALUE_START = "<value>"
VALUE_END = "</value>"
DATA_END = "</Data>"

# Feed timestamps look like "5/17/2025 3:04:05 PM" and are always UTC.
# AM/PM is matched here; strptime's %p depends on the process locale.
_TIMESTAMP_RE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4}) (\d{1,2}):(\d{2}):(\d{2}) ?([AP]M)$", re.IGNORECASE
)

_NUMBER_RE = re.compile(r"(\d+(\.\d+)?)")


def extract_all_values(text: str, start_tag: str, end_tag: str) -> list[str]:
    """Return the text between every successive start_tag/end_tag pair."""
    values = []
    position = 0
    while True:
        start = text.find(start_tag, position)
        if start == -1:
            break
        start += len(start_tag)
        end = text.find(end_tag, start)
        if end == -1:
            break
        values.append(text[start:end])
        position = end + len(end_tag)
    return values


def extract_value(text: str, name: str) -> str | None:
    """Return the <value> wrapped inside <Data name="name">, or None when absent."""
    start_tag = f'<Data name="{name}">'
    start = text.find(start_tag)
    if start == -1:
        return None
    start += len(start_tag)
    end = text.find(DATA_END, start)
    if end == -1:
        return None
    data = text[start:end]

    value_start = data.find(VALUE_START)
    if value_start == -1:
        return None
    value_start += len(VALUE_START)
    value_end = data.find(VALUE_END, value_start)
    if value_end == -1:
        return None
    return data[value_start:value_end]


def extract_number(text: str | None) -> float | None:
    """Return the first unsigned decimal number in text, e.g. 12.3 from '12.3 km/h'."""
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    if match is None:
        return None
    return float(match.group(1))


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def kmh_to_mph(kmh: float) -> float:
    return _round_half_up(kmh * KMH_TO_MPH)


def meters_to_feet(meters: float) -> float:
    return _round_half_up(meters * METERS_TO_FEET)


def parse_timestamp(text: str, now: datetime | None = None) -> datetime:
    """
    Parse a feed timestamp as UTC.

    An unparseable value falls back to now instead of dropping the record.
    """
    match = _TIMESTAMP_RE.match(text.strip())
    try:
        if match is None:
            raise ValueError(text)
        month, day, year, hour, minute, second = (int(g) for g in match.groups()[:6])
        if not 1 <= hour <= 12:
            raise ValueError(text)
        # 12 AM is midnight, 12 PM is noon
        hour %= 12
        if match.group(7).upper() == "PM":
            hour += 12
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        _LOGGER.debug("Unparseable feed timestamp %r, using current time", text)
        return now if now is not None else datetime.now(timezone.utc)


def _parse_float(text: str) -> float:
    try:
        return float(text.strip())
    except ValueError:
        return 0.0


def _parse_bool(text: str | None) -> bool:
    return (text or "").strip().lower() == "true"


def parse_placemark(placemark: str, tracker_name: str, now: datetime | None = None) -> TrackPoint | None:
    """Build a TrackPoint from one placemark body, or None if a mandatory value is missing."""
    embedded_name = extract_value(placemark, "Name")
    time_text = extract_value(placemark, "Time UTC")
    latitude_text = extract_value(placemark, "Latitude")
    longitude_text = extract_value(placemark, "Longitude")
    if embedded_name is None or time_text is None or latitude_text is None or longitude_text is None:
        return None

    # One device can report under a name other than the tracker's
    display_name = embedded_name
    if embedded_name.lower() != tracker_name.lower():
        display_name = f"{embedded_name} ({tracker_name})"

    speed = extract_number(extract_value(placemark, "Velocity")) or 0.0
    altitude = extract_number(extract_value(placemark, "Elevation")) or 0.0
    heading = extract_number(extract_value(placemark, "Course")) or 0.0
    message = extract_value(placemark, "Text")

    return TrackPoint(
        tracker_name=tracker_name,
        display_name=display_name,
        timestamp=parse_timestamp(time_text, now),
        latitude=_parse_float(latitude_text),
        longitude=_parse_float(longitude_text),
        speed=kmh_to_mph(speed),
        altitude=meters_to_feet(altitude),
        heading=heading,
        emergency=_parse_bool(extract_value(placemark, "In Emergency")),
        message=message or None,
    )


def parse_track_feed(body: bytes | str, tracker_name: str, now: datetime | None = None) -> list[TrackPoint]:
    """
    Convert a raw feed body into track points, in feed order.

    Args:
        body: Response body as bytes (decoded as UTF-8) or already-decoded text
        tracker_name: Name of the tracker owning the feed
        now: Fallback instant for unparseable timestamps (defaults to the current UTC time)

    Returns:
        Parsed points; empty when the body cannot be decoded or holds no records
    """
    if isinstance(body, bytes):
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            _LOGGER.warning("Feed body for %s is not valid UTF-8", tracker_name)
            return []
    else:
        text = body

    placemarks = extract_all_values(text, PLACEMARK_START, PLACEMARK_END)
    if not placemarks:
        return []

    points = []
    for placemark in placemarks:
        point = parse_placemark(placemark, tracker_name, now)
        if point is None:
            _LOGGER.debug("Skipping placemark without name/time/position for %s", tracker_name)
            continue
        points.append(point)
    return points
