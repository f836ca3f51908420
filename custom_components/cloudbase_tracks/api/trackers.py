"""
Low-level tracker list fetching from the reference spreadsheet (Google Sheets values API).

Responsible for:
- Fetching the raw rows of the tracker sheet
- Mapping each row onto a Tracker, skipping malformed rows
"""
import logging

import aiohttp

from custom_components.cloudbase_tracks.requests import make_request, ApiResponseError
from custom_components.cloudbase_tracks.const import SHARE_URL_PREFIX, SHEETS_API_URL, TRACKERS_SHEET_RANGE
from custom_components.cloudbase_tracks.models import Tracker

_LOGGER = logging.getLogger(__name__)


def _parse_tracker_row(row: list) -> Tracker | None:
    """Map a single sheet row [name, share URL, inactive?] onto a Tracker instance."""
    if len(row) < 2:
        _LOGGER.debug("Skipping malformed tracker row: %s", row)
        return None
    name, share_url = str(row[0]).strip(), str(row[1]).strip()
    if not name or SHARE_URL_PREFIX not in share_url:
        _LOGGER.debug("Skipping tracker row without a valid share URL: %s", row)
        return None
    inactive = len(row) > 2 and str(row[2]).strip().lower() == "yes"
    return Tracker.from_share_url(name, share_url, inactive=inactive)


def parse_tracker_rows(values: list[list]) -> list[Tracker]:
    """Convert the sheet's values array (header row first) into trackers."""
    parsed = [_parse_tracker_row(row) for row in values[1:]]
    return [t for t in parsed if t is not None]


async def fetch_trackers(
    spreadsheet_id: str,
    api_key: str,
    session: aiohttp.ClientSession = None,
) -> list[Tracker]:
    """
    Fetch all trackers listed in the reference spreadsheet.

    Raises ApiResponseError, ValueError or timeout errors so that callers can tell
    "sheet unreachable" apart from "sheet empty".

    Corresponding CURL command:
    curl -X 'GET' \
      'https://sheets.googleapis.com/v4/spreadsheets/<ID>/values/Pilots?alt=json&key=<KEY>'
    """
    url = f"{SHEETS_API_URL}{spreadsheet_id}/values/{TRACKERS_SHEET_RANGE}"
    params = {"alt": "json", "key": api_key}
    headers = {"accept": "application/json"}
    try:
        raw_json = await make_request(url, headers, params=params, session=session)
    except ApiResponseError as e:
        _LOGGER.error("Error while reading tracker sheet: %s", e)
        raise

    if not raw_json or "values" not in raw_json:
        _LOGGER.warning("Tracker sheet returned no values: %s", raw_json)
        return []

    trackers = parse_tracker_rows(raw_json["values"])
    _LOGGER.debug("Loaded %s trackers from sheet", len(trackers))
    return trackers
