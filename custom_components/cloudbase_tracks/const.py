DOMAIN = "cloudbase_tracks"
VERSION = "0.3.0"

# Update intervals (seconds)
TRACKERS_INTERVAL = 3600     # tracker sheet - rarely changes
TRACKS_INTERVAL = 300        # live track feeds; also the cache refresh interval

# Feed fetching
MAX_CONCURRENT_FETCHES = 8   # upper bound of feed requests in flight at once
FEED_REQUEST_TIMEOUT = 15    # seconds per feed request, no retry inside a batch

# Day-window limits (number of calendar days of history requested from each feed)
DEFAULT_TRACK_DAYS = 1
MAX_TRACK_DAYS = 7

# Clustering: threshold = max(lat span, lon span) * factor, in raw degrees
CLUSTER_THRESHOLD_FACTOR = 0.1
# Station readings from this source win when stations are co-located
PREFERRED_STATION_SOURCE = "CUASA"

# Unit conversions
KMH_TO_MPH = 0.621371
METERS_TO_FEET = 3.28084

# Tracker share/feed URLs
SHARE_URL_PREFIX = "https://share.garmin.com/"
FEED_URL_PREFIX = "https://share.garmin.com/Feed/Share/"

# Reference spreadsheet holding the tracker list
SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets/"
TRACKERS_SHEET_RANGE = "Pilots"

# The feed provider rejects requests that do not look like a desktop browser.
# Values are static; do not compute them.
FEED_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
    "DNT": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "sec-ch-ua": '"Chromium";v="136", "Google Chrome";v="136", "Not.A/Brand";v="99"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"macOS"',
}

# Config entry keys
CONF_ENTRY_NAME = "entry_name"
CONF_SPREADSHEET_ID = "spreadsheet_id"
CONF_API_KEY = "api_key"
CONF_TRACK_DAYS = "track_days"
CONF_INCLUDE_INACTIVE = "include_inactive"
CONF_TRACKER_NAMES = "tracker_names"

# Service
SERVICE_CLUSTER_ANNOTATIONS = "cluster_annotations"
SERVICE_GET_TRACKS = "get_tracks"
