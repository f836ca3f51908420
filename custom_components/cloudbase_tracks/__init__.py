import logging

import homeassistant.helpers.config_validation as cv
import voluptuous as vol
from homeassistant import config_entries, core
from homeassistant.config_entries import ConfigEntryState
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import ConfigEntryNotReady

from .clustering import cluster_annotations
from .config_flow import _validate_credentials
from .const import (
    DOMAIN,
    CLUSTER_THRESHOLD_FACTOR,
    PREFERRED_STATION_SOURCE,
    SERVICE_CLUSTER_ANNOTATIONS,
    SERVICE_GET_TRACKS,
    CONF_SPREADSHEET_ID,
    CONF_API_KEY,
)
from .coordinator import CloudbaseTracksCoordinator
from .coordinator_utils import visible_nodes
from .models import AnnotatedItem, AnnotationCategory, TrackSegment, ViewportSpan

PLATFORMS: list[Platform] = [Platform.DEVICE_TRACKER, Platform.SENSOR, Platform.BINARY_SENSOR]
_LOGGER = logging.getLogger(__name__)

ITEM_SCHEMA = vol.Schema(
    {
        vol.Optional("id", default=""): cv.string,
        vol.Optional("name", default=""): cv.string,
        vol.Required("latitude"): vol.Coerce(float),
        vol.Required("longitude"): vol.Coerce(float),
        vol.Optional("category", default=AnnotationCategory.STATION.value): vol.In(
            [c.value for c in AnnotationCategory]
        ),
        vol.Optional("source", default=""): cv.string,
    },
    extra=vol.ALLOW_EXTRA,
)

CLUSTER_SERVICE_SCHEMA = vol.Schema(
    {
        vol.Required("items"): vol.All(cv.ensure_list, [ITEM_SCHEMA]),
        vol.Required("lat_delta"): vol.Coerce(float),
        vol.Required("lon_delta"): vol.Coerce(float),
        vol.Optional("threshold_factor", default=CLUSTER_THRESHOLD_FACTOR): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional("preferred_source", default=PREFERRED_STATION_SOURCE): cv.string,
        vol.Optional("categories", default=[AnnotationCategory.STATION.value]): vol.All(
            cv.ensure_list, [vol.In([c.value for c in AnnotationCategory])]
        ),
    }
)

GET_TRACKS_SERVICE_SCHEMA = vol.Schema(
    {
        vol.Optional("show_all", default=False): cv.boolean,
        vol.Optional("tracker_names", default=[]): vol.All(cv.ensure_list, [cv.string]),
    }
)


async def _async_handle_cluster_annotations(call: ServiceCall) -> ServiceResponse:
    """Reduce the given map annotations for the caller's viewport span."""
    items = [AnnotatedItem.from_dict(item) for item in call.data["items"]]
    clustered = cluster_annotations(
        items,
        ViewportSpan(call.data["lat_delta"], call.data["lon_delta"]),
        threshold_factor=call.data["threshold_factor"],
        preferred_source=call.data["preferred_source"],
        clustered_categories=frozenset(AnnotationCategory(c) for c in call.data["categories"]),
    )
    _LOGGER.debug("Clustered %s annotations down to %s", len(items), len(clustered))
    return {"items": [item.as_dict() for item in clustered]}


def _segment_as_dict(segment: TrackSegment, show_all: bool) -> dict:
    return {
        "tracker_name": segment.first.tracker_name,
        "display_name": segment.display_name,
        "day": segment.day.isoformat(),
        "start": segment.first.timestamp.isoformat(),
        "end": segment.last.timestamp.isoformat(),
        "point_count": len(segment.points),
        "nodes": [point.as_dict() for point in visible_nodes(segment, show_all)],
    }


def get_tracks_response(hass: HomeAssistant, show_all: bool, tracker_names: list[str]) -> dict:
    """Collect the track segments of every loaded entry, optionally limited to some trackers."""
    names = set(tracker_names)
    segments = []
    for entry in hass.config_entries.async_entries(DOMAIN):
        if entry.state is not ConfigEntryState.LOADED:
            continue
        coordinator: CloudbaseTracksCoordinator = entry.runtime_data
        segments.extend(
            _segment_as_dict(segment, show_all)
            for segment in coordinator.data.segments
            if not names or segment.first.tracker_name in names
        )
    return {"segments": segments}


async def async_setup(hass: core.HomeAssistant, config: dict) -> bool:
    """Set up the integration."""
    hass.services.async_register(
        DOMAIN,
        SERVICE_CLUSTER_ANNOTATIONS,
        _async_handle_cluster_annotations,
        schema=CLUSTER_SERVICE_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    async def _async_handle_get_tracks(call: ServiceCall) -> ServiceResponse:
        """Return per-tracker, per-day track segments with their map-worthy nodes."""
        return get_tracks_response(hass, call.data["show_all"], call.data["tracker_names"])

    hass.services.async_register(
        DOMAIN,
        SERVICE_GET_TRACKS,
        _async_handle_get_tracks,
        schema=GET_TRACKS_SERVICE_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    return True


async def async_setup_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Set up platform from a ConfigEntry."""
    # Options override the data the entry was created with
    entry_data = {**entry.data, **entry.options}

    error = await _validate_credentials(entry_data[CONF_SPREADSHEET_ID], entry_data[CONF_API_KEY])
    if error == "invalid_auth":
        raise ConfigEntryNotReady("Tracker sheet rejected the API key; check the credentials")
    if error:
        raise ConfigEntryNotReady("Tracker sheet is unreachable")

    coordinator = CloudbaseTracksCoordinator(hass, entry_data)
    await coordinator.async_config_entry_first_refresh()
    entry.runtime_data = coordinator

    entry.async_on_unload(
        entry.add_update_listener(_async_update_listener)
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


async def _async_update_listener(hass: HomeAssistant, config_entry):
    """Handle config options update."""
    # Reload the integration when the options change.
    await hass.config_entries.async_reload(config_entry.entry_id)


async def async_unload_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Unload a config entry."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        await entry.runtime_data.async_shutdown()
    return unloaded
