"""
Platform for tracker location entities.
One entity per selected tracker, placed at the tracker's newest track point.
"""
from __future__ import annotations

from homeassistant.components.device_tracker.config_entry import TrackerEntity
from homeassistant.core import HomeAssistant
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import CloudbaseTracksCoordinator
from .models import TrackPoint
import logging

_LOGGER = logging.getLogger(__name__)


class CloudbaseTrackerPosition(CoordinatorEntity[CloudbaseTracksCoordinator], TrackerEntity):
    """
    Representation of a tracker's last reported position.
    Reads the newest point for the tracker from the coordinator snapshot.
    """

    def __init__(self, coordinator: CloudbaseTracksCoordinator, tracker_name: str) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self._tracker_name = tracker_name
        self._attr_unique_id = f"cloudbase_{coordinator.entry_data['guid']}_{tracker_name}_gps"
        self._attr_name = f"{tracker_name} Location"
        self._attr_icon = "mdi:paragliding"

    @property
    def _point(self) -> TrackPoint | None:
        return self.coordinator.data.latest.get(self._tracker_name)

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info(self._tracker_name)

    @property
    def latitude(self) -> float | None:
        point = self._point
        return point.latitude if point is not None else None

    @property
    def longitude(self) -> float | None:
        point = self._point
        return point.longitude if point is not None else None

    @property
    def source_type(self) -> str:
        """Return the source type, eg gps or router, of the device."""
        return "gps"

    @property
    def extra_state_attributes(self) -> dict | None:
        point = self._point
        if point is None:
            return None
        return {
            "display_name": point.display_name,
            "timestamp": point.timestamp.isoformat(),
            "speed_mph": point.speed,
            "altitude_ft": point.altitude,
            "heading": point.heading,
            "message": point.message,
            "point_count": sum(1 for p in self.coordinator.data.points if p.tracker_name == self._tracker_name),
        }


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add tracker entities for passed config_entry in HA."""
    coordinator: CloudbaseTracksCoordinator = config_entry.runtime_data
    entities = [
        CloudbaseTrackerPosition(coordinator, tracker.name)
        for tracker in coordinator.selected_trackers()
    ]
    if entities:
        async_add_entities(entities)
    else:
        _LOGGER.warning("No trackers selected for entry %s", config_entry.entry_id)
