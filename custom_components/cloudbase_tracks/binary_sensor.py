"""
Platform for tracker emergency binary sensors.
On while the tracker's newest track point reports an emergency.
"""
from __future__ import annotations

from homeassistant.components.binary_sensor import BinarySensorEntity, BinarySensorDeviceClass
from homeassistant.core import HomeAssistant
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import CloudbaseTracksCoordinator
import logging

_LOGGER = logging.getLogger(__name__)


class CloudbaseEmergencySensor(CoordinatorEntity[CloudbaseTracksCoordinator], BinarySensorEntity):
    """Representation of a tracker's emergency state."""

    def __init__(self, coordinator: CloudbaseTracksCoordinator, tracker_name: str) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self._tracker_name = tracker_name
        self._attr_unique_id = f"cloudbase_{coordinator.entry_data['guid']}_{tracker_name}_emergency"
        self._attr_name = f"{tracker_name} Emergency"

    @property
    def icon(self) -> str | None:
        if self.is_on:
            return "mdi:alert-octagon"
        return "mdi:shield-check"

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info(self._tracker_name)

    @property
    def device_class(self) -> BinarySensorDeviceClass | str | None:
        return BinarySensorDeviceClass.SAFETY

    @property
    def is_on(self) -> bool | None:
        point = self.coordinator.data.latest.get(self._tracker_name)
        if point is None:
            return None
        return point.emergency


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add emergency sensors for passed config_entry in HA."""
    coordinator: CloudbaseTracksCoordinator = config_entry.runtime_data
    entities = [
        CloudbaseEmergencySensor(coordinator, tracker.name)
        for tracker in coordinator.selected_trackers()
    ]
    if entities:
        async_add_entities(entities)
