"""
Platform for tracker speed and altitude sensors.
Values come from the tracker's newest track point, already converted to mph and feet.
"""
from __future__ import annotations

from homeassistant.components.sensor import SensorEntity, SensorDeviceClass, SensorStateClass
from homeassistant.const import UnitOfLength, UnitOfSpeed
from homeassistant.core import HomeAssistant
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import CloudbaseTracksCoordinator
from .models import TrackPoint
import logging

_LOGGER = logging.getLogger(__name__)


class _TrackPointSensor(CoordinatorEntity[CloudbaseTracksCoordinator], SensorEntity):
    """Base for sensors reading one field of the newest track point."""

    _suffix = ""
    _label = ""

    def __init__(self, coordinator: CloudbaseTracksCoordinator, tracker_name: str) -> None:
        super().__init__(coordinator)
        self._tracker_name = tracker_name
        self._attr_unique_id = f"cloudbase_{coordinator.entry_data['guid']}_{tracker_name}_{self._suffix}"
        self._attr_name = f"{tracker_name} {self._label}"

    @property
    def _point(self) -> TrackPoint | None:
        return self.coordinator.data.latest.get(self._tracker_name)

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info(self._tracker_name)

    @property
    def state_class(self) -> SensorStateClass | str | None:
        return SensorStateClass.MEASUREMENT


class CloudbaseSpeedSensor(_TrackPointSensor):
    """Ground speed in whole miles per hour."""

    _suffix = "speed"
    _label = "Speed"
    _attr_icon = "mdi:speedometer"

    @property
    def device_class(self) -> SensorDeviceClass | str | None:
        return SensorDeviceClass.SPEED

    @property
    def native_value(self) -> float | None:
        point = self._point
        if point is None:
            return None
        # Clamp to 0..1000
        return min(max(point.speed, 0.0), 1000.0)

    @property
    def native_unit_of_measurement(self) -> str | None:
        return UnitOfSpeed.MILES_PER_HOUR


class CloudbaseAltitudeSensor(_TrackPointSensor):
    """Altitude in feet."""

    _suffix = "altitude"
    _label = "Altitude"
    _attr_icon = "mdi:image-filter-hdr"

    @property
    def device_class(self) -> SensorDeviceClass | str | None:
        return SensorDeviceClass.DISTANCE

    @property
    def native_value(self) -> float | None:
        point = self._point
        return point.altitude if point is not None else None

    @property
    def native_unit_of_measurement(self) -> str | None:
        return UnitOfLength.FEET


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add sensors for passed config_entry in HA."""
    coordinator: CloudbaseTracksCoordinator = config_entry.runtime_data
    entities = []
    for tracker in coordinator.selected_trackers():
        entities.append(CloudbaseSpeedSensor(coordinator, tracker.name))
        entities.append(CloudbaseAltitudeSensor(coordinator, tracker.name))
    if entities:
        async_add_entities(entities)
