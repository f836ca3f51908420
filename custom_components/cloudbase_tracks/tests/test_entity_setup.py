"""
Tests for entity setup of the device_tracker, sensor and binary_sensor platforms,
and for entity state read from the coordinator snapshot.

Covers:
- one location, two sensors and one emergency sensor per selected tracker
- inactive trackers get no entities unless include_inactive is set
- entity state follows the newest point of its tracker, None before any point
"""

from __future__ import annotations

import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from custom_components.cloudbase_tracks import binary_sensor, device_tracker, sensor
from custom_components.cloudbase_tracks.coordinator_data import CoordinatorData

from .test_common import make_coordinator, make_point, make_tracker


def _make_hass_and_config_entry(coordinator):
    """Return a fake hass and config_entry wired to the given coordinator."""
    config_entry = MagicMock()
    config_entry.entry_id = "test_entry_id"
    config_entry.runtime_data = coordinator

    hass = MagicMock()

    return hass, config_entry


def _coordinator(**entry_kwargs):
    coord = make_coordinator(**entry_kwargs)
    coord.data = CoordinatorData(trackers=[
        make_tracker("Alice"),
        make_tracker("Bob", "bob", inactive=True),
    ])
    return coord


async def _run_setup(module, coord):
    hass, config_entry = _make_hass_and_config_entry(coord)
    added_entities = []

    def fake_add(entities, **kwargs):
        added_entities.extend(entities)

    await module.async_setup_entry(hass, config_entry, fake_add)
    return added_entities


class TestPlatformSetup(unittest.IsolatedAsyncioTestCase):

    async def test_device_tracker_one_per_active_tracker(self):
        entities = await _run_setup(device_tracker, _coordinator())

        self.assertEqual([e.name for e in entities], ["Alice Location"])

    async def test_sensor_speed_and_altitude_per_tracker(self):
        entities = await _run_setup(sensor, _coordinator())

        self.assertEqual(sorted(e.name for e in entities), ["Alice Altitude", "Alice Speed"])

    async def test_binary_sensor_emergency_per_tracker(self):
        entities = await _run_setup(binary_sensor, _coordinator())

        self.assertEqual([e.name for e in entities], ["Alice Emergency"])

    async def test_include_inactive_adds_entities(self):
        entities = await _run_setup(device_tracker, _coordinator(include_inactive=True))

        self.assertEqual(len(entities), 2)

    async def test_unique_ids_contain_guid_and_tracker(self):
        entities = await _run_setup(sensor, _coordinator(guid="g-1"))

        self.assertIn("cloudbase_g-1_Alice_speed", [e.unique_id for e in entities])

    async def test_no_entities_when_no_trackers(self):
        coord = make_coordinator()
        added = MagicMock()
        hass, config_entry = _make_hass_and_config_entry(coord)

        await binary_sensor.async_setup_entry(hass, config_entry, added)

        added.assert_not_called()


class TestEntityState(unittest.TestCase):

    def setUp(self):
        self.coord = _coordinator()
        self.point = make_point(
            "Alice",
            timestamp=datetime(2025, 5, 17, 18, 0, tzinfo=timezone.utc),
            lat=40.6,
            lng=-111.8,
            speed=25.0,
            altitude=9843.0,
            emergency=True,
            message="Need pickup",
        )

    def test_location_from_latest_point(self):
        entity = device_tracker.CloudbaseTrackerPosition(self.coord, "Alice")
        self.assertIsNone(entity.latitude)

        self.coord.data = CoordinatorData(trackers=self.coord.data.trackers, latest={"Alice": self.point})

        self.assertEqual(entity.latitude, 40.6)
        self.assertEqual(entity.longitude, -111.8)
        self.assertEqual(entity.extra_state_attributes["message"], "Need pickup")

    def test_sensors_from_latest_point(self):
        speed = sensor.CloudbaseSpeedSensor(self.coord, "Alice")
        altitude = sensor.CloudbaseAltitudeSensor(self.coord, "Alice")
        self.assertIsNone(speed.native_value)

        self.coord.data = CoordinatorData(latest={"Alice": self.point})

        self.assertEqual(speed.native_value, 25.0)
        self.assertEqual(altitude.native_value, 9843.0)

    def test_emergency_from_latest_point(self):
        entity = binary_sensor.CloudbaseEmergencySensor(self.coord, "Alice")
        self.assertIsNone(entity.is_on)

        self.coord.data = CoordinatorData(latest={"Alice": self.point})

        self.assertTrue(entity.is_on)

    def test_device_info_from_coordinator(self):
        entity = binary_sensor.CloudbaseEmergencySensor(self.coord, "Alice")
        self.assertEqual(entity.device_info["name"], "Alice")
