"""Unit tests for the location grouping logic."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import permutations

import pytest

from models.records import Sensor, SensorKind, SensorReading, SensorStatus
from services.classifier import classify_payload
from services.aggregator import (
    LocationAggregator,
    extract_location,
    group_sensors_by_location,
    is_device_name,
)

_BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _sensor(
    sensor_id: str,
    name: str,
    kind: SensorKind = SensorKind.temperature,
    status: SensorStatus = SensorStatus.online,
    minutes: int = 0,
) -> Sensor:
    """Helper to build deterministic sensors."""

    return Sensor(
        id=sensor_id,
        entity_id=f"sensor.{sensor_id}",
        friendly_name=name,
        kind=kind,
        unit="°C" if kind == SensorKind.temperature else "%",
        last_seen=_BASE_TIME + timedelta(minutes=minutes),
        status=status,
    )


def _reading(sensor_id: str, temperature: float | None = None, humidity: float | None = None) -> SensorReading:
    return SensorReading(
        sensor_id=sensor_id,
        timestamp=_BASE_TIME,
        temperature=temperature,
        humidity=humidity,
    )


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Büro Temperature", "Büro"),
        ("Schlafzimmer humidity", "Schlafzimmer"),
        ("Bad Battery", "Bad"),
        ("Garage power", "Garage"),
        ("Wohnzimmer", "Wohnzimmer"),
        ("  Küche  ", "Küche"),
    ],
)
def test_extract_location(name: str, expected: str) -> None:
    assert extract_location(name) == expected


def test_device_names_are_detected() -> None:
    assert is_device_name("IKEA of Sweden RODRET Dimmer")
    assert is_device_name("Kitchen Motion Sensor")
    assert is_device_name("Lidl of China Plug")
    assert not is_device_name("Büro")
    assert not is_device_name("Office")


def test_empty_input_returns_no_groups() -> None:
    assert LocationAggregator().aggregate([], {}) == []


def test_temperature_and_humidity_merge_into_one_location() -> None:
    sensors = [
        _sensor("buro_temperature", "Büro Temperature"),
        _sensor("buro_humidity", "Büro Humidity", kind=SensorKind.humidity, minutes=5),
    ]
    readings = {
        "buro_temperature": _reading("buro_temperature", temperature=21.5),
        "buro_humidity": _reading("buro_humidity", humidity=48.0),
    }

    groups = group_sensors_by_location(sensors, readings)

    assert len(groups) == 1
    group = groups[0]
    assert group.location == "Büro"
    assert group.sensor_ids == ["buro_temperature", "buro_humidity"]
    assert group.temperature == 21.5
    assert group.humidity == 48.0
    assert group.battery is None
    assert group.last_seen == _BASE_TIME + timedelta(minutes=5)
    assert group.status == SensorStatus.online


def test_battery_value_read_from_humidity_field() -> None:
    sensors = [_sensor("bad_battery", "Bad Battery", kind=SensorKind.humidity)]
    readings = {"bad_battery": _reading("bad_battery", humidity=87.0)}

    groups = group_sensors_by_location(sensors, readings)

    assert groups[0].battery == 87.0
    assert groups[0].humidity is None


def test_device_name_sensors_are_excluded_everywhere() -> None:
    sensors = [
        _sensor("rodret_battery", "IKEA of Sweden RODRET Dimmer Battery", kind=SensorKind.humidity),
        _sensor("buro_temperature", "Büro Temperature"),
    ]
    readings = {"rodret_battery": _reading("rodret_battery", humidity=90.0)}

    groups = group_sensors_by_location(sensors, readings)

    assert [group.location for group in groups] == ["Büro"]
    assert all("rodret_battery" not in group.sensor_ids for group in groups)
    assert groups[0].battery is None


def test_missing_reading_leaves_value_unset() -> None:
    sensors = [_sensor("flur_temperature", "Flur Temperature")]

    groups = group_sensors_by_location(sensors, {})

    assert groups[0].temperature is None
    assert groups[0].sensor_ids == ["flur_temperature"]


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ((SensorStatus.online, SensorStatus.error, SensorStatus.offline), SensorStatus.error),
        ((SensorStatus.online, SensorStatus.offline), SensorStatus.offline),
        ((SensorStatus.online, SensorStatus.online), SensorStatus.online),
    ],
)
def test_status_precedence_ignores_member_order(statuses, expected) -> None:
    names = ["Küche Temperature", "Küche Humidity", "Küche Battery"]
    for ordering in permutations(statuses):
        sensors = [
            _sensor(f"kuche_{index}", names[index], status=status)
            for index, status in enumerate(ordering)
        ]

        groups = group_sensors_by_location(sensors, {})

        assert len(groups) == 1
        assert groups[0].status == expected


def test_groups_sorted_by_location_name() -> None:
    sensors = [
        _sensor("wohnzimmer", "Wohnzimmer Temperature"),
        _sensor("bad", "Bad Temperature"),
        _sensor("kuche", "Küche Temperature"),
    ]

    groups = group_sensors_by_location(sensors, {})

    assert [group.location for group in groups] == ["Bad", "Küche", "Wohnzimmer"]


def test_naive_and_offset_timestamps_group_together() -> None:
    naive = classify_payload(
        {
            "entity_id": "sensor.bad_temperature",
            "state": "21.0",
            "attributes": {"friendly_name": "Bad Temperature", "unit_of_measurement": "°C"},
            "last_updated": "2024-03-01T12:00:00",
        }
    )
    offset = classify_payload(
        {
            "entity_id": "sensor.bad_humidity",
            "state": "48",
            "attributes": {"friendly_name": "Bad Humidity", "unit_of_measurement": "%"},
            "last_updated": "2024-03-01T14:30:00+02:00",
        }
    )
    assert naive is not None and offset is not None

    groups = group_sensors_by_location([naive, offset], {})

    assert len(groups) == 1
    assert groups[0].location == "Bad"
    assert groups[0].last_seen == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
