"""Group raw sensors into physical locations for the dashboard."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional

from models.records import Sensor, SensorGroup, SensorReading, SensorStatus

# Checked in order; the first descriptor found decides where the name is cut.
_LOCATION_SUFFIXES = ("temperature", "humidity", "battery", "power")

_DEVICE_NAME_PATTERNS = (
    re.compile(r"^IKEA", re.IGNORECASE),
    re.compile(r"dimmer", re.IGNORECASE),
    re.compile(r"sensor", re.IGNORECASE),
    re.compile(r"\bof\b.*\b(sweden|china|germany)\b", re.IGNORECASE),
)

_STATUS_RANK = {
    SensorStatus.online: 0,
    SensorStatus.offline: 1,
    SensorStatus.error: 2,
}


def extract_location(friendly_name: str) -> str:
    """``"Büro Temperature"`` -> ``"Büro"``; names without a descriptor are kept whole."""
    lowered = friendly_name.lower()
    for suffix in _LOCATION_SUFFIXES:
        index = lowered.rfind(f" {suffix}")
        if index != -1:
            return friendly_name[:index].strip()
    return friendly_name.strip()


def is_device_name(location: str) -> bool:
    return any(pattern.search(location) for pattern in _DEVICE_NAME_PATTERNS)


def sensor_data_type(friendly_name: str) -> Optional[str]:
    lowered = friendly_name.lower()
    if "temperature" in lowered:
        return "temperature"
    if "humidity" in lowered:
        return "humidity"
    if "battery" in lowered or "power" in lowered:
        return "battery"
    return None


def merge_status(current: SensorStatus, incoming: SensorStatus) -> SensorStatus:
    """error > offline > online, whatever order members arrive in."""
    if _STATUS_RANK[incoming] > _STATUS_RANK[current]:
        return incoming
    return current


class LocationAggregator:
    """Pure grouping component; recomputed on every read."""

    def aggregate(
        self,
        sensors: Iterable[Sensor],
        latest_readings: Mapping[str, SensorReading],
    ) -> List[SensorGroup]:
        groups: Dict[str, SensorGroup] = {}

        for sensor in sensors:
            location = extract_location(sensor.friendly_name)
            if is_device_name(location):
                continue

            group = groups.get(location)
            if group is None:
                group = SensorGroup(
                    location=location,
                    last_seen=sensor.last_seen,
                    status=sensor.status,
                )
                groups[location] = group

            group.sensor_ids.append(sensor.id)
            if sensor.last_seen > group.last_seen:
                group.last_seen = sensor.last_seen
            group.status = merge_status(group.status, sensor.status)

            reading = latest_readings.get(sensor.id)
            data_type = sensor_data_type(sensor.friendly_name)
            if reading is None or data_type is None:
                continue
            if data_type == "temperature":
                group.temperature = reading.temperature
            elif data_type == "humidity":
                group.humidity = reading.humidity
            else:
                # Battery percentages are classified by their "%" unit as humidity.
                group.battery = reading.humidity

        return [groups[location] for location in sorted(groups)]


def group_sensors_by_location(
    sensors: Iterable[Sensor],
    latest_readings: Mapping[str, SensorReading],
) -> List[SensorGroup]:
    return LocationAggregator().aggregate(sensors, latest_readings)
