"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SensorKind(str, Enum):
    """Which measurement a sensor reports."""

    temperature = "temperature"
    humidity = "humidity"
    both = "both"


class SensorStatus(str, Enum):
    online = "online"
    offline = "offline"
    error = "error"


@dataclass(slots=True)
class Sensor:
    """A Home Assistant entity recognised as a temperature or humidity sensor."""

    id: str
    entity_id: str
    friendly_name: str
    kind: SensorKind
    unit: str
    last_seen: datetime
    status: SensorStatus = SensorStatus.online


@dataclass(slots=True)
class SensorReading:
    """A single observation taken from the source's ``last_updated`` time."""

    sensor_id: str
    timestamp: datetime
    temperature: Optional[float] = None
    humidity: Optional[float] = None

    def __post_init__(self) -> None:
        if self.temperature is None and self.humidity is None:
            raise ValueError(
                f"Reading for sensor {self.sensor_id!r} has neither temperature nor humidity."
            )


@dataclass
class SensorGroup:
    """Sensors sharing one physical location, merged for display."""

    location: str
    last_seen: datetime
    status: SensorStatus
    sensor_ids: List[str] = field(default_factory=list)
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    battery: Optional[float] = None
