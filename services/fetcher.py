"""Per-sensor reading retrieval."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional

from clients.home_assistant import HomeAssistantClient, TelemetrySourceError
from models.records import Sensor, SensorKind, SensorReading, as_utc

logger = logging.getLogger(__name__)


def parse_numeric_state(raw: str) -> Optional[float]:
    """Return the state as a finite float, or ``None`` for ``unavailable`` and friends."""
    try:
        text = raw.strip()
    except AttributeError:
        return None
    # float() accepts digit separators such as "1_0"; sensor states never carry them.
    if "_" in text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def build_reading(sensor: Sensor, value: float, timestamp: datetime) -> SensorReading:
    temperature = value if sensor.kind in (SensorKind.temperature, SensorKind.both) else None
    humidity = value if sensor.kind in (SensorKind.humidity, SensorKind.both) else None
    return SensorReading(
        sensor_id=sensor.id,
        timestamp=as_utc(timestamp),
        temperature=temperature,
        humidity=humidity,
    )


class ReadingFetcher:
    """Fetch one sensor's current value; failures become ``None``, never exceptions."""

    def __init__(self, client: HomeAssistantClient) -> None:
        self.client = client

    def fetch(self, sensor: Sensor) -> Optional[SensorReading]:
        context = {"phase": "fetch", "sensor_id": sensor.id, "entity_id": sensor.entity_id}
        try:
            state = self.client.get_state(sensor.entity_id)
        except TelemetrySourceError as exc:
            logger.warning(
                "Failed to fetch data for sensor: %s",
                exc,
                extra={**context, "status_code": exc.status_code},
            )
            return None

        value = parse_numeric_state(state.state)
        if value is None:
            logger.warning(
                "Invalid value for sensor",
                extra={**context, "invalid_value": repr(state.state)},
            )
            return None

        return build_reading(sensor, value, state.last_updated)
