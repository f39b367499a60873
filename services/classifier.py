"""Map raw Home Assistant entities onto typed sensors."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import ValidationError

from app.schemas import HomeAssistantState
from models.records import Sensor, SensorKind, SensorStatus, as_utc

SENSOR_PREFIX = "sensor."


def detect_kind(device_class: Optional[str], unit: Optional[str]) -> Optional[SensorKind]:
    """Device class wins; the unit string is only a fallback."""
    if device_class == SensorKind.temperature.value:
        return SensorKind.temperature
    if device_class == SensorKind.humidity.value:
        return SensorKind.humidity
    if unit and "°" in unit:
        return SensorKind.temperature
    if unit == "%":
        return SensorKind.humidity
    return None


def classify_state(state: HomeAssistantState) -> Optional[Sensor]:
    """Return a ``Sensor`` for temperature/humidity entities, otherwise ``None``."""
    if not state.entity_id.startswith(SENSOR_PREFIX):
        return None

    attributes = state.attributes
    kind = detect_kind(attributes.device_class, attributes.unit_of_measurement)
    if kind is None:
        return None

    return Sensor(
        id=state.entity_id[len(SENSOR_PREFIX):],
        entity_id=state.entity_id,
        friendly_name=attributes.friendly_name or state.entity_id,
        kind=kind,
        unit=attributes.unit_of_measurement or "",
        last_seen=as_utc(state.last_updated),
        status=SensorStatus.online,
    )


def classify_payload(raw: Mapping[str, Any]) -> Optional[Sensor]:
    """Validate a raw record and classify it; malformed records are not sensors."""
    try:
        state = HomeAssistantState.model_validate(raw)
    except ValidationError:
        return None
    return classify_state(state)
