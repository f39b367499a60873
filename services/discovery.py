"""Sensor discovery against the Home Assistant state snapshot."""

from __future__ import annotations

import logging
from typing import List

from clients.home_assistant import HomeAssistantClient, TelemetrySourceError
from models.records import Sensor
from services.classifier import classify_payload

logger = logging.getLogger(__name__)


class DiscoveryError(RuntimeError):
    """The state snapshot could not be fetched, so nothing was discovered."""


class SensorDiscoveryService:

    def __init__(self, client: HomeAssistantClient) -> None:
        self.client = client

    def discover_sensors(self) -> List[Sensor]:
        try:
            states = self.client.get_all_states()
        except TelemetrySourceError as exc:
            logger.error(
                "Failed to discover sensors: %s",
                exc,
                extra={"phase": "discovery", "status_code": exc.status_code},
            )
            raise DiscoveryError(f"Sensor discovery failed: {exc}") from exc

        sensors: List[Sensor] = []
        for raw in states:
            sensor = classify_payload(raw)
            if sensor is not None:
                sensors.append(sensor)

        logger.debug(
            "Classified %d of %d entities as sensors",
            len(sensors),
            len(states),
            extra={"phase": "discovery"},
        )
        return sensors
