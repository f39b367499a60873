from __future__ import annotations

import json
from bisect import insort
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from pydantic import TypeAdapter

from models.records import Sensor, SensorReading
from settings import get_settings

_SENSOR_ADAPTER = TypeAdapter(Sensor)
_READING_ADAPTER = TypeAdapter(SensorReading)


def _timestamp_key(reading: SensorReading) -> datetime:
    return reading.timestamp


class SensorDataStore:
    """Sensor metadata plus time-ordered readings, optionally mirrored to JSON."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._sensors: Dict[str, Sensor] = {}
        self._readings: Dict[str, List[SensorReading]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def upsert_sensor(self, sensor: Sensor) -> None:
        with self._lock:
            self._sensors[sensor.id] = _copy_sensor(sensor)
            self._persist()

    def get_sensor(self, sensor_id: str) -> Optional[Sensor]:
        with self._lock:
            sensor = self._sensors.get(sensor_id)
            return _copy_sensor(sensor) if sensor is not None else None

    def get_all_sensors(self) -> List[Sensor]:
        with self._lock:
            return [_copy_sensor(sensor) for sensor in self._sensors.values()]

    def insert_reading(self, reading: SensorReading) -> None:
        if reading.temperature is None and reading.humidity is None:
            raise ValueError(
                f"Refusing to store empty reading for sensor {reading.sensor_id!r}."
            )
        with self._lock:
            series = self._readings.setdefault(reading.sensor_id, [])
            insort(series, _copy_reading(reading), key=_timestamp_key)
            self._persist()

    def get_latest_reading(self, sensor_id: str) -> Optional[SensorReading]:
        with self._lock:
            series = self._readings.get(sensor_id)
            if not series:
                return None
            return _copy_reading(series[-1])

    def get_all_latest_readings(self) -> Dict[str, SensorReading]:
        """Most recent reading by timestamp for every sensor that has one."""
        with self._lock:
            return {
                sensor_id: _copy_reading(series[-1])
                for sensor_id, series in self._readings.items()
                if series
            }

    def get_readings_by_time_range(
        self, sensor_id: str, start: datetime, end: datetime
    ) -> List[SensorReading]:
        with self._lock:
            series = self._readings.get(sensor_id, [])
            return [
                _copy_reading(reading)
                for reading in series
                if start <= reading.timestamp <= end
            ]

    def get_reading_counts(self) -> Dict[str, int]:
        with self._lock:
            return {sensor_id: len(series) for sensor_id, series in self._readings.items()}

    def delete_readings_older_than(self, cutoff: datetime) -> int:
        """Drop readings strictly before ``cutoff`` and return how many went."""
        deleted = 0
        with self._lock:
            for sensor_id, series in list(self._readings.items()):
                kept = [reading for reading in series if reading.timestamp >= cutoff]
                deleted += len(series) - len(kept)
                self._readings[sensor_id] = kept
            if deleted:
                self._persist()
        return deleted

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            "sensors": {
                sensor_id: _SENSOR_ADAPTER.dump_python(sensor, mode="json")
                for sensor_id, sensor in self._sensors.items()
            },
            "readings": {
                sensor_id: [_READING_ADAPTER.dump_python(r, mode="json") for r in series]
                for sensor_id, series in self._readings.items()
            },
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for sensor_id, payload in data.get("sensors", {}).items():
            self._sensors[sensor_id] = _SENSOR_ADAPTER.validate_python(payload)
        for sensor_id, items in data.get("readings", {}).items():
            series = [_READING_ADAPTER.validate_python(item) for item in items]
            series.sort(key=_timestamp_key)
            self._readings[sensor_id] = series


def _copy_sensor(sensor: Sensor) -> Sensor:
    return Sensor(
        id=sensor.id,
        entity_id=sensor.entity_id,
        friendly_name=sensor.friendly_name,
        kind=sensor.kind,
        unit=sensor.unit,
        last_seen=sensor.last_seen,
        status=sensor.status,
    )


def _copy_reading(reading: SensorReading) -> SensorReading:
    return SensorReading(
        sensor_id=reading.sensor_id,
        timestamp=reading.timestamp,
        temperature=reading.temperature,
        humidity=reading.humidity,
    )


@lru_cache
def build_default_store(path: Optional[str] = None) -> SensorDataStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return SensorDataStore(persistence_path=persistence)
