"""Pydantic schemas for Home Assistant payloads and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import SensorKind, SensorStatus


class StateAttributes(BaseModel):
    """Subset of entity attributes the collector relies on."""

    model_config = ConfigDict(extra="allow")

    friendly_name: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    device_class: Optional[str] = None


class HomeAssistantState(BaseModel):
    """One entity record as returned by ``/api/states``."""

    model_config = ConfigDict(extra="ignore")

    entity_id: str
    state: str
    attributes: StateAttributes = Field(default_factory=StateAttributes)
    last_updated: datetime
    last_changed: Optional[datetime] = None


class SensorResponse(BaseModel):
    id: str
    entity_id: str
    friendly_name: str
    kind: SensorKind
    unit: str
    last_seen: datetime
    status: SensorStatus


class ReadingResponse(BaseModel):
    sensor_id: str
    timestamp: datetime
    temperature: Optional[float] = None
    humidity: Optional[float] = None


class SensorGroupResponse(BaseModel):
    """A physical location with merged values from its member sensors."""

    location: str
    sensor_ids: List[str] = Field(default_factory=list)
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    battery: Optional[float] = None
    last_seen: datetime
    status: SensorStatus


class CollectionResultResponse(BaseModel):
    attempted: int = Field(..., ge=0)
    persisted: int = Field(..., ge=0)
    finished_at: datetime


class CollectorStatusResponse(BaseModel):
    """Runtime state of the background collector."""

    is_running: bool
    sensor_count: int = Field(..., ge=0)
    last_collection: Optional[CollectionResultResponse] = None


class RediscoveryResponse(BaseModel):
    sensor_count: int = Field(..., ge=0)
    sensor_ids: List[str] = Field(default_factory=list)
