"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    CollectionResultResponse,
    CollectorStatusResponse,
    ReadingResponse,
    RediscoveryResponse,
    SensorGroupResponse,
    SensorResponse,
)
from datastore.sensor_store import SensorDataStore, build_default_store
from models.records import as_utc
from services.aggregator import group_sensors_by_location
from services.discovery import DiscoveryError
from services.scheduler import CollectionScheduler, build_default_scheduler

router = APIRouter()


def get_store() -> SensorDataStore:
    return build_default_store()


def get_scheduler() -> CollectionScheduler:
    try:
        return build_default_scheduler()
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/locations",
    response_model=List[SensorGroupResponse],
    summary="Sensors grouped by physical location with their latest values.",
)
async def list_locations(
    store: SensorDataStore = Depends(get_store),
) -> List[SensorGroupResponse]:
    groups = group_sensors_by_location(store.get_all_sensors(), store.get_all_latest_readings())
    return [
        SensorGroupResponse(
            location=group.location,
            sensor_ids=group.sensor_ids,
            temperature=group.temperature,
            humidity=group.humidity,
            battery=group.battery,
            last_seen=group.last_seen,
            status=group.status,
        )
        for group in groups
    ]


@router.get(
    "/sensors",
    response_model=List[SensorResponse],
    summary="All known sensors.",
)
async def list_sensors(
    store: SensorDataStore = Depends(get_store),
) -> List[SensorResponse]:
    sensors = sorted(store.get_all_sensors(), key=lambda sensor: sensor.id)
    return [
        SensorResponse(
            id=sensor.id,
            entity_id=sensor.entity_id,
            friendly_name=sensor.friendly_name,
            kind=sensor.kind,
            unit=sensor.unit,
            last_seen=sensor.last_seen,
            status=sensor.status,
        )
        for sensor in sensors
    ]


@router.get(
    "/sensors/{sensor_id}/readings",
    response_model=List[ReadingResponse],
    summary="Readings for one sensor, defaulting to the last 24 hours.",
)
async def list_sensor_readings(
    sensor_id: str,
    start: Optional[datetime] = Query(None, description="Inclusive lower bound."),
    end: Optional[datetime] = Query(None, description="Inclusive upper bound."),
    store: SensorDataStore = Depends(get_store),
) -> List[ReadingResponse]:
    if store.get_sensor(sensor_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Sensor {sensor_id!r} not found.",
        )

    range_end = as_utc(end) if end else datetime.now(timezone.utc)
    range_start = as_utc(start) if start else range_end - timedelta(hours=24)
    if range_start > range_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must not be after end.",
        )

    readings = store.get_readings_by_time_range(sensor_id, range_start, range_end)
    return [
        ReadingResponse(
            sensor_id=reading.sensor_id,
            timestamp=reading.timestamp,
            temperature=reading.temperature,
            humidity=reading.humidity,
        )
        for reading in readings
    ]


@router.get(
    "/collector",
    response_model=CollectorStatusResponse,
    summary="Background collector status.",
)
async def collector_status(
    scheduler: CollectionScheduler = Depends(get_scheduler),
) -> CollectorStatusResponse:
    stats = scheduler.get_stats()
    last = stats["last_collection"]
    return CollectorStatusResponse(
        is_running=scheduler.is_running(),
        sensor_count=len(scheduler.roster),
        last_collection=(
            CollectionResultResponse(
                attempted=last.attempted,
                persisted=last.persisted,
                finished_at=last.finished_at,
            )
            if last is not None
            else None
        ),
    )


@router.post(
    "/collector/rediscover",
    response_model=RediscoveryResponse,
    summary="Re-run sensor discovery and replace the polled roster.",
)
def rediscover_sensors(
    scheduler: CollectionScheduler = Depends(get_scheduler),
) -> RediscoveryResponse:
    if not scheduler.is_running():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Collector is not running.",
        )
    try:
        sensors = scheduler.rediscover()
    except DiscoveryError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return RediscoveryResponse(
        sensor_count=len(sensors),
        sensor_ids=[sensor.id for sensor in sensors],
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /locations for current sensor data."}
