"""Background orchestration of discovery, collection and retention."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from clients.home_assistant import build_default_client
from datastore.sensor_store import SensorDataStore, build_default_store
from models.records import Sensor
from services.discovery import DiscoveryError, SensorDiscoveryService
from services.fetcher import ReadingFetcher
from settings import get_settings

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    not_started = "not_started"
    running = "running"
    shutting_down = "shutting_down"
    stopped = "stopped"


@dataclass(frozen=True)
class CollectionResult:
    """Outcome of one collection pass across the roster."""

    attempted: int
    persisted: int
    finished_at: datetime

    @property
    def failed(self) -> int:
        return self.attempted - self.persisted


class CollectionScheduler:
    """Owns the sensor roster and the three independent timers that act on it."""

    def __init__(
        self,
        discovery: SensorDiscoveryService,
        fetcher: ReadingFetcher,
        store: SensorDataStore,
        collection_interval: float = 60.0,
        rediscovery_interval: float = 300.0,
        cleanup_interval: float = 3600.0,
        retention_days: int = 30,
        workers: int = 8,
    ) -> None:
        self.discovery = discovery
        self.fetcher = fetcher
        self.store = store
        self.collection_interval = collection_interval
        self.rediscovery_interval = rediscovery_interval
        self.cleanup_interval = cleanup_interval
        self.retention_days = retention_days
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="collector")
        self._roster: Tuple[Sensor, ...] = ()
        self._roster_lock = Lock()
        self._state = SchedulerState.not_started
        self._state_lock = Lock()
        self._timers: Optional[BackgroundScheduler] = None
        self._last_collection: Optional[CollectionResult] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def roster(self) -> Tuple[Sensor, ...]:
        return self._roster

    def is_running(self) -> bool:
        return self._state is SchedulerState.running

    def start(self) -> None:
        """Seed the roster, collect once, then arm the periodic timers.

        A ``DiscoveryError`` from the initial discovery propagates and leaves
        the scheduler not started.
        """
        with self._state_lock:
            if self._state is SchedulerState.running:
                logger.warning("Collection scheduler already running")
                return
            if self._state in (SchedulerState.shutting_down, SchedulerState.stopped):
                raise RuntimeError("A stopped scheduler cannot be restarted.")

            logger.info(
                "Starting collection scheduler (collection=%ss, rediscovery=%ss, cleanup=%ss, retention=%sd)",
                self.collection_interval,
                self.rediscovery_interval,
                self.cleanup_interval,
                self.retention_days,
            )
            sensors = self.rediscover()
            if not sensors:
                logger.warning("No sensors discovered, but continuing to run")
            self.collect_once()

            timers = BackgroundScheduler(timezone="UTC")
            jobs = (
                ("collection", self.collection_interval, self.collect_once),
                ("rediscovery", self.rediscovery_interval, self._scheduled_rediscovery),
                ("cleanup", self.cleanup_interval, self.evict_expired),
            )
            # One instance per job; a slow tick skips its own next run only.
            for job_id, interval, action in jobs:
                timers.add_job(
                    action,
                    trigger=IntervalTrigger(seconds=interval, timezone="UTC"),
                    id=job_id,
                    name=job_id,
                    max_instances=1,
                    coalesce=True,
                )
            timers.start()
            self._timers = timers
            self._state = SchedulerState.running
            logger.info("Collection scheduler started", extra={"roster_size": len(self._roster)})

    def stop(self) -> None:
        """Stop arming new ticks, wait for in-flight ones, then report stopped."""
        with self._state_lock:
            if self._state is SchedulerState.not_started:
                self._state = SchedulerState.stopped
                self.executor.shutdown(wait=True)
                return
            if self._state is not SchedulerState.running:
                return
            self._state = SchedulerState.shutting_down
            timers, self._timers = self._timers, None

        logger.info("Stopping collection scheduler")
        if timers is not None:
            timers.shutdown(wait=True)
        self.executor.shutdown(wait=True)
        self._state = SchedulerState.stopped
        logger.info("Collection scheduler stopped")

    def update_roster(self, sensors: Iterable[Sensor]) -> None:
        """Swap in a new roster; passes already running keep the old one."""
        roster = tuple(sensors)
        with self._roster_lock:
            self._roster = roster
        logger.info("Updated sensor roster", extra={"roster_size": len(roster)})

    def rediscover(self) -> List[Sensor]:
        """Discover sensors, upsert their metadata and replace the roster."""
        sensors = self.discovery.discover_sensors()
        logger.info("Discovered sensors", extra={"phase": "discovery", "roster_size": len(sensors)})

        for sensor in sensors:
            try:
                self.store.upsert_sensor(sensor)
            except Exception as exc:  # noqa: BLE001 - one bad write must not drop the roster
                logger.error(
                    "Failed to upsert sensor: %s",
                    exc,
                    extra={"phase": "discovery", "sensor_id": sensor.id},
                )

        self.update_roster(sensors)
        return sensors

    def collect_once(self) -> CollectionResult:
        """Fetch and store one reading per roster sensor in parallel."""
        roster = self._roster
        if not roster:
            logger.info("No sensors to collect from", extra={"phase": "collection"})
            result = CollectionResult(attempted=0, persisted=0, finished_at=_utcnow())
            self._last_collection = result
            return result

        start_time = time.perf_counter()
        futures = [self.executor.submit(self._collect_sensor, sensor) for sensor in roster]
        outcomes = [future.result() for future in futures]
        persisted = sum(1 for outcome in outcomes if outcome)

        result = CollectionResult(
            attempted=len(roster), persisted=persisted, finished_at=_utcnow()
        )
        self._last_collection = result
        logger.info(
            "Collected %d/%d readings",
            persisted,
            len(roster),
            extra={
                "phase": "collection",
                "success_count": persisted,
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        self._log_store_totals()
        return result

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """Delete readings older than the retention window; failures report 0."""
        reference = now or _utcnow()
        cutoff = reference - timedelta(days=self.retention_days)
        try:
            deleted = self.store.delete_readings_older_than(cutoff)
        except Exception as exc:  # noqa: BLE001 - retried on the next cleanup tick
            logger.error(
                "Cleanup failed: %s",
                exc,
                extra={"phase": "cleanup", "cutoff": cutoff.isoformat()},
            )
            return 0

        if deleted:
            logger.info(
                "Deleted old readings",
                extra={"phase": "cleanup", "deleted_count": deleted, "cutoff": cutoff.isoformat()},
            )
        else:
            logger.info("No old readings to delete", extra={"phase": "cleanup"})
        return deleted

    def get_stats(self) -> Dict[str, object]:
        return {
            "is_running": self.is_running(),
            "sensor_count": len(self._roster),
            "last_collection": self._last_collection,
        }

    def _scheduled_rediscovery(self) -> None:
        try:
            self.rediscover()
        except DiscoveryError as exc:
            logger.error(
                "Scheduled rediscovery failed, keeping previous roster: %s",
                exc,
                extra={"phase": "rediscovery", "roster_size": len(self._roster)},
            )

    def _collect_sensor(self, sensor: Sensor) -> bool:
        context = {"phase": "collection", "sensor_id": sensor.id, "entity_id": sensor.entity_id}
        try:
            reading = self.fetcher.fetch(sensor)
        except Exception as exc:  # noqa: BLE001 - isolate sibling fetches
            logger.error("Unexpected fetch failure: %s", exc, extra=context)
            return False
        if reading is None:
            return False

        try:
            self.store.insert_reading(reading)
        except Exception as exc:  # noqa: BLE001 - persistence failure is per sensor
            logger.error("Failed to store reading: %s", exc, extra=context)
            return False
        return True

    def _log_store_totals(self) -> None:
        try:
            counts = self.store.get_reading_counts()
        except Exception as exc:  # noqa: BLE001 - informational only
            logger.error("Failed to get reading count: %s", exc, extra={"phase": "collection"})
            return
        logger.info(
            "Database: %d total readings across %d sensors",
            sum(counts.values()),
            len(counts),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache
def build_default_scheduler() -> CollectionScheduler:
    """Factory that wires the scheduler with the configured source and store."""
    settings = get_settings()
    client = build_default_client()
    return CollectionScheduler(
        discovery=SensorDiscoveryService(client),
        fetcher=ReadingFetcher(client),
        store=build_default_store(),
        collection_interval=settings.collection_interval_ms / 1000,
        rediscovery_interval=settings.rediscovery_interval_ms / 1000,
        cleanup_interval=settings.cleanup_interval_ms / 1000,
        retention_days=settings.retention_days,
        workers=settings.collector_workers,
    )
