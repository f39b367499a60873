from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_SOURCE_URL_ENV = "HOME_ASSISTANT_URL"
_SOURCE_TOKEN_ENV = "HOME_ASSISTANT_TOKEN"
_SOURCE_TOKEN_FALLBACK_ENV = "HA_AUTH_TOKEN"
_SOURCE_TIMEOUT_ENV = "HOME_ASSISTANT_TIMEOUT"
_COLLECTION_INTERVAL_ENV = "COLLECTION_INTERVAL_MS"
_REDISCOVERY_INTERVAL_ENV = "REDISCOVERY_INTERVAL_MS"
_CLEANUP_INTERVAL_ENV = "CLEANUP_INTERVAL_MS"
_RETENTION_DAYS_ENV = "RETENTION_DAYS"
_WORKER_COUNT_ENV = "COLLECTOR_WORKER_COUNT"
_STORE_PATH_ENV = "SENSOR_STORE_PATH"
_COLLECTOR_ENABLED_ENV = "COLLECTOR_ENABLED"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    source_url: Optional[str]
    source_token: Optional[str]
    source_timeout: float
    collection_interval_ms: int
    rediscovery_interval_ms: int
    cleanup_interval_ms: int
    retention_days: int
    collector_workers: int
    store_path: Optional[str]
    collector_enabled: bool
    log_level: str

    @property
    def source_configured(self) -> bool:
        return bool(self.source_url and self.source_token)


def _read_optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    source_url = _read_optional_env(_SOURCE_URL_ENV)
    token = _read_optional_env(_SOURCE_TOKEN_ENV) or _read_optional_env(
        _SOURCE_TOKEN_FALLBACK_ENV
    )
    return Settings(
        source_url=source_url.rstrip("/") if source_url else None,
        source_token=token,
        source_timeout=_read_positive_float(_SOURCE_TIMEOUT_ENV, 10.0),
        collection_interval_ms=_read_positive_int(_COLLECTION_INTERVAL_ENV, 60_000),
        rediscovery_interval_ms=_read_positive_int(_REDISCOVERY_INTERVAL_ENV, 300_000),
        cleanup_interval_ms=_read_positive_int(_CLEANUP_INTERVAL_ENV, 3_600_000),
        retention_days=_read_positive_int(_RETENTION_DAYS_ENV, 30),
        collector_workers=_read_positive_int(_WORKER_COUNT_ENV, 8),
        store_path=_read_optional_env(_STORE_PATH_ENV),
        collector_enabled=_read_bool(_COLLECTOR_ENABLED_ENV, True),
        log_level=_read_log_level("INFO"),
    )
