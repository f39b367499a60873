"""HTTP client for the Home Assistant REST API."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.schemas import HomeAssistantState
from settings import get_settings


class TelemetrySourceError(RuntimeError):
    """Raised when Home Assistant cannot deliver a usable response."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.entity_id = entity_id
        self.status_code = status_code


class HomeAssistantClient:
    """Thin synchronous wrapper over ``/api/states``.

    The underlying ``httpx.Client`` is safe to share between the collector's
    worker threads.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def get_all_states(self) -> List[Dict[str, Any]]:
        """Return every entity record, unvalidated."""
        payload = self._get_json("/api/states")
        if not isinstance(payload, list):
            raise TelemetrySourceError("Expected a list of states from /api/states.")
        return [item for item in payload if isinstance(item, dict)]

    def get_state(self, entity_id: str) -> HomeAssistantState:
        payload = self._get_json(f"/api/states/{entity_id}", entity_id=entity_id)
        try:
            return HomeAssistantState.model_validate(payload)
        except ValidationError as exc:
            raise TelemetrySourceError(
                f"Malformed state payload for {entity_id}: {exc.error_count()} validation error(s)",
                entity_id=entity_id,
            ) from exc

    def _get_json(self, path: str, entity_id: Optional[str] = None) -> Any:
        try:
            response = self._client.get(path)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise TelemetrySourceError(
                f"API Error: {status_code} {exc.response.reason_phrase}",
                entity_id=entity_id,
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise TelemetrySourceError(
                f"Request to {path} failed: {exc}", entity_id=entity_id
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise TelemetrySourceError(
                f"Response from {path} is not valid JSON.", entity_id=entity_id
            ) from exc


@lru_cache
def build_default_client() -> HomeAssistantClient:
    settings = get_settings()
    if not settings.source_configured:
        raise RuntimeError(
            "HOME_ASSISTANT_URL and HOME_ASSISTANT_TOKEN (or HA_AUTH_TOKEN) must be set."
        )
    assert settings.source_url is not None and settings.source_token is not None
    return HomeAssistantClient(
        base_url=settings.source_url,
        token=settings.source_token,
        timeout=settings.source_timeout,
    )
