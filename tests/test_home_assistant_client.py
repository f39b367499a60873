from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List

import httpx
import pytest

from clients.home_assistant import HomeAssistantClient, TelemetrySourceError


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> HomeAssistantClient:
    return HomeAssistantClient(
        base_url="http://ha.local:8123/",
        token="secret-token",
        transport=httpx.MockTransport(handler),
    )


_STATE = {
    "entity_id": "sensor.buro_temperature",
    "state": "21.4",
    "attributes": {"friendly_name": "Büro Temperature", "unit_of_measurement": "°C"},
    "last_changed": "2024-03-01T10:00:00.123456+00:00",
    "last_updated": "2024-03-01T10:00:00.123456+00:00",
}


def test_get_all_states_sends_bearer_token() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[_STATE, "not-a-record"])

    client = _client(handler)
    try:
        states = client.get_all_states()
    finally:
        client.close()

    assert states == [_STATE]
    assert seen[0].url.path == "/api/states"
    assert seen[0].headers["Authorization"] == "Bearer secret-token"


def test_get_state_returns_validated_model() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/states/sensor.buro_temperature"
        return httpx.Response(200, json=_STATE)

    client = _client(handler)
    state = client.get_state("sensor.buro_temperature")

    assert state.state == "21.4"
    assert state.attributes.unit_of_measurement == "°C"
    assert state.last_updated == datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)


def test_http_error_status_raises_source_error() -> None:
    client = _client(lambda request: httpx.Response(401, json={"message": "unauthorized"}))

    with pytest.raises(TelemetrySourceError) as excinfo:
        client.get_all_states()

    assert excinfo.value.status_code == 401
    assert "401" in str(excinfo.value)


def test_transport_error_raises_source_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(TelemetrySourceError) as excinfo:
        client.get_state("sensor.buro_temperature")

    assert excinfo.value.entity_id == "sensor.buro_temperature"
    assert excinfo.value.status_code is None


def test_unexpected_snapshot_shape_raises_source_error() -> None:
    client = _client(lambda request: httpx.Response(200, json={"entity_id": "sensor.x"}))

    with pytest.raises(TelemetrySourceError):
        client.get_all_states()


def test_malformed_state_payload_raises_source_error() -> None:
    client = _client(lambda request: httpx.Response(200, json={"entity_id": "sensor.x"}))

    with pytest.raises(TelemetrySourceError) as excinfo:
        client.get_state("sensor.x")

    assert excinfo.value.entity_id == "sensor.x"


def test_invalid_json_raises_source_error() -> None:
    client = _client(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(TelemetrySourceError):
        client.get_all_states()
