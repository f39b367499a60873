from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import typer

_STATUS_COLORS = {
    "online": typer.colors.GREEN,
    "offline": typer.colors.YELLOW,
    "error": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_value(value: Optional[float], unit: str) -> str:
    if value is None:
        return "-"
    return f"{value:.1f}{unit}"


def render_locations(groups: List[Dict[str, Any]]) -> None:
    echo_heading("Locations")
    if not groups:
        typer.echo("No sensor data available.")
        return

    for group in groups:
        status = group.get("status", "")
        typer.secho(f"{group.get('location')} [{status}]", fg=_STATUS_COLORS.get(status))
        typer.echo(
            "  "
            f"temperature={_format_value(group.get('temperature'), '°C')} "
            f"humidity={_format_value(group.get('humidity'), '%')} "
            f"battery={_format_value(group.get('battery'), '%')}"
        )
        typer.echo(f"  last_seen: {group.get('last_seen')}")
        typer.echo(f"  sensors: {', '.join(group.get('sensor_ids') or [])}")


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Collector")
    echo_key_values(
        [
            ("is_running", payload.get("is_running")),
            ("sensor_count", payload.get("sensor_count")),
        ]
    )

    last = payload.get("last_collection") or {}
    typer.echo()
    echo_heading("Last collection")
    if last:
        echo_key_values(
            [
                ("finished_at", last.get("finished_at")),
                ("persisted", f"{last.get('persisted')}/{last.get('attempted')}"),
            ]
        )
    else:
        typer.echo("No collection pass recorded.")


def render_rediscovery(payload: Dict[str, Any]) -> None:
    echo_heading("Rediscovery")
    typer.echo(f"sensor_count: {payload.get('sensor_count')}")
    for sensor_id in payload.get("sensor_ids") or []:
        typer.echo(f"  - {sensor_id}")
