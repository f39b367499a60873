from __future__ import annotations

import signal
from dataclasses import dataclass
from threading import Event
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_locations, render_rediscovery, render_status
from logging_config import configure_logging
from services.discovery import DiscoveryError
from services.scheduler import build_default_scheduler
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Run the Home Assistant collector and inspect its data.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM is received."""
    stop = Event()

    def _handle(_signum, _frame) -> None:
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    stop.wait()


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Collector API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Request timeout in seconds for API calls.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("worker")
def worker_command() -> None:
    """Collect readings in the foreground until interrupted."""
    configure_logging()
    settings = get_settings()
    if not settings.source_configured:
        typer.secho(
            "Missing required environment variables: HOME_ASSISTANT_URL, "
            "HOME_ASSISTANT_TOKEN or HA_AUTH_TOKEN",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    scheduler = build_default_scheduler()
    try:
        scheduler.start()
    except DiscoveryError as exc:
        typer.secho(f"Collector failed to start: {exc}", fg=typer.colors.RED, err=True)
        scheduler.stop()
        build_default_scheduler.cache_clear()
        raise typer.Exit(code=1)

    typer.secho(
        f"Collector running with {len(scheduler.roster)} sensors. Press Ctrl+C to stop.",
        fg=typer.colors.GREEN,
    )
    try:
        wait_for_shutdown()
    finally:
        scheduler.stop()
        build_default_scheduler.cache_clear()
    typer.echo("Collector stopped.")


@app.command("locations")
def locations_command(ctx: typer.Context) -> None:
    """Show sensors grouped by location."""
    state = _get_state(ctx)
    render_locations(state.client.get_locations())


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show whether the background collector is running."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("rediscover")
def rediscover_command(ctx: typer.Context) -> None:
    """Ask the service to refresh its sensor roster."""
    state = _get_state(ctx)
    typer.echo(f"Requesting rediscovery from {state.config.base_url} ...")
    render_rediscovery(state.client.rediscover())
