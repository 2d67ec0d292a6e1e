from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_calibration, render_series, render_snapshot
from models.records import Metric


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the hive telemetry service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _parse_entry(raw: str) -> tuple[str, Dict[str, float]]:
    parts = raw.split(":")
    if len(parts) != 3:
        raise typer.BadParameter(f"Expected metric:visualized:real, got {raw!r}.")
    metric, visualized, real = parts
    try:
        return metric.strip(), {"visualized": float(visualized), "real": float(real)}
    except ValueError as exc:
        raise typer.BadParameter(f"Non-numeric calibration value in {raw!r}.") from exc


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("series")
def series_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Export CSV."),
    apiary: str = typer.Option("default", "--apiary", "-a", help="Apiary (container) identifier."),
    time_range: Optional[str] = typer.Option(
        None,
        "--range",
        "-r",
        help="Window to keep: 24h, 7d, 30d or all.",
    ),
    hives: Optional[List[int]] = typer.Option(
        None,
        "--hive",
        help="Hive number to include; repeat for several.",
    ),
    device_count: Optional[int] = typer.Option(
        None,
        "--device-count",
        help="Configured number of hives; extra rows are ignored.",
    ),
    metrics: Optional[List[Metric]] = typer.Option(
        None,
        "--metric",
        "-m",
        case_sensitive=False,
        help="Metric to chart; repeat for several. Defaults to all.",
    ),
) -> None:
    """Normalize an export and print per-hive series."""
    state = _get_state(ctx)
    payload = state.client.fetch_series(
        apiary,
        file,
        time_range=time_range,
        hives=hives,
        device_count=device_count,
        metrics=[metric.value for metric in metrics] if metrics else None,
    )
    render_series(payload)


@app.command("snapshot")
def snapshot_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Latest export CSV."),
    apiary: str = typer.Option("default", "--apiary", "-a", help="Apiary (container) identifier."),
    historical: Optional[Path] = typer.Option(
        None,
        "--historical",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Earlier export used when the latest one lacks a value.",
    ),
) -> None:
    """Print the last known value of every metric per hive."""
    state = _get_state(ctx)
    payload = state.client.fetch_snapshot(apiary, file, historical=historical)
    render_snapshot(payload)


@app.command("calibrate")
def calibrate_command(
    ctx: typer.Context,
    apiary: str = typer.Argument(..., help="Apiary (container) identifier."),
    hive_number: int = typer.Argument(..., min=1, help="Hive number to calibrate."),
    entries: List[str] = typer.Option(
        ...,
        "--entry",
        "-e",
        help="metric:visualized:real, e.g. temp_internal:34.2:35.0 (metric may be 'humidity').",
    ),
) -> None:
    """Save calibration offsets for a hive, effective from now on."""
    state = _get_state(ctx)
    parsed = dict(_parse_entry(entry) for entry in entries)
    payload = state.client.save_calibration(apiary, hive_number, parsed)
    typer.secho("Calibration saved.", fg=typer.colors.GREEN)
    render_calibration(payload)


@app.command("calibration")
def calibration_command(
    ctx: typer.Context,
    apiary: str = typer.Argument(..., help="Apiary (container) identifier."),
    hive_number: int = typer.Argument(..., min=1, help="Hive number."),
) -> None:
    """Show the stored calibration for a hive."""
    state = _get_state(ctx)
    render_calibration(state.client.get_calibration(apiary, hive_number))
