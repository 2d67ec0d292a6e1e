from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import typer

METRIC_COLUMNS = (
    "temp_internal",
    "temp_external",
    "hum_internal",
    "hum_external",
    "weight",
    "battery",
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_value(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:g}"


def _format_metrics(metrics: Dict[str, Any], columns: Sequence[str] = METRIC_COLUMNS) -> str:
    return " ".join(f"{name}={_format_value(metrics.get(name))}" for name in columns)


def _render_warnings(warnings: List[Dict[str, Any]]) -> None:
    typer.echo()
    echo_heading("Skipped Rows")
    if not warnings:
        typer.echo("No rows skipped.")
        return
    for warning in warnings:
        typer.echo(f"  - row {warning.get('row_index')}: {warning.get('detail')}")


def render_series(payload: Dict[str, Any]) -> None:
    columns = payload.get("metrics") or METRIC_COLUMNS
    echo_heading("Hive Series")
    echo_key_values(
        [
            ("apiary_id", payload.get("apiary_id")),
            ("export_format", payload.get("export_format")),
            ("device_count", payload.get("device_count")),
            ("metrics", ", ".join(columns)),
        ]
    )
    for hive in payload.get("series") or []:
        typer.echo()
        readings = hive.get("readings") or []
        echo_heading(f"{hive.get('hive_name')} ({len(readings)} readings)")
        for reading in readings:
            metrics = _format_metrics(reading.get("metrics") or {}, columns)
            typer.echo(f"  {reading.get('timestamp')}  {metrics}")
    chart_rows = payload.get("chart_rows")
    if chart_rows:
        typer.echo()
        echo_heading("Chart Rows")
        for row in chart_rows:
            values = " ".join(f"{key}={value}" for key, value in row.items() if key != "timestamp")
            typer.echo(f"  {row.get('timestamp')}  {values}")
    _render_warnings(payload.get("warnings") or [])


def render_snapshot(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Values")
    echo_key_values([("apiary_id", payload.get("apiary_id"))])
    hives = payload.get("hives") or []
    if not hives:
        typer.echo("No hives found.")
        return
    for hive in hives:
        typer.echo(f"  {hive.get('hive_name')}: {_format_metrics(hive.get('values') or {})}")


def render_calibration(payload: Dict[str, Any]) -> None:
    echo_heading("Calibration")
    echo_key_values(
        [
            ("apiary_id", payload.get("apiary_id")),
            ("hive_number", payload.get("hive_number")),
            ("applied_at", payload.get("applied_at")),
        ]
    )
    offsets = payload.get("offsets") or {}
    if offsets:
        typer.echo("offsets:")
        for metric, offset in offsets.items():
            typer.echo(f"  - {metric}: {offset:+.2f}")
    else:
        typer.echo("No offsets stored.")
