"""Resolve heterogeneous export field names to canonical metrics."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from models.records import ExportFormat, Metric, RawReading

# Checked in order; the first non-empty alias wins. Extend these tuples to
# support a new export schema.
METRIC_ALIASES: Dict[Metric, Tuple[str, ...]] = {
    Metric.temp_internal: (
        "int_temp",
        "temp_internal",
        "Internal_temp",
        "temperature_internal",
        "tempInternal",
        "inte_temp",
    ),
    Metric.temp_external: (
        "ext_temp",
        "temp_external",
        "external_temp",
        "temperature_external",
        "tempExternal",
        "exte_temp",
    ),
    Metric.hum_internal: (
        "int_hum",
        "hum_internal",
        "Internal_hum",
        "humidity_internal",
        "humInternal",
        "inte_hum",
    ),
    Metric.hum_external: (
        "ext_hum",
        "hum_external",
        "external_hum",
        "humidity_external",
        "humExternal",
        "exte_hum",
    ),
    Metric.weight: ("weight", "Weight", "weight_kg"),
    Metric.battery: ("battery", "Battery", "battery_level", "bat", "batt"),
}

TIMESTAMP_ALIASES: Tuple[str, ...] = (
    "timestamp",
    "Timestamp",
    "time",
    "Time",
    "datetime",
    "DateTime",
    "Date",
)

DEVICE_ID_ALIASES: Tuple[str, ...] = ("id", "device_id")

_EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)


def _fields(raw: RawReading | Mapping[str, Any]) -> Mapping[str, Any]:
    return raw.fields if isinstance(raw, RawReading) else raw


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def first_present(raw: RawReading | Mapping[str, Any], aliases: Sequence[str]) -> Any:
    """Return the first non-empty value among ``aliases`` or ``None``."""
    fields = _fields(raw)
    for alias in aliases:
        value = fields.get(alias)
        if not _is_empty(value):
            return value
    return None


def coerce_float(value: Any) -> Optional[float]:
    """Coerce a numeric or numeric-string value; anything else becomes ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            candidate = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return candidate if math.isfinite(candidate) else None


def resolve_metric(raw: RawReading | Mapping[str, Any], metric: Metric) -> Optional[float]:
    return coerce_float(first_present(raw, METRIC_ALIASES[metric]))


def normalize_fields(raw: RawReading | Mapping[str, Any]) -> Dict[Metric, Optional[float]]:
    return {metric: resolve_metric(raw, metric) for metric in Metric}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or an Excel serial date into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            return _EXCEL_EPOCH + timedelta(days=float(value))
        except OverflowError:
            return None
    elif isinstance(value, str):
        candidate = value.strip()
        # Spreadsheet exports render overflowing date cells as "#####".
        if not candidate or "#" in candidate:
            return None
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_own_timestamp(raw: RawReading | Mapping[str, Any]) -> Optional[datetime]:
    return parse_timestamp(first_present(raw, TIMESTAMP_ALIASES))


def has_device_id_field(raw: RawReading | Mapping[str, Any]) -> bool:
    return first_present(raw, DEVICE_ID_ALIASES) is not None


def resolve_device_id(raw: RawReading | Mapping[str, Any]) -> Optional[int]:
    """Return the explicit zero-based device id, or ``None`` when unusable."""
    number = coerce_float(first_present(raw, DEVICE_ID_ALIASES))
    if number is None or number < 0 or not number.is_integer():
        return None
    return int(number)


def detect_export_format(rows: Sequence[RawReading | Mapping[str, Any]]) -> ExportFormat:
    """Classify the export schema version from the first row's field names."""
    if not rows:
        return ExportFormat.unknown

    sample = _fields(rows[0])
    has_time = "time" in sample
    has_timestamp = "timestamp" in sample
    has_new_temps = "int_temp" in sample or "ext_temp" in sample
    has_old_temps = "temp_internal" in sample or "temp_external" in sample

    if has_time and has_new_temps:
        return ExportFormat.new
    if has_timestamp and has_old_temps:
        return ExportFormat.old
    if has_new_temps:
        return ExportFormat.new
    if has_old_temps:
        return ExportFormat.old
    return ExportFormat.unknown
