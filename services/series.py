"""Time windowing and per-hive series shaping for presentation layers."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from models.records import CanonicalReading, HiveSeries, Metric, TimeRange

TIME_RANGE_WINDOWS: Dict[TimeRange, Optional[timedelta]] = {
    TimeRange.last_24h: timedelta(hours=24),
    TimeRange.last_7d: timedelta(days=7),
    TimeRange.last_30d: timedelta(days=30),
    TimeRange.all: None,
}


def filter_by_time_range(
    readings: Iterable[CanonicalReading],
    time_range: TimeRange,
    now: datetime,
) -> List[CanonicalReading]:
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    window = TIME_RANGE_WINDOWS[TimeRange(time_range)]
    if window is None:
        return list(readings)
    cutoff = now - window
    return [reading for reading in readings if reading.timestamp_utc >= cutoff]


def _has_value(reading: CanonicalReading, metrics: Sequence[Metric]) -> bool:
    return any(reading.has_reading(metric) for metric in metrics)


def build_series(
    readings: Iterable[CanonicalReading],
    hive_numbers: Optional[Sequence[int]] = None,
    metrics: Optional[Sequence[Metric]] = None,
) -> List[HiveSeries]:
    """Group readings into one ascending series per requested hive.

    Timestamps where none of the requested hives has a measured value for any
    of the requested metrics are dropped for every hive. Values filled in by a
    domain default, such as the battery fallback, do not count.
    """
    readings = list(readings)
    wanted_metrics = tuple(metrics) if metrics else tuple(Metric)
    if hive_numbers is None:
        hive_numbers = sorted({reading.hive_number for reading in readings})
    requested = sorted(set(hive_numbers))
    requested_set = set(requested)

    selected = [reading for reading in readings if reading.hive_number in requested_set]
    kept_timestamps = {
        reading.timestamp_utc for reading in selected if _has_value(reading, wanted_metrics)
    }

    by_hive: Dict[int, List[CanonicalReading]] = {hive_number: [] for hive_number in requested}
    for reading in selected:
        if reading.timestamp_utc in kept_timestamps:
            by_hive[reading.hive_number].append(reading)

    return [
        HiveSeries(
            hive_number=hive_number,
            readings=tuple(sorted(by_hive[hive_number], key=lambda item: item.timestamp_utc)),
        )
        for hive_number in requested
    ]


def to_chart_rows(series: Iterable[HiveSeries], metric: Metric) -> List[Dict[str, Any]]:
    """Flatten series into wide rows keyed ``<metric>_<hive>`` per timestamp."""
    rows: Dict[datetime, Dict[str, Any]] = {}
    for item in series:
        for timestamp, value in item.values(metric):
            if value is None:
                continue
            row = rows.setdefault(timestamp, {"timestamp": timestamp.isoformat()})
            row[f"{metric.value}_{item.hive_number}"] = value
    return [rows[timestamp] for timestamp in sorted(rows)]
