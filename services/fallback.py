"""Last-known-value lookup for readings that transiently drop a sensor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from models.records import CanonicalReading, HiveSeries, Metric


@dataclass
class HiveSnapshot:
    hive_number: int
    values: Dict[Metric, Optional[float]] = field(default_factory=dict)


def last_known_value(
    historical: Sequence[CanonicalReading],
    current: Sequence[CanonicalReading],
    metric: Metric,
) -> Optional[float]:
    """Walk historical-then-current backwards for the last non-null, non-zero value."""
    for readings in (current, historical):
        for reading in reversed(readings):
            value = reading.value(metric)
            if value is not None and value != 0:
                return value
    return None


def _index(series: Iterable[HiveSeries]) -> Mapping[int, HiveSeries]:
    return {item.hive_number: item for item in series}


def build_snapshot(
    historical: Iterable[HiveSeries],
    current: Iterable[HiveSeries],
    hive_numbers: Sequence[int],
) -> List[HiveSnapshot]:
    historical_by_hive = _index(historical)
    current_by_hive = _index(current)
    snapshots: List[HiveSnapshot] = []
    for hive_number in hive_numbers:
        past = historical_by_hive.get(hive_number)
        now = current_by_hive.get(hive_number)
        past_readings = past.readings if past else ()
        now_readings = now.readings if now else ()
        snapshots.append(
            HiveSnapshot(
                hive_number=hive_number,
                values={
                    metric: last_known_value(past_readings, now_readings, metric)
                    for metric in Metric
                },
            )
        )
    return snapshots
