"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


class Metric(str, Enum):
    """Canonical metrics carried by every reading, in output order."""

    temp_internal = "temp_internal"
    temp_external = "temp_external"
    hum_internal = "hum_internal"
    hum_external = "hum_external"
    weight = "weight"
    battery = "battery"


class TimeRange(str, Enum):
    """Presentation windows supported by the series builder."""

    last_24h = "24h"
    last_7d = "7d"
    last_30d = "30d"
    all = "all"


class WarningKind(str, Enum):
    missing_timestamp = "missing_timestamp"
    missing_device_id = "missing_device_id"
    duplicate_device = "duplicate_device"
    excess_row = "excess_row"


class ExportFormat(str, Enum):
    new = "new"
    old = "old"
    unknown = "unknown"


@dataclass(frozen=True, slots=True)
class RawReading:
    """One untyped export row plus the timestamp of the export it came from."""

    fields: Mapping[str, Any]
    row_index: int = 0
    source_timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class AttributedRow:
    hive_number: int
    raw: RawReading
    has_own_timestamp: bool


@dataclass(frozen=True, slots=True)
class ReadingBatch:
    """Rows sharing one nominal export timestamp, in arrival order."""

    timestamp_utc: datetime
    rows: Tuple[AttributedRow, ...]


@dataclass(frozen=True, slots=True)
class CanonicalReading:
    """Normalized, sanitized and calibration-corrected metrics of one hive."""

    hive_number: int
    timestamp_utc: datetime
    metrics: Dict[Metric, Optional[float]]
    has_own_timestamp: bool = True
    # Metrics whose value was filled in by a domain default, not measured.
    defaulted: FrozenSet[Metric] = frozenset()

    def value(self, metric: Metric) -> Optional[float]:
        return self.metrics.get(metric)

    def has_reading(self, metric: Metric) -> bool:
        return self.metrics.get(metric) is not None and metric not in self.defaulted


@dataclass(frozen=True, slots=True)
class HiveSeries:
    """Time-ascending readings for a single hive."""

    hive_number: int
    readings: Tuple[CanonicalReading, ...] = ()

    def latest(self) -> Optional[CanonicalReading]:
        return self.readings[-1] if self.readings else None

    def values(self, metric: Metric) -> list[tuple[datetime, Optional[float]]]:
        return [(reading.timestamp_utc, reading.value(metric)) for reading in self.readings]


@dataclass(frozen=True, slots=True)
class CalibrationProfile:
    """Operator-supplied additive offsets for one hive.

    Offsets only affect readings taken strictly after ``applied_at_utc``.
    """

    hive_number: int
    offsets: Dict[Metric, float] = field(default_factory=dict)
    applied_at_utc: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class PipelineWarning:
    """A row the pipeline skipped, kept as data rather than raised."""

    kind: WarningKind
    row_index: int
    detail: str
