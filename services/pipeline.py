"""Compose the normalization stages into a single deterministic run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from models.records import (
    CalibrationProfile,
    CanonicalReading,
    ExportFormat,
    HiveSeries,
    Metric,
    PipelineWarning,
    RawReading,
    TimeRange,
)
from services.attribution import attribute
from services.calibration import apply_calibrations
from services.normalizer import detect_export_format, normalize_fields, parse_timestamp
from services.sanitizer import defaulted_metrics, is_valid, sanitize_metrics
from services.series import build_series, filter_by_time_range
from services.shared_fields import propagate_shared

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    series: List[HiveSeries] = field(default_factory=list)
    device_count: int = 0
    export_format: ExportFormat = ExportFormat.unknown
    warnings: List[PipelineWarning] = field(default_factory=list)

    @property
    def hive_numbers(self) -> List[int]:
        return [item.hive_number for item in self.series]


def as_raw_readings(rows: Iterable[RawReading | Mapping[str, Any]]) -> List[RawReading]:
    """Wrap plain mappings, taking ``_metadata.lastModified`` as the source timestamp."""
    if rows is None:
        raise TypeError("rows must be an iterable of readings, not None")

    readings: List[RawReading] = []
    for index, row in enumerate(rows):
        if isinstance(row, RawReading):
            readings.append(row)
            continue
        if not isinstance(row, Mapping):
            raise TypeError(f"row {index} is {type(row).__name__}, expected a mapping")
        metadata = row.get("_metadata")
        source = None
        if isinstance(metadata, Mapping):
            source = parse_timestamp(metadata.get("lastModified"))
        readings.append(RawReading(fields=row, row_index=index, source_timestamp=source))
    return readings


class TelemetryPipeline:
    """Turns raw export rows into canonical per-hive series.

    Stateless: every call recomputes from its inputs, so instances can be
    shared across threads.
    """

    def __init__(self, device_count: Optional[int] = None) -> None:
        self.device_count = device_count

    def canonicalize(
        self,
        rows: Iterable[RawReading | Mapping[str, Any]],
        calibrations: Optional[Mapping[int, CalibrationProfile]] = None,
        device_count: Optional[int] = None,
    ) -> tuple[List[CanonicalReading], int, List[PipelineWarning]]:
        readings = as_raw_readings(rows)
        attribution = attribute(readings, device_count or self.device_count)

        canonical: List[CanonicalReading] = []
        for batch in attribution.batches:
            normalized = [normalize_fields(row.raw) for row in batch.rows]
            propagated = propagate_shared(normalized, is_valid)
            for row, values in zip(batch.rows, propagated):
                canonical.append(
                    CanonicalReading(
                        hive_number=row.hive_number,
                        timestamp_utc=batch.timestamp_utc,
                        metrics=sanitize_metrics(values),
                        has_own_timestamp=row.has_own_timestamp,
                        defaulted=defaulted_metrics(values),
                    )
                )

        corrected = apply_calibrations(canonical, calibrations)
        return corrected, attribution.device_count, attribution.warnings

    def run(
        self,
        rows: Iterable[RawReading | Mapping[str, Any]],
        calibrations: Optional[Mapping[int, CalibrationProfile]] = None,
        *,
        time_range: TimeRange = TimeRange.all,
        now: Optional[datetime] = None,
        hive_numbers: Optional[Sequence[int]] = None,
        metrics: Optional[Sequence[Metric]] = None,
        device_count: Optional[int] = None,
    ) -> PipelineResult:
        start_time = time.perf_counter()
        readings = as_raw_readings(rows)
        export_format = detect_export_format(readings)

        canonical, resolved_count, warnings = self.canonicalize(
            readings, calibrations, device_count
        )
        if TimeRange(time_range) is not TimeRange.all:
            if now is None:
                raise ValueError("now is required when filtering by time range")
            canonical = filter_by_time_range(canonical, time_range, now)

        if hive_numbers is None:
            hive_numbers = list(range(1, resolved_count + 1))
        series = build_series(canonical, hive_numbers, metrics)

        logger.info(
            "Normalized telemetry export",
            extra={
                "row_count": len(readings),
                "batch_count": len({reading.timestamp_utc for reading in canonical}),
                "device_count": resolved_count,
                "export_format": export_format.value,
                "processing_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return PipelineResult(
            series=series,
            device_count=resolved_count,
            export_format=export_format,
            warnings=warnings,
        )
