"""Wires export parsing, calibration snapshots and the pipeline for the API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Mapping, Optional, Sequence

from app.schemas import (
    CalibrationEntry,
    CalibrationRecord,
    HiveSeriesOut,
    HiveSnapshotOut,
    ReadingOut,
    SeriesResponse,
    SnapshotResponse,
    WarningOut,
)
from datastore.calibration_store import CalibrationStore, build_default_store
from models.records import HiveSeries, Metric, TimeRange
from services.attribution import hive_label
from services.calibration import build_profile
from services.export_reader import read_export
from services.fallback import build_snapshot
from services.pipeline import TelemetryPipeline
from services.series import to_chart_rows
from settings import get_settings

logger = logging.getLogger(__name__)


def _series_out(item: HiveSeries, master_count: int) -> HiveSeriesOut:
    return HiveSeriesOut(
        hive_number=item.hive_number,
        hive_name=hive_label(item.hive_number, master_count),
        readings=[
            ReadingOut(
                timestamp=reading.timestamp_utc,
                has_own_timestamp=reading.has_own_timestamp,
                metrics=dict(reading.metrics),
            )
            for reading in item.readings
        ],
    )


class TelemetryService:
    """Coordinates calibration storage and pipeline runs for uploaded exports."""

    def __init__(
        self,
        store: CalibrationStore,
        pipeline: TelemetryPipeline,
        master_count: int = 1,
        default_time_range: TimeRange = TimeRange.all,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.master_count = master_count
        self.default_time_range = default_time_range

    def build_series(
        self,
        apiary_id: str,
        contents: bytes,
        time_range: Optional[TimeRange] = None,
        hive_numbers: Optional[Sequence[int]] = None,
        device_count: Optional[int] = None,
        now: Optional[datetime] = None,
        metrics: Optional[Sequence[Metric]] = None,
    ) -> SeriesResponse:
        """Run the pipeline over one export; raises ``ValueError`` on unreadable files."""
        readings = read_export(contents)
        wanted = list(dict.fromkeys(metrics)) if metrics else list(Metric)
        result = self.pipeline.run(
            readings,
            self.store.snapshot(apiary_id),
            time_range=time_range or self.default_time_range,
            now=now or datetime.now(timezone.utc),
            hive_numbers=hive_numbers or None,
            metrics=wanted,
            device_count=device_count,
        )
        if result.warnings:
            logger.warning(
                "Export rows skipped during attribution",
                extra={"apiary_id": apiary_id, "row_count": len(result.warnings)},
            )
        return SeriesResponse(
            apiary_id=apiary_id,
            export_format=result.export_format,
            device_count=result.device_count,
            hive_numbers=result.hive_numbers,
            metrics=wanted,
            series=[_series_out(item, self.master_count) for item in result.series],
            warnings=[
                WarningOut(kind=warning.kind, row_index=warning.row_index, detail=warning.detail)
                for warning in result.warnings
            ],
            chart_rows=to_chart_rows(result.series, wanted[0]) if len(wanted) == 1 else None,
        )

    def build_snapshot(
        self,
        apiary_id: str,
        current: bytes,
        historical: Optional[bytes] = None,
        device_count: Optional[int] = None,
    ) -> SnapshotResponse:
        calibrations = self.store.snapshot(apiary_id)
        current_result = self.pipeline.run(
            read_export(current), calibrations, device_count=device_count
        )
        historical_series: list[HiveSeries] = []
        resolved_count = current_result.device_count
        if historical:
            historical_result = self.pipeline.run(
                read_export(historical), calibrations, device_count=device_count
            )
            historical_series = historical_result.series
            resolved_count = max(resolved_count, historical_result.device_count)

        hive_numbers = list(range(1, resolved_count + 1))
        snapshots = build_snapshot(historical_series, current_result.series, hive_numbers)
        return SnapshotResponse(
            apiary_id=apiary_id,
            device_count=resolved_count,
            hives=[
                HiveSnapshotOut(
                    hive_number=snapshot.hive_number,
                    hive_name=hive_label(snapshot.hive_number, self.master_count),
                    values=dict(snapshot.values),
                )
                for snapshot in snapshots
            ],
        )

    def save_calibration(
        self,
        apiary_id: str,
        hive_number: int,
        entries: Mapping[str, CalibrationEntry],
        applied_at: Optional[datetime] = None,
    ) -> CalibrationRecord:
        profile = build_profile(
            hive_number,
            {key: (entry.visualized, entry.real) for key, entry in entries.items()},
            applied_at or datetime.now(timezone.utc),
        )
        record = CalibrationRecord(
            apiary_id=apiary_id,
            hive_number=hive_number,
            offsets=dict(profile.offsets),
            applied_at=profile.applied_at_utc,
        )
        self.store.put(record)
        logger.info(
            "Saved calibration profile",
            extra={"apiary_id": apiary_id, "hive_number": hive_number},
        )
        return record

    def fetch_calibration(self, apiary_id: str, hive_number: int) -> CalibrationRecord:
        record = self.store.get(apiary_id, hive_number)
        if record is None:
            raise KeyError(
                f"No calibration stored for hive {hive_number} of apiary {apiary_id!r}."
            )
        return record


@lru_cache
def build_default_service() -> TelemetryService:
    """Factory that wires the service from environment settings."""
    settings = get_settings()
    return TelemetryService(
        store=build_default_store(),
        pipeline=TelemetryPipeline(device_count=settings.device_count),
        master_count=settings.master_count,
        default_time_range=settings.default_time_range,
    )
