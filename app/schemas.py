"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from models.records import ExportFormat, Metric, WarningKind

CalibrationKey = Literal[
    "temp_internal",
    "temp_external",
    "hum_internal",
    "hum_external",
    "humidity",
    "weight",
    "battery",
]


class ReadingOut(BaseModel):
    """One canonical reading as exposed to chart and snapshot consumers."""

    timestamp: datetime
    has_own_timestamp: bool
    metrics: Dict[Metric, Optional[float]]


class HiveSeriesOut(BaseModel):
    hive_number: int = Field(..., ge=1)
    hive_name: str
    readings: List[ReadingOut] = Field(default_factory=list)


class WarningOut(BaseModel):
    kind: WarningKind
    row_index: int = Field(..., ge=0)
    detail: str


class SeriesResponse(BaseModel):
    """Per-hive series computed from one uploaded export."""

    apiary_id: str
    export_format: ExportFormat
    device_count: int = Field(..., ge=0)
    hive_numbers: List[int] = Field(default_factory=list)
    metrics: List[Metric] = Field(default_factory=lambda: list(Metric))
    series: List[HiveSeriesOut] = Field(default_factory=list)
    warnings: List[WarningOut] = Field(default_factory=list)
    # Wide rows keyed ``<metric>_<hive>``, present when exactly one metric is requested.
    chart_rows: Optional[List[Dict[str, Any]]] = None


class HiveSnapshotOut(BaseModel):
    hive_number: int = Field(..., ge=1)
    hive_name: str
    values: Dict[Metric, Optional[float]]


class SnapshotResponse(BaseModel):
    """Last known value per hive and metric, falling back to historical data."""

    apiary_id: str
    device_count: int = Field(..., ge=0)
    hives: List[HiveSnapshotOut] = Field(default_factory=list)


class CalibrationEntry(BaseModel):
    """Displayed value next to the reference measurement taken by the operator."""

    visualized: float
    real: float


class CalibrationRequest(BaseModel):
    entries: Dict[CalibrationKey, CalibrationEntry] = Field(..., min_length=1)


class CalibrationRecord(BaseModel):
    """Stored calibration profile for one hive of one apiary."""

    apiary_id: str
    hive_number: int = Field(..., ge=1)
    offsets: Dict[Metric, float] = Field(default_factory=dict)
    applied_at: Optional[datetime] = Field(
        default=None, description="Readings taken strictly after this instant are corrected."
    )
