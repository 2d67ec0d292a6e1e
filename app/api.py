"""HTTP route definitions for the service.

Upload routes are plain functions: the pipeline and the calibration store are
blocking, so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Path, Query, UploadFile, status

from app.schemas import CalibrationRecord, CalibrationRequest, SeriesResponse, SnapshotResponse
from models.records import Metric, TimeRange
from services.telemetry_service import TelemetryService, build_default_service

router = APIRouter()


def get_service() -> TelemetryService:
    return build_default_service()


def _read_upload(file: UploadFile) -> bytes:
    file.file.seek(0)
    contents = file.file.read()
    if isinstance(contents, str):
        contents = contents.encode("utf-8")
    if not contents:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty.",
        )
    return contents


@router.post(
    "/apiaries/{apiary_id}/series",
    response_model=SeriesResponse,
    summary="Normalize an export and return per-hive series.",
)
def build_series(
    apiary_id: str,
    file: UploadFile = File(..., description="Telemetry export (CSV, one row per hive)."),
    time_range: Optional[TimeRange] = Query(None, description="Window relative to now."),
    hive: Optional[List[int]] = Query(None, description="Hive numbers to include."),
    metric: Optional[List[Metric]] = Query(None, description="Metrics to chart; defaults to all."),
    device_count: Optional[int] = Query(None, ge=1, description="Configured hive count."),
    service: TelemetryService = Depends(get_service),
) -> SeriesResponse:
    if hive and min(hive) < 1:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Hive numbers start at 1.",
        )
    contents = _read_upload(file)
    try:
        return service.build_series(
            apiary_id,
            contents,
            time_range=time_range,
            hive_numbers=hive,
            device_count=device_count,
            metrics=metric,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post(
    "/apiaries/{apiary_id}/snapshot",
    response_model=SnapshotResponse,
    summary="Last known value per hive and metric.",
)
def build_snapshot(
    apiary_id: str,
    file: UploadFile = File(..., description="Most recent telemetry export."),
    historical: Optional[UploadFile] = File(None, description="Earlier exports to fall back on."),
    device_count: Optional[int] = Query(None, ge=1),
    service: TelemetryService = Depends(get_service),
) -> SnapshotResponse:
    current = _read_upload(file)
    past = _read_upload(historical) if historical is not None else None
    try:
        return service.build_snapshot(apiary_id, current, past, device_count=device_count)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.put(
    "/apiaries/{apiary_id}/hives/{hive_number}/calibration",
    response_model=CalibrationRecord,
    summary="Save calibration offsets effective from now on.",
)
def save_calibration(
    apiary_id: str,
    request: CalibrationRequest,
    hive_number: int = Path(..., ge=1),
    service: TelemetryService = Depends(get_service),
) -> CalibrationRecord:
    return service.save_calibration(apiary_id, hive_number, request.entries)


@router.get(
    "/apiaries/{apiary_id}/hives/{hive_number}/calibration",
    response_model=CalibrationRecord,
    summary="Fetch the stored calibration for a hive.",
)
def get_calibration(
    apiary_id: str,
    hive_number: int = Path(..., ge=1),
    service: TelemetryService = Depends(get_service),
) -> CalibrationRecord:
    try:
        return service.fetch_calibration(apiary_id, hive_number)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
