"""Time-gated additive calibration offsets."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple

from models.records import CalibrationProfile, CanonicalReading, Metric
from services.sanitizer import sanitize_value

logger = logging.getLogger(__name__)

# Operator entry keys that calibrate more than one canonical metric.
CALIBRATION_GROUPS: Dict[str, Tuple[Metric, ...]] = {
    "humidity": (Metric.hum_internal, Metric.hum_external),
}


def derive_offset(visualized: float, real: float) -> float:
    """Offset that moves the displayed value onto the reference measurement."""
    return real - visualized


def expand_entry_key(key: str) -> Tuple[Metric, ...]:
    if key in CALIBRATION_GROUPS:
        return CALIBRATION_GROUPS[key]
    try:
        return (Metric(key),)
    except ValueError as exc:
        raise ValueError(f"Unknown calibration metric {key!r}.") from exc


def build_profile(
    hive_number: int,
    entries: Mapping[str, Tuple[float, float]],
    applied_at: Optional[datetime],
) -> CalibrationProfile:
    """Build a profile from ``{key: (visualized, real)}`` operator entries."""
    offsets: Dict[Metric, float] = {}
    for key, (visualized, real) in entries.items():
        offset = derive_offset(visualized, real)
        for metric in expand_entry_key(key):
            offsets[metric] = offset
    return CalibrationProfile(hive_number=hive_number, offsets=offsets, applied_at_utc=applied_at)


def is_after_calibration(reading: CanonicalReading, profile: CalibrationProfile) -> bool:
    """Whether ``reading`` falls inside the profile's effective period.

    A reading without a timestamp of its own (its time came from the export
    batch) is treated as later than any calibration, so corrections are not
    dropped from fallback data. This is a policy choice.
    """
    if profile.applied_at_utc is None:
        return False
    if not reading.has_own_timestamp:
        return True
    return reading.timestamp_utc > profile.applied_at_utc


def apply_calibration(
    reading: CanonicalReading,
    profile: Optional[CalibrationProfile],
) -> CanonicalReading:
    if profile is None or profile.applied_at_utc is None:
        return reading
    if not is_after_calibration(reading, profile):
        logger.debug(
            "Reading predates calibration; leaving uncorrected",
            extra={"hive_number": reading.hive_number},
        )
        return reading

    corrected = dict(reading.metrics)
    for metric, offset in profile.offsets.items():
        value = corrected.get(metric)
        if not offset or value is None or metric in reading.defaulted:
            continue
        corrected[metric] = sanitize_value(metric, value + offset)
    return replace(reading, metrics=corrected)


def apply_calibrations(
    readings: list[CanonicalReading],
    profiles: Optional[Mapping[int, CalibrationProfile]],
) -> list[CanonicalReading]:
    if not profiles:
        return list(readings)
    return [apply_calibration(reading, profiles.get(reading.hive_number)) for reading in readings]
