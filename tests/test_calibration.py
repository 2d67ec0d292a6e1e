"""Unit tests for time-gated calibration offsets."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from models.records import CalibrationProfile, CanonicalReading, Metric
from services.calibration import (
    apply_calibration,
    apply_calibrations,
    build_profile,
    derive_offset,
)

APPLIED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _reading(
    timestamp: datetime,
    has_own_timestamp: bool = True,
    hive_number: int = 1,
    **values: float | None,
) -> CanonicalReading:
    metrics = {metric: None for metric in Metric}
    metrics[Metric.battery] = 100.0
    metrics.update({Metric(name): value for name, value in values.items()})
    return CanonicalReading(
        hive_number=hive_number,
        timestamp_utc=timestamp,
        metrics=metrics,
        has_own_timestamp=has_own_timestamp,
    )


def _profile(**offsets: float) -> CalibrationProfile:
    return CalibrationProfile(
        hive_number=1,
        offsets={Metric(name): value for name, value in offsets.items()},
        applied_at_utc=APPLIED_AT,
    )


def test_offset_applies_only_strictly_after_calibration() -> None:
    profile = _profile(temp_internal=1.2)
    before = _reading(APPLIED_AT - timedelta(seconds=1), temp_internal=34.0)
    at = _reading(APPLIED_AT, temp_internal=34.0)
    after = _reading(APPLIED_AT + timedelta(seconds=1), temp_internal=34.0)

    assert apply_calibration(before, profile).value(Metric.temp_internal) == 34.0
    assert apply_calibration(at, profile).value(Metric.temp_internal) == 34.0
    assert apply_calibration(after, profile).value(Metric.temp_internal) == pytest.approx(35.2)


def test_profile_without_applied_at_is_ignored() -> None:
    profile = CalibrationProfile(hive_number=1, offsets={Metric.weight: 5.0})
    reading = _reading(APPLIED_AT + timedelta(days=1), weight=40.0)

    assert apply_calibration(reading, profile) is reading


def test_reading_without_own_timestamp_is_corrected() -> None:
    profile = _profile(weight=2.5)
    reading = _reading(APPLIED_AT - timedelta(days=3), has_own_timestamp=False, weight=40.0)

    assert apply_calibration(reading, profile).value(Metric.weight) == 42.5


def test_null_values_stay_null_and_zero_values_are_corrected() -> None:
    profile = _profile(weight=1.0, temp_external=0.5)
    reading = _reading(APPLIED_AT + timedelta(hours=1), weight=0.0, temp_external=None)

    corrected = apply_calibration(reading, profile)

    assert corrected.value(Metric.weight) == 1.0
    assert corrected.value(Metric.temp_external) is None


def test_corrected_values_are_resanitized() -> None:
    profile = _profile(temp_internal=2.0, weight=-5.0)
    reading = _reading(APPLIED_AT + timedelta(hours=1), temp_internal=99.5, weight=3.0)

    corrected = apply_calibration(reading, profile)

    assert corrected.value(Metric.temp_internal) is None
    assert corrected.value(Metric.weight) == 0.0


def test_defaulted_battery_is_not_corrected() -> None:
    profile = _profile(battery=-3.0)
    later = APPLIED_AT + timedelta(hours=1)
    filled_in = CanonicalReading(
        hive_number=1,
        timestamp_utc=later,
        metrics={**{metric: None for metric in Metric}, Metric.battery: 100.0},
        defaulted=frozenset({Metric.battery}),
    )

    assert apply_calibration(filled_in, profile).value(Metric.battery) == 100.0
    assert apply_calibration(_reading(later, battery=90.0), profile).value(Metric.battery) == 87.0


def test_original_reading_is_not_mutated() -> None:
    reading = _reading(APPLIED_AT + timedelta(hours=1), temp_internal=30.0)

    apply_calibration(reading, _profile(temp_internal=1.0))

    assert reading.value(Metric.temp_internal) == 30.0


def test_apply_calibrations_uses_profile_of_matching_hive() -> None:
    later = APPLIED_AT + timedelta(hours=1)
    readings = [
        _reading(later, hive_number=1, weight=10.0),
        _reading(later, hive_number=2, weight=10.0),
    ]

    corrected = apply_calibrations(readings, {1: _profile(weight=1.0)})

    assert [reading.value(Metric.weight) for reading in corrected] == [11.0, 10.0]


def test_build_profile_derives_offsets_and_expands_humidity() -> None:
    profile = build_profile(
        3,
        {"temp_internal": (34.0, 35.2), "humidity": (60.0, 57.5)},
        APPLIED_AT,
    )

    assert profile.hive_number == 3
    assert profile.applied_at_utc == APPLIED_AT
    assert profile.offsets[Metric.temp_internal] == pytest.approx(1.2)
    assert profile.offsets[Metric.hum_internal] == -2.5
    assert profile.offsets[Metric.hum_external] == -2.5
    assert derive_offset(10.0, 12.0) == 2.0


def test_build_profile_rejects_unknown_metric() -> None:
    with pytest.raises(ValueError, match="Unknown calibration metric"):
        build_profile(1, {"pressure": (1.0, 2.0)}, APPLIED_AT)
