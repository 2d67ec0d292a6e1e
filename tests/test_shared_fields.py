from __future__ import annotations

from models.records import Metric
from services.sanitizer import is_valid
from services.shared_fields import SHARED_METRICS, propagate_shared


def _row(**values: float | None) -> dict[Metric, float | None]:
    return {Metric(name): value for name, value in values.items()}


def test_first_valid_value_is_copied_to_every_row() -> None:
    rows = [
        _row(temp_internal=34.0),
        _row(temp_internal=35.0, temp_external=21.4),
        _row(temp_internal=33.0, temp_external=19.0),
    ]

    propagated = propagate_shared(rows, is_valid)

    assert [row[Metric.temp_external] for row in propagated] == [21.4, 21.4, 21.4]
    assert [row[Metric.temp_internal] for row in propagated] == [34.0, 35.0, 33.0]


def test_sentinel_does_not_hide_later_valid_value() -> None:
    rows = [_row(temp_external=-127.0), _row(temp_external=18.5)]

    propagated = propagate_shared(rows, is_valid)

    assert all(row[Metric.temp_external] == 18.5 for row in propagated)


def test_shared_metric_is_null_when_no_row_has_it() -> None:
    rows = [_row(hum_external=None, temp_external=20.0), _row(hum_external=999.0)]

    propagated = propagate_shared(rows, is_valid)

    assert all(row[Metric.hum_external] is None for row in propagated)
    assert all(row[Metric.temp_external] == 20.0 for row in propagated)


def test_inputs_are_not_mutated() -> None:
    rows = [_row(temp_external=None), _row(temp_external=12.0)]

    propagate_shared(rows, is_valid)

    assert rows[0][Metric.temp_external] is None


def test_shared_metrics_are_the_external_sensors() -> None:
    assert SHARED_METRICS == (Metric.temp_external, Metric.hum_external)
