"""Propagate apiary-wide sensor values to every hive in a batch."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models.records import Metric

# Mounted once per apiary, not once per hive.
SHARED_METRICS: Tuple[Metric, ...] = (Metric.temp_external, Metric.hum_external)

Validator = Callable[[Metric, Optional[float]], bool]


def first_shared_value(
    rows: Sequence[Dict[Metric, Optional[float]]],
    metric: Metric,
    is_valid: Validator,
) -> Optional[float]:
    for values in rows:
        candidate = values.get(metric)
        if is_valid(metric, candidate):
            return candidate
    return None


def propagate_shared(
    rows: Sequence[Dict[Metric, Optional[float]]],
    is_valid: Validator,
    metrics: Sequence[Metric] = SHARED_METRICS,
) -> List[Dict[Metric, Optional[float]]]:
    """Return copies of ``rows`` with each shared metric set to the batch-wide value.

    The first value accepted by ``is_valid`` anywhere in the batch wins; when no
    row carries one, the metric is ``None`` on every row.
    """
    shared = {metric: first_shared_value(rows, metric, is_valid) for metric in metrics}
    propagated: List[Dict[Metric, Optional[float]]] = []
    for values in rows:
        updated = dict(values)
        updated.update(shared)
        propagated.append(updated)
    return propagated
