"""Per-metric domain validation for normalized readings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional

from models.records import Metric


@dataclass(frozen=True)
class DomainRule:
    """Acceptance window and clamping policy for one metric.

    Values outside ``[reject_below, reject_above]`` are replaced with
    ``out_of_range``; accepted values under ``floor`` are clamped to it.
    """

    reject_below: Optional[float] = None
    reject_above: Optional[float] = None
    floor: Optional[float] = 0.0
    sentinel: Optional[float] = None
    out_of_range: Optional[float] = None
    missing: Optional[float] = None


BATTERY_DEFAULT = 100.0

DOMAIN_RULES: Dict[Metric, DomainRule] = {
    Metric.temp_internal: DomainRule(reject_below=-100.0, reject_above=100.0, sentinel=-127.0),
    Metric.temp_external: DomainRule(reject_below=-100.0, reject_above=100.0, sentinel=-127.0),
    Metric.hum_internal: DomainRule(reject_below=-50.0, reject_above=150.0),
    Metric.hum_external: DomainRule(reject_below=-50.0, reject_above=150.0),
    Metric.weight: DomainRule(reject_above=500.0),
    Metric.battery: DomainRule(
        reject_below=0.0,
        reject_above=200.0,
        floor=None,
        out_of_range=BATTERY_DEFAULT,
        missing=BATTERY_DEFAULT,
    ),
}


def sanitize_value(metric: Metric, value: Optional[float]) -> Optional[float]:
    rule = DOMAIN_RULES[metric]
    if value is None or not math.isfinite(value):
        return rule.missing
    if rule.sentinel is not None and value == rule.sentinel:
        return rule.missing
    if rule.reject_above is not None and value > rule.reject_above:
        return rule.out_of_range
    if rule.reject_below is not None and value < rule.reject_below:
        return rule.out_of_range
    if rule.floor is not None and value < rule.floor:
        return rule.floor
    return float(value)


def is_valid(metric: Metric, value: Optional[float]) -> bool:
    """True when ``value`` is an actual reading the domain rules accept."""
    if value is None or not math.isfinite(value):
        return False
    rule = DOMAIN_RULES[metric]
    if rule.sentinel is not None and value == rule.sentinel:
        return False
    if rule.reject_above is not None and value > rule.reject_above:
        return False
    if rule.reject_below is not None and value < rule.reject_below:
        return False
    return True


def sanitize_metrics(values: Mapping[Metric, Optional[float]]) -> Dict[Metric, Optional[float]]:
    return {metric: sanitize_value(metric, values.get(metric)) for metric in Metric}


def defaulted_metrics(values: Mapping[Metric, Optional[float]]) -> FrozenSet[Metric]:
    """Metrics that sanitize to a rule default rather than a measured value."""
    return frozenset(
        metric
        for metric in Metric
        if not is_valid(metric, values.get(metric))
        and sanitize_value(metric, values.get(metric)) is not None
    )
