"""Group export rows into timestamp batches and assign hive numbers.

Hive identity comes from an explicit device id when any row in the dataset
carries one (``hive_number = id + 1``). Otherwise a row's hive number is its
1-based position inside its batch. Positional identity breaks if the device
count or row order changes between exports; it is kept as-is because
consumers rely on the exact ordinal mapping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from models.records import (
    AttributedRow,
    PipelineWarning,
    RawReading,
    ReadingBatch,
    WarningKind,
)
from services.normalizer import has_device_id_field, resolve_device_id, resolve_own_timestamp

logger = logging.getLogger(__name__)


@dataclass
class AttributionResult:
    batches: List[ReadingBatch] = field(default_factory=list)
    device_count: int = 0
    warnings: List[PipelineWarning] = field(default_factory=list)


def hive_label(hive_number: int, master_count: int = 1) -> str:
    if hive_number <= master_count:
        return f"Master Hive {hive_number}"
    return f"Hive {hive_number}"


def _skip(result: AttributionResult, kind: WarningKind, row_index: int, detail: str) -> None:
    result.warnings.append(PipelineWarning(kind=kind, row_index=row_index, detail=detail))
    logger.warning(
        "Skipping row %s: %s",
        row_index,
        detail,
        extra={"row_index": row_index, "reason": kind.value},
    )


def attribute(
    readings: Sequence[RawReading],
    device_count: Optional[int] = None,
) -> AttributionResult:
    """Assign every usable reading to a batch and a hive number."""
    if readings is None:
        raise TypeError("readings must be a sequence, not None")
    if device_count is not None and device_count < 1:
        raise ValueError("device_count must be a positive integer")

    result = AttributionResult()
    id_mode = any(has_device_id_field(reading) for reading in readings)

    groups: Dict[datetime, List[tuple[RawReading, bool]]] = {}
    for reading in sorted(readings, key=lambda item: item.row_index):
        own_timestamp = resolve_own_timestamp(reading)
        timestamp = own_timestamp or reading.source_timestamp
        if timestamp is None:
            _skip(result, WarningKind.missing_timestamp, reading.row_index, "missing timestamp")
            continue
        groups.setdefault(timestamp, []).append((reading, own_timestamp is not None))

    highest = 0
    for timestamp in sorted(groups):
        rows: List[AttributedRow] = []
        seen: set[int] = set()
        for position, (reading, has_own_timestamp) in enumerate(groups[timestamp], start=1):
            if id_mode:
                device_id = resolve_device_id(reading)
                if device_id is None:
                    _skip(
                        result,
                        WarningKind.missing_device_id,
                        reading.row_index,
                        "missing or invalid device id",
                    )
                    continue
                hive_number = device_id + 1
            else:
                hive_number = position

            if device_count is not None and hive_number > device_count:
                _skip(
                    result,
                    WarningKind.excess_row,
                    reading.row_index,
                    f"hive {hive_number} exceeds configured device count {device_count}",
                )
                continue
            if hive_number in seen:
                _skip(
                    result,
                    WarningKind.duplicate_device,
                    reading.row_index,
                    f"duplicate row for hive {hive_number} in batch",
                )
                continue

            seen.add(hive_number)
            highest = max(highest, hive_number)
            rows.append(
                AttributedRow(
                    hive_number=hive_number,
                    raw=reading,
                    has_own_timestamp=has_own_timestamp,
                )
            )

        if rows:
            result.batches.append(ReadingBatch(timestamp_utc=timestamp, rows=tuple(rows)))

    result.device_count = device_count if device_count is not None else highest
    return result
