"""Parse delimited telemetry export files into raw readings."""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from typing import List, Optional

from models.records import RawReading

logger = logging.getLogger(__name__)

_DELIMITERS = ",;\t|"


def _detect_dialect(sample: str) -> type[csv.Dialect] | csv.Dialect:
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS)
    except csv.Error:
        return csv.excel


def read_export(contents: bytes | str, source_timestamp: Optional[datetime] = None) -> List[RawReading]:
    """Return one RawReading per non-blank data row of an export file."""
    if isinstance(contents, bytes):
        text = contents.decode("utf-8-sig")
    else:
        text = contents.lstrip("\ufeff")
    if not text.strip():
        raise ValueError("Export file is empty.")

    sample = "\n".join(text.splitlines()[:10])
    reader = csv.DictReader(io.StringIO(text), dialect=_detect_dialect(sample))
    if not reader.fieldnames or not any(name and name.strip() for name in reader.fieldnames):
        raise ValueError("Export file is missing a header row.")

    fieldnames = [(name or "").strip() for name in reader.fieldnames]
    reader.fieldnames = fieldnames

    readings: List[RawReading] = []
    for row in reader:
        fields = {
            name: value.strip() if isinstance(value, str) else value
            for name, value in row.items()
            if name
        }
        if not any(value for value in fields.values()):
            continue
        readings.append(
            RawReading(fields=fields, row_index=len(readings), source_timestamp=source_timestamp)
        )

    logger.info("Parsed export file", extra={"row_count": len(readings)})
    return readings
