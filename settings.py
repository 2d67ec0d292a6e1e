from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from models.records import TimeRange


_STORE_NAME_ENV = "HIVE_CALIBRATION_STORE_NAME"
_STORE_PATH_ENV = "HIVE_CALIBRATION_PATH"
_TIME_RANGE_ENV = "HIVE_DEFAULT_TIME_RANGE"
_MASTER_COUNT_ENV = "HIVE_MASTER_COUNT"
_DEVICE_COUNT_ENV = "HIVE_DEVICE_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    calibration_store_name: str
    calibration_path: Optional[str]
    default_time_range: TimeRange
    master_count: int
    device_count: Optional[int]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_int_env(name: str, default: Optional[int], minimum: int) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_time_range(default: TimeRange) -> TimeRange:
    value = os.getenv(_TIME_RANGE_ENV)
    if value is None:
        return default
    try:
        return TimeRange(value.strip().lower())
    except ValueError:
        return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        calibration_store_name=_read_str_env(_STORE_NAME_ENV, "calibrations"),
        calibration_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/calibrations.json"),
        default_time_range=_read_time_range(TimeRange.all),
        master_count=_read_int_env(_MASTER_COUNT_ENV, 1, minimum=0) or 0,
        device_count=_read_int_env(_DEVICE_COUNT_ENV, None, minimum=1),
        log_level=_read_log_level("INFO"),
    )
