from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from app.schemas import CalibrationRecord
from models.records import CalibrationProfile
from settings import get_settings


def _key(apiary_id: str, hive_number: int) -> str:
    return f"{apiary_id}:{hive_number}"


class CalibrationStore:
    """Calibration profiles keyed by apiary and hive, optionally persisted as JSON."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[str, CalibrationRecord] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put(self, record: CalibrationRecord) -> None:
        with self._lock:
            self._items[_key(record.apiary_id, record.hive_number)] = record.model_copy(deep=True)
            self._persist()

    def get(self, apiary_id: str, hive_number: int) -> Optional[CalibrationRecord]:
        with self._lock:
            item = self._items.get(_key(apiary_id, hive_number))
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self, apiary_id: Optional[str] = None) -> list[CalibrationRecord]:
        """Return deep copies of stored records, optionally for one apiary."""

        with self._lock:
            return [
                item.model_copy(deep=True)
                for item in self._items.values()
                if apiary_id is None or item.apiary_id == apiary_id
            ]

    def snapshot(self, apiary_id: str) -> Dict[int, CalibrationProfile]:
        """Immutable per-hive profiles handed to the pipeline for one run."""

        return {
            record.hive_number: CalibrationProfile(
                hive_number=record.hive_number,
                offsets=dict(record.offsets),
                applied_at_utc=record.applied_at,
            )
            for record in self.scan(apiary_id)
        }

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {key: item.model_dump(mode="json") for key, item in self._items.items()}
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for key, payload in data.items():
            self._items[key] = CalibrationRecord.model_validate(payload)


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> CalibrationStore:
    settings = get_settings()
    store_name = settings.calibration_store_name if name is None else name
    store_path = settings.calibration_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return CalibrationStore(name=store_name, persistence_path=persistence)
