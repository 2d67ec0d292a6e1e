import inspect
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app import api
from app.main import create_app
from datastore.calibration_store import CalibrationStore
from services.pipeline import TelemetryPipeline
from services.telemetry_service import TelemetryService

EXPORT = """time,int_temp,ext_temp,int_hum,weight,battery
2024-05-01T00:00:00Z,34.1,,61,42.0,
2024-05-01T00:00:00Z,-127,21.4,58,-2,88
2024-05-01T04:00:00Z,34.5,,60,0,
2024-05-01T04:00:00Z,33.8,19.0,59,41.0,87
"""


@pytest.fixture
def service(tmp_path) -> TelemetryService:
    return TelemetryService(
        store=CalibrationStore(name="test", persistence_path=tmp_path / "calibrations.json"),
        pipeline=TelemetryPipeline(),
        master_count=1,
    )


@pytest.fixture
def api_client(service: TelemetryService, monkeypatch) -> Iterator[TestClient]:
    def build_test_service() -> TelemetryService:
        return service

    build_test_service.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)

    app = create_app()
    with TestClient(app) as client:
        yield client


def _upload(content: str, name: str = "export.csv") -> dict:
    return {"file": (name, content, "text/csv")}


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_series_endpoint_returns_normalized_hives(api_client: TestClient) -> None:
    response = api_client.post("/apiaries/apiary-1/series", files=_upload(EXPORT))

    assert response.status_code == 200
    payload = response.json()
    assert payload["export_format"] == "new"
    assert payload["device_count"] == 2
    assert payload["hive_numbers"] == [1, 2]

    master, hive2 = payload["series"]
    assert master["hive_name"] == "Master Hive 1"
    assert hive2["hive_name"] == "Hive 2"

    first = master["readings"][0]["metrics"]
    assert first["temp_internal"] == 34.1
    assert first["temp_external"] == 21.4
    assert first["battery"] == 100.0

    second_hive = hive2["readings"][0]["metrics"]
    assert second_hive["temp_internal"] is None
    assert second_hive["weight"] == 0.0
    assert second_hive["temp_external"] == 21.4
    assert payload["warnings"] == []


def test_series_endpoint_filters_hives(api_client: TestClient) -> None:
    response = api_client.post(
        "/apiaries/apiary-1/series",
        params={"hive": [2], "time_range": "all"},
        files=_upload(EXPORT),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["hive_numbers"] == [2]
    assert len(payload["series"][0]["readings"]) == 2


def test_series_endpoint_is_deterministic(api_client: TestClient) -> None:
    first = api_client.post("/apiaries/apiary-1/series", files=_upload(EXPORT))
    second = api_client.post("/apiaries/apiary-1/series", files=_upload(EXPORT))

    assert first.content == second.content


def test_series_endpoint_reports_skipped_rows(api_client: TestClient) -> None:
    content = "time,weight\n2024-05-01T00:00:00Z,10\nnot-a-time,11\n"

    response = api_client.post("/apiaries/apiary-1/series", files=_upload(content))

    assert response.status_code == 200
    warnings = response.json()["warnings"]
    assert warnings == [{"kind": "missing_timestamp", "row_index": 1, "detail": "missing timestamp"}]


def test_empty_upload_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post("/apiaries/apiary-1/series", files=_upload(""))

    assert response.status_code == 400
    assert response.json()["detail"] == "Uploaded file is empty."


def test_unknown_time_range_is_rejected(api_client: TestClient) -> None:
    response = api_client.post(
        "/apiaries/apiary-1/series",
        params={"time_range": "1y"},
        files=_upload(EXPORT),
    )

    assert response.status_code == 422


def test_calibration_round_trip(api_client: TestClient, service: TelemetryService) -> None:
    response = api_client.put(
        "/apiaries/apiary-1/hives/1/calibration",
        json={"entries": {"temp_internal": {"visualized": 34.0, "real": 35.0}}},
    )

    assert response.status_code == 200
    record = response.json()
    assert record["offsets"] == {"temp_internal": 1.0}
    assert record["applied_at"] is not None

    fetched = api_client.get("/apiaries/apiary-1/hives/1/calibration")
    assert fetched.status_code == 200
    assert fetched.json() == record

    # Export rows predate the calibration, so the values are unchanged.
    series = api_client.post("/apiaries/apiary-1/series", files=_upload(EXPORT)).json()
    assert series["series"][0]["readings"][0]["metrics"]["temp_internal"] == 34.1
    assert service.store.get("apiary-1", 1) is not None


def test_calibration_rejects_unknown_metric(api_client: TestClient) -> None:
    response = api_client.put(
        "/apiaries/apiary-1/hives/1/calibration",
        json={"entries": {"pressure": {"visualized": 1, "real": 2}}},
    )

    assert response.status_code == 422


def test_missing_calibration_returns_not_found(api_client: TestClient) -> None:
    response = api_client.get("/apiaries/apiary-1/hives/4/calibration")

    assert response.status_code == 404
    assert "hive 4" in response.json()["detail"]


def test_snapshot_falls_back_to_historical_values(api_client: TestClient) -> None:
    current = "time,int_temp,weight\n2024-05-02T00:00:00Z,35.0,0\n2024-05-02T00:00:00Z,,44.0\n"

    response = api_client.post(
        "/apiaries/apiary-1/snapshot",
        files={
            "file": ("current.csv", current, "text/csv"),
            "historical": ("history.csv", EXPORT, "text/csv"),
        },
    )

    assert response.status_code == 200
    hives = response.json()["hives"]
    assert [hive["hive_number"] for hive in hives] == [1, 2]
    assert hives[0]["values"]["weight"] == 42.0
    assert hives[0]["values"]["temp_internal"] == 35.0
    assert hives[1]["values"]["weight"] == 44.0
    assert hives[1]["values"]["temp_internal"] == 33.8
    assert hives[1]["values"]["battery"] == 100.0


def test_series_endpoint_limits_metrics_and_returns_chart_rows(api_client: TestClient) -> None:
    content = (
        "time,int_temp,weight\n"
        "2024-05-01T00:00:00Z,34.1,\n"
        "2024-05-01T00:00:00Z,33.0,\n"
        "2024-05-01T04:00:00Z,34.5,41.0\n"
        "2024-05-01T04:00:00Z,33.8,\n"
    )

    response = api_client.post(
        "/apiaries/apiary-1/series",
        params={"metric": ["weight"]},
        files=_upload(content),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["metrics"] == ["weight"]
    assert [len(item["readings"]) for item in payload["series"]] == [1, 1]
    assert payload["chart_rows"] == [{"timestamp": "2024-05-01T04:00:00+00:00", "weight_1": 41.0}]


def test_series_endpoint_defaults_to_every_metric(api_client: TestClient) -> None:
    payload = api_client.post("/apiaries/apiary-1/series", files=_upload(EXPORT)).json()

    assert payload["metrics"] == [
        "temp_internal",
        "temp_external",
        "hum_internal",
        "hum_external",
        "weight",
        "battery",
    ]
    assert payload["chart_rows"] is None


def test_series_endpoint_drops_ticks_without_sensor_data(api_client: TestClient) -> None:
    content = "time,int_temp,note\n2024-05-01T00:00:00Z,34,\n2024-05-01T01:00:00Z,,offline\n"

    payload = api_client.post("/apiaries/apiary-1/series", files=_upload(content)).json()

    timestamps = [reading["timestamp"] for reading in payload["series"][0]["readings"]]
    assert len(timestamps) == 1
    assert timestamps[0].startswith("2024-05-01T00:00:00")


def test_unknown_metric_is_rejected(api_client: TestClient) -> None:
    response = api_client.post(
        "/apiaries/apiary-1/series",
        params={"metric": ["pressure"]},
        files=_upload(EXPORT),
    )

    assert response.status_code == 422


def test_blocking_routes_run_in_threadpool() -> None:
    for handler in (api.build_series, api.build_snapshot, api.save_calibration, api.get_calibration):
        assert not inspect.iscoroutinefunction(handler)
