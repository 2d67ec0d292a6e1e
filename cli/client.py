from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the hive telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def fetch_series(
        self,
        apiary_id: str,
        path: Path,
        time_range: Optional[str] = None,
        hives: Optional[List[int]] = None,
        device_count: Optional[int] = None,
        metrics: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if time_range:
            params["time_range"] = time_range
        if hives:
            params["hive"] = hives
        if metrics:
            params["metric"] = metrics
        if device_count:
            params["device_count"] = device_count
        with path.open("rb") as handle:
            response = self._send(
                "POST",
                f"/apiaries/{apiary_id}/series",
                params=params,
                files={"file": (path.name, handle, "text/csv")},
            )
        return response.json()

    def fetch_snapshot(
        self,
        apiary_id: str,
        path: Path,
        historical: Optional[Path] = None,
    ) -> Dict[str, Any]:
        files: Dict[str, Any] = {"file": (path.name, path.read_bytes(), "text/csv")}
        if historical is not None:
            files["historical"] = (historical.name, historical.read_bytes(), "text/csv")
        response = self._send("POST", f"/apiaries/{apiary_id}/snapshot", files=files)
        return response.json()

    def save_calibration(
        self,
        apiary_id: str,
        hive_number: int,
        entries: Dict[str, Dict[str, float]],
    ) -> Dict[str, Any]:
        response = self._send(
            "PUT",
            f"/apiaries/{apiary_id}/hives/{hive_number}/calibration",
            json={"entries": entries},
        )
        return response.json()

    def get_calibration(self, apiary_id: str, hive_number: int) -> Dict[str, Any]:
        response = self._send("GET", f"/apiaries/{apiary_id}/hives/{hive_number}/calibration")
        return response.json()

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
