"""Carris Metropolitana API client."""

from __future__ import annotations

import logging
from typing import Any

import requests

from stopboard.data.models import RawArrival, Stop, Vehicle

CARRIS_API_BASE = "https://api.carrismetropolitana.pt"

logger = logging.getLogger(__name__)


class CarrisClientError(Exception):
    """Raised when a Carris API request fails or returns a non-200 response."""


class CarrisClient:
    """Thin wrapper around the Carris Metropolitana API using requests."""

    def __init__(self, base_url: str = CARRIS_API_BASE) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = 10

    def get_stop(self, stop_id: str) -> Stop:
        """Fetch metadata for a single stop."""
        data = self._get(f"/stops/{stop_id}")
        if not isinstance(data, dict):
            raise CarrisClientError(f"Unexpected stop payload for {stop_id}")
        return Stop.from_json(data)

    def get_realtime(self, stop_id: str) -> list[RawArrival]:
        """Fetch upcoming arrivals for a stop."""
        data = self._get(f"/stops/{stop_id}/realtime")
        if not isinstance(data, list):
            raise CarrisClientError(f"Unexpected realtime payload for {stop_id}")
        return [RawArrival.from_json(item) for item in data if isinstance(item, dict)]

    def get_vehicles(self, line_id: str) -> list[Vehicle]:
        """Fetch in-service vehicles and keep those running on ``line_id``."""
        data = self._get("/vehicles")
        if not isinstance(data, list):
            raise CarrisClientError("Unexpected vehicles payload")
        vehicles = [Vehicle.from_json(item) for item in data if isinstance(item, dict)]
        return [vehicle for vehicle in vehicles if vehicle.line_id == line_id]

    def search_stops(self, query: str) -> list[Stop]:
        """Look up a stop by id; the API offers no free-text search."""
        query = query.strip()
        if not query:
            return []
        try:
            return [self.get_stop(query)]
        except CarrisClientError as exc:
            logger.info("Stop lookup for %r found nothing: %s", query, exc)
            return []

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = requests.get(url, params=params, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise CarrisClientError(f"Carris API request failed: {exc}") from exc

        if response.status_code != 200:
            body_text = response.text.strip()
            detail = f"Status {response.status_code}"
            if body_text:
                detail = f"{detail}, Body: {body_text}"
            raise CarrisClientError(f"Carris API request failed: {detail}")

        try:
            return response.json()
        except ValueError as exc:
            raise CarrisClientError("Carris API response was not valid JSON") from exc


__all__ = ["CARRIS_API_BASE", "CarrisClient", "CarrisClientError"]
