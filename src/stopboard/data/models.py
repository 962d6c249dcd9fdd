"""Records returned by the Carris Metropolitana API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Stop:
    """Stop metadata shown in the board header."""

    id: str
    name: str
    locality: str | None = None
    municipality_name: str | None = None
    lat: float | None = None
    lon: float | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Stop":
        return cls(
            id=_text(data.get("id")) or "",
            name=_text(data.get("name")) or "",
            locality=_text(data.get("locality")),
            municipality_name=_text(data.get("municipality_name")),
            lat=_number(data.get("lat")),
            lon=_number(data.get("lon")),
        )

    @property
    def area(self) -> str | None:
        return self.locality or self.municipality_name


@dataclass(frozen=True)
class RawArrival:
    """One upcoming trip at a stop, as reported by the realtime endpoint."""

    line_id: str
    headsign: str
    scheduled_arrival: str | None
    estimated_arrival: str | None
    stop_id: str
    trip_id: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "RawArrival":
        return cls(
            line_id=_text(data.get("line_id")) or "",
            headsign=_text(data.get("headsign")) or "",
            scheduled_arrival=_text(data.get("scheduled_arrival")),
            estimated_arrival=_text(data.get("estimated_arrival")),
            stop_id=_text(data.get("stop_id")) or "",
            trip_id=_text(data.get("trip_id")) or "",
        )


@dataclass(frozen=True)
class Vehicle:
    """Point-in-time position sample for one vehicle."""

    id: str
    lat: float | None
    lon: float | None
    line_id: str
    trip_id: str | None = None
    pattern_id: str | None = None
    timestamp: int | None = None
    speed_kmh: float | None = None
    heading_degrees: float | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Vehicle":
        timestamp = _number(data.get("timestamp"))
        return cls(
            id=_text(data.get("id")) or "",
            lat=_number(data.get("lat")),
            lon=_number(data.get("lon")),
            line_id=_text(data.get("line_id")) or "",
            trip_id=_text(data.get("trip_id")),
            pattern_id=_text(data.get("pattern_id")),
            timestamp=int(timestamp) if timestamp is not None else None,
            speed_kmh=_number(data.get("speed")),
            heading_degrees=_number(data.get("bearing")),
        )

    @property
    def has_position(self) -> bool:
        """True when both coordinates are present and within WGS84 range."""
        if self.lat is None or self.lon is None:
            return False
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lon <= 180.0


__all__ = ["Stop", "RawArrival", "Vehicle"]
