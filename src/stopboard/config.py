"""Configuration loader for the Stop Board app."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Any

from dotenv import load_dotenv
import yaml


@dataclass(frozen=True)
class TransitConfig:
    """Transit data source and polling configuration."""

    base_url: str
    stop_id: str
    timezone: str
    poll_interval_seconds: float
    vehicle_poll_interval_seconds: float
    vehicle_start_delay_seconds: float


@dataclass(frozen=True)
class MapConfig:
    """Live vehicle map surface configuration."""

    width: int
    height: int
    center_lat: float
    center_lon: float
    zoom: int
    fit_padding_px: int


@dataclass(frozen=True)
class DisplayConfig:
    """Arrivals board rendering configuration."""

    width: int
    visible_rows: int


@dataclass(frozen=True)
class SummaryConfig:
    """AI briefing configuration."""

    enabled: bool
    model: str
    api_key: str


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str
    log_dir: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    transit: TransitConfig
    map: MapConfig
    display: DisplayConfig
    summary: SummaryConfig
    log: LoggingConfig


def _require_key(mapping: dict[str, Any], key: str, context: str) -> Any:
    if key not in mapping:
        raise ValueError(f"Missing required key '{key}' in {context} config")
    return mapping[key]


def _require_section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = _require_key(data, name, name)
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' config must be a mapping")
    return section


def load_config(path: str = "config/config.yaml") -> AppConfig:
    """Load application configuration from a YAML file."""
    load_dotenv()
    api_key = os.environ.get("GEMINI_API_KEY", "")
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise ValueError(f"Config file not found: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping at the top level")

    transit_section = _require_section(data, "transit")
    map_section = _require_section(data, "map")
    display_section = _require_section(data, "display")
    summary_section = _require_section(data, "summary")
    logging_section = _require_section(data, "logging")

    transit = TransitConfig(
        base_url=_require_key(transit_section, "base_url", "transit"),
        stop_id=str(_require_key(transit_section, "stop_id", "transit")),
        timezone=transit_section.get("timezone", "Europe/Lisbon"),
        poll_interval_seconds=_require_key(transit_section, "poll_interval_seconds", "transit"),
        vehicle_poll_interval_seconds=_require_key(
            transit_section, "vehicle_poll_interval_seconds", "transit"
        ),
        vehicle_start_delay_seconds=transit_section.get("vehicle_start_delay_seconds", 1.0),
    )

    map_config = MapConfig(
        width=_require_key(map_section, "width", "map"),
        height=_require_key(map_section, "height", "map"),
        center_lat=_require_key(map_section, "center_lat", "map"),
        center_lon=_require_key(map_section, "center_lon", "map"),
        zoom=_require_key(map_section, "zoom", "map"),
        fit_padding_px=map_section.get("fit_padding_px", 50),
    )

    display = DisplayConfig(
        width=_require_key(display_section, "width", "display"),
        visible_rows=_require_key(display_section, "visible_rows", "display"),
    )

    summary = SummaryConfig(
        enabled=bool(summary_section.get("enabled", False)),
        model=_require_key(summary_section, "model", "summary"),
        api_key=api_key,
    )

    logging = LoggingConfig(
        level=_require_key(logging_section, "level", "logging"),
        log_dir=_require_key(logging_section, "log_dir", "logging"),
    )

    return AppConfig(transit=transit, map=map_config, display=display, summary=summary, log=logging)
