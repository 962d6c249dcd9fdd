"""Pillow-backed map surface holding live vehicle markers."""

from __future__ import annotations

from dataclasses import dataclass
import itertools
import math
from typing import Iterable

from PIL import Image, ImageColor, ImageDraw, ImageFont

TILE_SIZE = 256
MAX_ZOOM = 17
MIN_ZOOM = 1
MAX_MERCATOR_LAT = 85.05112878

MARKER_RADIUS = 6
COLOR_BACKGROUND = (232, 232, 228)
COLOR_GRID = (214, 214, 208)
COLOR_MARKER_OUTLINE = (255, 255, 255)
COLOR_LABEL = (20, 20, 20)

FONT_LABEL = ImageFont.load_default()


@dataclass(frozen=True)
class Bounds:
    """Geographic bounding box."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> "Bounds":
        points = list(points)
        if not points:
            raise ValueError("Bounds need at least one point")
        lats = [lat for lat, _ in points]
        lons = [lon for _, lon in points]
        return cls(south=min(lats), west=min(lons), north=max(lats), east=max(lons))


@dataclass(frozen=True)
class Marker:
    """A labeled point drawn on the surface."""

    marker_id: int
    lat: float
    lon: float
    label: str
    color: str


def project(lat: float, lon: float, zoom: int) -> tuple[float, float]:
    """Web Mercator world pixel coordinates at ``zoom``."""
    lat = max(min(lat, MAX_MERCATOR_LAT), -MAX_MERCATOR_LAT)
    scale = TILE_SIZE * (2**zoom)
    x = (lon + 180.0) / 360.0 * scale
    sin_lat = math.sin(math.radians(lat))
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * scale
    return x, y


def unproject(x: float, y: float, zoom: int) -> tuple[float, float]:
    """Inverse of :func:`project`."""
    scale = TILE_SIZE * (2**zoom)
    lon = x / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / scale
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lon


class MapCanvas:
    """Map surface with a mutable marker collection and a view (center + zoom)."""

    def __init__(self, width: int, height: int, center: tuple[float, float], zoom: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Map surface needs a positive size, got {width}x{height}.")
        self._width = width
        self._height = height
        self._center = center
        self._zoom = zoom
        self._markers: dict[int, Marker] = {}
        self._ids = itertools.count(1)
        self._destroyed = False

    @property
    def size(self) -> tuple[int, int]:
        return self._width, self._height

    @property
    def center(self) -> tuple[float, float]:
        return self._center

    @property
    def zoom(self) -> int:
        return self._zoom

    @property
    def markers(self) -> list[Marker]:
        return list(self._markers.values())

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def set_view(self, center: tuple[float, float], zoom: int) -> None:
        self._center = center
        self._zoom = max(MIN_ZOOM, min(MAX_ZOOM, zoom))

    def add_marker(self, lat: float, lon: float, label: str, color: str) -> Marker:
        marker = Marker(marker_id=next(self._ids), lat=lat, lon=lon, label=label, color=color)
        self._markers[marker.marker_id] = marker
        return marker

    def remove_marker(self, marker: Marker) -> None:
        self._markers.pop(marker.marker_id, None)

    def fit_bounds(self, bounds: Bounds, padding_px: int = 0) -> None:
        """Center on ``bounds`` at the highest zoom where it fits inside the padding."""
        avail_w = max(self._width - 2 * padding_px, 1)
        avail_h = max(self._height - 2 * padding_px, 1)
        zoom = MAX_ZOOM
        while zoom > MIN_ZOOM:
            west_x, north_y = project(bounds.north, bounds.west, zoom)
            east_x, south_y = project(bounds.south, bounds.east, zoom)
            if east_x - west_x <= avail_w and south_y - north_y <= avail_h:
                break
            zoom -= 1

        west_x, north_y = project(bounds.north, bounds.west, zoom)
        east_x, south_y = project(bounds.south, bounds.east, zoom)
        center = unproject((west_x + east_x) / 2, (north_y + south_y) / 2, zoom)
        self.set_view(center, zoom)

    def to_pixel(self, lat: float, lon: float) -> tuple[float, float]:
        """Screen position of a coordinate under the current view."""
        cx, cy = project(self._center[0], self._center[1], self._zoom)
        x, y = project(lat, lon, self._zoom)
        return x - cx + self._width / 2, y - cy + self._height / 2

    def render(self) -> Image.Image:
        """Draw the markers onto a fresh RGB image."""
        image = Image.new("RGB", (self._width, self._height), COLOR_BACKGROUND)
        draw = ImageDraw.Draw(image)

        for x in range(0, self._width, 64):
            draw.line((x, 0, x, self._height - 1), fill=COLOR_GRID)
        for y in range(0, self._height, 64):
            draw.line((0, y, self._width - 1, y), fill=COLOR_GRID)

        for marker in self._markers.values():
            px, py = self.to_pixel(marker.lat, marker.lon)
            if not (0 <= px < self._width and 0 <= py < self._height):
                continue
            fill = ImageColor.getrgb(marker.color)
            draw.ellipse(
                [px - MARKER_RADIUS, py - MARKER_RADIUS, px + MARKER_RADIUS, py + MARKER_RADIUS],
                fill=fill,
                outline=COLOR_MARKER_OUTLINE,
            )
            draw.text((px + MARKER_RADIUS + 2, py - MARKER_RADIUS), marker.label, font=FONT_LABEL, fill=COLOR_LABEL)
        return image

    def destroy(self) -> None:
        self._markers.clear()
        self._destroyed = True


__all__ = ["Bounds", "MapCanvas", "Marker", "project", "unproject"]
