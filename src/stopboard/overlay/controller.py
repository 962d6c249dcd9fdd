"""State machine for the live vehicle overlay of one selected line."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Callable, Sequence

from PIL import Image

from stopboard.data.models import Vehicle
from stopboard.overlay.surface import Bounds, MapCanvas, Marker

logger = logging.getLogger(__name__)

IDLE = "IDLE"
INITIALIZING = "INITIALIZING"
ACTIVE = "ACTIVE"

STATUS_IDLE = "idle"
STATUS_LOADING = "loading"
STATUS_FAILED = "failed"
STATUS_NO_VEHICLES = "no_vehicles"
STATUS_ACTIVE = "active"

DEFAULT_FIT_PADDING_PX = 50

SurfaceFactory = Callable[[], MapCanvas]


@dataclass(frozen=True)
class OverlaySnapshot:
    """Read-only view of the overlay for renderers."""

    state: str
    status: str
    line_id: str | None
    marker_count: int


class MapOverlayController:
    """Owns the map surface, its markers and the current line selection.

    The surface is created on the first selection and reused afterwards.
    Markers always mirror the latest vehicle snapshot of the selected line.
    """

    def __init__(
        self,
        surface_factory: SurfaceFactory,
        default_center: tuple[float, float],
        default_zoom: int,
        fit_padding_px: int = DEFAULT_FIT_PADDING_PX,
    ) -> None:
        self._surface_factory = surface_factory
        self._default_center = default_center
        self._default_zoom = default_zoom
        self._fit_padding_px = fit_padding_px
        self._lock = threading.RLock()
        self._state = IDLE
        self._surface: MapCanvas | None = None
        self._surface_ready = False
        self._surface_failed = False
        self._markers: list[Marker] = []
        self._line_id: str | None = None
        self._line_color: str | None = None
        self._no_vehicles = False

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def line_id(self) -> str | None:
        with self._lock:
            return self._line_id

    @property
    def surface(self) -> MapCanvas | None:
        with self._lock:
            return self._surface

    @property
    def markers(self) -> list[Marker]:
        with self._lock:
            return list(self._markers)

    @property
    def status(self) -> str:
        with self._lock:
            if self._state == IDLE:
                return STATUS_IDLE
            if self._surface_failed:
                return STATUS_FAILED
            if self._state == INITIALIZING:
                return STATUS_LOADING
            return STATUS_NO_VEHICLES if self._no_vehicles else STATUS_ACTIVE

    def render(self) -> Image.Image | None:
        """Render the surface, or None before it exists."""
        with self._lock:
            if self._surface is None:
                return None
            return self._surface.render()

    def snapshot(self) -> OverlaySnapshot:
        with self._lock:
            return OverlaySnapshot(
                state=self._state,
                status=self.status,
                line_id=self._line_id,
                marker_count=len(self._markers),
            )

    def select_line(self, line_id: str, color: str) -> None:
        """Switch the overlay to ``line_id``, dropping markers of any previous line."""
        with self._lock:
            self._clear_markers()
            self._line_id = line_id
            self._line_color = color
            self._no_vehicles = False
            self._state = INITIALIZING
            self._ensure_surface()

    def apply_snapshot(self, line_id: str, vehicles: Sequence[Vehicle]) -> None:
        """Replace all markers with the vehicles of a completed fetch."""
        with self._lock:
            if self._state == IDLE or line_id != self._line_id:
                logger.debug("Ignoring vehicles for line %s; overlay is on %s", line_id, self._line_id)
                return
            if not self._surface_ready:
                logger.debug("Map surface not ready; skipping vehicles for line %s", line_id)
                return
            self._render(vehicles)

    def close(self) -> None:
        """Explicit close: clear markers and go idle, keeping the surface for reuse."""
        with self._lock:
            self._clear_markers()
            self._line_id = None
            self._line_color = None
            self._no_vehicles = False
            self._state = IDLE

    def shutdown(self) -> None:
        """Close the overlay and destroy the surface."""
        with self._lock:
            self.close()
            if self._surface is not None:
                self._surface.destroy()
            self._surface = None
            self._surface_ready = False
            self._surface_failed = False

    def _ensure_surface(self) -> None:
        if self._surface is None:
            try:
                self._surface = self._surface_factory()
            except Exception:
                logger.exception("Map surface could not be created")
                self._surface_failed = True
                return
        self._surface_failed = False
        self._surface.set_view(self._default_center, self._default_zoom)
        self._surface_ready = True

    def _clear_markers(self) -> None:
        if self._surface is not None:
            for marker in self._markers:
                self._surface.remove_marker(marker)
        self._markers = []

    def _render(self, vehicles: Sequence[Vehicle]) -> None:
        surface = self._surface
        if surface is None:
            return
        self._clear_markers()
        color = self._line_color or ""
        label = self._line_id or ""
        for vehicle in vehicles:
            if not vehicle.has_position:
                continue
            self._markers.append(surface.add_marker(vehicle.lat, vehicle.lon, label, color))

        self._state = ACTIVE
        if not self._markers:
            self._no_vehicles = True
            return
        self._no_vehicles = False
        bounds = Bounds.from_points((marker.lat, marker.lon) for marker in self._markers)
        surface.fit_bounds(bounds, self._fit_padding_px)


__all__ = [
    "ACTIVE",
    "IDLE",
    "INITIALIZING",
    "MapOverlayController",
    "OverlaySnapshot",
    "STATUS_ACTIVE",
    "STATUS_FAILED",
    "STATUS_IDLE",
    "STATUS_LOADING",
    "STATUS_NO_VEHICLES",
]
