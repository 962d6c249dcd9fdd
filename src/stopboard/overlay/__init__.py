"""Live vehicle map overlay."""

from stopboard.overlay.controller import MapOverlayController, OverlaySnapshot
from stopboard.overlay.surface import Bounds, MapCanvas, Marker

__all__ = ["Bounds", "MapCanvas", "MapOverlayController", "Marker", "OverlaySnapshot"]
