from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from stopboard.data.models import Vehicle
from stopboard.overlay.controller import (
    ACTIVE,
    IDLE,
    INITIALIZING,
    MapOverlayController,
    STATUS_ACTIVE,
    STATUS_FAILED,
    STATUS_IDLE,
    STATUS_LOADING,
    STATUS_NO_VEHICLES,
)
from stopboard.overlay.surface import Bounds, MapCanvas

DEFAULT_CENTER = (38.7223, -9.1393)
PURPLE = "#6f2282"


def _vehicle(vehicle_id: str, lat: float | None, lon: float | None, line_id: str = "743") -> Vehicle:
    return Vehicle(id=vehicle_id, lat=lat, lon=lon, line_id=line_id)


@pytest.fixture()
def factory() -> MagicMock:
    return MagicMock(side_effect=lambda: MapCanvas(640, 480, center=DEFAULT_CENTER, zoom=11))


@pytest.fixture()
def controller(factory: MagicMock) -> MapOverlayController:
    return MapOverlayController(factory, default_center=DEFAULT_CENTER, default_zoom=11, fit_padding_px=40)


def test_starts_idle_without_surface(controller: MapOverlayController, factory: MagicMock) -> None:
    assert controller.state == IDLE
    assert controller.status == STATUS_IDLE
    assert controller.surface is None
    factory.assert_not_called()


def test_select_creates_surface_and_waits_for_first_fetch(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)

    assert controller.state == INITIALIZING
    assert controller.status == STATUS_LOADING
    assert controller.surface is not None
    assert controller.surface.center == DEFAULT_CENTER


def test_snapshot_creates_markers_for_valid_positions(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)
    vehicles = [
        _vehicle("v1", 38.70, -9.20),
        _vehicle("v2", None, None),
        _vehicle("v3", 38.76, -9.08),
    ]

    controller.apply_snapshot("743", vehicles)

    markers = controller.markers
    assert controller.state == ACTIVE
    assert controller.status == STATUS_ACTIVE
    assert len(markers) == 2
    assert {m.label for m in markers} == {"743"}
    assert {m.color for m in markers} == {PURPLE}
    assert controller.surface.markers == markers
    bounds = Bounds.from_points((m.lat, m.lon) for m in markers)
    assert bounds == Bounds(south=38.70, west=-9.20, north=38.76, east=-9.08)


def test_fit_bounds_uses_marker_coordinates_and_padding(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)
    surface = controller.surface
    surface.fit_bounds = MagicMock()

    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20), _vehicle("v2", 38.76, None), _vehicle("v3", 38.76, -9.08)])

    surface.fit_bounds.assert_called_once_with(Bounds(38.70, -9.20, 38.76, -9.08), 40)


def test_each_snapshot_replaces_markers(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20), _vehicle("v2", 38.71, -9.21)])

    controller.apply_snapshot("743", [_vehicle("v3", 38.75, -9.05)])

    assert [(m.lat, m.lon) for m in controller.surface.markers] == [(38.75, -9.05)]


def test_empty_snapshot_keeps_view_and_flags_no_vehicles(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20), _vehicle("v2", 38.76, -9.08)])
    view = (controller.surface.center, controller.surface.zoom)

    controller.apply_snapshot("743", [_vehicle("v1", None, -9.2)])

    assert controller.state == ACTIVE
    assert controller.status == STATUS_NO_VEHICLES
    assert controller.markers == []
    assert (controller.surface.center, controller.surface.zoom) == view


def test_snapshot_for_other_line_is_ignored(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20)])

    controller.apply_snapshot("1523", [_vehicle("x", 38.0, -9.0, line_id="1523")])

    assert [m.lat for m in controller.markers] == [38.70]


def test_switching_line_tears_down_old_markers(controller: MapOverlayController, factory: MagicMock) -> None:
    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20)])

    controller.select_line("1523", "#EBBD02")

    assert controller.markers == []
    assert controller.surface.markers == []
    assert controller.line_id == "1523"
    assert controller.state == INITIALIZING
    factory.assert_called_once()


def test_close_clears_markers_and_keeps_surface(controller: MapOverlayController, factory: MagicMock) -> None:
    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20)])
    surface = controller.surface

    controller.close()

    assert controller.state == IDLE
    assert controller.markers == []
    assert surface.markers == []
    assert controller.surface is surface

    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20)])
    assert surface.markers == []

    controller.select_line("743", PURPLE)
    assert controller.surface is surface
    factory.assert_called_once()


def test_shutdown_destroys_surface(controller: MapOverlayController) -> None:
    controller.select_line("743", PURPLE)
    surface = controller.surface

    controller.shutdown()

    assert surface.destroyed
    assert controller.surface is None
    assert controller.state == IDLE


def test_surface_failure_never_becomes_active() -> None:
    factory = MagicMock(side_effect=RuntimeError("no display"))
    controller = MapOverlayController(factory, default_center=DEFAULT_CENTER, default_zoom=11)

    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20)])

    assert controller.state == INITIALIZING
    assert controller.status == STATUS_FAILED
    assert controller.markers == []


def test_surface_retried_on_next_selection() -> None:
    attempts: list[int] = []

    def flaky_factory() -> MapCanvas:
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("not mounted yet")
        return MapCanvas(640, 480, center=DEFAULT_CENTER, zoom=11)

    controller = MapOverlayController(flaky_factory, default_center=DEFAULT_CENTER, default_zoom=11)
    controller.select_line("743", PURPLE)
    controller.apply_snapshot("743", [_vehicle("v1", 38.70, -9.20)])

    controller.select_line("743", PURPLE)

    assert controller.status == STATUS_LOADING
    controller.apply_snapshot("743", [_vehicle("v2", 38.71, -9.21)])
    assert controller.state == ACTIVE
    assert [m.lat for m in controller.markers] == [38.71]


def test_render_returns_image_once_surface_exists(controller: MapOverlayController) -> None:
    assert controller.render() is None

    controller.select_line("743", PURPLE)

    assert controller.render().size == (640, 480)
