"""Live preview server for the stop board and the vehicle map."""

from __future__ import annotations

import argparse
from http.server import BaseHTTPRequestHandler, HTTPServer
import json
import logging
from pathlib import Path
import threading
import time
from typing import Any
from zoneinfo import ZoneInfo

from stopboard.config import AppConfig, load_config
from stopboard.data.carris_client import CarrisClient
from stopboard.logging_setup import configure_logging
from stopboard.logic.summary import SummaryClient
from stopboard.overlay import MapCanvas, MapOverlayController
from stopboard.rendering import compose_board, save_frame
from stopboard.session import StopBoardSession

BOARD_PATH = Path("preview_output/board.png")
MAP_PATH = Path("preview_output/map.png")

logger = logging.getLogger("stopboard.live_board")

_session: StopBoardSession | None = None


def _state_json() -> dict[str, Any]:
    if _session is None:
        return {}
    state = _session.get_state()
    overlay = _session.overlay.snapshot()
    return {
        "stop_id": state.stop_id,
        "stop_name": state.stop.name if state.stop else None,
        "loading": state.loading,
        "error": state.error,
        "updated_at": state.updated_at.isoformat() if state.updated_at else None,
        "arrivals": [
            {
                "line_id": a.line_id,
                "destination": a.destination,
                "minutes": a.minutes_until_arrival,
                "live": a.is_live,
            }
            for a in state.arrivals
        ],
        "insight": (
            {"summary": state.insight.summary, "recommendation": state.insight.recommendation}
            if state.insight
            else None
        ),
        "overlay": {
            "state": overlay.state,
            "status": overlay.status,
            "line_id": overlay.line_id,
            "markers": overlay.marker_count,
        },
    }


class PreviewHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/healthz":
            self._send(200, "text/plain; charset=utf-8", b"ok")
            return

        if self.path in ("/board.png", "/map.png"):
            path = BOARD_PATH if self.path == "/board.png" else MAP_PATH
            if not path.exists():
                self._send(404, "text/plain; charset=utf-8", b"not rendered yet")
                return
            self._send(200, "image/png", path.read_bytes())
            return

        if self.path == "/state.json":
            self._send(200, "application/json", json.dumps(_state_json()).encode("utf-8"))
            return

        if self.path == "/":
            html = """<!doctype html>
<html>
  <head>
    <meta http-equiv="refresh" content="10">
    <style>
      body { background: #f3f4f6; font-family: sans-serif; }
      img { display: block; margin-bottom: 16px; }
    </style>
    <title>Stop Board Preview</title>
  </head>
  <body>
    <img src="/board.png" alt="Board">
    <img src="/map.png" alt="Map">
  </body>
</html>"""
            self._send(200, "text/html; charset=utf-8", html.encode("utf-8"))
            return

        self._send(404, "text/plain; charset=utf-8", b"not found")

    def _send(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        return


def _run_server(port: int) -> None:
    server = HTTPServer(("0.0.0.0", port), PreviewHandler)
    server.serve_forever()


def _build_session(config: AppConfig) -> StopBoardSession:
    map_config = config.map
    overlay = MapOverlayController(
        surface_factory=lambda: MapCanvas(
            map_config.width,
            map_config.height,
            center=(map_config.center_lat, map_config.center_lon),
            zoom=map_config.zoom,
        ),
        default_center=(map_config.center_lat, map_config.center_lon),
        default_zoom=map_config.zoom,
        fit_padding_px=map_config.fit_padding_px,
    )
    summary = None
    if config.summary.enabled:
        summary = SummaryClient(config.summary.api_key, model=config.summary.model)

    render_lock = threading.Lock()

    def render() -> None:
        if _session is None:
            return
        with render_lock:
            state = _session.get_state()
            board = compose_board(
                state.to_board_data(),
                width=config.display.width,
                visible_rows=config.display.visible_rows,
            )
            save_frame(board, str(BOARD_PATH))
            map_image = _session.overlay.render()
            if map_image is not None:
                save_frame(map_image, str(MAP_PATH))

    return StopBoardSession(
        CarrisClient(config.transit.base_url),
        overlay,
        summary=summary,
        tz=ZoneInfo(config.transit.timezone),
        arrivals_interval_seconds=config.transit.poll_interval_seconds,
        vehicle_interval_seconds=config.transit.vehicle_poll_interval_seconds,
        vehicle_start_delay_seconds=config.transit.vehicle_start_delay_seconds,
        on_update=render,
    )


def main() -> int:
    global _session

    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="config/config.yaml", help="Path to the YAML config")
    parser.add_argument("--stop", help="Stop id (defaults to the configured stop)")
    parser.add_argument("--line", help="Line id to show on the live map")
    parser.add_argument("--port", type=int, default=8080, help="Preview server port")
    parser.add_argument("--no-server", action="store_true", help="Disable preview web server")
    args = parser.parse_args()

    config = load_config(args.config)
    configure_logging(config.log)

    _session = _build_session(config)
    query = args.stop or config.transit.stop_id
    stop = _session.find_and_select_stop(query)
    if stop is None:
        logger.error("Unknown stop %r", query)
        _session.close()
        return 1
    logger.info("Showing stop %s (%s)", stop.id, stop.name)
    if args.line:
        _session.toggle_line(args.line)

    if not args.no_server:
        server_thread = threading.Thread(target=_run_server, args=(args.port,), daemon=True)
        server_thread.start()
        logger.info("Preview server listening on port %s", args.port)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        return 0
    finally:
        _session.close()


if __name__ == "__main__":
    raise SystemExit(main())
