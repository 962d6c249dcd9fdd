"""Render a board image from a saved realtime response."""

from __future__ import annotations

import argparse
from datetime import datetime
import json
from typing import Any

from stopboard.data.models import RawArrival
from stopboard.logic.arrivals import process_arrivals
from stopboard.rendering import BoardData, BoardRow, compose_board, save_frame


def _load_arrivals(path: str) -> list[dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of arrivals")
    return data


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("path", help="JSON dump of GET /stops/{id}/realtime")
    parser.add_argument("--at", help="Reference time, ISO 8601 (defaults to now)")
    parser.add_argument("--stop-name", default="Preview")
    parser.add_argument("--output", default="preview_output/board.png")
    args = parser.parse_args()

    reference = datetime.fromisoformat(args.at) if args.at else datetime.now().astimezone()
    raw = [RawArrival.from_json(item) for item in _load_arrivals(args.path) if isinstance(item, dict)]
    arrivals = process_arrivals(raw, reference)

    board = BoardData(
        stop_name=args.stop_name,
        area="",
        clock_time=reference.strftime("%H:%M"),
        rows=[
            BoardRow(a.line_id, a.destination, a.minutes_until_arrival, a.is_live, a.display_color)
            for a in arrivals
        ],
        ticker_text=f"{len(arrivals)} of {len(raw)} arrivals shown",
    )
    save_frame(compose_board(board), args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
