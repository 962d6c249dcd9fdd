"""Data structures for rendering the arrivals board."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BoardRow:
    """Single arrival row for display."""

    line_id: str
    destination: str
    minutes: int
    is_live: bool
    color: str


@dataclass(frozen=True)
class BoardData:
    """Board data for the renderer."""

    stop_name: str
    area: str
    clock_time: str
    rows: list[BoardRow]
    loading: bool = False
    ticker_text: str = ""


__all__ = ["BoardRow", "BoardData"]
