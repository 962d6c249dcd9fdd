"""Rendering utilities for the arrivals board."""

from stopboard.rendering.composer import compose_board, format_countdown
from stopboard.rendering.emulator import save_frame
from stopboard.rendering.frame_data import BoardData, BoardRow

__all__ = ["BoardData", "BoardRow", "compose_board", "format_countdown", "save_frame"]
