"""Frame output helpers for the board and map previews."""

from __future__ import annotations

from pathlib import Path

from PIL import Image


def save_frame(image: Image.Image, path: str = "preview_output/board.png") -> None:
    """Save a frame to disk as a PNG image, replacing the previous one atomically."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output_path.with_suffix(".tmp")
    image.save(tmp_path, format="PNG")
    tmp_path.replace(output_path)


__all__ = ["save_frame"]
