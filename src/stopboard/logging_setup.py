"""Logging setup shared by the Stop Board scripts."""

from __future__ import annotations

import logging
from pathlib import Path

from stopboard.config import LoggingConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILENAME = "stopboard.log"


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """Attach console and file handlers to the ``stopboard`` logger."""
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.level}")

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger("stopboard")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_dir / LOG_FILENAME, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    return root


__all__ = ["configure_logging", "LOG_FILENAME"]
