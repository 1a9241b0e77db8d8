"""Logging helpers for configuring console and per-run file output."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from . import utils

__all__ = [
    "ColourFormatter",
    "configure_logging",
    "debug_requested",
]

LOG_FILE_NAME = "backgif.log"


class ColourFormatter(logging.Formatter):
    COLOURS = {
        logging.DEBUG: "blue",
        logging.INFO: "green",
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "magenta",
    }

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - trivial wrapper
        message = super().format(record)
        colour = self.COLOURS.get(record.levelno, "green")
        return utils.colorize_text(message, colour, bold=record.levelno >= logging.WARNING)


def debug_requested() -> bool:
    """Return ``True`` when ``DEBUG=1`` is set in the environment."""

    return os.environ.get("DEBUG", "") == "1"


def configure_logging(verbose: bool, log_path: Path | None = None) -> logging.Logger:
    """Configure root logging handlers.

    The console always receives ``INFO`` messages so toolchain invocations and
    debugger hints stay visible; ``verbose`` (or ``DEBUG=1``) lowers the level
    to ``DEBUG`` for both the console and the log file.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    level = logging.DEBUG if verbose or debug_requested() else logging.INFO
    root.setLevel(level)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(file_handler)

    stream = logging.StreamHandler()
    stream.setFormatter(ColourFormatter("%(message)s"))
    root.addHandler(stream)
    return root
