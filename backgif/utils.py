"""Small helpers shared by the pipeline stages."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence, Tuple

_COLOR_CODES = {
    "black": "30",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "purple": "35",
    "cyan": "36",
    "white": "37",
}


def colorize_text(text: str, color: str, bold: bool = False) -> str:
    """Return *text* wrapped in ANSI color codes."""
    code = _COLOR_CODES.get(color, "0")
    style = "1;" if bold else ""
    return f"\033[{style}{code}m{text}\033[0m"


def bold_text(text: str) -> str:
    return f"\033[1m{text}\033[0m"


def ensure_directory(path: Path) -> None:
    """Create *path* if it does not exist."""

    path.mkdir(parents=True, exist_ok=True)


def write_text(path: str | os.PathLike[str], content: str, *, encoding: str = "utf-8") -> Path:
    """Write ``content`` to ``path``, truncating any previous file."""

    target = Path(path)
    ensure_directory(target.parent)
    with open(target, "w", encoding=encoding) as handle:
        handle.write(content)
        handle.flush()
    return target


def format_pass_summary(results: Sequence[Tuple[str, float]]) -> str:
    """Format ``results`` as a small table for console output."""

    if not results:
        return ""
    name_width = max(len(name) for name, _ in results)
    lines = [f"{'Pass'.ljust(name_width)}  Duration"]
    for name, duration in results:
        lines.append(f"{name.ljust(name_width)}  {duration:.3f}s")
    return "\n".join(lines)


__all__ = [
    "bold_text",
    "colorize_text",
    "ensure_directory",
    "format_pass_summary",
    "write_text",
]
