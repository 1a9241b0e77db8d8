"""Frame formatting: pixels to frame dots, rendered rows to frame lines."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import colour
import numpy as np

LOG = logging.getLogger(__name__)

EMOJI_TABLE_PATH = Path(__file__).resolve().parent / "data" / "bgr_to_emoji.json"

Pixel = Sequence[int]
Lab = Tuple[float, float, float]


class FrameFormatter(ABC):
    """Render pixels as printable text and wrap rows with cursor control."""

    @abstractmethod
    def blank(self) -> str:
        """Text for a fully transparent pixel."""

    @abstractmethod
    def placeholder(self) -> str:
        """Text for a cell whose content is filled in at runtime."""

    @abstractmethod
    def to_dot(self, rgba: Optional[Pixel]) -> str:
        """Render one pixel; ``None`` marks a runtime placeholder cell."""

    @abstractmethod
    def to_line_at_origin(self, text: str, clear_line: bool) -> str:
        """Wrap the first row of a frame."""

    @abstractmethod
    def to_line(self, text: str) -> str:
        """Wrap any other row of a frame."""


class TrueColorFrameFormatter(FrameFormatter):
    """24-bit background colour escape sequences, two columns per dot."""

    def blank(self) -> str:
        return "  "

    def placeholder(self) -> str:
        return "000:000:000"

    def to_dot(self, rgba: Optional[Pixel]) -> str:
        # \x1b[48:2::{}m => Background 24-bit rgb color code;
        # \x1b[49m => Default background color;
        if rgba is None:
            rgb = self.placeholder()
        elif rgba[3] == 0:
            return self.blank()
        else:
            rgb = ":".join(str(component) for component in rgba[:3])
        return f"\x1b[48:2::{rgb}m{self.blank()}\x1b[49m"

    def to_line_at_origin(self, text: str, clear_line: bool) -> str:
        # \x1b[1;1H => Cursor to screen origin;
        # \x1b[2K / \x1b[2J => Erase line / erase display;
        # \x1b[8m => Invisible: hides the trailing "()" (gdb) or offset (lldb);
        # \x1b[?25l => Hide cursor;
        erase = "K" if clear_line else "J"
        return f"\x1b[1;1H\x1b[2{erase}{text}\x1b[8m\x1b[?25l"

    def to_line(self, text: str) -> str:
        # \x1b[1K => Erase to left of cursor;
        # \x1b[99D => Cursor backward 99 columns;
        # \x1b[3K => Erase to right of cursor;
        return f"\x1b[1K\x1b[99D{text}\x1b[3K\x1b[8m\x1b[?25l"


class EmojiFrameFormatter(FrameFormatter):
    """Map pixels to the emoji with the closest reference colour.

    Closeness is the CIEDE2000 difference in CIE L*a*b*; results are cached
    per RGB hex value since GIF frames reuse a small palette.
    """

    def __init__(self, table_path: Path = EMOJI_TABLE_PATH) -> None:
        self.cache: Dict[str, str] = {}

        with open(table_path, "r", encoding="utf-8") as handle:
            entries: List[list] = json.load(handle)
        self.emojis: List[str] = [emoji for *_bgr, emoji in entries]
        self.reference_lab = np.array([srgb_to_lab(r, g, b) for b, g, r, _ in entries])
        LOG.debug("loaded %d emoji colours from %s", len(self.emojis), table_path)

    def lookup(self, rgba: Pixel) -> str:
        candidate_rgb = f"{rgba[0]:02x}{rgba[1]:02x}{rgba[2]:02x}"
        cached = self.cache.get(candidate_rgb)
        if cached is not None:
            return cached

        candidate_lab = np.array(srgb_to_lab(rgba[0], rgba[1], rgba[2]))
        distances = colour.delta_E(self.reference_lab, candidate_lab, method="CIE 2000")
        best_emoji = self.emojis[int(np.argmin(distances))]
        self.cache[candidate_rgb] = best_emoji
        return best_emoji

    def blank(self) -> str:
        return "🫥"

    def placeholder(self) -> str:
        return self.blank()

    def to_dot(self, rgba: Optional[Pixel]) -> str:
        if rgba is None:
            return self.placeholder()
        if rgba[3] == 0:
            return self.blank()
        return self.lookup(rgba)

    def to_line_at_origin(self, text: str, clear_line: bool) -> str:
        return self.to_line(text)

    def to_line(self, text: str) -> str:
        return text


def line_prefix_length(formatter: FrameFormatter, at_origin: bool, clear_line: bool) -> int:
    """Return the byte length of the escape prefix preceding a line's dots."""

    marker = "\x00"
    if at_origin:
        line = formatter.to_line_at_origin(marker, clear_line)
    else:
        line = formatter.to_line(marker)
    return len(line[: line.index(marker)].encode("utf-8"))


def srgb_to_lab(r: int, g: int, b: int) -> Lab:
    """Convert 8-bit sRGB components to CIE L*a*b* (D65 white point)."""

    rgb = np.array([r, g, b], dtype=float) / 255.0
    lab = colour.XYZ_to_Lab(colour.sRGB_to_XYZ(rgb))
    return (float(lab[0]), float(lab[1]), float(lab[2]))


def ciede2000(lab1: Lab, lab2: Lab) -> float:
    return float(colour.delta_E(np.array(lab1), np.array(lab2), method="CIE 2000"))


__all__ = [
    "EmojiFrameFormatter",
    "FrameFormatter",
    "TrueColorFrameFormatter",
    "ciede2000",
    "line_prefix_length",
    "srgb_to_lab",
]
