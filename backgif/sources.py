"""Frame sources: decoded GIF sequences and runtime-driven pixel grids."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from PIL import Image, ImageSequence, UnidentifiedImageError

from .exceptions import InputError
from .formatters import FrameFormatter
from .frames import Frame, NameCounter, prepare_frame

LOG = logging.getLogger(__name__)

# Delays are expressed in units of 10 ms, as in the GIF graphic control block.
DEFAULT_CUSTOM_DELAY = 100

PixelRows = List[List[Tuple[int, int, int, int]]]


class FrameSource:
    """Produce :class:`Frame` records for the rest of the pipeline."""

    def __init__(self, formatter: FrameFormatter) -> None:
        self.formatter = formatter

    def parse_frames(
        self,
        path: Path,
        clear_line: bool,
        delay: Optional[int],
        counter: NameCounter,
    ) -> List[Frame]:
        raise NotImplementedError


class GifFrameSource(FrameSource):
    """Render every frame of a GIF file, one text line per pixel row."""

    def render_lines(self, rows: Sequence[Sequence[Tuple[int, int, int, int]]]) -> List[str]:
        return ["".join(self.formatter.to_dot(rgba) for rgba in row) for row in rows]

    def build_frames(
        self,
        decoded: Iterable[Tuple[PixelRows, int]],
        clear_line: bool,
        delay: Optional[int],
        counter: NameCounter,
    ) -> List[Frame]:
        frames: List[Frame] = []
        for rows, frame_delay in decoded:
            frames.append(
                prepare_frame(
                    self.formatter,
                    self.render_lines(rows),
                    counter,
                    frame_delay if delay is None else delay,
                    clear_line,
                )
            )
        return frames

    def parse_frames(
        self,
        path: Path,
        clear_line: bool,
        delay: Optional[int],
        counter: NameCounter,
    ) -> List[Frame]:
        return self.build_frames(decode_gif(path), clear_line, delay, counter)


class CustomFrameSource(FrameSource):
    """A single frame of placeholder dots that guest code fills in at runtime."""

    def __init__(self, formatter: FrameFormatter, height: int, width: int) -> None:
        super().__init__(formatter)
        self.height = height
        self.width = width

    def parse_frames(
        self,
        path: Path,
        clear_line: bool,
        delay: Optional[int],
        counter: NameCounter,
    ) -> List[Frame]:
        line = self.formatter.to_dot(None) * self.width
        lines = [line] * self.height
        frame = prepare_frame(
            self.formatter,
            lines,
            counter,
            DEFAULT_CUSTOM_DELAY if delay is None else delay,
            clear_line,
        )
        return [frame]


def decode_gif(path: Path) -> Iterator[Tuple[PixelRows, int]]:
    """Yield ``(rows of RGBA tuples, delay)`` for every frame of ``path``."""

    try:
        image = Image.open(path)
    except (OSError, UnidentifiedImageError) as exc:
        raise InputError(f"cannot decode {path}: {exc}") from exc

    with image:
        width, height = image.size
        LOG.debug("dim %dx%d", width, height)
        try:
            for index, frame in enumerate(ImageSequence.Iterator(image)):
                duration = frame.info.get("duration", 0) or 0
                rgba = frame.convert("RGBA")
                data = rgba.tobytes()
                stride = width * 4
                rows: PixelRows = []
                for y in range(height):
                    row = data[y * stride : (y + 1) * stride]
                    rows.append(
                        [tuple(row[x : x + 4]) for x in range(0, stride, 4)]  # type: ignore[misc]
                    )
                LOG.debug("frame %d %dx%d delay %dms", index, width, height, duration)
                yield rows, int(duration) // 10
        # Pillow decodes lazily, so truncated or corrupt frame data only
        # surfaces while iterating.
        except (OSError, EOFError, IndexError, SyntaxError, ValueError) as exc:
            raise InputError(f"cannot decode {path}: {exc}") from exc


__all__ = [
    "CustomFrameSource",
    "DEFAULT_CUSTOM_DELAY",
    "FrameSource",
    "GifFrameSource",
    "decode_gif",
]
