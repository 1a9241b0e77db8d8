"""Temporary symbol allocation for rendered frames.

Every rendered row becomes a function whose name is later overwritten, in
place, with the row's frame-line text.  The temporary name therefore has to
occupy at least as many bytes in ``.strtab`` as the text that replaces it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .exceptions import InputError
from .formatters import FrameFormatter

LOG = logging.getLogger(__name__)

# Four "Zero Width No-Break Space" characters: the entry symbol is never
# displayed as a frame line, so it renders as nothing.
START_TEXT = "\ufeff" * 4

_FILLER = "A"
_INDEX_DIGITS = 8


@dataclass
class NameCounter:
    """Monotonic index used to derive unique temporary names."""

    value: int = 1

    def next(self) -> int:
        current = self.value
        self.value += 1
        return current


@dataclass(frozen=True)
class Frame:
    """Rendered frame: temporary names in call-chain order plus their text."""

    delay: int
    first_name: str
    last_name: str
    names: Tuple[str, ...]
    name_to_line: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.names)


def temporary_name(index: int, text: str) -> str:
    """Return the placeholder symbol name for ``text``.

    The name is the filler prefix followed by the hex ``index``; it is never
    shorter than the UTF-8 encoding of ``text`` and at least 9 characters.
    """

    size = len(text.encode("utf-8"))
    filler = 1 if size < 9 else size - _INDEX_DIGITS
    return f"{_FILLER * filler}{index:0{_INDEX_DIGITS}x}"


def frameline_names(
    formatter: FrameFormatter,
    text: str,
    index: int,
    at_origin: bool,
    clear_line: bool,
) -> Tuple[str, str]:
    """Return ``(frame_line, temporary_name)`` for one rendered row."""

    if at_origin:
        frame_line = formatter.to_line_at_origin(text, clear_line)
    else:
        frame_line = formatter.to_line(text)
    return frame_line, temporary_name(index, frame_line)


def start_names(formatter: FrameFormatter, clear_line: bool) -> Tuple[str, str]:
    """Return ``(replacement, temporary_name)`` for the entry symbol."""

    return frameline_names(formatter, START_TEXT, 0, False, clear_line)


def prepare_frame(
    formatter: FrameFormatter,
    lines: Sequence[str],
    counter: NameCounter,
    delay: int,
    clear_line: bool,
) -> Frame:
    """Allocate one temporary name per row of a frame.

    Rows are visited bottom-up: the bottom row becomes the entry called from
    the dispatch loop and the top row, rendered at the screen origin, becomes
    the terminal call where the debugger stops.
    """

    if not lines:
        raise InputError("cannot render a frame without lines")

    names: List[str] = []
    name_to_line: Dict[str, str] = {}
    last = len(lines) - 1
    for i, text in enumerate(reversed(lines)):
        frame_line, tmp_name = frameline_names(
            formatter,
            text,
            counter.next(),
            i == last,
            clear_line,
        )
        names.append(tmp_name)
        name_to_line[tmp_name] = frame_line

    LOG.debug("frame %s..%s: %d lines, delay %d", names[0], names[-1], len(names), delay)
    return Frame(
        delay=delay,
        first_name=names[0],
        last_name=names[-1],
        names=tuple(names),
        name_to_line=name_to_line,
    )


__all__ = [
    "Frame",
    "NameCounter",
    "START_TEXT",
    "frameline_names",
    "prepare_frame",
    "start_names",
    "temporary_name",
]
