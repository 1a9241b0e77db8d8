"""In-place rewriting of symbol names with frame-line text."""

from __future__ import annotations

import logging
import os
from typing import BinaryIO, Dict, Iterable, Sequence

from .exceptions import BinaryFormatError
from .frames import Frame
from .inspector import SymbolInfo

LOG = logging.getLogger(__name__)


def write_at(handle: BinaryIO, offset: int, data: bytes) -> None:
    """Overwrite ``len(data)`` bytes at ``offset`` without resizing the file."""

    handle.seek(offset)
    written = handle.write(data)
    if written != len(data):
        raise OSError(f"short write at 0x{offset:08x}: {written} of {len(data)} bytes")


def _lookup(symbols: Dict[str, SymbolInfo], name: str) -> SymbolInfo:
    info = symbols.get(name)
    if info is None:
        raise BinaryFormatError(f"unexpected unresolved symbol {name!r}")
    return info


def patch_name(handle: BinaryIO, symbols: Dict[str, SymbolInfo], name: str, text: str) -> None:
    data = text.encode("utf-8")
    if len(data) > len(name.encode("utf-8")):
        raise BinaryFormatError(
            f"replacement for {name!r} is {len(data)} bytes, longer than the symbol"
        )
    for offset in _lookup(symbols, name).offsets:
        LOG.debug("patch %s @ %08x (%d bytes)", name, offset, len(data))
        write_at(handle, offset, data)


def patch_symbols(
    path: str | os.PathLike[str],
    symbols: Dict[str, SymbolInfo],
    frames: Sequence[Frame],
    start_tmp_name: str,
    start_name: str,
) -> int:
    """Replace every temporary name in ``path`` with its frame line.

    Returns the number of symbols patched, the entry symbol included.
    """

    count = 0
    with open(path, "r+b") as handle:
        for frame in frames:
            for name in frame.names:
                patch_name(handle, symbols, name, frame.name_to_line[name])
                count += 1
        patch_name(handle, symbols, start_tmp_name, start_name)
        count += 1
        handle.flush()
    LOG.debug("patched %d symbols in %s", count, path)
    return count


def all_names(frames: Iterable[Frame]) -> Iterable[str]:
    for frame in frames:
        yield from frame.names


__all__ = ["all_names", "patch_name", "patch_symbols", "write_at"]
