"""ELF inspection: symbol name, build-id and debug string file offsets.

pyelftools exposes symbol values and names but not where a name physically
lives in the file, so the ``st_name`` field of every ``.symtab`` entry is
read back from the raw section bytes and rebased on the ``.strtab`` offset.
"""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import Section

from .exceptions import BinaryFormatError

LOG = logging.getLogger(__name__)

TRACKED_SECTIONS = (".data", ".strtab", ".text")

_NOTE_HEADER = struct.Struct("<III")


@dataclass
class SymbolInfo:
    """Load address and every file offset holding the symbol's name."""

    addr: int
    offsets: List[int] = field(default_factory=list)


@dataclass
class BinInfo:
    """Whole-binary metadata recovered by :func:`parse_bin`."""

    build_id_desc_offset: int
    build_id_desc: bytes
    symbols: Dict[str, SymbolInfo]
    section_offsets: Dict[str, int]
    size: int


def parse_build_id(handle: BinaryIO, section: Optional[Section]) -> Tuple[int, bytes]:
    """Return the file offset and bytes of the build-id descriptor.

    Note layout: ``{name_len:u32}{desc_len:u32}{type:u32}{name}{desc}``.
    """

    if section is None:
        return 0, b""
    if section["sh_type"] != "SHT_NOTE":
        raise BinaryFormatError(f"unexpected type {section['sh_type']!r} for build id")

    offset = section["sh_offset"]
    handle.seek(offset)
    header = handle.read(_NOTE_HEADER.size)
    if len(header) != _NOTE_HEADER.size:
        raise BinaryFormatError(f"truncated build id note at 0x{offset:08x}")
    name_len, desc_len, _note_type = _NOTE_HEADER.unpack(header)

    desc_offset = offset + _NOTE_HEADER.size + name_len
    handle.seek(desc_offset)
    desc = handle.read(desc_len)
    if len(desc) != desc_len:
        raise BinaryFormatError(f"truncated build id descriptor at 0x{desc_offset:08x}")
    return desc_offset, desc


def parse_debug_str(section: Optional[Section]) -> Dict[str, int]:
    """Map each null-terminated ``.debug_str`` entry to its file offset.

    Assumes one string per null separator. Strings merged or shared by the
    compiler map to a single offset; this is a heuristic, not a relocation
    accurate parse of ``.debug_info``.
    """

    name_to_offset: Dict[str, int] = {}
    if section is None:
        return name_to_offset

    section_offset = section["sh_offset"]
    haystack = section.data()
    start = 0
    while True:
        end = haystack.find(b"\x00", start)
        if end < 0:
            break
        name = haystack[start:end].decode("utf-8", errors="replace")
        name_to_offset[name] = section_offset + start
        start = end + 1
    return name_to_offset


def symbol_name_offsets(symtab: Section, strtab: Section) -> List[Tuple[int, str, int, int]]:
    """Return ``(index, name, addr, name_file_offset)`` for every function symbol."""

    raw = symtab.data()
    entry_size = symtab["sh_entsize"]
    strtab_offset = strtab["sh_offset"]
    entries: List[Tuple[int, str, int, int]] = []
    for index, sym in enumerate(symtab.iter_symbols()):
        if sym["st_info"]["type"] != "STT_FUNC":
            continue
        start = entry_size * index
        (relative,) = struct.unpack_from("<I", raw, start)
        entries.append((index, sym.name, sym["st_value"], strtab_offset + relative))
    return entries


def parse_bin(path: str | os.PathLike[str]) -> BinInfo:
    """Parse the linked ELF at ``path``."""

    path = Path(path)
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise BinaryFormatError(f"cannot open {path}: {exc}") from exc

    with handle:
        try:
            elf = ELFFile(handle)
        except ELFError as exc:
            raise BinaryFormatError(f"cannot parse {path}: {exc}") from exc

        section_offsets: Dict[str, int] = {}
        for name in TRACKED_SECTIONS:
            section = elf.get_section_by_name(name)
            section_offsets[name] = section["sh_offset"] if section is not None else 0

        symtab = elf.get_section_by_name(".symtab")
        strtab = elf.get_section_by_name(".strtab")
        if symtab is None or strtab is None:
            raise BinaryFormatError(f"{path} has no .symtab/.strtab sections")

        build_id_desc_offset, build_id_desc = parse_build_id(
            handle, elf.get_section_by_name(".note.gnu.build-id")
        )
        name_to_debug_offset = parse_debug_str(elf.get_section_by_name(".debug_str"))

        symbols: Dict[str, SymbolInfo] = {}
        for index, name, addr, offset in symbol_name_offsets(symtab, strtab):
            LOG.debug("symtab i=%d @ %08x name=%s", index, offset, name)
            offsets = [offset]
            debug_offset = name_to_debug_offset.get(name)
            if debug_offset is not None:
                offsets.append(debug_offset)
            symbols[name] = SymbolInfo(addr=addr, offsets=offsets)

        size = handle.seek(0, os.SEEK_END)

    return BinInfo(
        build_id_desc_offset=build_id_desc_offset,
        build_id_desc=build_id_desc,
        symbols=symbols,
        section_offsets=section_offsets,
        size=size,
    )


__all__ = [
    "BinInfo",
    "SymbolInfo",
    "TRACKED_SECTIONS",
    "parse_bin",
    "parse_build_id",
    "parse_debug_str",
    "symbol_name_offsets",
]
