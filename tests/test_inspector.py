"""Tests for ELF symbol, build-id and debug string offset recovery."""

from __future__ import annotations

import pytest

pytest.importorskip("elftools")

from backgif.exceptions import BinaryFormatError  # noqa: E402
from backgif.inspector import parse_bin  # noqa: E402
from elf_builder import SHT_PROGBITS  # noqa: E402

SYMBOLS = [
    ("A00000000", 0x401000),
    ("A00000001", 0x401010),
    ("AAAAAAAAAAAAA00000002", 0x401020),
]


def test_parse_bin_symbol_offsets(elf_file) -> None:
    path, image = elf_file(SYMBOLS)
    info = parse_bin(path)

    assert set(info.symbols) == {name for name, _ in SYMBOLS}
    for name, addr in SYMBOLS:
        symbol = info.symbols[name]
        assert symbol.addr == addr
        assert symbol.offsets == [image.name_offsets[name]]

    raw = path.read_bytes()
    for name, _ in SYMBOLS:
        offset = info.symbols[name].offsets[0]
        assert raw[offset : offset + len(name)] == name.encode()


def test_parse_bin_build_id_and_sections(elf_file) -> None:
    desc = bytes(range(20))
    path, image = elf_file(SYMBOLS, build_id=desc)
    info = parse_bin(path)

    assert info.build_id_desc == desc
    assert info.build_id_desc_offset == image.build_id_desc_offset
    assert path.read_bytes()[info.build_id_desc_offset : info.build_id_desc_offset + 20] == desc
    assert info.section_offsets[".text"] == image.section_offsets[".text"]
    assert info.section_offsets[".data"] == image.section_offsets[".data"]
    assert info.section_offsets[".strtab"] == image.section_offsets[".strtab"]
    assert info.size == len(image.data)


def test_parse_bin_without_build_id(elf_file) -> None:
    path, _ = elf_file(SYMBOLS, build_id=None)
    info = parse_bin(path)
    assert info.build_id_desc_offset == 0
    assert info.build_id_desc == b""


def test_parse_bin_rejects_non_note_build_id(elf_file) -> None:
    path, _ = elf_file(SYMBOLS, build_id_type=SHT_PROGBITS)
    with pytest.raises(BinaryFormatError):
        parse_bin(path)


def test_parse_bin_requires_symbol_tables(elf_file) -> None:
    path, image = elf_file(SYMBOLS, name="stripped", symbol_tables=False)
    assert ".symtab" not in image.section_offsets
    with pytest.raises(BinaryFormatError, match="symtab"):
        parse_bin(path)


def test_parse_bin_adds_debug_str_offsets(elf_file) -> None:
    path, image = elf_file(SYMBOLS, debug_strings=["", "A00000001", "unrelated"])
    info = parse_bin(path)

    offsets = info.symbols["A00000001"].offsets
    assert len(offsets) == 2
    assert offsets[0] == image.name_offsets["A00000001"]
    debug_str = image.section_offsets[".debug_str"]
    assert offsets[1] == debug_str + 1
    assert info.symbols["A00000000"].offsets == [image.name_offsets["A00000000"]]


def test_parse_bin_rejects_garbage(tmp_path) -> None:
    path = tmp_path / "a.out"
    path.write_bytes(b"\x00" * 64)
    with pytest.raises(BinaryFormatError):
        parse_bin(path)


def test_parse_bin_missing_file(tmp_path) -> None:
    with pytest.raises(BinaryFormatError):
        parse_bin(tmp_path / "missing.out")
