"""Shadow binary patching for runtime-driven frames.

Guest code rewrites frame lines through addresses baked into its
``draw_line`` calls.  Those addresses only exist once the primary binary is
embedded as ``.data`` in a second link, so the compiled calls carry
placeholder immediates that are located by disassembly and rewritten::

    bf 04 03 02 01    mov   edi,0x01020304
    e8 0e fe ff ff    call  0x4011fd <draw_line>
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from capstone import CS_ARCH_X86, CS_MODE_64, Cs, CsInsn
from capstone.x86 import X86_INS_CALL, X86_OP_IMM, X86_OP_REG

from . import toolchain
from .codegen import PLACEHOLDER_ADDRS
from .exceptions import BinaryFormatError
from .frames import Frame
from .inspector import BinInfo, SymbolInfo, parse_bin
from .patcher import all_names, write_at

LOG = logging.getLogger(__name__)

_IMM32_SIZE = 4
# `mov r32, imm32` is a single opcode byte followed by the immediate.
_OPCODE_SIZE = 1


def _decoder() -> Cs:
    cs = Cs(CS_ARCH_X86, CS_MODE_64)
    cs.detail = True
    return cs


def is_placeholder_mov(insn: CsInsn, placeholder: int) -> bool:
    """``mov reg32, placeholder`` writing exactly one register and reading none."""

    operands = insn.operands
    if len(operands) != 2:
        return False
    regs_read, regs_write = insn.regs_access()
    return (
        len(regs_write) == 1
        and not regs_read
        and operands[0].type == X86_OP_REG
        and operands[1].type == X86_OP_IMM
        and operands[1].size == _IMM32_SIZE
        and operands[1].imm == placeholder
    )


def is_near_call(insn: CsInsn) -> bool:
    operands = insn.operands
    return insn.id == X86_INS_CALL and len(operands) == 1 and operands[0].type == X86_OP_IMM


def find_placeholder_targets(code: bytes, base_offset: int, expected: Sequence[int]) -> List[int]:
    """Return the file offset of each expected placeholder immediate.

    ``code`` is decoded once from ``base_offset``; for every entry of
    ``expected``, in order, the next matching ``mov`` is recorded and the
    following near ``call`` closes the pair.  Instruction order is assumed to
    be preserved between calls.
    """

    instructions: Iterator[CsInsn] = _decoder().disasm(code, base_offset)
    targets: List[int] = []
    for placeholder in expected:
        target = None
        for insn in instructions:
            LOG.debug("@ %08x => %s %s", insn.address, insn.mnemonic, insn.op_str)
            if is_placeholder_mov(insn, placeholder):
                target = insn.address + _OPCODE_SIZE
            elif target is not None and is_near_call(insn):
                break
        else:
            target = None
        if target is None:
            raise BinaryFormatError(
                f"compiler generated unhandled instructions near placeholder 0x{placeholder:08x}"
            )
        targets.append(target)
    return targets


def expected_placeholders(frames: Sequence[Frame], symbols: Dict[str, SymbolInfo]) -> List[tuple]:
    """Return ``(name, symbol offset, placeholder)`` in generated call order."""

    expected = []
    for name in all_names(frames):
        info = symbols.get(name)
        if info is None:
            raise BinaryFormatError(f"unexpected unresolved symbol {name!r}")
        for i, offset in enumerate(info.offsets):
            expected.append((name, offset, PLACEHOLDER_ADDRS[i]))
    return expected


def patch_addresses(
    path: str | os.PathLike[str],
    symbols: Dict[str, SymbolInfo],
    frames: Sequence[Frame],
    text_offset: int,
    text_addr: int,
    start_addr: int,
    data_addr: int,
) -> int:
    """Point every placeholder immediate in ``path`` at its symbol's name.

    The value written is the name's file offset in the primary binary plus
    the address the primary binary is loaded at; only the low 4 bytes fit
    the immediate.
    """

    with open(path, "r+b") as handle:
        contents = handle.read()
        start_offset = start_addr - text_addr + text_offset
        expected = expected_placeholders(frames, symbols)
        targets = find_placeholder_targets(
            contents[start_offset:],
            start_offset,
            [placeholder for _, _, placeholder in expected],
        )
        for (name, offset, placeholder), target in zip(expected, targets):
            LOG.debug(
                "%s 0x%08x: sym @ %08x => patch @ %08x", name, placeholder, offset, target
            )
            value = (offset + data_addr).to_bytes(8, "little")[:_IMM32_SIZE]
            write_at(handle, target, value)
        handle.flush()
    return len(targets)


def patch_build_id(path: str | os.PathLike[str], offset: int, desc: bytes) -> None:
    """Overwrite the build-id descriptor at ``offset`` with ``desc``."""

    LOG.debug("Patching build id @ 0x%08x = %s.", offset, desc.hex())
    with open(path, "r+b") as handle:
        write_at(handle, offset, desc)


def build_shadow(
    workdir: Path,
    primary: BinInfo,
    frames: Sequence[Frame],
    start_tmp_name: str,
    data_addr: int,
) -> BinInfo:
    """Link, inspect and patch ``a2.out``; return its inspection result.

    The shadow binary embeds the already patched primary binary at
    ``data_addr``.  The embedded copy receives the shadow's own build-id so a
    debugger matching modules by build-id accepts the in-memory image as
    symbols for the running process.
    """

    shadow_path = toolchain.link(
        workdir,
        start_tmp_name,
        toolchain.SHADOW_NAME,
        toolchain.shadow_script_name(data_addr),
    )
    shadow = parse_bin(shadow_path)
    start = shadow.symbols.get(start_tmp_name)
    if start is None:
        raise BinaryFormatError(f"unexpected unresolved symbol {start_tmp_name!r}")

    patched = patch_addresses(
        shadow_path,
        primary.symbols,
        frames,
        shadow.section_offsets[".text"],
        toolchain.TEXT_SECTION_ADDR,
        start.addr,
        data_addr,
    )
    LOG.debug("patched %d placeholder immediates in %s", patched, shadow_path)

    if primary.build_id_desc:
        patch_build_id(
            shadow_path,
            shadow.section_offsets[".data"] + primary.build_id_desc_offset,
            shadow.build_id_desc,
        )
    return shadow


__all__ = [
    "build_shadow",
    "expected_placeholders",
    "find_placeholder_targets",
    "is_near_call",
    "is_placeholder_mov",
    "patch_addresses",
    "patch_build_id",
]
