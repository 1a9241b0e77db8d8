"""Thin wrappers around the external compiler and linker."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence

from . import utils
from .exceptions import ToolchainFailure

LOG = logging.getLogger(__name__)

COMPILER_ARGS = (
    "-fdiagnostics-color=always",
    "-std=gnu99",
    "-O0",
    "-nostdlib",
    "-static",
    "-Wall",
    "-Werror",
)

SOURCE_NAME = "a.c"
OBJECT_NAME = "a.o"
BINARY_NAME = "a.out"
SHADOW_NAME = "a2.out"
LINKER_SCRIPT_NAME = "a.ld"

# `.text` address pinned by the linker scripts; the default static layout
# of both gcc and clang uses the same address.
TEXT_SECTION_ADDR = 0x401000

_LINKER_SCRIPT = """\
OUTPUT_FORMAT("elf64-x86-64")
OUTPUT_ARCH(i386:x86-64)
SECTIONS
{{
{data}    . = 0x{text:x};
    .text : {{ *(.text .text.*) }}
    .note.gnu.build-id : {{ *(.note.gnu.build-id) }}
    .rodata : {{ *(.rodata .rodata.*) }}
    .guestdata : {{ *(.data .data.*) *(.bss .bss.* COMMON) }}
}}
"""

# Includes the primary binary verbatim as loadable, writable memory.
_SHADOW_DATA = """\
    .data 0x{addr:04x} : {{ {binary}(.data) }}
"""

_SHADOW_HEADER = """\
TARGET(binary)
INPUT({binary})
"""


def run_tool(command: Sequence[str], cwd: Path) -> str:
    """Run ``command`` to completion and return its standard output.

    Raises :class:`ToolchainFailure` carrying stderr on a non-zero exit.
    """

    LOG.info("Running `%s`.", " ".join(command))
    proc = subprocess.run(
        list(command),
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        raise ToolchainFailure(command, proc.returncode, proc.stderr)
    if proc.stdout:
        LOG.info("%s", proc.stdout)
    return proc.stdout


def compiler_args(include_debug_info: bool) -> List[str]:
    args = ["-g"] if include_debug_info else []
    args.extend(COMPILER_ARGS)
    return args


def write_source(workdir: Path, src: str) -> Path:
    return utils.write_text(workdir / SOURCE_NAME, src)


def compile_executable(
    workdir: Path,
    src: str,
    compiler: str,
    start_tmp_name: str,
    include_debug_info: bool,
) -> Path:
    """Compile and link ``src`` into ``a.out`` in one step."""

    source = write_source(workdir, src)
    run_tool(
        [compiler]
        + compiler_args(include_debug_info)
        + ["-Wl,--build-id", f"-Wl,--entry={start_tmp_name}", source.name],
        workdir,
    )
    return workdir / BINARY_NAME


def compile_object(workdir: Path, src: str, compiler: str, include_debug_info: bool) -> Path:
    """Compile ``src`` into ``a.o`` without linking."""

    source = write_source(workdir, src)
    run_tool(
        [compiler]
        + compiler_args(include_debug_info)
        + ["-c", "-o", OBJECT_NAME, source.name],
        workdir,
    )
    return workdir / OBJECT_NAME


def link(workdir: Path, start_tmp_name: str, output: str, script: str) -> Path:
    run_tool(
        [
            "ld",
            "--build-id",
            "-e",
            start_tmp_name,
            "-o",
            output,
            OBJECT_NAME,
            "-T",
            script,
        ],
        workdir,
    )
    return workdir / output


def shadow_script_name(data_addr: int) -> str:
    return f"a2.0x{data_addr:04x}.ld"


def render_linker_script(data_addr: int | None = None, binary: str = BINARY_NAME) -> str:
    """Return the primary linker script, or the shadow one when ``data_addr`` is set."""

    if data_addr is None:
        return _LINKER_SCRIPT.format(data="", text=TEXT_SECTION_ADDR)
    script = _LINKER_SCRIPT.format(
        data=_SHADOW_DATA.format(addr=data_addr, binary=binary),
        text=TEXT_SECTION_ADDR,
    )
    return _SHADOW_HEADER.format(binary=binary) + script


def write_linker_scripts(workdir: Path, data_addr: int) -> List[Path]:
    """Write ``a.ld`` and ``a2.0x<addr>.ld`` into ``workdir``."""

    primary = utils.write_text(workdir / LINKER_SCRIPT_NAME, render_linker_script())
    shadow = utils.write_text(
        workdir / shadow_script_name(data_addr), render_linker_script(data_addr)
    )
    LOG.debug("wrote linker scripts %s and %s", primary.name, shadow.name)
    return [primary, shadow]


__all__ = [
    "BINARY_NAME",
    "COMPILER_ARGS",
    "LINKER_SCRIPT_NAME",
    "OBJECT_NAME",
    "SHADOW_NAME",
    "SOURCE_NAME",
    "TEXT_SECTION_ADDR",
    "compile_executable",
    "compile_object",
    "compiler_args",
    "link",
    "render_linker_script",
    "run_tool",
    "shadow_script_name",
    "write_linker_scripts",
    "write_source",
]
