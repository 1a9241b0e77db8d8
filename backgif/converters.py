"""Converters: the per-variant build, patch and script steps.

A :class:`Converter` pairs a frame source with a debugger backend.  The
decoded-image variant compiles and links in one step and patches the
resulting ``a.out``; :class:`RuntimeConverter` links twice so that guest code
can rewrite symbol names inside an embedded copy of the first binary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from . import codegen, toolchain
from .debugger import DebuggerBackend
from .exceptions import InputError
from .formatters import line_prefix_length
from .frames import Frame, NameCounter
from .inspector import BinInfo, parse_bin
from .patcher import patch_symbols
from .shadow import build_shadow
from .sources import CustomFrameSource, FrameSource

LOG = logging.getLogger(__name__)


class Converter:
    """Decoded-image conversion: one compile, one patch."""

    needs_shadow = False

    def __init__(
        self,
        source: FrameSource,
        backend: DebuggerBackend,
        compiler: Optional[str] = None,
    ) -> None:
        self.source = source
        self.backend = backend
        self.compiler = compiler or backend.compiler

    def parse_frames(
        self,
        path: Path,
        clear_line: bool,
        delay: Optional[int],
        counter: NameCounter,
    ) -> List[Frame]:
        return self.source.parse_frames(path, clear_line, delay, counter)

    def generate_source(self, frames: Sequence[Frame], start_tmp_name: str, debug_info: bool) -> str:
        return codegen.generate_source(frames, start_tmp_name)

    def build(self, workdir: Path, src: str, start_tmp_name: str, debug_info: bool) -> Path:
        return toolchain.compile_executable(
            workdir, src, self.compiler, start_tmp_name, debug_info
        )

    def inspect(self, binary: Path) -> BinInfo:
        return parse_bin(binary)

    def patch_binary(
        self,
        binary: Path,
        info: BinInfo,
        frames: Sequence[Frame],
        start_tmp_name: str,
        start_name: str,
    ) -> int:
        return patch_symbols(binary, info.symbols, frames, start_tmp_name, start_name)

    def build_shadow(
        self,
        workdir: Path,
        info: BinInfo,
        frames: Sequence[Frame],
        start_tmp_name: str,
    ) -> Optional[BinInfo]:
        return None

    def emit_debug_script(
        self,
        workdir: Path,
        frames: Sequence[Frame],
        info: BinInfo,
    ) -> Path:
        return self.backend.write_script(
            workdir, frames, info.symbols, info.size, False, toolchain.BINARY_NAME
        )


class RuntimeConverter(Converter):
    """Runtime-driven conversion around a guest C source file.

    Guest code rewrites placeholder frame lines through ``draw_line``; the
    frame lines it writes live in an embedded copy of ``a.out`` that the
    debugger is told to reload symbols from on every stop.
    """

    needs_shadow = True

    def __init__(
        self,
        source: CustomFrameSource,
        backend: DebuggerBackend,
        guest_path: Path,
        compiler: Optional[str] = None,
        clear_line: bool = False,
    ) -> None:
        super().__init__(source, backend, compiler)
        self.guest_path = guest_path
        self.clear_line = clear_line

    @property
    def height(self) -> int:
        return self.source.height  # type: ignore[attr-defined]

    @property
    def width(self) -> int:
        return self.source.width  # type: ignore[attr-defined]

    def read_guest_source(self) -> str:
        try:
            return self.guest_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise InputError(f"cannot read guest source {self.guest_path}: {exc}") from exc

    def generate_source(self, frames: Sequence[Frame], start_tmp_name: str, debug_info: bool) -> str:
        formatter = self.source.formatter
        return codegen.generate_runtime_source(
            frames,
            start_tmp_name,
            self.read_guest_source(),
            self.width,
            self.height,
            line_prefix_length(formatter, True, self.clear_line),
            line_prefix_length(formatter, False, self.clear_line),
            debug_info,
        )

    def build(self, workdir: Path, src: str, start_tmp_name: str, debug_info: bool) -> Path:
        toolchain.compile_object(workdir, src, self.compiler, debug_info)
        toolchain.write_linker_scripts(workdir, self.backend.data_section_addr)
        return toolchain.link(
            workdir,
            start_tmp_name,
            toolchain.BINARY_NAME,
            toolchain.LINKER_SCRIPT_NAME,
        )

    def build_shadow(
        self,
        workdir: Path,
        info: BinInfo,
        frames: Sequence[Frame],
        start_tmp_name: str,
    ) -> Optional[BinInfo]:
        return build_shadow(
            workdir, info, frames, start_tmp_name, self.backend.data_section_addr
        )

    def emit_debug_script(
        self,
        workdir: Path,
        frames: Sequence[Frame],
        info: BinInfo,
    ) -> Path:
        # Breakpoints and the memory dump size refer to the embedded `a.out`.
        return self.backend.write_script(
            workdir, frames, info.symbols, info.size, True, toolchain.SHADOW_NAME
        )


def converter_summary(converter: Converter) -> Dict[str, object]:
    return {
        "variant": "runtime" if converter.needs_shadow else "image",
        "debugger": converter.backend.name,
        "compiler": converter.compiler,
    }


__all__ = ["Converter", "RuntimeConverter", "converter_summary"]
