"""Resolved run options and their validation."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .exceptions import InputError

LOG = logging.getLogger(__name__)

WORKDIR_ENV = "BACKGIF_WORKDIR"
MMAP_MIN_ADDR_PATH = Path("/proc/sys/vm/mmap_min_addr")

INPUT_FORMATS = ("c", "gif")
RENDERERS = ("emoji", "truecolor")
DEBUGGERS = ("gdb", "lldb")

# Frame dimensions and delays are stored as 16-bit fields.
U16_MAX = 0xFFFF


@dataclass
class Config:
    """Options for a single conversion run."""

    input_path: Path
    input_format: str = "gif"
    renderer: str = "truecolor"
    debugger: str = "gdb"
    clear_line: bool = False
    debug_info: bool = False
    delay: Optional[int] = None
    height: Optional[int] = None
    width: Optional[int] = None
    workdir: Path = Path(".")
    compiler: Optional[str] = None
    verbose: bool = False
    profile: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        workdir = args.workdir or os.environ.get(WORKDIR_ENV) or "."
        return cls(
            input_path=Path(args.file),
            input_format=args.format,
            renderer=args.renderer,
            debugger=args.debugger,
            clear_line=args.clear_line,
            debug_info=args.debug_info,
            delay=args.delay,
            height=args.height,
            width=args.width,
            workdir=Path(workdir),
            compiler=args.compiler,
            verbose=args.verbose,
            profile=args.profile,
        )

    @property
    def is_runtime(self) -> bool:
        return self.input_format == "c"

    def validate(self) -> None:
        """Reject unusable option combinations before anything is written."""

        if self.input_format not in INPUT_FORMATS:
            raise InputError(f"unknown input format {self.input_format!r}")
        if self.renderer not in RENDERERS:
            raise InputError(f"unknown renderer {self.renderer!r}")
        if self.debugger not in DEBUGGERS:
            raise InputError(f"unknown debugger {self.debugger!r}")
        if not self.input_path.is_file() or not os.access(self.input_path, os.R_OK):
            raise InputError(f"cannot read input file {self.input_path}")

        if self.is_runtime:
            if self.height is None or self.width is None:
                raise InputError("custom input requires --height and --width")
            if self.height <= 0 or self.width <= 0:
                raise InputError("--height and --width must be positive")
            if self.renderer == "emoji":
                raise InputError("custom input is not supported with the emoji renderer")
        if self.delay is not None and self.delay < 0:
            raise InputError("--delay must not be negative")
        bounded = (("--height", self.height), ("--width", self.width), ("--delay", self.delay))
        for option, value in bounded:
            if value is not None and value > U16_MAX:
                raise InputError(f"{option} must be at most {U16_MAX}")

    def warnings(self) -> List[str]:
        """Advisory messages for combinations that work with caveats."""

        messages: List[str] = []
        if not self.is_runtime:
            return messages
        min_addr = read_mmap_min_addr()
        if min_addr:
            messages.append(
                f"Custom input expects `/proc/sys/vm/mmap_min_addr = 0`, got `{min_addr}`."
            )
        if self.debugger == "lldb":
            messages.append(
                "Workaround for llvm-project issue #153772: each frame dumps memory "
                "to a temporary file, mind your SSD lifespan!"
            )
            if not self.debug_info:
                messages.append(
                    "LLDB does not reload .symtab symbols, consider passing "
                    "`--debug-info` to use .debug_str entries instead."
                )
        return messages


def read_mmap_min_addr(path: Path = MMAP_MIN_ADDR_PATH) -> int:
    """Return the kernel's lowest mappable address, 0 when unavailable."""

    try:
        return int(path.read_text().strip())
    except (OSError, ValueError):
        LOG.debug("cannot read %s", path)
        return 0


__all__ = [
    "Config",
    "DEBUGGERS",
    "INPUT_FORMATS",
    "RENDERERS",
    "U16_MAX",
    "WORKDIR_ENV",
    "read_mmap_min_addr",
]
