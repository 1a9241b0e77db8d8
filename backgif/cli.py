"""Command line entry point."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from . import pipeline, utils
from .config import DEBUGGERS, INPUT_FORMATS, RENDERERS, Config
from .exceptions import BackgifError
from .logging_config import LOG_FILE_NAME, configure_logging

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backgif",
        description="Convert frames into a binary whose backtrace plays them as an animation",
    )
    parser.add_argument("file", metavar="FILE", help="GIF file, or C source file with --format c")
    parser.add_argument(
        "-f",
        "--format",
        choices=sorted(INPUT_FORMATS),
        default="gif",
        help="input file format (default: gif)",
    )
    parser.add_argument(
        "-r",
        "--renderer",
        choices=sorted(RENDERERS),
        default="truecolor",
        help="frame renderer (default: truecolor)",
    )
    parser.add_argument(
        "-d",
        "--debugger",
        choices=sorted(DEBUGGERS),
        default="gdb",
        help="debugger the generated script targets (default: gdb)",
    )
    parser.add_argument(
        "--clear-line",
        action="store_true",
        help="erase only the first line instead of the whole screen on each frame",
    )
    parser.add_argument(
        "--debug-info",
        action="store_true",
        help="compile with debug info and patch .debug_str entries too",
    )
    parser.add_argument(
        "--delay",
        type=int,
        help="delay between frames in units of 10 ms (overrides the GIF delays)",
    )
    parser.add_argument("--height", type=int, help="frame height, required with --format c")
    parser.add_argument("--width", type=int, help="frame width, required with --format c")
    parser.add_argument("--compiler", help="override the compiler (default: gcc for gdb, clang for lldb)")
    parser.add_argument(
        "--workdir",
        help="directory for intermediate and output files (default: $BACKGIF_WORKDIR or .)",
    )
    parser.add_argument("--verbose", action="store_true", help="enable verbose colourised logging")
    parser.add_argument("--profile", action="store_true", help="print pass timings to stdout")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = Config.from_args(args)

    configure_logging(config.verbose)
    try:
        config.validate()
    except BackgifError as exc:
        LOG.error("%s", exc)
        return 1

    # Nothing may be written to the work directory before validation.
    log_path: Optional[Path] = None
    if config.verbose:
        log_path = config.workdir / LOG_FILE_NAME
        configure_logging(config.verbose, log_path)

    try:
        ctx, timings = pipeline.run(config)
    except BackgifError as exc:
        LOG.error("%s", exc)
        return 1

    LOG.debug("wrote %s", ctx.script)
    if config.profile:
        print(utils.format_pass_summary(timings))
    return 0


__all__ = ["build_parser", "main"]
