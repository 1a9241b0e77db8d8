"""Pass-based orchestration for the frame-to-binary pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from . import utils
from .config import Config
from .converters import Converter, RuntimeConverter, converter_summary
from .debugger import BACKENDS
from .exceptions import InputError
from .formatters import EmojiFrameFormatter, FrameFormatter, TrueColorFrameFormatter
from .frames import Frame, NameCounter, start_names
from .inspector import BinInfo
from .sources import CustomFrameSource, GifFrameSource

LOG = logging.getLogger(__name__)

PassFn = Callable[["Context"], None]


def build_formatter(renderer: str) -> FrameFormatter:
    if renderer == "emoji":
        return EmojiFrameFormatter()
    return TrueColorFrameFormatter()


def build_converter(config: Config) -> Converter:
    """Select the formatter, frame source, backend and converter for ``config``."""

    formatter = build_formatter(config.renderer)
    backend = BACKENDS[config.debugger]()
    if config.is_runtime:
        if config.height is None or config.width is None:
            raise InputError("custom input requires --height and --width")
        source = CustomFrameSource(formatter, config.height, config.width)
        return RuntimeConverter(
            source,
            backend,
            config.input_path,
            compiler=config.compiler,
            clear_line=config.clear_line,
        )
    return Converter(GifFrameSource(formatter), backend, compiler=config.compiler)


@dataclass
class Context:
    """Shared state threaded through individual pipeline passes."""

    config: Config
    converter: Converter
    counter: NameCounter = field(default_factory=NameCounter)
    frames: List[Frame] = field(default_factory=list)
    start_name: str = ""
    start_tmp_name: str = ""
    source: str = ""
    binary: Optional[Path] = None
    bin_info: Optional[BinInfo] = None
    shadow_info: Optional[BinInfo] = None
    script: Optional[Path] = None
    pass_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config) -> "Context":
        return cls(config=config, converter=build_converter(config))

    @property
    def workdir(self) -> Path:
        return self.config.workdir

    def record_metadata(self, name: str, metadata: Dict[str, Any]) -> None:
        self.pass_metadata[name] = dict(metadata)


class PassRegistry:
    def __init__(self) -> None:
        self._passes: Dict[str, Tuple[int, PassFn]] = {}

    def register_pass(self, name: str, fn: PassFn, order: int) -> None:
        self._passes[name] = (order, fn)

    @property
    def names(self) -> List[str]:
        return [name for _, name in sorted((order, name) for name, (order, _) in self._passes.items())]

    def run_passes(
        self,
        ctx: Context,
        skip: Optional[Iterable[str]] = None,
    ) -> List[Tuple[str, float]]:
        skip_set = {name.strip() for name in (skip or []) if name}
        selected = sorted(
            (order, name, fn)
            for name, (order, fn) in self._passes.items()
            if name not in skip_set
        )

        timings: List[Tuple[str, float]] = []
        for _, name, fn in selected:
            start = time.perf_counter()
            fn(ctx)
            duration = time.perf_counter() - start
            timings.append((name, duration))
            metadata = ctx.pass_metadata.get(name)
            summary_parts: List[str] = []
            if isinstance(metadata, dict):
                for key in ("frames", "symbols", "patched", "placeholders"):
                    value = metadata.get(key)
                    if isinstance(value, int):
                        summary_parts.append(f"{key}={value}")
                if metadata.get("skipped"):
                    summary_parts.append("skipped=true")
            suffix = f" ({', '.join(summary_parts)})" if summary_parts else ""
            LOG.info("pass %s completed in %.3fs%s", name, duration, suffix)
        return timings


PIPELINE = PassRegistry()


# ---------------------------------------------------------------------------
# Pass implementations


def _pass_parse(ctx: Context) -> None:
    config = ctx.config
    ctx.frames = ctx.converter.parse_frames(
        config.input_path, config.clear_line, config.delay, ctx.counter
    )
    formatter = ctx.converter.source.formatter
    ctx.start_name, ctx.start_tmp_name = start_names(formatter, config.clear_line)
    ctx.record_metadata(
        "parse",
        {
            "frames": len(ctx.frames),
            "lines": sum(len(frame) for frame in ctx.frames),
            "names_allocated": ctx.counter.value - 1,
        },
    )


def _pass_codegen(ctx: Context) -> None:
    ctx.source = ctx.converter.generate_source(
        ctx.frames, ctx.start_tmp_name, ctx.config.debug_info
    )
    ctx.record_metadata("codegen", {"source_bytes": len(ctx.source.encode("utf-8"))})


def _pass_compile(ctx: Context) -> None:
    utils.ensure_directory(ctx.workdir)
    ctx.binary = ctx.converter.build(
        ctx.workdir, ctx.source, ctx.start_tmp_name, ctx.config.debug_info
    )
    metadata = converter_summary(ctx.converter)
    metadata["binary"] = str(ctx.binary)
    ctx.record_metadata("compile", metadata)


def _pass_inspect(ctx: Context) -> None:
    assert ctx.binary is not None
    ctx.bin_info = ctx.converter.inspect(ctx.binary)
    ctx.record_metadata(
        "inspect",
        {
            "symbols": len(ctx.bin_info.symbols),
            "size": ctx.bin_info.size,
            "build_id": ctx.bin_info.build_id_desc.hex(),
        },
    )


def _pass_patch(ctx: Context) -> None:
    assert ctx.binary is not None and ctx.bin_info is not None
    patched = ctx.converter.patch_binary(
        ctx.binary, ctx.bin_info, ctx.frames, ctx.start_tmp_name, ctx.start_name
    )
    ctx.record_metadata("patch", {"patched": patched})


def _pass_shadow(ctx: Context) -> None:
    if not ctx.converter.needs_shadow:
        ctx.record_metadata("shadow", {"skipped": True})
        return
    assert ctx.bin_info is not None
    ctx.shadow_info = ctx.converter.build_shadow(
        ctx.workdir, ctx.bin_info, ctx.frames, ctx.start_tmp_name
    )
    metadata: Dict[str, Any] = {}
    if ctx.shadow_info is not None:
        metadata["size"] = ctx.shadow_info.size
        metadata["build_id"] = ctx.shadow_info.build_id_desc.hex()
    ctx.record_metadata("shadow", metadata)


def _pass_script(ctx: Context) -> None:
    assert ctx.bin_info is not None
    ctx.script = ctx.converter.emit_debug_script(ctx.workdir, ctx.frames, ctx.bin_info)
    ctx.record_metadata("script", {"script": str(ctx.script)})


PIPELINE.register_pass("parse", _pass_parse, 10)
PIPELINE.register_pass("codegen", _pass_codegen, 20)
PIPELINE.register_pass("compile", _pass_compile, 30)
PIPELINE.register_pass("inspect", _pass_inspect, 40)
PIPELINE.register_pass("patch", _pass_patch, 50)
PIPELINE.register_pass("shadow", _pass_shadow, 60)
PIPELINE.register_pass("script", _pass_script, 70)


def run(config: Config, registry: PassRegistry = PIPELINE) -> Tuple[Context, List[Tuple[str, float]]]:
    """Validate ``config`` and run every registered pass over a fresh context."""

    config.validate()
    for message in config.warnings():
        LOG.warning("[!] %s", message)
    ctx = Context.from_config(config)
    timings = registry.run_passes(ctx)
    return ctx, timings


__all__ = [
    "Context",
    "PIPELINE",
    "PassRegistry",
    "build_converter",
    "build_formatter",
    "run",
]
