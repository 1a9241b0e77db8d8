"""Tests for pass ordering and timing."""

from __future__ import annotations

from pathlib import Path

import pytest

from backgif.config import Config
from backgif.converters import Converter, RuntimeConverter
from backgif.debugger import LldbBackend
from backgif.exceptions import InputError
from backgif.formatters import EmojiFrameFormatter
from backgif.pipeline import PIPELINE, Context, PassRegistry, build_converter
from backgif.utils import format_pass_summary


def test_default_pass_order() -> None:
    assert PIPELINE.names == ["parse", "codegen", "compile", "inspect", "patch", "shadow", "script"]


def test_registry_runs_by_order_and_skips(tmp_path: Path) -> None:
    seen = []
    registry = PassRegistry()
    registry.register_pass("second", lambda ctx: seen.append("second"), 20)
    registry.register_pass("first", lambda ctx: ctx.record_metadata("first", {"frames": 2}), 10)
    registry.register_pass("skipped", lambda ctx: seen.append("skipped"), 15)

    ctx = Context.from_config(Config(input_path=tmp_path / "x.gif"))
    timings = registry.run_passes(ctx, skip=["skipped"])

    assert [name for name, _ in timings] == ["first", "second"]
    assert seen == ["second"]
    assert ctx.pass_metadata["first"] == {"frames": 2}


def test_build_converter_selects_variant(tmp_path: Path) -> None:
    gif = build_converter(Config(input_path=tmp_path / "x.gif", renderer="emoji", debugger="lldb"))
    assert type(gif) is Converter
    assert isinstance(gif.backend, LldbBackend)
    assert gif.compiler == "clang"
    assert isinstance(gif.source.formatter, EmojiFrameFormatter)

    runtime = build_converter(
        Config(input_path=tmp_path / "g.c", input_format="c", height=2, width=3, compiler="cc")
    )
    assert isinstance(runtime, RuntimeConverter)
    assert runtime.needs_shadow
    assert runtime.compiler == "cc"
    assert (runtime.height, runtime.width) == (2, 3)


def test_build_converter_rejects_runtime_without_dimensions(tmp_path: Path) -> None:
    with pytest.raises(InputError, match="--height and --width"):
        build_converter(Config(input_path=tmp_path / "g.c", input_format="c", height=2))


def test_format_pass_summary() -> None:
    table = format_pass_summary([("parse", 0.0012), ("script", 1.5)])
    assert table.splitlines() == ["Pass    Duration", "parse   0.001s", "script  1.500s"]
    assert format_pass_summary([]) == ""
