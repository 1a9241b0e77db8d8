"""Tests for option resolution and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from backgif import config as config_mod
from backgif.cli import build_parser
from backgif.config import Config
from backgif.exceptions import InputError


def _config(tmp_path: Path, *argv: str) -> Config:
    return Config.from_args(build_parser().parse_args(list(argv)))


@pytest.fixture
def guest(tmp_path: Path) -> Path:
    path = tmp_path / "guest.c"
    path.write_text("void init() {}\n")
    return path


def test_defaults(tmp_path: Path, guest: Path, monkeypatch) -> None:
    monkeypatch.delenv(config_mod.WORKDIR_ENV, raising=False)
    cfg = _config(tmp_path, str(guest))
    assert cfg.input_format == "gif"
    assert cfg.renderer == "truecolor"
    assert cfg.debugger == "gdb"
    assert cfg.workdir == Path(".")
    assert cfg.delay is None
    assert not cfg.is_runtime


def test_workdir_from_environment(tmp_path: Path, guest: Path, monkeypatch) -> None:
    monkeypatch.setenv(config_mod.WORKDIR_ENV, str(tmp_path / "out"))
    assert _config(tmp_path, str(guest)).workdir == tmp_path / "out"
    assert _config(tmp_path, str(guest), "--workdir", "x").workdir == Path("x")


def test_runtime_requires_dimensions_before_writing(tmp_path: Path, guest: Path) -> None:
    workdir = tmp_path / "work"
    cfg = _config(tmp_path, str(guest), "-f", "c", "--workdir", str(workdir))
    with pytest.raises(InputError, match="--height and --width"):
        cfg.validate()
    assert not workdir.exists()


def test_runtime_rejects_emoji(tmp_path: Path, guest: Path) -> None:
    cfg = _config(tmp_path, str(guest), "-f", "c", "-r", "emoji", "--height", "2", "--width", "2")
    with pytest.raises(InputError, match="emoji"):
        cfg.validate()


def test_unreadable_input(tmp_path: Path) -> None:
    cfg = _config(tmp_path, str(tmp_path / "missing.gif"))
    with pytest.raises(InputError, match="cannot read"):
        cfg.validate()


def test_valid_runtime_config(tmp_path: Path, guest: Path) -> None:
    cfg = _config(tmp_path, str(guest), "--format", "c", "--height", "2", "--width", "3")
    cfg.validate()
    assert cfg.is_runtime
    assert (cfg.height, cfg.width) == (2, 3)


@pytest.mark.parametrize(
    "extra, option",
    [
        (("--height", "70000", "--width", "3"), "--height"),
        (("--height", "2", "--width", "65536"), "--width"),
        (("--height", "2", "--width", "3", "--delay", "65536"), "--delay"),
    ],
)
def test_rejects_values_beyond_16_bits(tmp_path: Path, guest: Path, extra, option) -> None:
    cfg = _config(tmp_path, str(guest), "-f", "c", *extra)
    with pytest.raises(InputError, match=f"{option} must be at most 65535"):
        cfg.validate()


def test_accepts_16_bit_maximum(tmp_path: Path, guest: Path) -> None:
    cfg = _config(tmp_path, str(guest), "--delay", str(config_mod.U16_MAX))
    cfg.validate()
    assert cfg.delay == 65535


def test_warnings_for_lldb_runtime(tmp_path: Path, guest: Path, monkeypatch) -> None:
    monkeypatch.setattr(config_mod, "read_mmap_min_addr", lambda: 65536)
    cfg = _config(tmp_path, str(guest), "-f", "c", "-d", "lldb", "--height", "1", "--width", "1")
    messages = cfg.warnings()
    assert any("mmap_min_addr = 0`, got `65536`" in m for m in messages)
    assert any("llvm-project issue #153772" in m for m in messages)
    assert any("--debug-info" in m for m in messages)


def test_no_warnings_for_gif(tmp_path: Path, guest: Path, monkeypatch) -> None:
    monkeypatch.setattr(config_mod, "read_mmap_min_addr", lambda: 65536)
    assert _config(tmp_path, str(guest), "-d", "lldb").warnings() == []


def test_read_mmap_min_addr(tmp_path: Path) -> None:
    path = tmp_path / "mmap_min_addr"
    path.write_text("4096\n")
    assert config_mod.read_mmap_min_addr(path) == 4096
    assert config_mod.read_mmap_min_addr(tmp_path / "missing") == 0
