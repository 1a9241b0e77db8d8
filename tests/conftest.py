"""Test configuration ensuring the project source tree is importable."""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"
FIXTURES = TESTS / "fixtures"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

if str(TESTS) in sys.path:
    sys.path.pop(sys.path.index(str(TESTS)))
sys.path.insert(1, str(TESTS))

# Import the project package eagerly so subsequent imports reuse it
importlib.import_module("backgif")

from backgif.frames import Frame  # noqa: E402
from elf_builder import ElfImage, build_elf  # noqa: E402


def make_frame(names: Sequence[str], delay: int = 10, lines: Sequence[str] | None = None) -> Frame:
    texts = list(lines) if lines is not None else ["x" * (i + 1) for i in range(len(names))]
    return Frame(
        delay=delay,
        first_name=names[0],
        last_name=names[-1],
        names=tuple(names),
        name_to_line=dict(zip(names, texts)),
    )


@pytest.fixture
def frame_factory() -> Callable[..., Frame]:
    return make_frame


@pytest.fixture
def elf_file(tmp_path: Path) -> Callable[..., Tuple[Path, ElfImage]]:
    """Write a synthetic ELF under ``tmp_path`` and return its path and layout."""

    def _write(symbols: List[Tuple[str, int]], name: str = "a.out", **kwargs) -> Tuple[Path, ElfImage]:
        image = build_elf(symbols, **kwargs)
        path = tmp_path / name
        path.write_bytes(image.data)
        return path, image

    return _write


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
