"""Tests for pixel and frame-line formatting."""

from __future__ import annotations

import pytest

pytest.importorskip("colour")

from backgif.formatters import (  # noqa: E402
    EmojiFrameFormatter,
    TrueColorFrameFormatter,
    ciede2000,
    line_prefix_length,
    srgb_to_lab,
)


def test_truecolor_dot_encodes_rgb() -> None:
    formatter = TrueColorFrameFormatter()
    assert formatter.to_dot((255, 0, 16, 255)) == "\x1b[48:2::255:0:16m  \x1b[49m"


def test_truecolor_transparent_pixel_is_blank() -> None:
    assert TrueColorFrameFormatter().to_dot((12, 34, 56, 0)) == "  "


def test_truecolor_placeholder_dot_has_fixed_width_components() -> None:
    dot = TrueColorFrameFormatter().to_dot(None)
    assert dot == "\x1b[48:2::000:000:000m  \x1b[49m"
    # guest code rewrites the digits at fixed offsets inside a 27 byte dot
    assert len(dot.encode("utf-8")) == 27
    assert dot[8:11] == "000"


@pytest.mark.parametrize("clear_line, erase", [(True, "K"), (False, "J")])
def test_truecolor_origin_line(clear_line: bool, erase: str) -> None:
    line = TrueColorFrameFormatter().to_line_at_origin("body", clear_line)
    assert line == f"\x1b[1;1H\x1b[2{erase}body\x1b[8m\x1b[?25l"


def test_truecolor_line() -> None:
    assert TrueColorFrameFormatter().to_line("body") == "\x1b[1K\x1b[99Dbody\x1b[3K\x1b[8m\x1b[?25l"


def test_line_prefix_lengths() -> None:
    formatter = TrueColorFrameFormatter()
    assert line_prefix_length(formatter, True, True) == 10
    assert line_prefix_length(formatter, True, False) == 10
    assert line_prefix_length(formatter, False, False) == 9
    assert line_prefix_length(EmojiFrameFormatter(), True, False) == 0


def test_emoji_exact_reference_colours() -> None:
    formatter = EmojiFrameFormatter()
    assert formatter.to_dot((221, 46, 68, 255)) == "🟥"
    assert formatter.to_dot((49, 55, 61, 255)) == "⬛"
    assert formatter.to_dot((85, 172, 238, 255)) == "🟦"


def test_emoji_nearest_colour_is_cached() -> None:
    formatter = EmojiFrameFormatter()
    first = formatter.to_dot((250, 250, 250, 255))
    assert first == "⬜"
    assert formatter.cache["fafafa"] == "⬜"
    assert formatter.to_dot((250, 250, 250, 128)) == first


def test_emoji_blank_and_lines() -> None:
    formatter = EmojiFrameFormatter()
    assert formatter.to_dot((1, 2, 3, 0)) == "🫥"
    assert formatter.to_dot(None) == "🫥"
    assert formatter.to_line("🟥🟥") == "🟥🟥"
    assert formatter.to_line_at_origin("🟥🟥", True) == "🟥🟥"


def test_srgb_white_is_reference_white() -> None:
    l, a, b = srgb_to_lab(255, 255, 255)
    assert l == pytest.approx(100.0, abs=1e-2)
    assert a == pytest.approx(0.0, abs=1e-2)
    assert b == pytest.approx(0.0, abs=1e-2)


@pytest.mark.parametrize(
    "lab1, lab2, expected",
    [
        ((50.0, 2.6772, -79.7751), (50.0, 0.0, -82.7485), 2.0425),
        ((50.0, 2.5, 0.0), (73.0, 25.0, -18.0), 27.1492),
        ((50.0, 0.0, 0.0), (50.0, -1.0, 2.0), 2.3669),
    ],
)
def test_ciede2000_reference_pairs(lab1, lab2, expected) -> None:
    assert ciede2000(lab1, lab2) == pytest.approx(expected, abs=1e-3)


def test_emoji_lookup_matches_pairwise_ciede2000() -> None:
    formatter = EmojiFrameFormatter()
    rgba = (120, 90, 200, 255)
    candidate = srgb_to_lab(*rgba[:3])
    distances = [ciede2000(tuple(reference), candidate) for reference in formatter.reference_lab]
    expected = formatter.emojis[distances.index(min(distances))]

    assert formatter.lookup(rgba) == expected
    assert formatter.cache["785ac8"] == expected
