"""C source generation for frame call chains and the dispatch loop."""

from __future__ import annotations

from typing import List, Sequence

from .frames import Frame

# Placeholder address for `.symtab` offsets embedded in `.data` section.
PLACEHOLDER_SYMTAB_ADDR = 0x01020304

# Placeholder address for `.debug_str` offsets embedded in `.data` section.
PLACEHOLDER_DEBUGSTR_ADDR = 0x05060708

PLACEHOLDER_ADDRS = (PLACEHOLDER_SYMTAB_ADDR, PLACEHOLDER_DEBUGSTR_ADDR)

# Seed handed to the guest `init` routine.
GUEST_SEED = 123

_INDENT = " " * 4


def render_call_chain(frame: Frame) -> str:
    """Return one function per name, callees defined before their callers.

    The last name returns immediately; every other name calls the next one,
    so the chain is ``names[0] -> names[1] -> ... -> names[-1]``.
    """

    names = frame.names
    parts: List[str] = [f"\nvoid {names[-1]}() {{\n{_INDENT}return;\n}}\n"]
    for prev, nxt in reversed(list(zip(names, names[1:]))):
        parts.append(f"\nvoid {prev}() {{\n{_INDENT}{nxt}();\n}}\n")
    return "".join(parts)


def render_heads(frames: Sequence[Frame]) -> str:
    return f"\n{_INDENT}".join(f"{frame.first_name}();" for frame in frames)


def generate_source(frames: Sequence[Frame], start_name: str) -> str:
    """Return C source with every frame chain and the start function."""

    calls = "\n".join(render_call_chain(frame) for frame in frames)
    return (
        f"\n{calls}\n\n"
        f"void {start_name}() {{\n"
        f"loop:\n"
        f"{_INDENT}{render_heads(frames)}\n"
        f"{_INDENT}goto loop;\n"
        f"}}"
    )


def render_draw_line_calls(
    height: int,
    origin_prefix: int,
    line_prefix: int,
    debug_info: bool,
) -> str:
    """Return ``draw_line`` calls for one frame, bottom row first.

    The order matches name allocation, so the n-th placeholder ``mov`` found
    in the compiled code belongs to the n-th temporary name.
    """

    calls: List[str] = []
    for i in range(height):
        row = height - 1 - i
        prefix = origin_prefix if row == 0 else line_prefix
        placeholders = PLACEHOLDER_ADDRS if debug_info else PLACEHOLDER_ADDRS[:1]
        for placeholder in placeholders:
            calls.append(
                f"\n{_INDENT}draw_line((uint8_t*)0x{placeholder:08x}UL, {prefix}, {row});"
            )
    return "".join(calls)


def generate_runtime_source(
    frames: Sequence[Frame],
    start_name: str,
    guest_source: str,
    width: int,
    height: int,
    origin_prefix: int,
    line_prefix: int,
    debug_info: bool,
) -> str:
    """Return C source where guest code rewrites frame lines at runtime.

    Guest code must define ``init(seed, w, h)``, ``update_frame()`` and
    ``draw_line(addr, prefix_offset, row)``.
    """

    calls = "\n".join(render_call_chain(frame) for frame in frames)
    draw_calls = "\n".join(
        render_draw_line_calls(height, origin_prefix, line_prefix, debug_info) for _ in frames
    )
    return (
        f"\n{calls}\n\n"
        f"{guest_source}\n\n"
        f"void {start_name}() {{\n"
        f"{_INDENT}init({GUEST_SEED}, {width}, {height});\n"
        f"loop:\n"
        f"{_INDENT}update_frame();\n"
        f"{_INDENT}{draw_calls}\n"
        f"{_INDENT}{render_heads(frames)}\n"
        f"{_INDENT}goto loop;\n"
        f"}}"
    )


__all__ = [
    "GUEST_SEED",
    "PLACEHOLDER_ADDRS",
    "PLACEHOLDER_DEBUGSTR_ADDR",
    "PLACEHOLDER_SYMTAB_ADDR",
    "generate_runtime_source",
    "generate_source",
    "render_call_chain",
    "render_draw_line_calls",
]
