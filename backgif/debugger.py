"""Debugger automation scripts that cycle breakpoints through the frames."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from . import utils
from .exceptions import BinaryFormatError
from .frames import Frame
from .inspector import SymbolInfo

LOG = logging.getLogger(__name__)

Breakpoint = Tuple[int, int, int]

GDB_SCRIPT_NAME = "a_gdb.py"
LLDB_SCRIPT_NAME = "a_lldb.py"


def breakpoint_cycle(frames: Sequence[Frame], symbols: Dict[str, SymbolInfo]) -> List[Breakpoint]:
    """Return ``(addr, next_addr, delay)`` for every frame, wrapping around.

    ``addr`` is the address of the frame's terminal call; ``delay`` is in
    units of 10 ms.
    """

    stops: List[Tuple[int, int]] = []
    for frame in frames:
        info = symbols.get(frame.last_name)
        if info is None:
            raise BinaryFormatError(f"unexpected unresolved symbol {frame.last_name!r}")
        stops.append((info.addr, frame.delay))
    following = stops[1:] + stops[:1]
    return [(addr, nxt, delay) for (addr, delay), (nxt, _) in zip(stops, following)]


def render_breakpoints(cycle: Sequence[Breakpoint], indent: int = 4) -> str:
    return "\n".join(
        f"{' ' * indent}[0x{addr:08x}, 0x{nxt:08x}, {delay * 10}],"
        for addr, nxt, delay in cycle
    )


class DebuggerBackend:
    """Script flavour for one debugger."""

    name = ""
    compiler = ""
    script_name = ""
    # `.data` address of the shadow binary's linker script.
    data_section_addr = 0

    def render_script(self, cycle: Sequence[Breakpoint], size: int, is_updated: bool, binary: str) -> str:
        raise NotImplementedError

    def auto_command(self, binary: str) -> str:
        raise NotImplementedError

    def manual_command(self, cycle: Sequence[Breakpoint], binary: str) -> str:
        raise NotImplementedError

    def write_script(
        self,
        workdir: Path,
        frames: Sequence[Frame],
        symbols: Dict[str, SymbolInfo],
        size: int,
        is_updated: bool,
        binary: str,
    ) -> Path:
        """Write the automation script and log how to launch the debugger."""

        cycle = breakpoint_cycle(frames, symbols)
        LOG.info("\n%s", utils.colorize_text("Render automatically with debugger script:", "purple", bold=True))
        LOG.info("%s", utils.bold_text(self.auto_command(binary)))
        LOG.info("\n%s", utils.colorize_text("Render manually with software breakpoints:", "purple", bold=True))
        LOG.info("%s", utils.bold_text(self.manual_command(cycle, binary)))
        return utils.write_text(
            workdir / self.script_name,
            self.render_script(cycle, size, is_updated, binary),
        )


_GDB_RELOAD = """
        gdb.execute(f"symbol-file {binary}")
        gdb.execute(f"symbol-file /proc/{{gdb.selected_inferior().pid}}/mem")"""

_GDB_SCRIPT = """\
#!/usr/bin/env python3

import gdb
import time

class B(gdb.Breakpoint):
    def __init__(self, offset, next_offset, delay):
        self.delay = delay
        gdb.Breakpoint.__init__(self, f"*{{offset}}", gdb.BP_HARDWARE_BREAKPOINT)

    def stop(self):{reload}

        gdb.execute("delete breakpoints")
        global bp_i
        bp_i = (bp_i + 1) % {count}
        B(*bps[bp_i])

        gdb.execute("bt")
        time.sleep(self.delay / 1000)
        return False

gdb.execute("set pagination off")
gdb.execute("set style enabled off")
gdb.execute("set startup-with-shell off")

gdb.execute("starti")
bp_i = 0
bps = [
{breakpoints}
]
B(*bps[bp_i])
gdb.execute("c")
"""


class GdbBackend(DebuggerBackend):
    name = "gdb"
    compiler = "gcc"
    script_name = GDB_SCRIPT_NAME
    data_section_addr = 0

    def render_script(self, cycle: Sequence[Breakpoint], size: int, is_updated: bool, binary: str) -> str:
        reload = _GDB_RELOAD.format(binary=binary) if is_updated else ""
        return _GDB_SCRIPT.format(
            reload=reload,
            count=len(cycle),
            breakpoints=render_breakpoints(cycle),
        )

    def auto_command(self, binary: str) -> str:
        return f"gdb ./{binary} --command {self.script_name}"

    def manual_command(self, cycle: Sequence[Breakpoint], binary: str) -> str:
        lines = [
            f"gdb ./{binary}",
            "    -ex 'set pagination off'",
            "    -ex 'set style enabled off'",
            "    -ex 'set startup-with-shell off'",
            "    -ex 'starti'",
        ]
        lines.extend(f"    -ex 'b *0x{addr:08x}'" for addr, _, _ in cycle)
        return " \\\n".join(lines)


# Due to llvm-project issue #153772 the embedded binary is mapped at 0x1000,
# after the zero page, and LLDB cannot read the process memory map from
# offset 0; the image is dumped to a temporary file on every frame instead.
_LLDB_RELOAD = """
    debugger.HandleCommand("target symbols add {binary}")
    debugger.HandleCommand("memory read --binary --outfile /tmp/mem --count 0x{size:08x} 0x{addr:08x}")
    debugger.HandleCommand("target symbols add /tmp/mem")"""

_LLDB_SCRIPT = """\
#!/usr/bin/env python3

import lldb
import os
import sys
import time

def b(frame, bp_loc, extra_args, dict):
    debugger = frame.GetThread().GetProcess().GetTarget().GetDebugger(){reload}
    debugger.HandleCommand("bt")

    delay = extra_args.GetValueForKey("delay").GetIntegerValue()
    time.sleep(delay / 1000)

def a(debugger, command, ctx, result, dict):
    flags = lldb.eLaunchFlagDisableASLR | lldb.eLaunchFlagDisableSTDIO | lldb.eLaunchFlagDebug
    process = ctx.GetTarget().Launch(debugger.GetListener(), None, None, "/dev/null", None, None, os.getcwd(), flags, True, lldb.SBError())
    if not process:
        raise RuntimeError("Process not launched.")
    if process.GetState() != lldb.eStateStopped:
        raise RuntimeError("Process not stopped.")

    target = process.GetTarget()
    for addr, next_addr, delay in [
{breakpoints}
    ]:
        extra_args = lldb.SBStructuredData()
        stream = lldb.SBStream()
        stream.Print(f'{{{{"delay" : {{delay}}}}}}')
        extra_args.SetFromJSON(stream)

        bp = target.BreakpointCreateByAddress(addr)
        bp.SetAutoContinue(True)
        bp.SetScriptCallbackFunction("{module}.b", extra_args)

    debugger.SetAsync(True)
    process.Continue()


def __lldb_init_module(debugger, dict):
    debugger.HandleCommand("settings set use-color false")
    debugger.HandleCommand("settings set show-statusline false")
    debugger.HandleCommand("command script add -f {module}.a a")
    debugger.HandleCommand("a")
"""


class LldbBackend(DebuggerBackend):
    name = "lldb"
    compiler = "clang"
    script_name = LLDB_SCRIPT_NAME
    data_section_addr = 0x1000

    @property
    def module_name(self) -> str:
        return Path(self.script_name).stem

    def render_script(self, cycle: Sequence[Breakpoint], size: int, is_updated: bool, binary: str) -> str:
        reload = ""
        if is_updated:
            reload = _LLDB_RELOAD.format(binary=binary, size=size, addr=self.data_section_addr)
        return _LLDB_SCRIPT.format(
            reload=reload,
            breakpoints=render_breakpoints(cycle),
            module=self.module_name,
        )

    def auto_command(self, binary: str) -> str:
        return f"lldb ./{binary} --one-line 'command script import {self.script_name}'"

    def manual_command(self, cycle: Sequence[Breakpoint], binary: str) -> str:
        lines = [
            f"lldb ./{binary}",
            "    --one-line 'settings set use-color false'",
            "    --one-line 'settings set show-statusline false'",
            "    --one-line 'process launch --disable-aslr true --no-stdio --stop-at-entry'",
        ]
        lines.extend(f"    --one-line 'b *0x{addr:08x}'" for addr, _, _ in cycle)
        return " \\\n".join(lines)


BACKENDS = {
    "gdb": GdbBackend,
    "lldb": LldbBackend,
}


__all__ = [
    "BACKENDS",
    "Breakpoint",
    "DebuggerBackend",
    "GdbBackend",
    "LldbBackend",
    "breakpoint_cycle",
    "render_breakpoints",
]
