"""Play frames as a debugger backtrace animation.

Frames are rendered to text, compiled into chains of C functions named with
temporary placeholders and patched in place so that ``bt`` prints the frame.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
