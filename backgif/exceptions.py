"""Custom exception hierarchy for the frame-to-binary pipeline."""

from __future__ import annotations

from typing import Sequence


class BackgifError(Exception):
    """Base class for all pipeline related errors."""


class InputError(BackgifError):
    """Raised when the input file or the requested options cannot be used."""


class BinaryFormatError(BackgifError):
    """Raised when a linked binary does not have the layout the pipeline expects.

    The pipeline controls both the compiler flags and the generated source, so
    this signals a toolchain mismatch rather than bad user input.
    """


class ToolchainFailure(BackgifError):
    """Raised when an external compiler, assembler or linker exits non-zero."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"`{' '.join(self.command)}` exited with status {returncode}\n{stderr}".rstrip()
        )


__all__ = ["BackgifError", "BinaryFormatError", "InputError", "ToolchainFailure"]
