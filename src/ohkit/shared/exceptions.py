"""Hierarchical exception types for ohkit."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ohkit.shared.process import RunResult


class OhkitError(Exception):
    """Base exception for all ohkit errors."""


# ── Fatal, user-facing ─────────────────────────────────────────


class ToolExit(OhkitError):
    """Unrecoverable condition that terminates the current command."""

    def __init__(self, message: str, *, exit_code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class SdkError(ToolExit):
    """Missing SDK, toolchain or binary."""


class DescriptorError(ToolExit):
    """A project descriptor file is missing a required value or is malformed."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"malformed project descriptor {path}: {detail}")
        self.path = path


class BuildError(ToolExit):
    """An external build step (assemble, hvigorw, ohpm) failed."""


# ── External processes ─────────────────────────────────────────


class ProcessError(OhkitError):
    """External process could not run or exited with an error."""

    def __init__(self, message: str, *, result: RunResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class HdcError(ProcessError):
    """hdc transport command error."""
