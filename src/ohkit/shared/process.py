"""Async subprocess execution shared by the device and build layers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
from collections.abc import Sequence
from dataclasses import dataclass

from ohkit.shared.exceptions import ProcessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunResult:
    """Captured outcome of one finished external command."""

    command: list[str]
    exit_code: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        return f"{' '.join(self.command)} (rc={self.exit_code}): {self.stdout.strip()} {self.stderr.strip()}"


class ProcessRunner:
    """Runs external commands through ``asyncio`` subprocesses.

    Every call is an await point, so several devices or builds can be
    driven from one event loop without blocking each other.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout

    async def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: str | None = None,
        check: bool = False,
        timeout: float | None = None,
    ) -> RunResult:
        """Run a command to completion and return its decoded output.

        Args:
            cmd: Executable followed by its arguments.
            cwd: Working directory for the command.
            check: Raise when the command exits non-zero.
            timeout: Seconds to wait, defaults to the runner timeout.

        Raises:
            ProcessError: If the binary is missing, times out, or fails with ``check``.
        """
        command = [str(part) for part in cmd]
        limit = timeout if timeout is not None else self._timeout
        logger.debug("running %s", " ".join(command))
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError as exc:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise ProcessError(f"command timed out after {limit}s: {' '.join(command)}") from exc
        except FileNotFoundError as exc:
            raise ProcessError(f"binary not found: {command[0]}") from exc
        except PermissionError as exc:
            raise ProcessError(f"binary not executable: {command[0]}") from exc

        result = RunResult(
            command=command,
            exit_code=proc.returncode or 0,
            stdout=(stdout_b or b"").decode(errors="replace"),
            stderr=(stderr_b or b"").decode(errors="replace"),
        )
        if check and result.exit_code != 0:
            raise ProcessError(f"command failed: {result}", result=result)
        return result

    async def start(self, cmd: Sequence[str]) -> asyncio.subprocess.Process:
        """Spawn a long-lived command with piped stdout and stderr."""
        command = [str(part) for part in cmd]
        logger.debug("starting %s", " ".join(command))
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ProcessError(f"binary not found: {command[0]}") from exc

    def can_run(self, executable: str | None) -> bool:
        if not executable:
            return False
        if os.path.sep in executable or (os.path.altsep and os.path.altsep in executable):
            return os.path.isfile(executable) and os.access(executable, os.X_OK)
        return shutil.which(executable) is not None
