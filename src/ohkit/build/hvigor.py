"""hvigorw and ohpm invocations."""

from __future__ import annotations

import logging
import os
import platform
import shutil
import stat
from collections.abc import Sequence
from pathlib import Path

from ohkit.shared.enums import BuildMode
from ohkit.shared.exceptions import BuildError
from ohkit.shared.process import ProcessRunner

logger = logging.getLogger(__name__)

HVIGORW = "hvigorw"


def hvigorw_file_name() -> str:
    return "hvigorw.bat" if platform.system() == "Windows" else HVIGORW


def hvigorw_path(ohos_root: str | Path, *, check_mod: bool = False) -> str:
    """Return the project wrapper if present, otherwise ``hvigorw`` from PATH.

    With ``check_mod`` the wrapper is made executable first.
    """
    wrapper = Path(ohos_root) / hvigorw_file_name()
    if wrapper.is_file():
        if check_mod and platform.system() != "Windows":
            wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(wrapper)
    found = shutil.which(HVIGORW)
    if found is None:
        logger.warning("%s not found in %s or on PATH", hvigorw_file_name(), ohos_root)
        return HVIGORW
    return found


class Hvigor:
    """Runs hvigor tasks and ohpm in the ohos project root."""

    def __init__(self, runner: ProcessRunner, *, timeout: float | None = None) -> None:
        self._runner = runner
        self._timeout = timeout

    async def ohpm_install(self, work_path: str | Path) -> None:
        """``ohpm clean`` then ``ohpm install --all``.

        Raises:
            BuildError: If either command fails.
        """
        for cmd in (["ohpm", "clean"], ["ohpm", "install", "--all"]):
            code = await self._task(cmd, work_path)
            if code != 0:
                raise BuildError(f"{' '.join(cmd)} failed with exit code {code}")

    async def assemble_hap(self, work_path: str | Path, hvigorw: str, flavor: str, build_mode: BuildMode) -> int:
        cmd = [hvigorw, "assembleHap", "-p", f"product={flavor}", "-p", f"buildMode={build_mode.value}", "--no-daemon"]
        return await self._task(cmd, work_path)

    async def assemble_app(self, work_path: str | Path, hvigorw: str, flavor: str, build_mode: BuildMode) -> int:
        cmd = [hvigorw, "assembleApp", "-p", f"product={flavor}", "-p", f"buildMode={build_mode.value}", "--no-daemon"]
        return await self._task(cmd, work_path)

    async def assemble_har(self, work_path: str | Path, hvigorw: str, module_names: str, product: str = "default") -> int:
        """``module_names`` is a comma-joined ``name@flavor`` list."""
        cmd = [
            hvigorw,
            "--mode",
            "module",
            "-p",
            f"module={module_names}",
            "-p",
            f"product={product}",
            "assembleHar",
            "--no-daemon",
        ]
        return await self._task(cmd, work_path)

    async def assemble_hsp(
        self,
        work_path: str | Path,
        hvigorw: str,
        module_names: str,
        build_mode: BuildMode,
        product: str = "default",
    ) -> int:
        cmd = [
            hvigorw,
            "--mode",
            "module",
            "-p",
            f"module={module_names}",
            "-p",
            f"product={product}",
            "-p",
            f"buildMode={build_mode.value}",
            "assembleHsp",
            "--no-daemon",
        ]
        return await self._task(cmd, work_path)

    async def _task(self, cmd: Sequence[str], work_path: str | Path) -> int:
        logger.info("running %s in %s", " ".join(cmd), work_path)
        result = await self._runner.run(cmd, cwd=os.fspath(work_path), timeout=self._timeout)
        if result.stdout.strip():
            logger.debug("%s", result.stdout.rstrip())
        if result.exit_code != 0:
            logger.error("%s exited with %d: %s", cmd[0], result.exit_code, result.stderr.strip() or result.stdout.strip())
        return result.exit_code
