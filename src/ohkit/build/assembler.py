"""Native compile of the Dart program and staging of its artifacts."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from ohkit.build.targets import assemble_target_name, dependency_order, select_target
from ohkit.config import Settings
from ohkit.shared.exceptions import BuildError, ProcessError, SdkError
from ohkit.shared.models import OhosBuildInfo
from ohkit.shared.process import ProcessRunner

if TYPE_CHECKING:
    from ohkit.build.project import OhosProject

logger = logging.getLogger(__name__)


def output_directory(project: OhosProject) -> Path:
    return project.project_dir / "build" / "ohos" / "intermediates" / "flutter"


class FlutterAssembler:
    """Runs ``flutter assemble`` and stages its output into the flutter module."""

    def __init__(self, runner: ProcessRunner, settings: Settings) -> None:
        self._runner = runner
        self._settings = settings

    async def build(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> None:
        """Compile for every target ABI, then copy assets, ``libapp.so`` and ``flutter.har``.

        Raises:
            BuildError: If ``flutter assemble`` fails.
            SdkError: If the engine artifacts cannot be found.
        """
        output = output_directory(project)
        build_info = ohos_build_info.build_info
        for arch in ohos_build_info.target_archs:
            target = select_target(assemble_target_name(build_info, arch))
            logger.debug("assembling %s", " -> ".join(dependency_order(target.name)))
            cmd = [
                self._settings.flutter_bin,
                "assemble",
                "--no-version-check",
                f"--output={output}",
                f"-dTargetPlatform={arch.platform.value}",
                *(f"-d{key}={value}" for key, value in build_info.to_build_system_environment().items()),
                target.name,
            ]
            try:
                result = await self._runner.run(
                    cmd,
                    cwd=os.fspath(project.project_dir),
                    timeout=self._settings.build_timeout_seconds,
                )
            except ProcessError as exc:
                raise BuildError(f"Failed to compile application for the Ohos: {exc}") from exc
            if result.exit_code != 0:
                raise BuildError(f"Failed to compile application for the Ohos: {result}")

        copy_flutter_assets(project, ohos_build_info, output)
        copy_flutter_runtime(project, ohos_build_info, self._settings.engine_dir)


def copy_flutter_assets(project: OhosProject, ohos_build_info: OhosBuildInfo, output: Path) -> None:
    """Replace the module's ``flutter_assets`` and ``libapp.so`` with fresh output.

    Debug builds run from the kernel snapshot, so any stale ``libapp.so`` is removed.
    """
    assets = project.assets_directory
    if assets.exists():
        shutil.rmtree(assets)
    source = output / "flutter_assets"
    if source.is_dir():
        shutil.copytree(source, assets)
    else:
        assets.mkdir(parents=True, exist_ok=True)

    build_info = ohos_build_info.build_info
    for arch in ohos_build_info.target_archs:
        destination = project.app_so_path(arch.value)
        if build_info.is_debug:
            if destination.exists():
                destination.unlink()
            continue
        app_so = output / arch.value / "app.so"
        if not app_so.is_file():
            raise BuildError(f"Expected AOT output {app_so} is missing")
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(app_so, destination)


def copy_flutter_runtime(project: OhosProject, ohos_build_info: OhosBuildInfo, engine_dir: str | None) -> None:
    """Copy the engine ``flutter.har`` for the first ABI into ``har/``."""
    if not engine_dir:
        raise SdkError("Engine artifacts are not configured. Set OHKIT_ENGINE_DIR.")
    arch = ohos_build_info.target_archs[0]
    mode = ohos_build_info.build_info.mode
    source = Path(engine_dir) / f"{arch.platform.value}-{mode.value}" / "flutter.har"
    if not source.is_file():
        raise SdkError(f"Cannot find the engine har at {source}")
    project.har_dir.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, project.har_dir / "flutter.har")
    logger.debug("copied %s into %s", source, project.har_dir)
