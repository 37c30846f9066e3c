"""hvigor build pipeline for haps, hars and apps.

Every step runs sequentially and may rewrite project descriptors, so build
data is parsed again after plugin modules are registered.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ohkit.build.build_data import get_flavor, parse_build_data, update_local_properties, update_project_version
from ohkit.build.hvigor import Hvigor, hvigorw_path
from ohkit.build.interfaces import Assembler
from ohkit.build.plugins import (
    add_har_overrides,
    add_plugins_modules,
    add_src_overrides,
    check_plugins_dependencies,
    remove_plugins_modules,
)
from ohkit.build.project import OhosProject
from ohkit.config import Settings
from ohkit.sdk.sdk import HarmonySdk
from ohkit.shared.descriptors import read_json5
from ohkit.shared.enums import OhosFileType
from ohkit.shared.exceptions import BuildError, ToolExit
from ohkit.shared.models import OhosBuildData, OhosBuildInfo, OhosModule

logger = logging.getLogger(__name__)

HAR_CONSUMPTION_INSTRUCTIONS = """
Consuming the Module
  1. Open <host>/entry/oh-package.json5
  2. Add flutter_module to the dependencies list:

    "dependencies": {
      "@ohos/flutter_module": "file:path/to/har/flutter_module.har"
    }

  3. Override flutter_ohos with the engine har in <host>/oh-package.json5:

    "overrides": {
      "@ohos/flutter_ohos": "file:path/to/har/flutter.har"
    }
"""


def module_names_with_flavor(modules: list[OhosModule], flavor: str | None) -> list[tuple[OhosModule, str]]:
    """Resolve each module's flavor against its own ``build-profile.json5``."""
    return [(module, get_flavor(Path(module.src_path) / "build-profile.json5", flavor)) for module in modules]


def join_module_names(pairs: list[tuple[OhosModule, str]]) -> str:
    """``name@flavor`` joined by commas, without duplicates."""
    return ",".join(dict.fromkeys(f"{module.name}@{flavor}" for module, flavor in pairs))


class OhosHvigorBuilder:
    """Builds OpenHarmony packages from a Flutter project with hvigor."""

    def __init__(
        self,
        hvigor: Hvigor,
        assembler: Assembler,
        settings: Settings,
        *,
        sdk: HarmonySdk | None = None,
    ) -> None:
        self._hvigor = hvigor
        self._assembler = assembler
        self._settings = settings
        self._sdk = sdk

    async def build_hap(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> Path:
        """Build the signed hap of the entry module.

        Raises:
            ToolExit: If the project has no entry module or the hap is missing.
            BuildError: If any build step fails.
        """
        build_info = ohos_build_info.build_info
        self._require_entry_module(project.build_data())
        update_project_version(project, build_info)

        add_plugins_modules(project)
        try:
            add_src_overrides(project)
            build_data = parse_build_data(project)
            await self._prologue(project, ohos_build_info, install_dependencies=False)

            hvigorw = hvigorw_path(project.ohos_root, check_mod=True)
            await self._assemble_hars(project, ohos_build_info, build_data, hvigorw)
            await self._assemble_hsps(project, ohos_build_info, build_data, hvigorw)
        finally:
            remove_plugins_modules(project)
        add_har_overrides(project)
        await self._hvigor.ohpm_install(project.ohos_root)

        flavor = get_flavor(project.build_profile_file, build_info.flavor)
        code = await self._hvigor.assemble_hap(project.ohos_root, hvigorw, flavor, build_info.mode)
        if code != 0:
            raise BuildError("assembleHap error! please check log.")

        return self._resolve_hap(project, build_data, flavor)

    async def build_har(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> None:
        """Package a Flutter module and its plugins as hars under ``har/``.

        Raises:
            ToolExit: If the project is not a Flutter module with an ohos project.
            BuildError: If any build step fails.
        """
        if not project.is_module or not project.flutter_module_directory.is_dir():
            raise ToolExit("Current project is not a module or has not run pub get.")

        add_plugins_modules(project)
        try:
            add_src_overrides(project)
            build_data = parse_build_data(project)
            await self._prologue(project, ohos_build_info, install_dependencies=True)

            hvigorw = hvigorw_path(project.ohos_root, check_mod=True)
            await self._assemble_hars(project, ohos_build_info, build_data, hvigorw)
            await self._assemble_hsps(project, ohos_build_info, build_data, hvigorw)
        finally:
            remove_plugins_modules(project)
        add_har_overrides(project)
        logger.info("%s", HAR_CONSUMPTION_INSTRUCTIONS)

    async def build_app(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> Path:
        """Build the ``.app`` bundle for store distribution.

        Raises:
            ToolExit: If the project has no entry module or the app is missing.
            BuildError: If any build step fails.
        """
        build_info = ohos_build_info.build_info
        self._require_entry_module(project.build_data())
        update_project_version(project, build_info)
        await self._prologue(project, ohos_build_info, install_dependencies=True)

        hvigorw = hvigorw_path(project.ohos_root, check_mod=True)
        flavor = get_flavor(project.build_profile_file, build_info.flavor)
        code = await self._hvigor.assemble_app(project.ohos_root, hvigorw, flavor, build_info.mode)
        if code != 0:
            raise BuildError("assembleApp error! please check log.")
        return project.app_file(flavor, throw_on_missing=True)

    async def build_hsp(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> None:
        raise NotImplementedError("building a standalone hsp is not supported")

    # ── Steps ──────────────────────────────────────────────────

    @staticmethod
    def _require_entry_module(build_data: OhosBuildData) -> None:
        if not build_data.module_info.has_entry_module:
            raise ToolExit("The ohos project has no entry module. Check the modules of build-profile.json5.")

    async def _prologue(self, project: OhosProject, ohos_build_info: OhosBuildInfo, *, install_dependencies: bool) -> None:
        update_local_properties(project, self._sdk, self._settings, require_sdk=False)
        check_plugins_dependencies(project)
        await self._assembler.build(project, ohos_build_info)
        if install_dependencies:
            await self._hvigor.ohpm_install(project.ohos_root)

    async def _assemble_hars(
        self,
        project: OhosProject,
        ohos_build_info: OhosBuildInfo,
        build_data: OhosBuildData,
        hvigorw: str,
    ) -> None:
        modules = build_data.har_modules
        if not modules:
            return
        pairs = module_names_with_flavor(modules, ohos_build_info.build_info.flavor)
        code = await self._hvigor.assemble_har(project.ohos_root, hvigorw, join_module_names(pairs))
        if code != 0:
            raise BuildError("assembleHar error! please check log.")

        project.har_dir.mkdir(parents=True, exist_ok=True)
        for module, flavor in pairs:
            har = OhosProject.signed_file(
                module_path=module.src_path,
                module_name=module.name,
                flavor=flavor,
                file_type=OhosFileType.HAR,
                throw_on_missing=True,
            )
            shutil.copyfile(har, project.har_dir / har.name)
            logger.debug("staged %s", har.name)

    async def _assemble_hsps(
        self,
        project: OhosProject,
        ohos_build_info: OhosBuildInfo,
        build_data: OhosBuildData,
        hvigorw: str,
    ) -> None:
        modules = build_data.shared_modules
        if not modules:
            return
        build_info = ohos_build_info.build_info
        pairs = module_names_with_flavor(modules, build_info.flavor)
        product = get_flavor(project.build_profile_file, build_info.flavor)
        code = await self._hvigor.assemble_hsp(project.ohos_root, hvigorw, join_module_names(pairs), build_info.mode, product)
        if code != 0:
            raise BuildError("assembleHsp error! please check log.")

    def _resolve_hap(self, project: OhosProject, build_data: OhosBuildData, flavor: str) -> Path:
        module_path = build_data.module_info.main_module_src_path
        module_name = build_data.module_info.main_module_name
        signing_configured = self._signing_configured(project)
        signed = OhosProject.signed_file(module_path=module_path, module_name=module_name, flavor=flavor)
        if signed.is_file():
            return signed

        if signing_configured:
            raise ToolExit(f"Failed to find the built artifact: {signed}")
        unsigned = OhosProject.signed_file(module_path=module_path, module_name=module_name, flavor=flavor, signed=False)
        if not unsigned.is_file():
            raise ToolExit(f"Failed to find the built artifact: {signed}")
        logger.warning("returning unsigned hap %s", unsigned)
        return unsigned

    @staticmethod
    def _signing_configured(project: OhosProject) -> bool:
        """Warn when ``app.signingConfigs`` is empty, since an unsigned hap cannot be installed."""
        if not project.build_profile_file.is_file():
            return False
        app = read_json5(project.build_profile_file).get("app") or {}
        configs = app.get("signingConfigs")
        if isinstance(configs, list) and configs:
            return True
        logger.warning(
            "signingConfigs in %s is empty; the hap cannot be installed on a device "
            "until a signing config is added in DevEco Studio",
            project.build_profile_file,
        )
        return False
