"""Paths and metadata of the ``ohos`` sub-project of a Flutter project."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from ohkit.build.build_data import parse_build_data
from ohkit.shared.descriptors import PropertiesFile, read_json5
from ohkit.shared.enums import OhosFileType
from ohkit.shared.exceptions import ToolExit
from ohkit.shared.models import OhosBuildData, Plugin

logger = logging.getLogger(__name__)

FLUTTER_MODULE_NAME = "flutter_module"
HAR_DIR_NAME = "har"
FLUTTER_ASSETS_DIR = "flutter_assets"
APP_SO = "libapp.so"
PLUGIN_PLATFORM_KEY = "ohos"


class OhosProject:
    """The hvigor project living under a Flutter project.

    Applications keep it in ``ohos/``, Flutter modules in ``.ohos/``.
    """

    def __init__(self, project_dir: str | Path, *, is_module: bool = False) -> None:
        self.project_dir = Path(project_dir)
        self.is_module = is_module

    @classmethod
    def from_directory(cls, project_dir: str | Path) -> OhosProject:
        """Detect whether ``project_dir`` is a Flutter module from its pubspec."""
        pubspec = Path(project_dir) / "pubspec.yaml"
        is_module = False
        if pubspec.is_file():
            data = yaml.safe_load(pubspec.read_text(encoding="utf-8")) or {}
            flutter = data.get("flutter") if isinstance(data, dict) else None
            is_module = isinstance(flutter, dict) and "module" in flutter
        return cls(project_dir, is_module=is_module)

    # ── Layout ─────────────────────────────────────────────────

    @property
    def ohos_root(self) -> Path:
        return self.project_dir / (".ohos" if self.is_module else "ohos")

    def exists(self) -> bool:
        return self.ohos_root.is_dir()

    @property
    def app_json_file(self) -> Path:
        return self.ohos_root / "AppScope" / "app.json5"

    @property
    def build_profile_file(self) -> Path:
        return self.ohos_root / "build-profile.json5"

    @property
    def package_file(self) -> Path:
        return self.ohos_root / "oh-package.json5"

    @property
    def local_properties_file(self) -> Path:
        return self.ohos_root / "local.properties"

    @property
    def pubspec_file(self) -> Path:
        return self.project_dir / "pubspec.yaml"

    @property
    def plugins_dependencies_file(self) -> Path:
        return self.project_dir / ".flutter-plugins-dependencies"

    @property
    def har_dir(self) -> Path:
        return self.ohos_root / HAR_DIR_NAME

    def main_module_directory(self, build_data: OhosBuildData | None = None) -> Path:
        data = build_data or self.build_data()
        return Path(data.module_info.main_module_src_path)

    def main_module_name(self, build_data: OhosBuildData | None = None) -> str:
        data = build_data or self.build_data()
        return data.module_info.main_module_name

    @property
    def flutter_module_directory(self) -> Path:
        if self.is_module:
            return self.ohos_root / FLUTTER_MODULE_NAME
        return self.main_module_directory()

    @property
    def flutter_module_package_file(self) -> Path:
        return self.flutter_module_directory / "oh-package.json5"

    @property
    def assets_directory(self) -> Path:
        """e.g. ``entry/src/main/resources/rawfile/flutter_assets``"""
        return self.flutter_module_directory / "src" / "main" / "resources" / "rawfile" / FLUTTER_ASSETS_DIR

    def app_so_path(self, arch_name: str) -> Path:
        """e.g. ``entry/libs/arm64-v8a/libapp.so``"""
        return self.flutter_module_directory / "libs" / arch_name / APP_SO

    # ── Metadata ───────────────────────────────────────────────

    def build_data(self) -> OhosBuildData:
        """Parse the project descriptors; never cached since builds rewrite them."""
        return parse_build_data(self)

    @property
    def settings(self) -> PropertiesFile:
        if self.local_properties_file.is_file():
            return PropertiesFile.from_file(self.local_properties_file)
        return PropertiesFile()

    def plugins(self) -> list[Plugin]:
        """Plugins with an ``ohos`` implementation, from ``.flutter-plugins-dependencies``."""
        if not self.plugins_dependencies_file.is_file():
            return []
        data = read_json5(self.plugins_dependencies_file)
        entries = (data.get("plugins") or {}).get(PLUGIN_PLATFORM_KEY) or []
        return [Plugin(name=entry["name"], path=entry["path"]) for entry in entries if entry.get("name") and entry.get("path")]

    @staticmethod
    def signed_file(
        *,
        module_path: str | Path,
        module_name: str,
        flavor: str,
        file_type: OhosFileType = OhosFileType.HAP,
        signed: bool = True,
        throw_on_missing: bool = False,
    ) -> Path:
        """Return the hvigor output path of a module artifact.

        Raises:
            ToolExit: If ``throw_on_missing`` and the file does not exist.
        """
        outputs = Path(module_path) / "build" / "default" / "outputs" / flavor
        if file_type is OhosFileType.HAR:
            path = outputs / f"{module_name}.har"
        else:
            suffix = "signed" if signed else "unsigned"
            path = outputs / f"{module_name}-{flavor}-{suffix}.{file_type.value}"
        if throw_on_missing and not path.is_file():
            raise ToolExit(f"Failed to find the built artifact: {path}")
        return path

    def app_file(self, flavor: str, *, throw_on_missing: bool = False) -> Path:
        """Application bundle written by ``assembleApp`` under ``build/outputs``."""
        path = self.ohos_root / "build" / "outputs" / flavor / f"{self.ohos_root.name}-{flavor}-signed.app"
        if throw_on_missing and not path.is_file():
            raise ToolExit(f"Failed to find the built artifact: {path}")
        return path
