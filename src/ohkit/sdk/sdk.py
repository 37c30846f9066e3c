"""OpenHarmony / HarmonyOS SDK discovery."""

from __future__ import annotations

import logging
import os
import platform
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from ohkit.config import Settings
from ohkit.shared.descriptors import read_json5
from ohkit.shared.exceptions import DescriptorError

logger = logging.getLogger(__name__)

# OpenHarmony SDK
OHOS_HOME = "OHOS_HOME"
OHOS_SDK_ROOT = "OHOS_SDK_HOME"
# HarmonyOS SDK
HMOS_HOME = "HOS_SDK_HOME"
DEVECO_SDK = "DEVECO_SDK_HOME"


def hdc_binary_name() -> str:
    return "hdc.exe" if platform.system() == "Windows" else "hdc"


def _is_numeric(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


@dataclass
class SdkVersions:
    """API level to SDK directory name, discovered once per locate call."""

    versions: dict[int, str] = field(default_factory=dict)

    def add(self, api: int, directory: str) -> None:
        self.versions[api] = directory

    def apis(self) -> list[int]:
        """API levels, newest first."""
        return sorted(self.versions, reverse=True)

    def __len__(self) -> int:
        return len(self.versions)


def find_hdc(sdk_path: str | Path, versions: SdkVersions) -> str | None:
    """Return the first hdc found for the newest API level."""
    root = Path(sdk_path)
    name = hdc_binary_name()
    for api in versions.apis():
        directory = versions.versions[api]
        for candidate in (
            root / directory / "openharmony" / "toolchains" / name,
            root / directory / "base" / "toolchains" / name,
            root / str(api) / "toolchains" / name,
        ):
            if candidate.is_file():
                return str(candidate)
    return None


def _available_apis(sdk_path: Path, versions: SdkVersions) -> list[str]:
    apis = []
    for api in versions.apis():
        directory = versions.versions[api]
        if (sdk_path / directory).is_dir():
            apis.append(str(api) if directory == str(api) else f"{api}:{directory}")
    return apis


@runtime_checkable
class HarmonySdk(Protocol):
    """Capability shared by both SDK flavors."""

    @property
    def name(self) -> str: ...

    @property
    def sdk_path(self) -> str: ...

    @property
    def hdc_path(self) -> str | None: ...

    @property
    def api_available(self) -> list[str]: ...

    @property
    def is_valid_directory(self) -> bool: ...


class OhosSdk:
    """OpenHarmony SDK: ``<root>/<api>/toolchains/hdc``."""

    name = "OpenHarmonySDK"

    def __init__(self, sdk_dir: str | Path, versions: SdkVersions) -> None:
        self._sdk_dir = Path(sdk_dir)
        self.versions = versions

    @property
    def sdk_path(self) -> str:
        return str(self._sdk_dir)

    @property
    def hdc_path(self) -> str | None:
        return find_hdc(self._sdk_dir, self.versions)

    @property
    def api_available(self) -> list[str]:
        return _available_apis(self._sdk_dir, self.versions)

    @property
    def is_valid_directory(self) -> bool:
        return find_hdc(self._sdk_dir, self.versions) is not None

    @staticmethod
    def scan_versions(sdk_path: str | Path) -> SdkVersions:
        versions = SdkVersions()
        root = Path(sdk_path)
        if not root.is_dir():
            return versions
        for child in root.iterdir():
            if child.is_dir() and (child / "toolchains").is_dir() and _is_numeric(child.name):
                versions.add(int(float(child.name)), child.name)
        return versions

    @classmethod
    def locate(cls, settings: Settings, *, which: Callable[[str], str | None] = shutil.which) -> OhosSdk | None:
        home = settings.ohos_home or settings.ohos_sdk_home
        if home:
            for candidate in (Path(home), Path(home) / "sdk"):
                versions = cls.scan_versions(candidate)
                if find_hdc(candidate, versions):
                    return cls(candidate, versions)

        # <root>/11/toolchains/hdc
        hdc = which(hdc_binary_name())
        if hdc:
            root = Path(os.path.realpath(hdc)).parent.parent.parent
            versions = cls.scan_versions(root)
            if root.is_dir() and find_hdc(root, versions):
                return cls(root, versions)

        logger.debug("unable to locate an OpenHarmony SDK")
        return None


class HmosSdk:
    """HarmonyOS SDK: ``<root>/<name>/{openharmony,base}/toolchains/hdc``."""

    name = "HarmonyOSSDK"

    def __init__(self, sdk_dir: str | Path, versions: SdkVersions) -> None:
        self._sdk_dir = Path(sdk_dir)
        self.versions = versions

    @property
    def sdk_path(self) -> str:
        return str(self._sdk_dir)

    @property
    def hdc_path(self) -> str | None:
        return find_hdc(self._sdk_dir, self.versions)

    @property
    def api_available(self) -> list[str]:
        return _available_apis(self._sdk_dir, self.versions)

    @property
    def is_valid_directory(self) -> bool:
        return self.valid_sdk_directory(self._sdk_dir, self.versions)

    @staticmethod
    def scan_versions(sdk_path: str | Path) -> SdkVersions:
        """Read ``data.apiVersion`` from every ``<dir>/sdk-pkg.json``."""
        versions = SdkVersions()
        root = Path(sdk_path)
        if not root.is_dir():
            return versions
        for child in root.iterdir():
            pkg = child / "sdk-pkg.json"
            if not (child.is_dir() and pkg.is_file()):
                continue
            try:
                data = read_json5(pkg).get("data") or {}
            except DescriptorError as exc:
                logger.warning("skipping unreadable %s: %s", pkg, exc)
                continue
            api = str(data.get("apiVersion", ""))
            if api and _is_numeric(api):
                versions.add(int(float(api)), child.name)
        return versions

    @staticmethod
    def valid_sdk_directory(sdk_dir: str | Path, versions: SdkVersions) -> bool:
        root = Path(sdk_dir)
        # API 10 layout
        if (root / "hmscore").is_dir() and (root / "openharmony").is_dir():
            return True
        # API 11+ layout
        if not len(versions):
            return False
        return all((root / name).is_dir() for name in versions.versions.values())

    @classmethod
    def locate(cls, settings: Settings, *, which: Callable[[str], str | None] = shutil.which) -> HmosSdk | None:
        home = settings.deveco_sdk_home or settings.hos_sdk_home
        if home:
            versions = cls.scan_versions(home)
            if cls.valid_sdk_directory(home, versions):
                return cls(home, versions)

        # <root>/HarmonyOS-NEXT-DP1/base/toolchains/hdc
        hdc = which(hdc_binary_name())
        if hdc:
            root = Path(os.path.realpath(hdc)).parent.parent.parent.parent
            versions = cls.scan_versions(root)
            if root.is_dir() and cls.valid_sdk_directory(root, versions):
                return cls(root, versions)

        logger.debug("unable to locate a HarmonyOS SDK")
        return None


def locate_harmony_sdk(settings: Settings, *, which: Callable[[str], str | None] = shutil.which) -> HarmonySdk | None:
    """Locate an SDK, preferring OpenHarmony over HarmonyOS."""
    return OhosSdk.locate(settings, which=which) or HmosSdk.locate(settings, which=which)
