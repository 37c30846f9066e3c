"""Parse hvigor descriptors into ``OhosBuildData`` and stamp versions back."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from ohkit.config import Settings
from ohkit.sdk.sdk import HarmonySdk
from ohkit.shared.descriptors import parse_model, read_json5, read_pubspec_version, write_json
from ohkit.shared.enums import ModuleType
from ohkit.shared.exceptions import SdkError, ToolExit
from ohkit.shared.models import (
    BUILD_NAME_DEFAULT,
    BUILD_NUMBER_DEFAULT,
    FLAVOR_DEFAULT,
    OHOS_SDK_INT_DEFAULT,
    AppInfo,
    BuildInfo,
    ModuleInfo,
    OhosBuildData,
    OhosModule,
)

if TYPE_CHECKING:
    from ohkit.build.project import OhosProject

logger = logging.getLogger(__name__)

# "4.1.0(11)"
_API_IN_PARENS = re.compile(r"\((\d+)\)")


class _ModuleManifest(BaseModel):
    name: str
    type: str = ModuleType.UNKNOWN.value
    main_element: str | None = Field(default=None, alias="mainElement")


class _ModuleEntry(BaseModel):
    name: str
    src_path: str = Field(alias="srcPath")


def _module_json_path(module_path: str | Path) -> Path:
    return Path(module_path) / "src" / "main" / "module.json5"


def parse_module(module_path: str | Path) -> OhosModule:
    """Read ``<module>/src/main/module.json5``.

    Raises:
        ToolExit: If the module has no ``module.json5``.
        DescriptorError: If the manifest lacks ``module.name``.
    """
    path = _module_json_path(module_path)
    if not path.is_file():
        raise ToolExit(
            f"Cannot find {path}. Check that the module exists and that plugins "
            "ship their ohos implementation under <plugin>/ohos."
        )
    manifest = parse_model(path, _ModuleManifest, read_json5(path).get("module"))
    module_type = ModuleType.from_name(manifest.type)
    return OhosModule(
        name=manifest.name,
        src_path=str(module_path),
        type=module_type,
        is_entry=module_type is ModuleType.ENTRY,
        main_element=manifest.main_element,
    )


def parse_modules(project: OhosProject) -> ModuleInfo:
    """Parse every module listed in ``build-profile.json5`` in declaration order."""
    profile_path = project.build_profile_file
    if not profile_path.is_file():
        raise ToolExit(f"Cannot find {profile_path}. Make sure the ohos project exists.")
    entries = read_json5(profile_path).get("modules") or []
    modules = []
    for raw in entries:
        entry = parse_model(profile_path, _ModuleEntry, raw)
        module_path = os.path.normpath(os.path.join(project.ohos_root, entry.src_path))
        modules.append(parse_module(module_path))
    return ModuleInfo(module_list=modules)


def get_api_version(build_profile: dict[str, Any]) -> int:
    """Read ``compatibleSdkVersion`` as an int or ``"4.1.0(11)"``; default 11."""
    app = build_profile.get("app") or {}
    value = app.get("compatibleSdkVersion")
    if value is None:
        products = app.get("products") or []
        if products and isinstance(products[0], dict):
            value = products[0].get("compatibleSdkVersion")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        match = _API_IN_PARENS.search(value)
        if match:
            return int(match.group(1))
    return OHOS_SDK_INT_DEFAULT


def parse_build_data(project: OhosProject) -> OhosBuildData:
    """Build the logical project view; never cached since builds rewrite descriptors.

    Raises:
        ToolExit: If a required descriptor is missing.
        DescriptorError: If a descriptor lacks a required field.
    """
    app_json = project.app_json_file
    if not app_json.is_file():
        raise ToolExit(f"Cannot find {app_json}. Make sure the ohos project exists.")
    app_info = parse_model(app_json, AppInfo, read_json5(app_json).get("app"))
    profile = read_json5(project.build_profile_file) if project.build_profile_file.is_file() else {}
    products = (profile.get("app") or {}).get("products")
    return OhosBuildData(
        app_info=app_info,
        module_info=parse_modules(project),
        api_version=get_api_version(profile),
        products=products if isinstance(products, list) else None,
    )


def get_flavor(build_profile_file: str | Path, flavor: str | None) -> str:
    """Match ``flavor`` against declared products or targets, else ``default``."""
    if not flavor:
        return FLAVOR_DEFAULT
    path = Path(build_profile_file)
    if path.is_file():
        profile = read_json5(path)
        declared = (profile.get("app") or {}).get("products") or profile.get("targets") or []
        if any(isinstance(item, dict) and item.get("name") == flavor for item in declared):
            return flavor
    logger.warning("flavor %s is not declared in %s, using %s", flavor, path, FLAVOR_DEFAULT)
    return FLAVOR_DEFAULT


def validated_build_number(value: str | int | None) -> str | None:
    """Return a positive integer string, stripping stray characters when needed."""
    if value is None:
        return None
    text = str(value).strip()
    if text.isdigit() and int(text) > 0:
        return str(int(text))
    digits = re.sub(r"\D", "", text)
    if digits and int(digits) > 0:
        logger.warning("build number %r is not a positive integer, using %s", text, int(digits))
        return str(int(digits))
    logger.warning("build number %r is not a positive integer, ignoring", text)
    return None


def validated_build_name(value: str | None) -> str | None:
    """Return ``x.y.z`` built from the first three numeric components."""
    if value is None:
        return None
    parts = re.findall(r"\d+", str(value))
    if not parts:
        logger.warning("build name %r has no numeric component, ignoring", value)
        return None
    name = ".".join((parts + ["0", "0"])[:3])
    if name != value:
        logger.warning("build name %r normalized to %s", value, name)
    return name


def update_project_version(project: OhosProject, build_info: BuildInfo) -> None:
    """Write ``versionCode``/``versionName`` into ``AppScope/app.json5``.

    Values come from the build info, then ``pubspec.yaml``, then defaults.
    Other keys are preserved.
    """
    app_json = project.app_json_file
    if not app_json.is_file():
        logger.debug("%s not found, skipping version update", app_json)
        return
    pubspec_name, pubspec_number = read_pubspec_version(project.pubspec_file)
    number = validated_build_number(build_info.build_number or pubspec_number) or BUILD_NUMBER_DEFAULT
    name = validated_build_name(build_info.build_name or pubspec_name) or BUILD_NAME_DEFAULT

    config = read_json5(app_json)
    app = config.get("app")
    if not isinstance(app, dict):
        logger.warning("%s has no app section, skipping version update", app_json)
        return
    app["versionCode"] = int(number)
    app["versionName"] = name
    write_json(app_json, config)
    logger.info("stamped %s with version %s (%s)", app_json, name, number)


def update_local_properties(
    project: OhosProject,
    sdk: HarmonySdk | None,
    settings: Settings,
    *,
    require_sdk: bool = True,
) -> None:
    """Record ``hwsdk.dir`` and ``nodejs.dir`` in ``local.properties``.

    Raises:
        SdkError: If ``require_sdk`` and no SDK was located.
    """
    properties = project.settings
    changed = False

    def change(key: str, value: str | None) -> None:
        nonlocal changed
        if value is None or properties.values.get(key) == value:
            return
        properties.values[key] = value
        changed = True

    if sdk is None:
        if require_sdk:
            raise SdkError("No Hmos SDK found. Try setting the HOS_SDK_HOME environment variable.")
    else:
        change("hwsdk.dir", sdk.sdk_path)
    change("nodejs.dir", settings.node_home)

    if changed:
        properties.write(project.local_properties_file)


def use_absolute_har_paths(project: OhosProject) -> bool:
    return project.settings.values.get("useAbsolutePathOfHar") == "true"
