"""Register Flutter plugins as hvigor modules and ohpm dependency overrides.

Source builds see each plugin as a module of ``build-profile.json5`` so its
har can be packaged; the final hap build instead resolves plugins from the
packaged hars through ``overrides`` in the root ``oh-package.json5``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ohkit.build.build_data import use_absolute_har_paths
from ohkit.shared.descriptors import read_json5, write_json
from ohkit.shared.exceptions import ToolExit
from ohkit.shared.models import Plugin

if TYPE_CHECKING:
    from ohkit.build.project import OhosProject

logger = logging.getLogger(__name__)

FLUTTER_MODULE_PACKAGE = "@ohos/flutter_module"
FLUTTER_OHOS_PACKAGE = "@ohos/flutter_ohos"

_DEFAULT_TARGETS = [{"name": "default", "applyToProducts": ["default"]}]


def _relative(path: str | Path, start: str | Path) -> str:
    return os.path.relpath(os.path.realpath(path), os.path.realpath(start)).replace(os.sep, "/")


def plugin_ohos_dir(plugin: Plugin) -> Path:
    return Path(plugin.path) / "ohos"


def _har_file_reference(project: OhosProject, plugin: Plugin) -> str:
    har_file = project.har_dir / f"{plugin.name}.har"
    if project.is_module and use_absolute_har_paths(project):
        return f"file:{har_file}"
    return f"file:./{_relative(har_file, project.ohos_root)}"


def _load_overrides(path: Path) -> tuple[dict[str, Any], dict[str, Any]]:
    config = read_json5(path)
    overrides = config.get("overrides")
    if not isinstance(overrides, dict):
        overrides = {}
        config["overrides"] = overrides
    return config, overrides


def check_plugins_dependencies(project: OhosProject) -> None:
    """Point the flutter module's dependencies at the packaged plugin hars.

    Deprecated ``@ohos/...`` aliases of a plugin are removed with a warning.
    """
    package_file = project.flutter_module_package_file
    if not package_file.is_file():
        logger.debug("%s not found, skipping plugin dependency check", package_file)
        return
    plugins = project.plugins()
    config = read_json5(package_file)
    dependencies = config.get("dependencies")
    if not isinstance(dependencies, dict):
        dependencies = {}
        config["dependencies"] = dependencies

    for plugin in plugins:
        for key in [key for key in dependencies if key.startswith("@ohos") and plugin.name in key]:
            logger.warning(
                "dependency %s in %s is deprecated, %s is used instead",
                key,
                package_file,
                plugin.name,
            )
            del dependencies[key]
        har_file = project.har_dir / f"{plugin.name}.har"
        if project.is_module and use_absolute_har_paths(project):
            dependencies[plugin.name] = f"file:{har_file}"
        else:
            dependencies[plugin.name] = f"file:{_relative(har_file, package_file.parent)}"

    write_json(package_file, config)


def add_plugins_modules(project: OhosProject) -> None:
    """Add each plugin's ``ohos`` directory as a module of ``build-profile.json5``."""
    plugins = project.plugins()
    if not plugins:
        return
    profile_path = project.build_profile_file
    if not profile_path.is_file():
        raise ToolExit(f"Cannot find {profile_path}. Make sure the ohos project exists.")
    config = read_json5(profile_path)
    modules = config.get("modules")
    if not isinstance(modules, list):
        modules = []
        config["modules"] = modules
    names = {module.get("name") for module in modules if isinstance(module, dict)}
    for plugin in plugins:
        if plugin.name in names:
            continue
        modules.append(
            {
                "name": plugin.name,
                "srcPath": _relative(plugin_ohos_dir(plugin), project.ohos_root),
                "targets": [dict(target) for target in _DEFAULT_TARGETS],
            }
        )
        names.add(plugin.name)
        logger.debug("registered plugin module %s", plugin.name)
    write_json(profile_path, config)


def remove_plugins_modules(project: OhosProject) -> None:
    """Drop every plugin module added by ``add_plugins_modules``."""
    plugins = project.plugins()
    profile_path = project.build_profile_file
    if not plugins or not profile_path.is_file():
        return
    names = {plugin.name for plugin in plugins}
    config = read_json5(profile_path)
    modules = config.get("modules") or []
    config["modules"] = [module for module in modules if not (isinstance(module, dict) and module.get("name") in names)]
    write_json(profile_path, config)


def add_src_overrides(project: OhosProject) -> None:
    """Override plugin and flutter module packages with their source paths."""
    package_file = project.package_file
    if not package_file.is_file():
        logger.debug("%s not found, skipping source overrides", package_file)
        return
    config, overrides = _load_overrides(package_file)
    for plugin in project.plugins():
        overrides[plugin.name] = f"file:./{_relative(plugin_ohos_dir(plugin), project.ohos_root)}"
    overrides[FLUTTER_MODULE_PACKAGE] = f"file:./{_relative(project.flutter_module_directory, project.ohos_root)}"
    overrides[FLUTTER_OHOS_PACKAGE] = "file:./har/flutter.har"
    write_json(package_file, config)


def add_har_overrides(project: OhosProject) -> None:
    """Override plugin packages with the hars staged under ``har/``."""
    package_file = project.package_file
    if not package_file.is_file():
        logger.debug("%s not found, skipping har overrides", package_file)
        return
    config, overrides = _load_overrides(package_file)
    for plugin in project.plugins():
        overrides[plugin.name] = _har_file_reference(project, plugin)
    write_json(package_file, config)
