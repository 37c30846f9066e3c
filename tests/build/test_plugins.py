"""Tests for plugin module registration and ohpm overrides."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ohkit.build.plugins import (
    FLUTTER_MODULE_PACKAGE,
    FLUTTER_OHOS_PACKAGE,
    add_har_overrides,
    add_plugins_modules,
    add_src_overrides,
    check_plugins_dependencies,
    remove_plugins_modules,
)
from ohkit.build.project import OhosProject
from ohkit.shared.exceptions import ToolExit
from ohkit.shared.models import Plugin


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def _write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture()
def plugin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "pub" / "path_provider"
    (path / "ohos").mkdir(parents=True)
    return path


@pytest.fixture()
def with_plugin(ohos_app: OhosProject, plugin_dir: Path) -> OhosProject:
    _write(
        ohos_app.plugins_dependencies_file,
        {
            "plugins": {
                "ohos": [{"name": "path_provider", "path": str(plugin_dir)}],
                "android": [{"name": "android_only", "path": "/nowhere"}],
            }
        },
    )
    return ohos_app


class TestPluginDiscovery:
    def test_no_dependencies_file(self, ohos_app: OhosProject) -> None:
        assert ohos_app.plugins() == []

    def test_ohos_plugins_only(self, with_plugin: OhosProject, plugin_dir: Path) -> None:
        assert with_plugin.plugins() == [Plugin(name="path_provider", path=str(plugin_dir))]


class TestPluginModules:
    def test_add_and_remove(self, with_plugin: OhosProject) -> None:
        add_plugins_modules(with_plugin)
        add_plugins_modules(with_plugin)

        modules = _read(with_plugin.build_profile_file)["modules"]
        assert [module["name"] for module in modules] == ["entry", "shared_ui", "path_provider"]
        assert modules[-1] == {
            "name": "path_provider",
            "srcPath": "../../pub/path_provider/ohos",
            "targets": [{"name": "default", "applyToProducts": ["default"]}],
        }

        remove_plugins_modules(with_plugin)

        profile = _read(with_plugin.build_profile_file)
        assert [module["name"] for module in profile["modules"]] == ["entry", "shared_ui"]
        assert profile["app"]["signingConfigs"] == [{"name": "default"}]

    def test_without_plugins_profile_untouched(self, ohos_app: OhosProject) -> None:
        before = ohos_app.build_profile_file.read_text(encoding="utf-8")
        add_plugins_modules(ohos_app)
        assert ohos_app.build_profile_file.read_text(encoding="utf-8") == before

    def test_missing_profile(self, with_plugin: OhosProject) -> None:
        with_plugin.build_profile_file.unlink()
        with pytest.raises(ToolExit, match="build-profile.json5"):
            add_plugins_modules(with_plugin)


class TestOverrides:
    def test_src_overrides(self, with_plugin: OhosProject) -> None:
        add_src_overrides(with_plugin)

        config = _read(with_plugin.package_file)
        assert config["name"] == "my_app"
        assert config["overrides"] == {
            "path_provider": "file:./../../pub/path_provider/ohos",
            FLUTTER_MODULE_PACKAGE: "file:./entry",
            FLUTTER_OHOS_PACKAGE: "file:./har/flutter.har",
        }

    def test_har_overrides_replace_src(self, with_plugin: OhosProject) -> None:
        add_src_overrides(with_plugin)
        add_har_overrides(with_plugin)

        overrides = _read(with_plugin.package_file)["overrides"]
        assert overrides["path_provider"] == "file:./har/path_provider.har"
        assert overrides[FLUTTER_OHOS_PACKAGE] == "file:./har/flutter.har"

    def test_module_with_absolute_har_paths(self, tmp_path: Path, plugin_dir: Path) -> None:
        project = OhosProject(tmp_path / "my_module", is_module=True)
        _write(project.package_file, {"name": "my_module"})
        project.local_properties_file.write_text("useAbsolutePathOfHar=true\n", encoding="utf-8")
        _write(project.plugins_dependencies_file, {"plugins": {"ohos": [{"name": "path_provider", "path": str(plugin_dir)}]}})

        add_har_overrides(project)

        overrides = _read(project.package_file)["overrides"]
        assert overrides["path_provider"] == f"file:{project.har_dir / 'path_provider.har'}"


class TestCheckPluginsDependencies:
    def test_rewrites_and_drops_deprecated_alias(self, with_plugin: OhosProject, caplog: pytest.LogCaptureFixture) -> None:
        package_file = with_plugin.ohos_root / "entry" / "oh-package.json5"
        _write(package_file, {"name": "entry", "dependencies": {"@ohos/path_provider": "file:old", "lodash": "^4.0.0"}})

        check_plugins_dependencies(with_plugin)

        dependencies = _read(package_file)["dependencies"]
        assert dependencies == {"lodash": "^4.0.0", "path_provider": "file:../har/path_provider.har"}
        assert "@ohos/path_provider" in caplog.text

    def test_missing_package_file_is_skipped(self, with_plugin: OhosProject) -> None:
        (with_plugin.ohos_root / "entry" / "oh-package.json5").unlink()
        check_plugins_dependencies(with_plugin)
        assert not (with_plugin.ohos_root / "entry" / "oh-package.json5").exists()
