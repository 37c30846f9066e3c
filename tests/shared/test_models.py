"""Tests for frozen Pydantic domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ohkit.shared.enums import BuildMode, ModuleType
from ohkit.shared.models import (
    BUILD_NAME_DEFAULT,
    AppInfo,
    BuildInfo,
    LaunchResult,
    ModuleInfo,
    OhosBuildData,
    OhosModule,
)


def _module(name: str, module_type: ModuleType, **kwargs) -> OhosModule:
    return OhosModule(name=name, src_path=f"/p/ohos/{name}", type=module_type, is_entry=module_type is ModuleType.ENTRY, **kwargs)


class TestAppInfo:
    def test_aliases(self) -> None:
        info = AppInfo.model_validate({"bundleName": "com.example.app", "versionCode": 3, "versionName": "1.2.0"})
        assert info.bundle_name == "com.example.app"
        assert info.version_code == 3
        assert info.version_name == "1.2.0"

    def test_null_versions_use_defaults(self) -> None:
        info = AppInfo.model_validate({"bundleName": "com.example.app", "versionCode": None, "versionName": None})
        assert info.version_code == 1000000
        assert info.version_name == BUILD_NAME_DEFAULT

    def test_frozen(self) -> None:
        info = AppInfo(bundle_name="com.example.app")
        with pytest.raises(ValidationError):
            info.bundle_name = "other"  # type: ignore[misc]


class TestModuleInfo:
    def test_entry_module_is_main(self) -> None:
        info = ModuleInfo(
            module_list=[
                _module("library", ModuleType.HAR),
                _module("entry", ModuleType.ENTRY, main_element="EntryAbility"),
            ]
        )
        assert info.has_entry_module
        assert info.main_module_name == "entry"
        assert info.main_element == "EntryAbility"
        assert [m.name for m in info.of_type(ModuleType.HAR)] == ["library"]

    def test_without_entry_falls_back_to_first(self) -> None:
        info = ModuleInfo(module_list=[_module("library", ModuleType.HAR)])
        assert not info.has_entry_module
        assert info.main_module_name == "library"
        assert info.main_element is None

    def test_empty_defaults_to_entry(self) -> None:
        assert ModuleInfo().main_module_name == "entry"

    def test_with_flavor_copies(self) -> None:
        info = ModuleInfo(module_list=[_module("entry", ModuleType.ENTRY)])
        flavored = info.with_flavor("staging")
        assert flavored.module_list[0].flavor == "staging"
        assert info.module_list[0].flavor == "default"


class TestOhosBuildData:
    def test_bundle_name_for_product(self) -> None:
        data = OhosBuildData(
            app_info=AppInfo(bundle_name="com.example.app"),
            module_info=ModuleInfo(),
            products=[{"name": "staging", "bundleName": "com.example.app.staging"}, {"name": "default"}],
        )
        assert data.bundle_name_for("staging") == "com.example.app.staging"
        assert data.bundle_name_for("default") == "com.example.app"


class TestBuildInfo:
    def test_build_system_environment(self) -> None:
        info = BuildInfo(mode=BuildMode.PROFILE, flavor="staging")
        assert info.is_profile
        assert info.to_build_system_environment() == {
            "BuildMode": "profile",
            "TargetFile": "lib/main.dart",
            "Flavor": "staging",
        }

    def test_no_flavor_define_without_flavor(self) -> None:
        assert "Flavor" not in BuildInfo().to_build_system_environment()


class TestLaunchResult:
    def test_succeeded_and_failed(self) -> None:
        assert LaunchResult.succeeded("http://127.0.0.1:1234/abc=/").vm_service_uri == "http://127.0.0.1:1234/abc=/"
        assert not LaunchResult.failed().started
