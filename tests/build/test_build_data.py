"""Tests for descriptor parsing and version stamping."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ohkit.build.build_data import (
    get_api_version,
    get_flavor,
    parse_build_data,
    parse_module,
    update_local_properties,
    update_project_version,
    validated_build_name,
    validated_build_number,
)
from ohkit.build.project import OhosProject
from ohkit.config import Settings
from ohkit.shared.enums import ModuleType
from ohkit.shared.exceptions import DescriptorError, SdkError, ToolExit
from ohkit.shared.models import BuildInfo


def write_descriptor(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _app_section(project: OhosProject) -> dict:
    return json.loads(project.app_json_file.read_text(encoding="utf-8"))["app"]


class TestParseBuildData:
    def test_application(self, ohos_app: OhosProject) -> None:
        data = parse_build_data(ohos_app)

        assert data.app_info.bundle_name == "com.example.my_app"
        assert [module.name for module in data.module_info.module_list] == ["entry", "shared_ui"]
        assert data.module_info.main_module_name == "entry"
        assert data.module_info.main_element == "EntryAbility"
        assert data.module_info.main_module_src_path == str(ohos_app.ohos_root / "entry")
        assert [module.name for module in data.har_modules] == ["shared_ui"]
        assert data.api_version == 11
        assert data.bundle_name_for("staging") == "com.example.my_app.staging"

    def test_json5_comments_and_trailing_commas(self, ohos_app: OhosProject) -> None:
        ohos_app.app_json_file.write_text(
            '{\n  // identity\n  "app": {"bundleName": "com.example.json5", "versionCode": 3,},\n}\n',
            encoding="utf-8",
        )
        assert parse_build_data(ohos_app).app_info.bundle_name == "com.example.json5"

    def test_missing_app_json(self, ohos_app: OhosProject) -> None:
        ohos_app.app_json_file.unlink()
        with pytest.raises(ToolExit, match="app.json5"):
            parse_build_data(ohos_app)

    def test_missing_bundle_name(self, ohos_app: OhosProject) -> None:
        write_descriptor(ohos_app.app_json_file, {"app": {"vendor": "example"}})
        with pytest.raises(DescriptorError):
            parse_build_data(ohos_app)

    def test_missing_module_manifest(self, ohos_app: OhosProject) -> None:
        (ohos_app.ohos_root / "shared_ui" / "src" / "main" / "module.json5").unlink()
        with pytest.raises(ToolExit, match="module.json5"):
            parse_build_data(ohos_app)

    def test_unknown_module_type(self, tmp_path: Path, make_module) -> None:
        module = make_module(tmp_path, "widget", "feature")
        assert parse_module(module).type is ModuleType.UNKNOWN


class TestApiVersion:
    @pytest.mark.parametrize(
        ("profile", "expected"),
        [
            ({"app": {"compatibleSdkVersion": 12}}, 12),
            ({"app": {"compatibleSdkVersion": "10"}}, 10),
            ({"app": {"compatibleSdkVersion": "5.0.0(12)"}}, 12),
            ({"app": {"products": [{"name": "default", "compatibleSdkVersion": "4.1.0(11)"}]}}, 11),
            ({"app": {"compatibleSdkVersion": "HarmonyOS NEXT"}}, 11),
            ({}, 11),
        ],
    )
    def test_get_api_version(self, profile: dict, expected: int) -> None:
        assert get_api_version(profile) == expected


class TestGetFlavor:
    def test_none_is_default(self, ohos_app: OhosProject) -> None:
        assert get_flavor(ohos_app.build_profile_file, None) == "default"

    def test_declared_product(self, ohos_app: OhosProject) -> None:
        assert get_flavor(ohos_app.build_profile_file, "staging") == "staging"

    def test_undeclared_falls_back(self, ohos_app: OhosProject, caplog: pytest.LogCaptureFixture) -> None:
        assert get_flavor(ohos_app.build_profile_file, "qa") == "default"
        assert "flavor qa is not declared" in caplog.text

    def test_module_targets(self, tmp_path: Path) -> None:
        profile = write_descriptor(tmp_path / "build-profile.json5", {"targets": [{"name": "default"}, {"name": "qa"}]})
        assert get_flavor(profile, "qa") == "qa"

    def test_missing_profile(self, tmp_path: Path) -> None:
        assert get_flavor(tmp_path / "build-profile.json5", "qa") == "default"


class TestValidation:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("42", "42"), (7, "7"), (" 012 ", "12"), ("4a2", "42"), ("0", None), ("abc", None), (None, None)],
    )
    def test_build_number(self, value, expected) -> None:
        assert validated_build_number(value) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("1.2.3", "1.2.3"), ("2.0", "2.0.0"), ("1.2.3.4", "1.2.3"), ("v1.2-beta", "1.2.0"), ("abc", None), (None, None)],
    )
    def test_build_name(self, value, expected) -> None:
        assert validated_build_name(value) == expected


class TestUpdateProjectVersion:
    def test_build_info_wins(self, ohos_app: OhosProject) -> None:
        update_project_version(ohos_app, BuildInfo(build_number="42", build_name="2.0"))

        app = _app_section(ohos_app)
        assert app["versionCode"] == 42
        assert app["versionName"] == "2.0.0"
        assert app["bundleName"] == "com.example.my_app"
        assert app["vendor"] == "example"
        assert app["icon"] == "$media:app_icon"

    def test_pubspec_version(self, ohos_app: OhosProject) -> None:
        ohos_app.pubspec_file.write_text("name: my_app\nversion: 3.1.4+27\n", encoding="utf-8")

        update_project_version(ohos_app, BuildInfo())

        app = _app_section(ohos_app)
        assert app["versionCode"] == 27
        assert app["versionName"] == "3.1.4"

    def test_defaults(self, ohos_app: OhosProject) -> None:
        ohos_app.pubspec_file.write_text("name: my_app\n", encoding="utf-8")

        update_project_version(ohos_app, BuildInfo())

        app = _app_section(ohos_app)
        assert app["versionCode"] == 1000000
        assert app["versionName"] == "1.0.0"

    def test_missing_app_json_is_skipped(self, ohos_app: OhosProject) -> None:
        ohos_app.app_json_file.unlink()
        update_project_version(ohos_app, BuildInfo(build_number="42"))
        assert not ohos_app.app_json_file.exists()


class TestUpdateLocalProperties:
    def test_writes_sdk_and_node(self, ohos_app: OhosProject, sdk, settings: Settings) -> None:
        settings = settings.model_copy(update={"node_home": "/opt/node"})

        update_local_properties(ohos_app, sdk, settings)

        text = ohos_app.local_properties_file.read_text(encoding="utf-8")
        assert "hwsdk.dir=/opt/ohos-sdk\n" in text
        assert "nodejs.dir=/opt/node\n" in text

    def test_unchanged_file_is_not_rewritten(self, ohos_app: OhosProject, sdk, settings: Settings) -> None:
        ohos_app.local_properties_file.write_text("# generated\nhwsdk.dir=/opt/ohos-sdk\n", encoding="utf-8")

        update_local_properties(ohos_app, sdk, settings)

        assert ohos_app.local_properties_file.read_text(encoding="utf-8").startswith("# generated")

    def test_missing_sdk(self, ohos_app: OhosProject, settings: Settings) -> None:
        with pytest.raises(SdkError, match="No Hmos SDK found"):
            update_local_properties(ohos_app, None, settings)

    def test_missing_sdk_tolerated(self, ohos_app: OhosProject, settings: Settings) -> None:
        update_local_properties(ohos_app, None, settings, require_sdk=False)
        assert not ohos_app.local_properties_file.exists()
