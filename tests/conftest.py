"""Shared pytest fixtures for the ohkit test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ohkit.build.project import OhosProject
from ohkit.config import Settings
from ohkit.shared.process import ProcessRunner, RunResult


@dataclass
class FakeSdk:
    """In-memory stand-in satisfying the ``HarmonySdk`` protocol."""

    sdk_path: str = "/opt/ohos-sdk"
    hdc_path: str | None = "/opt/ohos-sdk/11/toolchains/hdc"
    name: str = "OpenHarmonySDK"
    api_available: list[str] = field(default_factory=lambda: ["11"])
    is_valid_directory: bool = True


@pytest.fixture()
def settings() -> Settings:
    """Return a Settings instance isolated from the host environment."""
    return Settings(
        ohos_home=None,
        ohos_sdk_home=None,
        hos_sdk_home=None,
        deveco_sdk_home=None,
        hdc_server=None,
        hdc_server_port=None,
        node_home=None,
        engine_dir=None,
        hdc_timeout_seconds=5,
        vm_service_timeout_seconds=1,
    )


@pytest.fixture()
def sdk() -> FakeSdk:
    return FakeSdk()


@pytest.fixture()
def runner() -> MagicMock:
    """Mock ProcessRunner; ``run`` succeeds with empty output by default."""
    mock = MagicMock(spec=ProcessRunner)
    mock.run = AsyncMock(return_value=RunResult(command=[], exit_code=0, stdout="", stderr=""))
    mock.start = AsyncMock()
    mock.can_run.return_value = True
    return mock


def write_descriptor(path: Path, data: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture()
def make_module() -> Callable[..., Path]:
    """Create ``<ohos_root>/<name>/src/main/module.json5``."""

    def _make(ohos_root: Path, name: str, module_type: str, main_element: str | None = None) -> Path:
        module: dict[str, Any] = {"name": name, "type": module_type}
        if main_element:
            module["mainElement"] = main_element
        write_descriptor(ohos_root / name / "src" / "main" / "module.json5", {"module": module})
        return ohos_root / name

    return _make


@pytest.fixture()
def ohos_app(tmp_path: Path, make_module: Callable[..., Path]) -> OhosProject:
    """A Flutter application with one entry module and one har module."""
    project_dir = tmp_path / "my_app"
    ohos_root = project_dir / "ohos"
    (project_dir / "pubspec.yaml").parent.mkdir(parents=True)
    (project_dir / "pubspec.yaml").write_text("name: my_app\nversion: 1.0.0+1\n", encoding="utf-8")
    write_descriptor(
        ohos_root / "AppScope" / "app.json5",
        {"app": {"bundleName": "com.example.my_app", "vendor": "example", "versionCode": 1, "versionName": "1.0.0", "icon": "$media:app_icon"}},
    )
    write_descriptor(
        ohos_root / "build-profile.json5",
        {
            "app": {
                "signingConfigs": [{"name": "default"}],
                "products": [
                    {"name": "default", "compatibleSdkVersion": "4.1.0(11)"},
                    {"name": "staging", "bundleName": "com.example.my_app.staging"},
                ],
            },
            "modules": [
                {"name": "entry", "srcPath": "./entry"},
                {"name": "shared_ui", "srcPath": "./shared_ui"},
            ],
        },
    )
    write_descriptor(ohos_root / "oh-package.json5", {"name": "my_app", "dependencies": {}})
    make_module(ohos_root, "entry", "entry", "EntryAbility")
    make_module(ohos_root, "shared_ui", "har")
    write_descriptor(ohos_root / "entry" / "oh-package.json5", {"name": "entry", "dependencies": {}})
    return OhosProject(project_dir)
