"""Tests for the hdc device registry."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ohkit.config import Settings
from ohkit.device.discovery import OhosDevices
from ohkit.shared.exceptions import ProcessError, SdkError
from ohkit.shared.process import RunResult


def _ok(stdout: str) -> RunResult:
    return RunResult(command=[], exit_code=0, stdout=stdout, stderr="")


class TestOhosDevices:
    async def test_lists_devices_in_order(self, sdk, runner: MagicMock, settings: Settings) -> None:
        runner.run = AsyncMock(return_value=_ok("FMR0223C13000649\r\n127.0.0.1:5555\n"))

        devices = await OhosDevices(sdk, runner, settings).discover()

        assert [device.id for device in devices] == ["FMR0223C13000649", "127.0.0.1:5555"]
        assert devices[0].name == "FMR0223C13000649"
        cmd = runner.run.call_args.args[0]
        assert cmd == [sdk.hdc_path, "-t", "", "list", "targets"]
        assert runner.run.call_args.kwargs["check"] is True

    async def test_empty_sentinel(self, sdk, runner: MagicMock, settings: Settings) -> None:
        runner.run = AsyncMock(return_value=_ok("[Empty]\n"))
        registry = OhosDevices(sdk, runner, settings)

        assert await registry.discover() == []
        assert registry.diagnostics == ["[Empty]"]

    async def test_connect_failed_sentinel(self, sdk, runner: MagicMock, settings: Settings) -> None:
        runner.run = AsyncMock(return_value=_ok("[Fail]connect failed\n"))
        registry = OhosDevices(sdk, runner, settings)

        assert await registry.discover() == []
        assert registry.diagnostics

    async def test_no_sdk(self, runner: MagicMock, settings: Settings) -> None:
        assert await OhosDevices(None, runner, settings).discover() == []
        runner.run.assert_not_called()

    async def test_hdc_not_runnable(self, sdk, runner: MagicMock, settings: Settings) -> None:
        runner.can_run.return_value = False

        assert await OhosDevices(sdk, runner, settings).discover() == []
        runner.run.assert_not_called()

    async def test_hdc_failure_names_environment_variable(self, sdk, runner: MagicMock, settings: Settings) -> None:
        runner.run = AsyncMock(side_effect=ProcessError("command failed"))

        with pytest.raises(SdkError, match="OHOS_SDK_HOME"):
            await OhosDevices(sdk, runner, settings).discover()

    async def test_remote_server(self, sdk, runner: MagicMock, settings: Settings) -> None:
        runner.run = AsyncMock(return_value=_ok("FMR0223C13000649\n"))
        remote = settings.model_copy(update={"hdc_server": "192.168.18.67", "hdc_server_port": "8710"})

        devices = await OhosDevices(sdk, runner, remote).discover()

        assert runner.run.call_args.args[0][1:3] == ["-s", "192.168.18.67:8710"]
        assert devices[0].hdc_command(["shell"]) == [sdk.hdc_path, "-s", "192.168.18.67:8710", "shell"]
