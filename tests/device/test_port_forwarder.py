"""Tests for hdc fport forwarding."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ohkit.device.interfaces import PortForwarder
from ohkit.device.port_forwarder import OhosDevicePortForwarder
from ohkit.shared.exceptions import HdcError, ProcessError
from ohkit.shared.models import ForwardedPort
from ohkit.shared.process import RunResult

DEVICE_ID = "FMR0223C13000649"


def _result(stdout: str = "", stderr: str = "", exit_code: int = 0) -> RunResult:
    return RunResult(command=[], exit_code=exit_code, stdout=stdout, stderr=stderr)


@pytest.fixture()
def forwarder(runner: MagicMock) -> OhosDevicePortForwarder:
    return OhosDevicePortForwarder(
        device_id=DEVICE_ID,
        runner=runner,
        hdc_command=lambda args: ["hdc", "-t", DEVICE_ID, *args],
    )


class TestForward:
    async def test_explicit_host_port(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(return_value=_result("Forwardport result:OK"))

        assert await forwarder.forward(8080, host_port=51000) == 51000
        assert runner.run.call_args.args[0] == ["hdc", "-t", DEVICE_ID, "fport", "tcp:51000", "tcp:8080"]

    async def test_zero_host_port_is_random(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(return_value=_result("Forwardport result:OK"))
        ports = iter([52001, 60002])

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("ohkit.device.port_forwarder.random_host_port", lambda: next(ports))
            first = await forwarder.forward(8080, host_port=0)
            second = await forwarder.forward(8080, host_port=0)

        assert first != second
        assert all(50000 <= port < 65535 for port in (first, second))

    async def test_random_range(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(return_value=_result("Forwardport result:OK"))
        for _ in range(50):
            assert 50000 <= await forwarder.forward(8080) < 65535

    async def test_stderr_is_error(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(return_value=_result(stderr="[Fail]bind failed"))
        with pytest.raises(HdcError, match="bind failed"):
            await forwarder.forward(8080, host_port=51000)

    async def test_non_zero_exit_is_error(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(return_value=_result(exit_code=1))
        with pytest.raises(HdcError, match="without a message"):
            await forwarder.forward(8080, host_port=51000)

    async def test_stdout_without_ok_is_error(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(return_value=_result("[Fail]TCP Port listen failed at 51000"))
        with pytest.raises(HdcError, match="listen failed"):
            await forwarder.forward(8080, host_port=51000)


class TestForwardedPorts:
    async def test_parses_own_lines(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(
            return_value=_result(
                f"{DEVICE_ID}    tcp:51000 tcp:8080    [Forward]\n"
                "OTHERDEVICE    tcp:52000 tcp:9090    [Forward]\n"
                f"{DEVICE_ID}    tcp:bad tcp:8080\n"
                f"{DEVICE_ID}    localabstract:foo\n"
            )
        )

        assert await forwarder.forwarded_ports() == [ForwardedPort(host_port=51000, device_port=8080)]

    async def test_listing_failure_returns_empty(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(side_effect=ProcessError("command failed"))
        assert await forwarder.forwarded_ports() == []


class TestUnforward:
    async def test_failure_is_logged_not_raised(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(side_effect=ProcessError("binary not found: hdc"))
        await forwarder.unforward(ForwardedPort(host_port=51000, device_port=8080))

    async def test_dispose_sweeps_all(self, forwarder: OhosDevicePortForwarder, runner: MagicMock) -> None:
        runner.run = AsyncMock(
            side_effect=[
                _result(f"{DEVICE_ID} tcp:51000 tcp:8080\n{DEVICE_ID} tcp:51001 tcp:8181\n"),
                _result(),
                _result(exit_code=1),
            ]
        )

        await forwarder.dispose()

        removed = [call.args[0][3:] for call in runner.run.call_args_list[1:]]
        assert removed == [
            ["fport", "rm", "tcp:51000", "tcp:8080"],
            ["fport", "rm", "tcp:51001", "tcp:8181"],
        ]


class TestInterface:
    def test_satisfies_port_forwarder(self, forwarder: OhosDevicePortForwarder) -> None:
        assert isinstance(forwarder, PortForwarder)

    def test_rejects_partial_forwarder(self) -> None:
        class ForwardOnly:
            async def forward(self, device_port: int, host_port: int | None = None) -> int:
                return host_port or device_port

        assert not isinstance(ForwardOnly(), PortForwarder)
