"""TCP port forwarding through ``hdc fport``."""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Callable, Sequence

from ohkit.shared.exceptions import HdcError, ProcessError
from ohkit.shared.models import ForwardedPort
from ohkit.shared.process import ProcessRunner

logger = logging.getLogger(__name__)

_RANDOM_PORT_MIN = 50000
_RANDOM_PORT_MAX = 65535

_PORT_NUMBER = re.compile(r"\s*(\d+)")


def random_host_port() -> int:
    """Return a pseudo-random port in ``[50000, 65535)``."""
    return random.randrange(_RANDOM_PORT_MIN, _RANDOM_PORT_MAX)


def _extract_port(segment: str) -> int | None:
    match = _PORT_NUMBER.match(segment)
    return int(match.group(1)) if match else None


class OhosDevicePortForwarder:
    """Maps host TCP ports to device TCP ports for one device.

    hdc rejects a host port of ``0``, so an omitted port is replaced by a
    random one before the mapping is requested.
    """

    def __init__(
        self,
        *,
        device_id: str,
        runner: ProcessRunner,
        hdc_command: Callable[[Sequence[str]], list[str]],
    ) -> None:
        self._device_id = device_id
        self._runner = runner
        self._hdc_command = hdc_command

    async def forward(self, device_port: int, host_port: int | None = None) -> int:
        """Forward ``host_port`` (random when omitted or 0) to ``device_port``.

        Returns:
            The host port in use.

        Raises:
            HdcError: If hdc reports an error.
        """
        if not host_port:
            host_port = random_host_port()

        result = await self._runner.run(self._hdc_command(["fport", f"tcp:{host_port}", f"tcp:{device_port}"]))
        if result.stderr.strip():
            raise HdcError(f"hdc returned error:\n{result.stderr}", result=result)
        if result.exit_code != 0:
            if result.stdout.strip():
                raise HdcError(f"hdc returned error:\n{result.stdout}", result=result)
            raise HdcError("hdc failed without a message", result=result)
        # observed success output is "Forwardport result:OK"
        if result.stdout.strip() and "OK" not in result.stdout:
            raise HdcError(f"hdc returned error:\n{result.stdout}", result=result)

        logger.info("forwarded tcp:%d -> tcp:%d on %s", host_port, device_port, self._device_id)
        return host_port

    async def unforward(self, forwarded_port: ForwardedPort) -> None:
        """Remove one mapping; failures are logged, never raised."""
        cmd = self._hdc_command(["fport", "rm", f"tcp:{forwarded_port.host_port}", f"tcp:{forwarded_port.device_port}"])
        try:
            result = await self._runner.run(cmd)
        except ProcessError as exc:
            logger.error("failed to unforward port %d: %s", forwarded_port.host_port, exc)
            return
        if result.exit_code != 0:
            logger.error("failed to unforward port: %s", result)

    async def forwarded_ports(self) -> list[ForwardedPort]:
        """List this device's active mappings from ``hdc fport ls``."""
        try:
            result = await self._runner.run(self._hdc_command(["fport", "ls"]), check=True)
        except ProcessError as exc:
            logger.error("failed to list forwarded ports: %s", exc)
            return []

        ports: list[ForwardedPort] = []
        for line in result.stdout.strip().splitlines():
            if not line.startswith(self._device_id):
                continue
            parts = line.split("tcp:")
            if len(parts) != 3:
                continue
            host_port = _extract_port(parts[1])
            device_port = _extract_port(parts[2])
            if host_port is None or device_port is None:
                continue
            ports.append(ForwardedPort(host_port=host_port, device_port=device_port))
        return ports

    async def dispose(self) -> None:
        for port in await self.forwarded_ports():
            await self.unforward(port)
