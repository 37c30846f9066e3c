"""Protocols for the device layer."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ohkit.shared.models import ForwardedPort


@runtime_checkable
class PortForwarder(Protocol):
    """Maps host TCP ports to device TCP ports."""

    async def forward(self, device_port: int, host_port: int | None = None) -> int: ...

    async def unforward(self, forwarded_port: ForwardedPort) -> None: ...

    async def forwarded_ports(self) -> list[ForwardedPort]: ...

    async def dispose(self) -> None: ...
