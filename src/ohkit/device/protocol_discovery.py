"""Discover the Dart VM service URI announced in device logs."""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import urlsplit, urlunsplit

from ohkit.device.interfaces import PortForwarder
from ohkit.device.log_reader import HdcLogReader

logger = logging.getLogger(__name__)

# flutter The Dart VM service is listening on http://0.0.0.0:34063/nBIFd7ZPwk0=/
_VM_SERVICE_PATTERN = re.compile(r"(?:Observatory|Dart VM service) (?:is )?listening on (https?://\S+)")


class VmServiceDiscovery:
    """Scans a log reader for the VM service URI and forwards its port.

    Subscribes immediately so no line printed after construction is missed.
    """

    def __init__(
        self,
        log_reader: HdcLogReader,
        *,
        port_forwarder: PortForwarder | None = None,
        host_port: int | None = None,
        device_port: int | None = None,
        ipv6: bool = False,
    ) -> None:
        self._subscription = log_reader.subscribe()
        self._port_forwarder = port_forwarder
        self._host_port = host_port
        self._device_port = device_port
        self._ipv6 = ipv6

    async def uri(self, timeout: float | None = None) -> str | None:
        """Wait for the URI.

        Returns:
            The host-reachable URI, or ``None`` if the log stream ended first.

        Raises:
            asyncio.TimeoutError: If nothing was announced within ``timeout``.
        """
        return await asyncio.wait_for(self._wait_for_uri(), timeout=timeout)

    async def cancel(self) -> None:
        self._subscription.cancel()

    async def _wait_for_uri(self) -> str | None:
        async for line in self._subscription:
            match = _VM_SERVICE_PATTERN.search(line)
            if match:
                return await self._forward(match.group(1))
        return None

    async def _forward(self, raw_uri: str) -> str:
        parsed = urlsplit(raw_uri)
        if self._port_forwarder is None:
            return raw_uri
        device_port = self._device_port or parsed.port
        if device_port is None:
            return raw_uri
        host_port = await self._port_forwarder.forward(device_port, host_port=self._host_port)
        host = "[::1]" if self._ipv6 else "127.0.0.1"
        uri = urlunsplit(parsed._replace(netloc=f"{host}:{host_port}"))
        logger.info("vm service %s forwarded to %s", raw_uri, uri)
        return uri
