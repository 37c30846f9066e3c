"""Enumerate devices attached to hdc."""

from __future__ import annotations

import logging

from ohkit.build.interfaces import OhosBuilder
from ohkit.config import Settings
from ohkit.device.device import OhosDevice
from ohkit.device.hdc import build_hdc_command
from ohkit.sdk.sdk import OHOS_SDK_ROOT, HarmonySdk
from ohkit.shared.exceptions import ProcessError, SdkError
from ohkit.shared.process import ProcessRunner

logger = logging.getLogger(__name__)

# hdc prints these instead of ids when nothing is attached
_NO_DEVICE_MARKERS = ("[Empty]", "connect failed")


class OhosDevices:
    """Device registry backed by ``hdc list targets``."""

    def __init__(
        self,
        sdk: HarmonySdk | None,
        runner: ProcessRunner,
        settings: Settings,
        *,
        builder: OhosBuilder | None = None,
    ) -> None:
        self._sdk = sdk
        self._runner = runner
        self._settings = settings
        self._builder = builder
        self.diagnostics: list[str] = []

    async def discover(self, timeout: float | None = None) -> list[OhosDevice]:
        """Return one handle per attached device, in hdc's order.

        Raises:
            SdkError: If hdc is installed but cannot be run.
        """
        hdc_path = self._sdk.hdc_path if self._sdk else None
        if hdc_path is None or not self._runner.can_run(hdc_path):
            logger.debug("hdc unavailable, no OpenHarmony devices listed")
            return []

        cmd = build_hdc_command(hdc_path, "", ["list", "targets"], hdc_server=self._settings.hdc_server_address)
        try:
            result = await self._runner.run(cmd, check=True, timeout=timeout)
        except ProcessError as exc:
            raise SdkError(
                f'Unable to run "hdc", check your Ohos SDK installation and {OHOS_SDK_ROOT} environment variable: {exc}'
            ) from exc
        return self.parse_devices(result.stdout.strip())

    def parse_devices(self, text: str) -> list[OhosDevice]:
        if any(marker in text for marker in _NO_DEVICE_MARKERS):
            self.diagnostics.append(text)
            return []
        if self._sdk is None:
            return []
        devices = []
        for line in text.splitlines():
            device_id = line.strip()
            if not device_id:
                continue
            devices.append(
                OhosDevice(
                    device_id,
                    sdk=self._sdk,
                    runner=self._runner,
                    settings=self._settings,
                    builder=self._builder,
                    device_code_name=device_id,
                )
            )
        return devices
