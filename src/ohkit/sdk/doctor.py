"""Host toolchain checks for OpenHarmony development."""

from __future__ import annotations

import logging
import platform
import re
from dataclasses import dataclass, field

from ohkit.sdk.sdk import HMOS_HOME, OHOS_SDK_ROOT, HarmonySdk
from ohkit.shared.enums import ValidationType
from ohkit.shared.exceptions import ProcessError
from ohkit.shared.process import ProcessRunner

logger = logging.getLogger(__name__)

_VERSION = re.compile(r"[0-9]+\.[0-9]+(?:\.[0-9]+)?")


@dataclass(frozen=True, slots=True)
class ValidationMessage:
    text: str
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class ValidationResult:
    type: ValidationType
    messages: list[ValidationMessage] = field(default_factory=list)


def parse_version(description: str) -> str | None:
    """Return the first ``x.y[.z]`` in a ``--version`` banner."""
    match = _VERSION.search(description)
    return match.group(0) if match else None


class OhosValidator:
    """Checks the SDK, ohpm, node and hvigorw."""

    title = "HarmonyOS toolchain - develop for HarmonyOS devices"

    def __init__(self, sdk: HarmonySdk | None, runner: ProcessRunner) -> None:
        self._sdk = sdk
        self._runner = runner

    async def validate(self) -> ValidationResult:
        validation_type = ValidationType.SUCCESS
        messages: list[ValidationMessage] = []

        if self._sdk is not None and self._sdk.is_valid_directory:
            apis = ", ".join(self._sdk.api_available) or "none"
            messages.append(ValidationMessage(f"{self._sdk.name} at {self._sdk.sdk_path}, available api versions: {apis}"))
        else:
            validation_type = ValidationType.MISSING
            if self._sdk is not None:
                messages.append(ValidationMessage(f"SDK at {self._sdk.sdk_path} is incomplete", is_error=True))
            messages.append(
                ValidationMessage(f"Unable to locate an SDK. Set {OHOS_SDK_ROOT} or {HMOS_HOME}.", is_error=True)
            )

        which = "where" if platform.system() == "Windows" else "which"
        checks = (
            ("ohpm", ["ohpm", "--version"], True),
            ("node", ["node", "--version"], True),
            ("hvigorw", [which, "hvigorw"], False),
        )
        for label, cmd, reports_version in checks:
            first_line = await self._first_line(cmd)
            if first_line is None:
                validation_type = ValidationType.MISSING
                messages.append(ValidationMessage(f"{label} is missing, install it and add it to PATH", is_error=True))
            elif reports_version:
                messages.append(ValidationMessage(f"{label} version {parse_version(first_line) or first_line}"))
            else:
                messages.append(ValidationMessage(f"{label} at {first_line}"))

        return ValidationResult(type=validation_type, messages=messages)

    async def _first_line(self, cmd: list[str]) -> str | None:
        try:
            result = await self._runner.run(cmd)
        except ProcessError as exc:
            logger.debug("%s unavailable: %s", cmd[0], exc)
            return None
        if result.exit_code != 0:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else None


class OhosWorkflow:
    """Which OpenHarmony capabilities this host supports."""

    def __init__(self, sdk: HarmonySdk | None, *, enabled: bool = True) -> None:
        self._sdk = sdk
        self._enabled = enabled

    @property
    def applies_to_host_platform(self) -> bool:
        return self._enabled

    @property
    def can_list_devices(self) -> bool:
        return self.applies_to_host_platform and self._sdk is not None and self._sdk.hdc_path is not None

    @property
    def can_launch_devices(self) -> bool:
        return self.can_list_devices
