"""A single OpenHarmony device reached through hdc."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from ohkit.build.application_package import OhosHap
from ohkit.build.interfaces import OhosBuilder
from ohkit.build.project import OhosProject
from ohkit.build.targets import LAUNCHABLE_PLATFORMS
from ohkit.config import Settings
from ohkit.device.hdc import build_hdc_command
from ohkit.device.log_reader import HdcLogReader
from ohkit.device.port_forwarder import OhosDevicePortForwarder
from ohkit.device.protocol_discovery import VmServiceDiscovery
from ohkit.sdk.sdk import HarmonySdk
from ohkit.shared.enums import OhosFileType, TargetPlatform
from ohkit.shared.exceptions import OhkitError, ProcessError, SdkError, ToolExit
from ohkit.shared.models import DebuggingOptions, LaunchResult, OhosBuildInfo
from ohkit.shared.process import ProcessRunner, RunResult

logger = logging.getLogger(__name__)

INSTALL_STAGING_PATH = "data/local/tmp/flutterInstallTemp"
SCREENSHOT_REMOTE_PATH = "/data/local/tmp/flutter_screenshot.jpeg"
BM_DUMP_MISSING = "error: failed to get information"

PROP_ABI_LIST = "const.product.cpu.abilist"
PROP_API_VERSION = "const.ohos.apiversion"
PROP_FULL_NAME = "const.ohos.fullname"


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``param get`` output; values may contain ``=`` but keys never do."""
    properties: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        properties[key.strip()] = value.strip()
    return properties


class OhosDevice:
    """Install, launch and inspect apps on one device.

    Device properties are read once with ``param get`` and cached; the
    first caller fetches them and concurrent callers wait on the same lock.
    """

    def __init__(
        self,
        device_id: str,
        *,
        sdk: HarmonySdk,
        runner: ProcessRunner,
        settings: Settings,
        builder: OhosBuilder | None = None,
        device_code_name: str | None = None,
    ) -> None:
        self.id = device_id
        self._sdk = sdk
        self._runner = runner
        self._settings = settings
        self._builder = builder
        self._device_code_name = device_code_name
        self._properties: dict[str, str] | None = None
        self._properties_lock = asyncio.Lock()
        self._log_reader_lock = asyncio.Lock()
        self._log_reader: HdcLogReader | None = None
        self._past_log_reader: HdcLogReader | None = None
        self._port_forwarder: OhosDevicePortForwarder | None = None
        self._package: OhosHap | None = None

    @property
    def name(self) -> str:
        return self._device_code_name or "unknown"

    def __repr__(self) -> str:
        return f"OhosDevice({self.id!r})"

    # ── Transport ──────────────────────────────────────────────

    def hdc_command(self, args: Sequence[str]) -> list[str]:
        hdc_path = self._sdk.hdc_path
        if hdc_path is None:
            raise SdkError(f"hdc not found in {self._sdk.sdk_path}")
        return build_hdc_command(hdc_path, self.id, args, hdc_server=self._settings.hdc_server_address)

    async def run_hdc_checked(self, args: Sequence[str], *, cwd: str | None = None) -> RunResult:
        """Run an hdc command, raising ``ProcessError`` on a non-zero exit."""
        return await self._runner.run(
            self.hdc_command(args),
            cwd=cwd,
            check=True,
            timeout=self._settings.hdc_timeout_seconds,
        )

    # ── Logs and ports ─────────────────────────────────────────

    async def clear_logs(self) -> None:
        await self._runner.run(self.hdc_command(["shell", "hilog", "-r"]), timeout=self._settings.hdc_timeout_seconds)

    async def get_log_reader(self, *, include_past_logs: bool = False) -> HdcLogReader:
        """Return the shared live reader, or the shared past-logs reader."""
        async with self._log_reader_lock:
            if include_past_logs:
                if self._past_log_reader is None:
                    self._past_log_reader = await HdcLogReader.create(self, self._runner, include_past_logs=True)
                return self._past_log_reader
            if self._log_reader is None:
                self._log_reader = await HdcLogReader.create(self, self._runner)
            return self._log_reader

    @property
    def port_forwarder(self) -> OhosDevicePortForwarder | None:
        if self._sdk.hdc_path is None:
            return None
        if self._port_forwarder is None:
            self._port_forwarder = OhosDevicePortForwarder(
                device_id=self.id,
                runner=self._runner,
                hdc_command=self.hdc_command,
            )
        return self._port_forwarder

    async def dispose(self, *, keep_forwards: bool = False) -> None:
        """Stop log readers and, unless ``keep_forwards``, remove port forwards."""
        for reader in (self._log_reader, self._past_log_reader):
            if reader is not None:
                reader.dispose()
        self._log_reader = None
        self._past_log_reader = None
        if self._port_forwarder is not None and not keep_forwards:
            await self._port_forwarder.dispose()

    async def take_screenshot(self, output_file: str | Path) -> None:
        await self.run_hdc_checked(["shell", "snapshot_display", "-f", SCREENSHOT_REMOTE_PATH])
        await self.run_hdc_checked(["file", "recv", SCREENSHOT_REMOTE_PATH, str(output_file)])
        await self.run_hdc_checked(["shell", "rm", SCREENSHOT_REMOTE_PATH])

    # ── Properties ─────────────────────────────────────────────

    async def _get_property(self, name: str) -> str | None:
        async with self._properties_lock:
            if self._properties is None:
                result = await self.run_hdc_checked(["shell", "param", "get"])
                self._properties = parse_properties(result.stdout)
        return self._properties.get(name)

    async def target_platform(self) -> TargetPlatform:
        """Resolve the platform from the ABI list; unknown or missing means arm64."""
        abilist = await self._get_property(PROP_ABI_LIST)
        if abilist is None or "arm64-v8a" in abilist:
            return TargetPlatform.OHOS_ARM64
        if "x64" in abilist:
            return TargetPlatform.OHOS_X64
        return TargetPlatform.OHOS_ARM64

    async def api_version(self) -> str | None:
        return await self._get_property(PROP_API_VERSION)

    async def sdk_name_and_version(self) -> str:
        return f"Ohos {await self._get_property(PROP_FULL_NAME)} (API {await self.api_version()})"

    # ── Install lifecycle ──────────────────────────────────────

    async def is_app_installed(self, app: OhosHap) -> bool:
        """Ask the bundle manager whether ``app`` is installed.

        Raises:
            ToolExit: If ``bm dump`` prints something unrecognized.
        """
        result = await self._runner.run(
            self.hdc_command(["shell", "bm", "dump", "-n", app.id]),
            timeout=self._settings.hdc_timeout_seconds,
        )
        if result.exit_code != 0:
            return False
        if app.id in result.stdout:
            return True
        if BM_DUMP_MISSING in result.stdout:
            return False
        raise ToolExit(f"unknown result for bm dump: {result.stdout.strip()}")

    async def install_app(self, app: OhosHap) -> bool:
        """Install ``app``, uninstalling a previous version once if the first attempt fails."""
        was_installed = await self.is_app_installed(app)
        if await self._install_app(app):
            return True
        logger.warning("failed to install %s", app.name)
        if not was_installed:
            return False
        logger.info("uninstalling old version of %s", app.id)
        if not await self.uninstall_app(app):
            logger.error("uninstalling old version of %s failed", app.id)
            return False
        if not await self._install_app(app):
            logger.error("failed to install %s again", app.name)
            return False
        return True

    async def _install_app(self, app: OhosHap) -> bool:
        package = app.application_package
        if not package.is_file():
            raise ToolExit(f"Failed to get the hap file: {package}")

        logger.info("installing hap, bundle name %s", app.id)
        hsp_files = [
            OhosProject.signed_file(
                module_path=module.src_path,
                module_name=module.name,
                flavor=module.flavor,
                file_type=OhosFileType.HSP,
            )
            for module in app.build_data.shared_modules
        ]
        commands = [
            ["shell", "rm", "-rf", INSTALL_STAGING_PATH],
            ["shell", "mkdir", INSTALL_STAGING_PATH],
            *(["file", "send", str(hsp), INSTALL_STAGING_PATH] for hsp in hsp_files),
            ["file", "send", str(package), INSTALL_STAGING_PATH],
            ["shell", "bm", "install", "-p", INSTALL_STAGING_PATH],
            ["shell", "rm", "-rf", INSTALL_STAGING_PATH],
        ]
        for args in commands:
            result = await self._runner.run(self.hdc_command(args), timeout=self._settings.hdc_timeout_seconds)
            # hdc exits 0 on many failures
            if result.exit_code != 0 or "error" in result.stdout:
                logger.error("install step failed: %s", result)
                return False
        return True

    async def uninstall_app(self, app: OhosHap) -> bool:
        result = await self._runner.run(self.hdc_command(["uninstall", app.id]), timeout=self._settings.hdc_timeout_seconds)
        if result.exit_code != 0:
            logger.error("uninstall of %s failed: %s", app.id, result)
            return False
        return True

    async def stop_app(self, app: OhosHap | None) -> bool:
        """Force-stop ``app``; failures are logged and reported as ``False``."""
        if app is None:
            return False
        try:
            result = await self._runner.run(
                self.hdc_command(["shell", "aa", "force-stop", app.id]),
                timeout=self._settings.hdc_timeout_seconds,
            )
        except ProcessError as exc:
            logger.warning("failed to stop %s: %s", app.id, exc)
            return False
        return result.exit_code == 0

    # ── Launch ─────────────────────────────────────────────────

    async def start_app(
        self,
        package: OhosHap | None,
        *,
        debugging_options: DebuggingOptions,
        project: OhosProject | None = None,
        prebuilt_application: bool = False,
        main_path: str | None = None,
        ipv6: bool = False,
    ) -> LaunchResult:
        """Build (unless prebuilt), install and start the app.

        With debugging enabled in debug or profile mode, waits for the VM
        service URI announced in the device log.
        ``main_path`` overrides the Dart entrypoint of the build.

        Raises:
            ToolExit: If no package could be produced.
        """
        platform = await self.target_platform()
        if platform not in LAUNCHABLE_PLATFORMS:
            logger.error("%s is not a launchable platform", platform.value)
            return LaunchResult.failed()
        build_info = debugging_options.build_info
        if main_path:
            build_info = build_info.model_copy(update={"target_file": main_path})

        if not prebuilt_application:
            if self._builder is None or project is None:
                raise ToolExit("Cannot build the Ohos application: no builder or project configured.")
            logger.debug("building hap for %s", platform.value)
            await self._builder.build_hap(
                project,
                OhosBuildInfo(build_info=build_info, target_archs=[platform.arch]),
            )
            package = OhosHap.from_ohos_project(project, build_info)
        if package is None:
            raise ToolExit("Problem building Ohos application: see above error(s).")

        logger.debug("stopping %s on %s", package.name, self.name)
        await self.stop_app(package)
        if not await self.install_app(package):
            return LaunchResult.failed()

        main_element = package.build_data.module_info.main_element
        if main_element is None:
            logger.error("the entry module of %s declares no mainElement", package.id)
            return LaunchResult.failed()

        discovery: VmServiceDiscovery | None = None
        try:
            if debugging_options.debugging_enabled:
                # a dedicated reader, since cancelling discovery stops it
                discovery = VmServiceDiscovery(
                    await HdcLogReader.create(self, self._runner),
                    port_forwarder=self.port_forwarder,
                    host_port=debugging_options.host_vm_service_port,
                    device_port=debugging_options.device_vm_service_port,
                    ipv6=ipv6,
                )

            result = await self.run_hdc_checked(["shell", "aa", "start", "-a", main_element, "-b", package.id])
            # aa start exits 0 even on failure
            if "error" in result.stdout.lower():
                logger.error("%s", result.stdout.strip())
                return LaunchResult.failed()

            self._package = package
            if discovery is None or not (build_info.is_debug or build_info.is_profile):
                return LaunchResult.succeeded()

            logger.debug("waiting for the vm service to be available")
            timeout = self._settings.vm_service_timeout_seconds
            try:
                uri = await discovery.uri(timeout=timeout)
            except asyncio.TimeoutError:
                logger.error("error waiting for a debug connection: no vm service announced within %ds", timeout)
                return LaunchResult.failed()
            except OhkitError as exc:
                logger.error("error waiting for a debug connection: %s", exc)
                return LaunchResult.failed()
            if uri is None:
                logger.error("error waiting for a debug connection: the log reader stopped unexpectedly")
                return LaunchResult.failed()
            return LaunchResult.succeeded(uri)
        finally:
            if discovery is not None:
                await discovery.cancel()
