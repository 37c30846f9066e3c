"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from ohkit.build.assembler import FlutterAssembler
from ohkit.build.builder import OhosHvigorBuilder
from ohkit.build.hvigor import Hvigor
from ohkit.build.project import OhosProject
from ohkit.config import Settings, get_settings
from ohkit.device.device import OhosDevice
from ohkit.device.discovery import OhosDevices
from ohkit.sdk.doctor import OhosValidator
from ohkit.sdk.sdk import HarmonySdk, locate_harmony_sdk
from ohkit.shared.enums import BuildMode, OhosArch, ValidationType
from ohkit.shared.exceptions import OhkitError, ToolExit
from ohkit.shared.models import BuildInfo, DebuggingOptions, OhosBuildInfo
from ohkit.shared.process import ProcessRunner

app = typer.Typer(help="Build, install and debug Flutter apps on OpenHarmony devices")
build_app = typer.Typer(help="Build OpenHarmony packages")
app.add_typer(build_app, name="build")

_PROJECT_OPTION = typer.Option(Path("."), "--project", "-p", help="Flutter project directory")
_MODE_OPTION = typer.Option(BuildMode.DEBUG, "--mode", help="Build mode")
_FLAVOR_OPTION = typer.Option(None, "--flavor", help="hvigor product")
_ARCH_OPTION = typer.Option(None, "--target-arch", help="Target ABIs, repeatable")


def _builder(settings: Settings, sdk: HarmonySdk | None, runner: ProcessRunner) -> OhosHvigorBuilder:
    return OhosHvigorBuilder(
        Hvigor(runner, timeout=settings.build_timeout_seconds),
        FlutterAssembler(runner, settings),
        settings,
        sdk=sdk,
    )


def _registry(settings: Settings) -> OhosDevices:
    sdk = locate_harmony_sdk(settings)
    runner = ProcessRunner(timeout=settings.hdc_timeout_seconds)
    return OhosDevices(sdk, runner, settings, builder=_builder(settings, sdk, runner))


def _build_info(
    mode: BuildMode,
    flavor: str | None,
    build_number: str | None = None,
    build_name: str | None = None,
    target_file: str = "lib/main.dart",
) -> BuildInfo:
    return BuildInfo(mode=mode, flavor=flavor, build_number=build_number, build_name=build_name, target_file=target_file)


async def _select_device(registry: OhosDevices, device_id: str | None) -> OhosDevice:
    devices = await registry.discover()
    if not devices:
        raise ToolExit("No OpenHarmony devices found. " + " ".join(registry.diagnostics))
    if device_id is None:
        return devices[0]
    for device in devices:
        if device.id == device_id:
            return device
    raise ToolExit(f"Device {device_id} not found")


def _fail(exc: OhkitError) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=exc.exit_code if isinstance(exc, ToolExit) else 1)


@app.callback()
def configure(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("devices")
def list_devices() -> None:
    """List attached OpenHarmony devices."""
    settings = get_settings()

    async def _run() -> list[str]:
        registry = _registry(settings)
        devices = await registry.discover()
        if not devices:
            return registry.diagnostics
        return [f"{device.id} • {(await device.target_platform()).value} • {await device.sdk_name_and_version()}" for device in devices]

    try:
        lines = asyncio.run(_run())
    except OhkitError as exc:
        raise _fail(exc) from None
    if not lines:
        typer.echo("No OpenHarmony devices found")
        return
    for line in lines:
        typer.echo(line)


@app.command("doctor")
def doctor() -> None:
    """Check the SDK, ohpm, node and hvigorw installation."""
    settings = get_settings()
    validator = OhosValidator(locate_harmony_sdk(settings), ProcessRunner(timeout=settings.hdc_timeout_seconds))
    result = asyncio.run(validator.validate())
    typer.echo(f"[{result.type.value}] {OhosValidator.title}")
    for message in result.messages:
        typer.echo(f"  {'✗' if message.is_error else '•'} {message.text}")
    if result.type is not ValidationType.SUCCESS:
        raise typer.Exit(code=1)


def _run_build(kind: str, project_dir: Path, ohos_build_info: OhosBuildInfo) -> Path | None:
    settings = get_settings()
    sdk = locate_harmony_sdk(settings)
    builder = _builder(settings, sdk, ProcessRunner())
    project = OhosProject.from_directory(project_dir)
    steps = {
        "hap": builder.build_hap,
        "app": builder.build_app,
        "har": builder.build_har,
        "hsp": builder.build_hsp,
    }
    try:
        return asyncio.run(steps[kind](project, ohos_build_info))
    except OhkitError as exc:
        raise _fail(exc) from None
    except NotImplementedError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _ohos_build_info(
    mode: BuildMode,
    flavor: str | None,
    archs: list[OhosArch] | None,
    build_number: str | None = None,
    build_name: str | None = None,
) -> OhosBuildInfo:
    info = _build_info(mode, flavor, build_number, build_name)
    return OhosBuildInfo(build_info=info, target_archs=archs or [OhosArch.ARM64_V8A])


@build_app.command("hap")
def build_hap(
    project: Path = _PROJECT_OPTION,
    mode: BuildMode = _MODE_OPTION,
    flavor: str | None = _FLAVOR_OPTION,
    target_arch: list[OhosArch] | None = _ARCH_OPTION,
    build_number: str | None = typer.Option(None, "--build-number"),
    build_name: str | None = typer.Option(None, "--build-name"),
) -> None:
    """Build a hap for the entry module."""
    info = _ohos_build_info(mode, flavor, target_arch, build_number=build_number, build_name=build_name)
    typer.echo(f"Built {_run_build('hap', project, info)}")


@build_app.command("app")
def build_bundle(
    project: Path = _PROJECT_OPTION,
    mode: BuildMode = typer.Option(BuildMode.RELEASE, "--mode", help="Build mode"),
    flavor: str | None = _FLAVOR_OPTION,
    target_arch: list[OhosArch] | None = _ARCH_OPTION,
    build_number: str | None = typer.Option(None, "--build-number"),
    build_name: str | None = typer.Option(None, "--build-name"),
) -> None:
    """Build an app bundle for distribution."""
    info = _ohos_build_info(mode, flavor, target_arch, build_number=build_number, build_name=build_name)
    typer.echo(f"Built {_run_build('app', project, info)}")


@build_app.command("har")
def build_har(
    project: Path = _PROJECT_OPTION,
    mode: BuildMode = typer.Option(BuildMode.RELEASE, "--mode", help="Build mode"),
    target_arch: list[OhosArch] | None = _ARCH_OPTION,
) -> None:
    """Package a Flutter module as hars."""
    _run_build("har", project, _ohos_build_info(mode, None, target_arch))


@build_app.command("hsp")
def build_hsp(project: Path = _PROJECT_OPTION, mode: BuildMode = _MODE_OPTION) -> None:
    """Build a shared package (not supported)."""
    _run_build("hsp", project, _ohos_build_info(mode, None, None))


@app.command("run")
def run_app(
    project: Path = _PROJECT_OPTION,
    device_id: str | None = typer.Option(None, "--device-id", "-d"),
    mode: BuildMode = _MODE_OPTION,
    flavor: str | None = _FLAVOR_OPTION,
    target: str = typer.Option("lib/main.dart", "--target", "-t"),
    no_debug: bool = typer.Option(False, "--no-debug"),
    host_vmservice_port: int | None = typer.Option(None, "--host-vmservice-port"),
    device_vmservice_port: int | None = typer.Option(None, "--device-vmservice-port"),
    ipv6: bool = typer.Option(False, "--ipv6"),
) -> None:
    """Build, install and launch the app on a device."""
    settings = get_settings()
    options = DebuggingOptions(
        build_info=_build_info(mode, flavor, target_file=target),
        debugging_enabled=not no_debug,
        host_vm_service_port=host_vmservice_port,
        device_vm_service_port=device_vmservice_port,
    )

    async def _run() -> str | None:
        device = await _select_device(_registry(settings), device_id)
        result = None
        try:
            result = await device.start_app(
                None,
                project=OhosProject.from_directory(project),
                debugging_options=options,
                ipv6=ipv6,
            )
        finally:
            # the printed VM service URI must stay reachable after exit
            await device.dispose(keep_forwards=result is not None and result.vm_service_uri is not None)
        if not result.started:
            raise ToolExit(f"Failed to launch the app on {device.id}")
        return result.vm_service_uri

    try:
        uri = asyncio.run(_run())
    except OhkitError as exc:
        raise _fail(exc) from None
    typer.echo(f"Dart VM service available at {uri}" if uri else "Application started")


@app.command("logs")
def logs(
    device_id: str | None = typer.Option(None, "--device-id", "-d"),
    past: bool = typer.Option(False, "--past", help="Include past flutter logs instead of clearing them"),
) -> None:
    """Stream filtered device logs until interrupted."""
    settings = get_settings()

    async def _run() -> None:
        device = await _select_device(_registry(settings), device_id)
        reader = await device.get_log_reader(include_past_logs=past)
        try:
            async for line in reader.lines():
                typer.echo(line)
        finally:
            await device.dispose()

    try:
        asyncio.run(_run())
    except OhkitError as exc:
        raise _fail(exc) from None
    except KeyboardInterrupt:
        raise typer.Exit(code=130) from None


def main() -> None:
    app()


if __name__ == "__main__":
    main()
