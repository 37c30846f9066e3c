"""Named ``flutter assemble`` targets used by OpenHarmony builds."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ohkit.shared.enums import BuildMode, OhosArch, TargetPlatform
from ohkit.shared.exceptions import ToolExit
from ohkit.shared.models import BuildInfo

LAUNCHABLE_PLATFORMS = (TargetPlatform.OHOS_ARM64, TargetPlatform.OHOS_X64)


class Target(BaseModel):
    """A node of the assemble DAG."""

    model_config = {"frozen": True}

    name: str
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


KERNEL_SNAPSHOT = Target(
    name="kernel_snapshot",
    inputs=["{PROJECT_DIR}/.dart_tool/package_config_subset"],
    outputs=["{BUILD_DIR}/app.dill"],
)

OHOS_ASSET_BUNDLE = Target(
    name="aot_ohos_asset_bundle",
    inputs=["{PROJECT_DIR}/pubspec.yaml"],
    outputs=["{OUTPUT_DIR}/flutter_assets/AssetManifest.json"],
)

DEBUG_OHOS_APPLICATION = Target(
    name="debug_ohos_application",
    outputs=[
        "{OUTPUT_DIR}/flutter_assets/isolate_snapshot_data",
        "{OUTPUT_DIR}/flutter_assets/kernel_blob.bin",
        "{OUTPUT_DIR}/flutter_assets/vm_snapshot_data",
    ],
    dependencies=[KERNEL_SNAPSHOT.name],
)


def _aot_name(platform: TargetPlatform, mode: BuildMode) -> str:
    return f"ohos_aot_{mode.value}_{platform.value}"


def _aot(platform: TargetPlatform, mode: BuildMode) -> Target:
    return Target(
        name=_aot_name(platform, mode),
        inputs=["{BUILD_DIR}/app.dill"],
        outputs=[f"{{BUILD_DIR}}/{platform.arch.value}/app.so"],
        dependencies=[KERNEL_SNAPSHOT.name],
    )


def _aot_bundle(platform: TargetPlatform, mode: BuildMode) -> Target:
    return Target(
        name=f"ohos_aot_bundle_{mode.value}_{platform.value}",
        outputs=[f"{{OUTPUT_DIR}}/{platform.arch.value}/app.so"],
        dependencies=[_aot_name(platform, mode), OHOS_ASSET_BUNDLE.name],
    )


OHOS_TARGETS: list[Target] = [
    KERNEL_SNAPSHOT,
    OHOS_ASSET_BUNDLE,
    DEBUG_OHOS_APPLICATION,
    *(_aot(platform, mode) for mode in (BuildMode.PROFILE, BuildMode.RELEASE) for platform in LAUNCHABLE_PLATFORMS),
    *(_aot_bundle(platform, mode) for mode in (BuildMode.PROFILE, BuildMode.RELEASE) for platform in LAUNCHABLE_PLATFORMS),
]


def assemble_target_name(build_info: BuildInfo, arch: OhosArch) -> str:
    """Return the target compiled for one build mode and ABI."""
    if build_info.is_debug:
        return DEBUG_OHOS_APPLICATION.name
    return f"ohos_aot_bundle_{build_info.mode.value}_{arch.platform.value}"


def select_target(name: str, targets: list[Target] | None = None) -> Target:
    """Return the one target called ``name``.

    Raises:
        ToolExit: If no target, or more than one, has that name.
    """
    matches = [target for target in (OHOS_TARGETS if targets is None else targets) if target.name == name]
    if not matches:
        raise ToolExit(f"No target named '{name}' defined.")
    if len(matches) > 1:
        raise ToolExit(f"Multiple targets named '{name}' defined.")
    return matches[0]


def dependency_order(name: str, targets: list[Target] | None = None) -> list[str]:
    """Return ``name`` and its transitive dependencies, dependencies first."""
    ordered: list[str] = []
    visiting: set[str] = set()

    def visit(current: str) -> None:
        if current in ordered:
            return
        if current in visiting:
            raise ToolExit(f"Target '{current}' depends on itself.")
        visiting.add(current)
        for dependency in select_target(current, targets).dependencies:
            visit(dependency)
        visiting.discard(current)
        ordered.append(current)

    visit(name)
    return ordered
