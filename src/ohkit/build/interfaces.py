"""Protocols for the build layer, allowing devices and tests to swap implementations."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ohkit.shared.models import OhosBuildInfo

if TYPE_CHECKING:
    from ohkit.build.project import OhosProject


@runtime_checkable
class Assembler(Protocol):
    """Compiles the Dart program and stages artifacts into the flutter module."""

    async def build(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> None: ...


@runtime_checkable
class OhosBuilder(Protocol):
    """Produces installable OpenHarmony packages from a Flutter project."""

    async def build_hap(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> Path: ...

    async def build_har(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> None: ...

    async def build_app(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> Path: ...

    async def build_hsp(self, project: OhosProject, ohos_build_info: OhosBuildInfo) -> None: ...
