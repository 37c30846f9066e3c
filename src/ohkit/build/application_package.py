"""Installable package handle for a built hap."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from ohkit.build.build_data import get_flavor
from ohkit.build.project import OhosProject
from ohkit.shared.enums import OhosFileType
from ohkit.shared.models import BuildInfo, OhosBuildData


class OhosHap(BaseModel):
    """A signed hap plus the project metadata needed to install and launch it."""

    model_config = {"frozen": True}

    id: str
    application_package: Path
    build_data: OhosBuildData
    flavor: str

    @property
    def name(self) -> str:
        return self.application_package.name

    @classmethod
    def from_ohos_project(cls, project: OhosProject, build_info: BuildInfo | None = None) -> OhosHap | None:
        """Resolve the package of the project's entry module, or ``None`` without an ohos project."""
        if not project.exists():
            return None
        flavor = get_flavor(project.build_profile_file, build_info.flavor if build_info else None)
        data = project.build_data()
        module_info = data.module_info.with_flavor(flavor)
        app_info = data.app_info.model_copy(update={"bundle_name": data.bundle_name_for(flavor)})
        data = data.model_copy(update={"app_info": app_info, "module_info": module_info})
        hap = OhosProject.signed_file(
            module_path=module_info.main_module_src_path,
            module_name=module_info.main_module_name,
            flavor=flavor,
            file_type=OhosFileType.HAP,
        )
        unsigned = OhosProject.signed_file(
            module_path=module_info.main_module_src_path,
            module_name=module_info.main_module_name,
            flavor=flavor,
            file_type=OhosFileType.HAP,
            signed=False,
        )
        if not hap.is_file() and unsigned.is_file():
            hap = unsigned
        return cls(id=app_info.bundle_name, application_package=hap, build_data=data, flavor=flavor)
