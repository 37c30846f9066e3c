"""Frozen Pydantic domain models shared by all modules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ohkit.shared.enums import BuildMode, ModuleType, OhosArch

FLAVOR_DEFAULT = "default"
BUILD_NUMBER_DEFAULT = "1000000"
BUILD_NAME_DEFAULT = "1.0.0"
OHOS_ENTRY_DEFAULT = "entry"
OHOS_SDK_INT_DEFAULT = 11


class AppInfo(BaseModel):
    """Application identity from ``AppScope/app.json5``."""

    model_config = {"frozen": True, "populate_by_name": True}

    bundle_name: str = Field(alias="bundleName")
    version_code: int = Field(default=int(BUILD_NUMBER_DEFAULT), alias="versionCode")
    version_name: str = Field(default=BUILD_NAME_DEFAULT, alias="versionName")

    @field_validator("version_code", mode="before")
    @classmethod
    def _default_version_code(cls, value: Any) -> Any:
        return int(BUILD_NUMBER_DEFAULT) if value is None else value

    @field_validator("version_name", mode="before")
    @classmethod
    def _default_version_name(cls, value: Any) -> Any:
        return BUILD_NAME_DEFAULT if value is None else value


class OhosModule(BaseModel):
    """One hvigor module as declared by its ``module.json5``."""

    model_config = {"frozen": True}

    name: str
    src_path: str
    type: ModuleType = ModuleType.UNKNOWN
    is_entry: bool = False
    main_element: str | None = None
    flavor: str = FLAVOR_DEFAULT


class ModuleInfo(BaseModel):
    """Ordered module list of an hvigor project."""

    model_config = {"frozen": True}

    module_list: list[OhosModule] = Field(default_factory=list)

    @property
    def has_entry_module(self) -> bool:
        return any(module.is_entry for module in self.module_list)

    @property
    def entry_module(self) -> OhosModule | None:
        return next((module for module in self.module_list if module.is_entry), None)

    @property
    def main_element(self) -> str | None:
        entry = self.entry_module
        return entry.main_element if entry else None

    @property
    def main_module_name(self) -> str:
        """Entry module name, else the first module, else ``entry``."""
        entry = self.entry_module
        if entry:
            return entry.name
        return self.module_list[0].name if self.module_list else OHOS_ENTRY_DEFAULT

    @property
    def main_module_src_path(self) -> str:
        entry = self.entry_module
        if entry:
            return entry.src_path
        return self.module_list[0].src_path if self.module_list else OHOS_ENTRY_DEFAULT

    def of_type(self, module_type: ModuleType) -> list[OhosModule]:
        return [module for module in self.module_list if module.type is module_type]

    def with_flavor(self, flavor: str) -> ModuleInfo:
        return ModuleInfo(module_list=[m.model_copy(update={"flavor": flavor}) for m in self.module_list])


class OhosBuildData(BaseModel):
    """Logical view of one hvigor project, re-parsed for every build."""

    model_config = {"frozen": True}

    app_info: AppInfo
    module_info: ModuleInfo
    api_version: int = OHOS_SDK_INT_DEFAULT
    products: list[dict[str, Any]] | None = None

    @property
    def har_modules(self) -> list[OhosModule]:
        return self.module_info.of_type(ModuleType.HAR)

    @property
    def shared_modules(self) -> list[OhosModule]:
        return self.module_info.of_type(ModuleType.SHARED)

    def bundle_name_for(self, flavor: str) -> str:
        """Return the product-specific bundle name for ``flavor`` if one is declared."""
        for product in self.products or []:
            if product.get("name") == flavor and product.get("bundleName"):
                return str(product["bundleName"])
        return self.app_info.bundle_name


class Plugin(BaseModel):
    """A Flutter plugin that ships an ``ohos`` implementation."""

    model_config = {"frozen": True}

    name: str
    path: str


class ForwardedPort(BaseModel):
    """A host TCP port mapped onto a device TCP port."""

    model_config = {"frozen": True}

    host_port: int
    device_port: int


class BuildInfo(BaseModel):
    """User-selected build configuration."""

    model_config = {"frozen": True}

    mode: BuildMode = BuildMode.DEBUG
    flavor: str | None = None
    build_number: str | None = None
    build_name: str | None = None
    target_file: str = "lib/main.dart"

    @property
    def is_debug(self) -> bool:
        return self.mode is BuildMode.DEBUG

    @property
    def is_profile(self) -> bool:
        return self.mode is BuildMode.PROFILE

    @property
    def is_release(self) -> bool:
        return self.mode is BuildMode.RELEASE

    def to_build_system_environment(self) -> dict[str, str]:
        defines = {"BuildMode": self.mode.value, "TargetFile": self.target_file}
        if self.flavor:
            defines["Flavor"] = self.flavor
        return defines


class OhosBuildInfo(BaseModel):
    """Build configuration plus the native ABIs to compile for."""

    model_config = {"frozen": True}

    build_info: BuildInfo = Field(default_factory=BuildInfo)
    target_archs: list[OhosArch] = Field(default_factory=lambda: [OhosArch.ARM64_V8A])


class DebuggingOptions(BaseModel):
    """Launch options affecting VM service discovery."""

    model_config = {"frozen": True}

    build_info: BuildInfo = Field(default_factory=BuildInfo)
    debugging_enabled: bool = True
    host_vm_service_port: int | None = None
    device_vm_service_port: int | None = None


class LaunchResult(BaseModel):
    """Outcome of ``OhosDevice.start_app``."""

    model_config = {"frozen": True}

    started: bool
    vm_service_uri: str | None = None

    @classmethod
    def succeeded(cls, vm_service_uri: str | None = None) -> LaunchResult:
        return cls(started=True, vm_service_uri=vm_service_uri)

    @classmethod
    def failed(cls) -> LaunchResult:
        return cls(started=False)
