"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class TargetPlatform(str, Enum):
    """Flutter target platform names for OpenHarmony."""

    OHOS_ARM64 = "ohos-arm64"
    OHOS_ARM = "ohos-arm"
    OHOS_X64 = "ohos-x64"

    @property
    def arch(self) -> OhosArch:
        return _PLATFORM_ARCH[self]


@unique
class OhosArch(str, Enum):
    """Native ABI directory names."""

    ARMEABI_V7A = "armeabi-v7a"
    ARM64_V8A = "arm64-v8a"
    X86_64 = "x86_64"

    @property
    def platform(self) -> TargetPlatform:
        return _ARCH_PLATFORM[self]


_PLATFORM_ARCH = {
    TargetPlatform.OHOS_ARM64: OhosArch.ARM64_V8A,
    TargetPlatform.OHOS_ARM: OhosArch.ARMEABI_V7A,
    TargetPlatform.OHOS_X64: OhosArch.X86_64,
}
_ARCH_PLATFORM = {arch: platform for platform, arch in _PLATFORM_ARCH.items()}


@unique
class BuildMode(str, Enum):
    """Flutter build modes."""

    DEBUG = "debug"
    PROFILE = "profile"
    RELEASE = "release"


@unique
class ModuleType(str, Enum):
    """Module kinds declared in ``module.json5``."""

    ENTRY = "entry"
    HAR = "har"
    SHARED = "shared"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str | None) -> ModuleType:
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@unique
class OhosFileType(str, Enum):
    """Packaged artifact kinds produced by hvigor."""

    HAP = "hap"
    HAR = "har"
    HSP = "hsp"
    APP = "app"


@unique
class LogReaderState(str, Enum):
    """Classifier mode for hilog line filtering."""

    NORMAL = "normal"
    IN_CRASH = "in_crash"


@unique
class ValidationType(str, Enum):
    """Doctor validation outcome."""

    SUCCESS = "success"
    PARTIAL = "partial"
    MISSING = "missing"
