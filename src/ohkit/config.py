"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Tool-wide configuration loaded from environment variables.

    SDK, hdc server and Node locations use the well-known variable names
    shared with DevEco Studio; tool-specific knobs use the ``OHKIT_`` prefix.
    """

    model_config = {"env_prefix": "OHKIT_", "frozen": True, "populate_by_name": True}

    # OpenHarmony SDK
    ohos_home: str | None = Field(default=None, validation_alias="OHOS_HOME")
    ohos_sdk_home: str | None = Field(default=None, validation_alias="OHOS_SDK_HOME")

    # HarmonyOS SDK
    hos_sdk_home: str | None = Field(default=None, validation_alias="HOS_SDK_HOME")
    deveco_sdk_home: str | None = Field(default=None, validation_alias="DEVECO_SDK_HOME")

    # Remote hdc server, e.g. HDC_SERVER=192.168.18.67 HDC_SERVER_PORT=8710
    hdc_server: str | None = Field(default=None, validation_alias="HDC_SERVER")
    hdc_server_port: str | None = Field(default=None, validation_alias="HDC_SERVER_PORT")

    # Node runtime used by hvigor, written into local.properties
    node_home: str | None = Field(default=None, validation_alias="NODE_HOME")

    # Flutter tool used for `flutter assemble`
    flutter_bin: str = "flutter"
    # Directory holding prebuilt engine artifacts (<platform>-<mode>/flutter.har)
    engine_dir: str | None = None

    # Timeouts
    hdc_timeout_seconds: int = 60
    build_timeout_seconds: int = 3600
    vm_service_timeout_seconds: int = 120

    @property
    def hdc_server_address(self) -> str | None:
        if not self.hdc_server or not self.hdc_server_port:
            return None
        return f"{self.hdc_server}:{self.hdc_server_port}"


def get_settings() -> Settings:
    """Build settings from the environment; tests patch this factory."""
    return Settings()
