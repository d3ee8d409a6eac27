""".NET installer.

The runtime version is what the project targets; the SDK is what gets
downloaded. Layout under an install root::

    dotnet/sdks/<sdk>/                 extracted SDK (sentinel inside)
    dotnet/runtimes/<runtime>/         sdkVersion.txt + sentinel
"""

from __future__ import annotations

from pathlib import Path

from buildsmith.catalog import SDK_VERSION_FILE_NAME
from buildsmith.installer.base import SENTINEL_FILE_NAME, PlatformInstaller, find_version_dir
from buildsmith.logging import get_logger
from buildsmith.options import BuildOptions
from buildsmith.templates import Renderer, render

logger = get_logger(__name__)

PLATFORM_NAME = "dotnet"
SDKS_SUBDIR = "sdks"


class DotNetInstaller(PlatformInstaller):
    def __init__(self, options: BuildOptions, renderer: Renderer = render) -> None:
        super().__init__(options, PLATFORM_NAME, renderer)

    @property
    def built_in_sdks_dir(self) -> Path:
        return self.options.built_in_install_root_dir / PLATFORM_NAME / SDKS_SUBDIR

    @property
    def dynamic_sdks_dir(self) -> Path:
        return self.options.dynamic_install_root_dir / PLATFORM_NAME / SDKS_SUBDIR

    def sdk_dir(self, sdk_version: str) -> Path:
        """Built-in SDK directory when the image ships one, else the dynamic one."""
        built_in = find_version_dir(self.built_in_sdks_dir, sdk_version)
        return built_in or self.dynamic_sdks_dir / sdk_version

    def is_sdk_installed(self, sdk_version: str) -> bool:
        if find_version_dir(self.built_in_sdks_dir, sdk_version):
            logger.info(f"dotnet SDK {sdk_version} found in {self.built_in_sdks_dir}")
            return True
        found = find_version_dir(self.dynamic_sdks_dir, sdk_version)
        if found is None or not (found / SENTINEL_FILE_NAME).is_file():
            logger.info(f"dotnet SDK {sdk_version} is not installed in {self.dynamic_sdks_dir}")
            return False
        return True

    def installed_sdk_version(self, runtime_version: str) -> str | None:
        """SDK recorded for *runtime_version*, looking in the built-in root first."""
        for root in (self.built_in_dir, self.dynamic_install_dir):
            record = root / runtime_version / SDK_VERSION_FILE_NAME
            if record.is_file():
                return record.read_text(encoding="utf-8").strip() or None
        return None

    def get_dotnet_installer_script_snippet(self, runtime_version: str, sdk_version: str) -> str:
        sdk_installation = self.get_installer_script_snippet(
            sdk_version, directory_to_install=self.sdk_dir(sdk_version)
        )
        return self.render(
            "dotnet_installer",
            {
                "sdk_installation": sdk_installation,
                "runtime_dir": self.install_dir(runtime_version),
                "sdk_version": sdk_version,
                "sdk_version_file": SDK_VERSION_FILE_NAME,
                "sentinel_file": SENTINEL_FILE_NAME,
            },
        )
