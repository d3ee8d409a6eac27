"""Dynamic SDK installation.

An SDK version counts as installed when either

- it ships with the build image (a directory under the built-in root), or
- a previous build installed it under the dynamic root *and* wrote the sentinel.

The generated install fragment writes the sentinel as its very last step, so a
version directory without one is a partial install and is installed again.
"""

from __future__ import annotations

from pathlib import Path

from buildsmith.catalog import versions_dir
from buildsmith.errors import ConfigurationMissingError
from buildsmith.logging import get_logger
from buildsmith.options import BuildOptions
from buildsmith.templates import Renderer, render

logger = get_logger(__name__)

SENTINEL_FILE_NAME = ".sdk-download-sentinel"
CHECKSUM_HEADER_NAME = "x-ms-meta-checksum"
STORAGE_BASE_URL_SETTING = "SDK_STORAGE_BASE_URL"


def find_version_dir(directory: Path, version: str) -> Path | None:
    if not directory.is_dir():
        return None
    wanted = version.lower()
    for child in directory.iterdir():
        if child.is_dir() and child.name.lower() == wanted:
            return child
    return None


class PlatformInstaller:
    def __init__(
        self, options: BuildOptions, platform_name: str, renderer: Renderer = render
    ) -> None:
        self.options = options
        self.platform_name = platform_name
        self.render = renderer

    @property
    def built_in_dir(self) -> Path:
        return versions_dir(self.options.built_in_install_root_dir, self.platform_name)

    @property
    def dynamic_install_dir(self) -> Path:
        return versions_dir(self.options.dynamic_install_root_dir, self.platform_name)

    def install_dir(self, version: str) -> Path:
        return self.dynamic_install_dir / version

    def is_version_installed(self, version: str) -> bool:
        if find_version_dir(self.built_in_dir, version):
            logger.info(f"{self.platform_name} {version} found in {self.built_in_dir}")
            return True
        found = find_version_dir(self.dynamic_install_dir, version)
        if found is None:
            logger.info(f"{self.platform_name} {version} is not installed")
            return False
        if not (found / SENTINEL_FILE_NAME).is_file():
            logger.info(
                f"{self.platform_name} {version} directory {found} has no {SENTINEL_FILE_NAME}; "
                "treating it as a partial install"
            )
            return False
        return True

    def storage_base_url(self) -> str:
        url = self.options.sdk_storage_base_url
        if not url:
            raise ConfigurationMissingError(
                STORAGE_BASE_URL_SETTING,
                f"It is needed to download {self.platform_name} when dynamic install is enabled.",
            )
        return url.rstrip("/")

    def get_installer_script_snippet(
        self, version: str, directory_to_install: str | Path | None = None
    ) -> str:
        install_dir = Path(directory_to_install) if directory_to_install else self.install_dir(version)
        return self.render(
            "installer",
            {
                "platform_name": self.platform_name,
                "version": version,
                "install_dir": install_dir,
                "storage_base_url": self.storage_base_url(),
                "checksum_header": CHECKSUM_HEADER_NAME,
                "sentinel_file": SENTINEL_FILE_NAME,
            },
        )
