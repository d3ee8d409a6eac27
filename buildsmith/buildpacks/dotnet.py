""".NET buildpack.

The detector reports the runtime the project targets; the SDK that builds it
comes from, in order: ``global.json``, the SDK recorded next to an installed
runtime, or the catalog's runtime -> SDK mapping.
"""

from __future__ import annotations

from buildsmith.buildpacks.base import Platform, logger
from buildsmith.errors import UnsupportedVersionError
from buildsmith.installer.dotnet import DotNetInstaller
from buildsmith.types import BuildScriptSnippet, PlatformDetectorResult, RepositoryContext

SDK_VERSION_PROPERTY = "sdk_version"
PROJECT_FILE_PROPERTY = "project_file"
MANIFEST_SDK_VERSION = "DotNetCoreSdkVersion"
BUILD_CONFIGURATION = "Release"


class DotNetPlatform(Platform):
    name = "dotnet"
    aliases = ("dotnetcore", "dotnet-core")
    tool_name = "dotnet"
    manifest_version_key = "DotNetCoreRuntimeVersion"

    installer: DotNetInstaller

    def sdk_version(self, result: PlatformDetectorResult) -> str:
        runtime = result.platform_version or ""
        sdk = (
            result.additional_properties.get(SDK_VERSION_PROPERTY)
            or self.installer.installed_sdk_version(runtime)
            or self.catalog().companions.get(runtime)
        )
        if not sdk:
            raise UnsupportedVersionError(self.name, runtime, self.catalog().companions)
        return sdk

    def tool_versions(self, result: PlatformDetectorResult) -> dict[str, str]:
        if not result.platform_version:
            return {}
        return {self.tool_name: self.sdk_version(result)}

    def get_installer_script_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> str | None:
        runtime = result.platform_version
        if not self.options.enable_dynamic_install:
            logger.info(f"Dynamic install is disabled; not installing dotnet {runtime}")
            return None
        pinned_sdk = result.additional_properties.get(SDK_VERSION_PROPERTY)
        if pinned_sdk:
            if self.installer.is_sdk_installed(pinned_sdk):
                logger.info(f"dotnet SDK {pinned_sdk} from global.json is already installed")
                return None
        elif self.installer.is_version_installed(runtime):
            logger.info(f"dotnet runtime {runtime} is already installed")
            return None
        return self.installer.get_dotnet_installer_script_snippet(runtime, self.sdk_version(result))

    def generate_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> BuildScriptSnippet:
        runtime = result.platform_version or ""
        sdk = self.sdk_version(result)
        project = result.additional_properties.get(PROJECT_FILE_PROPERTY, "")
        script = self.render(
            "dotnet",
            {
                "sdk_dir": self.installer.sdk_dir(sdk),
                "project_file": project,
                "configuration": BUILD_CONFIGURATION,
            },
        )
        return BuildScriptSnippet(
            script_text=script,
            build_properties={self.manifest_version_key: runtime, MANIFEST_SDK_VERSION: sdk},
            copy_source_to_destination=False,
        )

    def exclude_from_intermediate(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> list[str]:
        return ["bin", "obj"]
