"""Platform capability interface.

Every platform adapter subclasses :class:`Platform`; the compatibility resolver,
the orchestrator and the environment-prep flow only ever talk to this
interface, never to a concrete adapter.
"""

from __future__ import annotations

from buildsmith.catalog import VersionProvider
from buildsmith.detect.base import PlatformDetector
from buildsmith.installer.base import PlatformInstaller
from buildsmith.logging import get_logger, log_event
from buildsmith.options import BuildOptions
from buildsmith.repo import SourceRepo
from buildsmith.templates import Renderer, render
from buildsmith.types import (
    BuildScriptSnippet,
    PlatformDetectorResult,
    RepositoryContext,
    VersionCatalog,
)
from buildsmith.versioning import resolve_version, select_requested_version

logger = get_logger(__name__)


class Platform:
    name: str = ""
    aliases: tuple[str, ...] = ()
    # key passed to the benv script ("python=3.8.18")
    tool_name: str = ""
    manifest_version_key: str = ""

    def __init__(
        self,
        options: BuildOptions,
        versions: VersionProvider,
        detector: PlatformDetector,
        installer: PlatformInstaller | None = None,
        renderer: Renderer = render,
    ) -> None:
        self.options = options
        self.versions = versions
        self.detector = detector
        self.installer = installer or PlatformInstaller(options, self.name, renderer)
        self.render = renderer

    def __repr__(self) -> str:
        return f"<Platform {self.name}>"

    def matches(self, name: str) -> bool:
        name = name.strip().lower()
        return name == self.name or name in self.aliases

    # -- detection -------------------------------------------------------

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None:
        return self.detector.detect(context)

    def is_enabled(self, context: RepositoryContext) -> bool:
        return self.options.is_platform_enabled(self.name)

    def is_enabled_for_multi_platform(self, context: RepositoryContext) -> bool:
        return True

    def is_clean_repo(self, repo: SourceRepo) -> bool:
        """False when the source tree already holds build artifacts for this platform."""
        return True

    # -- versions --------------------------------------------------------

    def catalog(self) -> VersionCatalog:
        return self.versions.get_catalog(self.name)

    @property
    def supported_versions(self) -> list[str]:
        return self.catalog().versions

    def resolve_version(
        self,
        context: RepositoryContext,
        declared: str | None = None,
        detected: str | None = None,
    ) -> str:
        catalog = self.catalog()
        requested = select_requested_version(
            explicit=self.options.version_for(self.name),
            declared=declared,
            detected=detected,
            configured_default=self.options.default_version_for(self.name)
            or catalog.default_version,
        )
        version = resolve_version(requested, catalog, self.name)
        logger.info(f"Resolved {self.name} version '{requested}' to '{version}'")
        return version

    def tool_versions(self, result: PlatformDetectorResult) -> dict[str, str]:
        if not result.platform_version:
            return {}
        return {self.tool_name or self.name: result.platform_version}

    # -- script generation -----------------------------------------------

    def get_installer_script_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> str | None:
        """Install fragment for the resolved version, or ``None`` when nothing is needed."""
        version = result.platform_version
        if not self.options.enable_dynamic_install:
            logger.info(f"Dynamic install is disabled; not installing {self.name} {version}")
            return None
        if self.installer.is_version_installed(version):
            logger.info(f"{self.name} {version} is already installed")
            return None
        return self.installer.get_installer_script_snippet(version)

    def generate_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> BuildScriptSnippet:
        raise NotImplementedError

    def exclude_from_intermediate(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> list[str]:
        return []

    def exclude_from_output(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> list[str]:
        return []

    # -- helpers ---------------------------------------------------------

    def log_dependencies(self, version: str, deps: list[str]) -> None:
        log_event(
            logger,
            "dependencies",
            {"platform": self.name, "version": version, "dependencies": deps},
        )
