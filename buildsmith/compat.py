"""Which detected platforms take part in a build, and at which versions.

Detection runs every registered platform in registration order. A detector
that raises only knocks out its own platform: the error is logged and the
others are still evaluated.
"""

from __future__ import annotations

from collections.abc import Iterable

from buildsmith.buildpacks.base import Platform
from buildsmith.buildpacks.registry import find_platform
from buildsmith.errors import UnsupportedPlatformError
from buildsmith.logging import get_logger, timed_event
from buildsmith.options import BuildOptions
from buildsmith.templates import Renderer, render
from buildsmith.types import PlatformDetectorResult, RepositoryContext

logger = get_logger(__name__)


class DefaultPlatformDetector:
    def __init__(self, platforms: list[Platform]) -> None:
        self.platforms = platforms

    def detect_platforms(self, context: RepositoryContext) -> list[PlatformDetectorResult]:
        results: list[PlatformDetectorResult] = []
        for platform in self.platforms:
            if not platform.is_enabled(context):
                logger.info(f"Platform {platform.name} is disabled; skipping detection")
                continue
            try:
                with timed_event(logger, "detect", platform=platform.name) as event:
                    result = platform.detect(context)
                    event.add_property("detected", result is not None)
            except Exception:
                logger.exception(f"Detector for {platform.name} failed; treating it as not detected")
                continue
            if result is not None:
                results.append(result)
        return results


class CompatibilityResolver:
    def __init__(
        self,
        options: BuildOptions,
        platforms: list[Platform],
        detector: DefaultPlatformDetector | None = None,
    ) -> None:
        self.options = options
        self.platforms = platforms
        self.detector = detector or DefaultPlatformDetector(platforms)

    def _requested_platform(self, context: RepositoryContext) -> Platform | None:
        name = self.options.platform_name
        if not name:
            return None
        platform = find_platform(self.platforms, name)
        if platform is None:
            supported = ", ".join(p.name for p in self.platforms)
            raise UnsupportedPlatformError(
                f"Platform '{name}' is not supported. Supported platforms are: {supported}"
            )
        if not platform.is_enabled(context):
            raise UnsupportedPlatformError(f"Platform '{platform.name}' is disabled.")
        return platform

    def _map_results(
        self, results: Iterable[PlatformDetectorResult]
    ) -> dict[Platform, PlatformDetectorResult]:
        mapped: dict[Platform, PlatformDetectorResult] = {}
        for result in results:
            platform = find_platform(self.platforms, result.platform)
            if platform is None:
                logger.warning(f"Ignoring detection result for unknown platform '{result.platform}'")
                continue
            mapped.setdefault(platform, result)
        return mapped

    def get_compatible_platforms(
        self,
        context: RepositoryContext,
        prior_results: list[PlatformDetectorResult] | None = None,
    ) -> dict[Platform, PlatformDetectorResult]:
        """Ordered ``{platform: result}`` for the platforms that take part in the build.

        Each returned result carries the resolved, concrete version.
        """
        results = self.detector.detect_platforms(context) if prior_results is None else prior_results
        detected = {p: r for p, r in self._map_results(results).items() if p.is_enabled(context)}

        primary = self._requested_platform(context)
        if primary is not None and primary not in detected:
            logger.info(f"Platform {primary.name} was requested but not detected")
            detected[primary] = PlatformDetectorResult(platform=primary.name)
        if primary is None:
            if not detected:
                return {}
            primary = next(p for p in self.platforms if p in detected)

        if self.options.enable_multi_platform_build:
            selected = {
                p for p in detected if p is primary or p.is_enabled_for_multi_platform(context)
            }
        else:
            selected = {primary}

        # versions from an earlier detection pass rank below ones declared in the repo
        source = "declared" if prior_results is None else "detected"
        compatible: dict[Platform, PlatformDetectorResult] = {}
        for platform in self.platforms:
            if platform not in selected:
                continue
            result = detected[platform]
            version = platform.resolve_version(context, **{source: result.platform_version})
            compatible[platform] = result.model_copy(
                update={"platform": platform.name, "platform_version": version}
            )
        logger.info(f"Compatible platforms: {', '.join(p.name for p in compatible)}")
        return compatible

    def excluded_dirs(
        self, context: RepositoryContext, compatible: dict[Platform, PlatformDetectorResult]
    ) -> tuple[list[str], list[str]]:
        """Union of every participating platform's (intermediate, output) exclusions."""
        intermediate: list[str] = []
        output: list[str] = []
        for platform, result in compatible.items():
            for d in platform.exclude_from_intermediate(context, result):
                if d not in intermediate:
                    intermediate.append(d)
            for d in platform.exclude_from_output(context, result):
                if d not in output:
                    output.append(d)
        return intermediate, output


class PlatformsInstallationScriptProvider:
    """Joins the install fragments of every participating platform into one snippet."""

    def __init__(self, renderer: Renderer = render) -> None:
        self.render = renderer

    def get_bash_script_snippet(
        self, context: RepositoryContext, compatible: dict[Platform, PlatformDetectorResult]
    ) -> str:
        fragments = []
        for platform, result in compatible.items():
            fragment = platform.get_installer_script_snippet(context, result)
            if fragment:
                fragments.append(fragment)
        return "\n".join(fragments)

    def get_setup_script(
        self, context: RepositoryContext, compatible: dict[Platform, PlatformDetectorResult]
    ) -> str:
        """Standalone script that only installs SDKs (environment-prep flow)."""
        return self.render(
            "prep",
            {
                "platform_names": ", ".join(
                    f"{p.name}={r.platform_version}" for p, r in compatible.items()
                ),
                "platform_installation": self.get_bash_script_snippet(context, compatible),
            },
        )
