"""Build orchestration: detect -> resolve -> check -> compose -> run -> manifest."""

from __future__ import annotations

import tempfile
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import httpx

from buildsmith.buildpacks.base import Platform
from buildsmith.buildpacks.registry import build_platforms, find_platform
from buildsmith.checkers import DEFAULT_CHECKERS, Checker, run_checkers
from buildsmith.compat import CompatibilityResolver, PlatformsInstallationScriptProvider
from buildsmith.composer import (
    POST_BUILD_END_MARKER,
    POST_BUILD_START_MARKER,
    PRE_BUILD_END_MARKER,
    PRE_BUILD_START_MARKER,
    ScriptComposer,
    is_nested,
)
from buildsmith.errors import InvalidUsageError, UnsupportedPlatformError
from buildsmith.execution import (
    LineCallback,
    PipDownloadEventLogger,
    TextSpan,
    TextSpanEventLogger,
    run_script,
)
from buildsmith.logging import get_logger, log_event, timed_event
from buildsmith.manifest import write_manifest
from buildsmith.options import (
    VALID_APP_TYPES,
    BuildOptions,
    canonical_platform_name,
    parse_platforms_and_versions,
)
from buildsmith.repo import LocalSourceRepo
from buildsmith.templates import Renderer, render
from buildsmith.types import (
    CheckerMessage,
    GeneratedScript,
    PlatformDetectorResult,
    RepositoryContext,
)

logger = get_logger(__name__)

BUILD_SCRIPT_NAME = "build.sh"
SETUP_SCRIPT_NAME = "setup.sh"

BUILD_SPANS = (
    TextSpan("pre_build", PRE_BUILD_START_MARKER, PRE_BUILD_END_MARKER),
    TextSpan("post_build", POST_BUILD_START_MARKER, POST_BUILD_END_MARKER),
)


@dataclass
class BuildResult:
    exit_code: int
    generated: GeneratedScript
    manifest_path: Path | None = None


def create_context(options: BuildOptions) -> RepositoryContext:
    return RepositoryContext(
        source_repo=LocalSourceRepo(options.source_dir),
        operation_id=str(uuid.uuid4()),
        properties=options.properties,
    )


def validate_build_options(options: BuildOptions) -> None:
    if not options.source_dir.is_dir():
        raise InvalidUsageError(f"Could not find the source directory '{options.source_dir}'.")
    if options.platform_version and not options.platform_name:
        raise InvalidUsageError(
            "Cannot use a platform version without specifying the platform name as well."
        )
    if options.app_type and options.app_type.lower() not in VALID_APP_TYPES:
        raise InvalidUsageError(
            f"Invalid value '{options.app_type}' for the app type. "
            f"Permitted values are: {', '.join(VALID_APP_TYPES)}."
        )
    intermediate = options.intermediate_dir
    if intermediate is not None:
        if intermediate.resolve() == options.source_dir.resolve():
            raise InvalidUsageError(
                f"Intermediate directory '{intermediate}' cannot be the same as the source directory."
            )
        if is_nested(intermediate, options.source_dir):
            raise InvalidUsageError(
                f"Intermediate directory '{intermediate}' cannot be a child of the source "
                f"directory '{options.source_dir}'."
            )


class BuildScriptGenerator:
    def __init__(
        self,
        options: BuildOptions,
        platforms: list[Platform] | None = None,
        checkers: Sequence[Checker] = DEFAULT_CHECKERS,
        renderer: Renderer = render,
        client: httpx.Client | None = None,
    ) -> None:
        self.options = options
        self.platforms = platforms or build_platforms(options, renderer=renderer, client=client)
        self.checkers = list(checkers)
        self.resolver = CompatibilityResolver(options, self.platforms)
        self.installation = PlatformsInstallationScriptProvider(renderer)
        self.composer = ScriptComposer(options, renderer)

    def generate_script(
        self, context: RepositoryContext, checker_messages: list[CheckerMessage] | None = None
    ) -> GeneratedScript:
        """Build the script for *context*.

        Checker messages are returned on the result and, when *checker_messages*
        is given, appended to it as well.
        """
        compatible = self.resolver.get_compatible_platforms(context)
        if not compatible:
            raise UnsupportedPlatformError(
                "Could not detect the platform of the application in the source directory."
            )

        install_snippet = self.installation.get_bash_script_snippet(context, compatible)

        snippets = []
        tools: dict[str, str] = {}
        for platform, result in compatible.items():
            snippets.append(platform.generate_snippet(context, result))
            tools.update(platform.tool_versions(result))
            if not platform.is_clean_repo(context.source_repo):
                logger.warning(
                    f"The source directory already contains {platform.name} build artifacts"
                )
        exclude_intermediate, exclude_output = self.resolver.excluded_dirs(context, compatible)

        messages: list[CheckerMessage] = []
        if self.options.enable_checkers:
            with timed_event(logger, "run_checkers", tools=tools) as event:
                messages = run_checkers(self.checkers, context.source_repo, tools)
                event.add_property("messages", len(messages))
        else:
            logger.info("Checkers are disabled")
        if checker_messages is not None:
            checker_messages.extend(messages)

        script, manifest = self.composer.compose(
            context,
            install_snippet,
            snippets,
            tools,
            exclude_intermediate,
            exclude_output,
            list(compatible.values()),
        )
        return GeneratedScript(script=script, manifest=manifest, checker_messages=messages)


def _write_script(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.write_text(text, encoding="utf-8")
    path.chmod(0o755)
    return path


def run_build(
    options: BuildOptions,
    platforms: list[Platform] | None = None,
    on_stdout: LineCallback | None = None,
    on_stderr: LineCallback | None = None,
    timeout: float | None = None,
) -> BuildResult:
    """Generate the build script, run it, and persist the manifest on success."""
    validate_build_options(options)
    context = create_context(options)

    commit_id = options.scm_commit_id or context.source_repo.get_git_commit_id()
    log_event(logger, "build_started", {"operation_id": context.operation_id, "commit_id": commit_id})

    with timed_event(logger, "generate_script", operation_id=context.operation_id):
        generated = BuildScriptGenerator(options, platforms).generate_script(context)

    source = options.source_dir
    destination = options.destination_dir or source
    with tempfile.TemporaryDirectory(prefix="buildsmith-") as tmp:
        tmp_dir = Path(tmp)
        script_path = _write_script(tmp_dir, BUILD_SCRIPT_NAME, generated.script)
        temp_root = tmp_dir / "temp"
        temp_root.mkdir()
        args = [str(source), str(destination), str(temp_root)]
        if options.force:
            args.append("true")
        with timed_event(logger, "run_script", operation_id=context.operation_id) as event:
            exit_code = run_script(
                script_path,
                args,
                cwd=source,
                on_stdout=on_stdout,
                on_stderr=on_stderr,
                processors=[TextSpanEventLogger(BUILD_SPANS), PipDownloadEventLogger()],
                timeout=timeout,
            )
            event.add_property("exit_code", exit_code)

    manifest_path = None
    if exit_code == 0:
        manifest_path = write_manifest(options.manifest_dir or destination, generated.manifest)
        logger.info(f"Wrote build manifest to {manifest_path}")
    else:
        logger.error(f"Build script exited with code {exit_code}")
    return BuildResult(exit_code=exit_code, generated=generated, manifest_path=manifest_path)


def prepare_environment(
    options: BuildOptions,
    platforms_and_versions: str | None = None,
    skip_detection: bool = False,
    on_stdout: LineCallback | None = None,
    on_stderr: LineCallback | None = None,
    timeout: float | None = None,
    client: httpx.Client | None = None,
) -> int:
    """Install SDKs only, for the detected platforms or, with *skip_detection*, the listed ones.

    *platforms_and_versions* uses the ``dotnet=3.1.200,php=7.4.5,node`` syntax.
    Listed versions override the ones a detected repo declares; a listed
    platform without a version gets its default.
    """
    pairs = parse_platforms_and_versions(platforms_and_versions or "")
    if skip_detection and not pairs:
        raise InvalidUsageError("Platforms must be specified when detection is skipped.")

    explicit = dict(options.platform_versions)
    explicit.update({canonical_platform_name(n): v for n, v in pairs if v})
    options = options.model_copy(
        update={
            "enable_dynamic_install": True,
            "enable_multi_platform_build": True,
            "platform_versions": explicit,
        }
    )
    platforms = build_platforms(options, client=client)
    context = create_context(options)
    resolver = CompatibilityResolver(options, platforms)

    results = []
    for name, _ in pairs:
        platform = find_platform(platforms, name)
        if platform is None:
            raise UnsupportedPlatformError(
                f"Platform '{name}' is not supported. "
                f"Supported platforms are: {', '.join(p.name for p in platforms)}"
            )
        results.append(PlatformDetectorResult(platform=platform.name))
    if skip_detection:
        compatible = resolver.get_compatible_platforms(context, prior_results=results)
    else:
        # listed versions still apply to whatever detection finds
        compatible = resolver.get_compatible_platforms(context)
    if not compatible:
        raise UnsupportedPlatformError("No platforms were detected or specified to set up.")

    script = PlatformsInstallationScriptProvider().get_setup_script(context, compatible)
    with tempfile.TemporaryDirectory(prefix="buildsmith-prep-") as tmp:
        script_path = _write_script(Path(tmp), SETUP_SCRIPT_NAME, script)
        with timed_event(logger, "prepare_environment", platforms=[p.name for p in compatible]):
            return run_script(
                script_path,
                cwd=options.source_dir,
                on_stdout=on_stdout,
                on_stderr=on_stderr,
                timeout=timeout,
            )
