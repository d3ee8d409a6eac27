"""Compose per-platform snippets into one build script plus its manifest.

Rules:

- a snippet flagged ``is_full_script`` replaces the whole script
- build properties of all snippets merge into the manifest, along with the
  operation id and ``PlatformName`` (comma-joined, detection order)
- ``.git`` is always excluded from both copy phases
- the source tree is copied to the destination only if *every* snippet asks for it
- pre/post build commands are wrapped in fixed marker lines so the duration of
  each can be measured from the script's stdout
"""

from __future__ import annotations

import shlex
from pathlib import Path

from buildsmith.errors import InvalidUsageError
from buildsmith.logging import get_logger
from buildsmith.options import BuildOptions
from buildsmith.templates import Renderer, render
from buildsmith.types import BuildScriptSnippet, PlatformDetectorResult, RepositoryContext

logger = get_logger(__name__)

PLATFORM_NAME_KEY = "PlatformName"
OPERATION_ID_KEY = "OperationId"
APP_TYPE_KEY = "AppType"

PRE_BUILD_START_MARKER = "Executing pre-build command..."
PRE_BUILD_END_MARKER = "Finished executing pre-build command."
POST_BUILD_START_MARKER = "Executing post-build command..."
POST_BUILD_END_MARKER = "Finished executing post-build command."

ALWAYS_EXCLUDED = ".git"


def is_nested(child: Path | None, parent: Path) -> bool:
    if child is None:
        return False
    child, parent = child.resolve(), parent.resolve()
    return child != parent and child.is_relative_to(parent)


def _exclude_args(dirs: list[str]) -> str:
    return " ".join(shlex.quote(f"--exclude=./{d}") for d in dirs)


def _with_git(dirs: list[str]) -> list[str]:
    out = list(dict.fromkeys(dirs))
    if ALWAYS_EXCLUDED not in out:
        out.append(ALWAYS_EXCLUDED)
    return out


class ScriptComposer:
    def __init__(self, options: BuildOptions, renderer: Renderer = render) -> None:
        self.options = options
        self.render = renderer

    def _hook_command(self, kind: str, command: str | None, script_path: str | None) -> str | None:
        if command and script_path:
            raise InvalidUsageError(
                f"Only one of {kind.upper()}_BUILD_COMMAND and {kind.upper()}_BUILD_SCRIPT_PATH "
                "can be set."
            )
        if command:
            return command
        if not script_path:
            return None
        path = Path(script_path)
        if not path.is_absolute():
            path = self.options.source_dir / path
        if not path.is_file():
            raise InvalidUsageError(
                f"{kind.capitalize()}-build script '{script_path}' could not be found."
            )
        return f"bash {shlex.quote(str(path))}"

    def _hook(self, kind: str, command: str | None, script_path: str | None) -> str:
        text = self._hook_command(kind, command, script_path)
        if text is None:
            return ""
        start, end = (
            (PRE_BUILD_START_MARKER, PRE_BUILD_END_MARKER)
            if kind == "pre"
            else (POST_BUILD_START_MARKER, POST_BUILD_END_MARKER)
        )
        return self.render("build_hook", {"start_marker": start, "end_marker": end, "command": text})

    def _os_packages(self) -> str:
        packages = self.options.required_os_packages
        if not packages:
            return ""
        return self.render("os_packages", {"packages": " ".join(shlex.quote(p) for p in packages)})

    def compose(
        self,
        context: RepositoryContext,
        install_snippet: str | None,
        snippets: list[BuildScriptSnippet],
        tool_versions: dict[str, str],
        exclude_intermediate: list[str],
        exclude_output: list[str],
        detection_results: list[PlatformDetectorResult],
    ) -> tuple[str, dict[str, str]]:
        for snippet in snippets:
            if snippet.is_full_script:
                logger.info("A platform supplied a full script; skipping composition")
                return snippet.script_text, dict(snippet.build_properties)

        manifest: dict[str, str] = {}
        for snippet in snippets:
            manifest.update({k: v for k, v in snippet.build_properties.items() if v is not None})
        if context.operation_id:
            manifest[OPERATION_ID_KEY] = context.operation_id
        names = list(dict.fromkeys(r.platform for r in detection_results))
        if names:
            manifest[PLATFORM_NAME_KEY] = ",".join(names)
        if self.options.app_type:
            manifest[APP_TYPE_KEY] = self.options.app_type

        intermediate = _with_git(exclude_intermediate)
        output = _with_git(exclude_output)
        copy_source = all(s.copy_source_to_destination for s in snippets)

        source = self.options.source_dir
        destination = self.options.destination_dir
        nested = is_nested(destination, source)
        relative = destination.resolve().relative_to(source.resolve()).as_posix() if nested else ""

        script = self.render(
            "base",
            {
                "operation_id": context.operation_id,
                "platform_names": manifest.get(PLATFORM_NAME_KEY, ""),
                "os_packages": self._os_packages(),
                "platform_installation": install_snippet or "",
                "benv_path": self.options.benv_path,
                "benv_args": " ".join(shlex.quote(f"{k}={v}") for k, v in tool_versions.items()),
                "intermediate_dir": self.options.intermediate_dir or "",
                "intermediate_excludes": _exclude_args(intermediate),
                "pre_build": self._hook(
                    "pre", self.options.pre_build_command, self.options.pre_build_script_path
                ),
                "build_snippets": "\n".join(s.script_text for s in snippets),
                "post_build": self._hook(
                    "post", self.options.post_build_command, self.options.post_build_script_path
                ),
                "copy_source_to_destination": copy_source,
                "output_is_nested": nested,
                "destination_relative_path": relative,
                "output_excludes": _exclude_args(output),
            },
        )
        return script, manifest
