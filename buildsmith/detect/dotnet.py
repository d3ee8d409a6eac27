""".NET detector.

Project selection:

1. an explicit ``project`` build property (or ``PROJECT`` setting), relative to the root
2. project files at the root: one is taken as is, several are narrowed like (3)
3. every project file in the repo: web SDK projects first, then Azure Functions projects

More than one candidate at the winning tier is ambiguous and raises
:class:`InvalidUsageError`; the caller decides how to treat that.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET

from buildsmith.detect.base import nested_str, read_json, read_xml
from buildsmith.errors import InvalidUsageError
from buildsmith.repo import SourceRepo
from buildsmith.types import PlatformDetectorResult, RepositoryContext

PLATFORM_NAME = "dotnet"
PROJECT_PROPERTY = "project"
GLOBAL_JSON = "global.json"
WEB_SDK = "Microsoft.NET.Sdk.Web"
PROJECT_PATTERNS = ("*.csproj", "*.fsproj")
_TFM = re.compile(r"^net(?:coreapp)?(\d+\.\d+)$", re.IGNORECASE)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _elements(root: ET.Element, name: str) -> list[ET.Element]:
    return [e for e in root.iter() if _local(e.tag) == name]


def is_web_project(root: ET.Element) -> bool:
    if (root.get("Sdk") or "").lower() == WEB_SDK.lower():
        return True
    return any((e.get("Name") or "").lower() == WEB_SDK.lower() for e in _elements(root, "Sdk"))


def is_functions_project(root: ET.Element) -> bool:
    return bool(_elements(root, "AzureFunctionsVersion"))


def target_runtime_version(root: ET.Element) -> str | None:
    """``netcoreapp3.1`` / ``net8.0`` -> ``3.1`` / ``8.0``."""
    for name in ("TargetFramework", "TargetFrameworks"):
        for elem in _elements(root, name):
            for tfm in (elem.text or "").split(";"):
                m = _TFM.match(tfm.strip())
                if m:
                    return m.group(1)
    return None


class DotNetDetector:
    platform_name = PLATFORM_NAME

    def __init__(self, project: str | None = None) -> None:
        self.project = project

    def _candidates(self, repo: SourceRepo, search_subdirs: bool) -> list[str]:
        root = repo.root_path
        found: list[str] = []
        for pattern in PROJECT_PATTERNS:
            found.extend(
                p.relative_to(root).as_posix() for p in repo.enumerate_files(pattern, search_subdirs)
            )
        return sorted(found)

    def _narrow(self, repo: SourceRepo, candidates: list[str]) -> str | None:
        web: list[str] = []
        functions: list[str] = []
        for rel in candidates:
            root = read_xml(repo, *rel.split("/"))
            if root is None:
                continue
            if is_web_project(root):
                web.append(rel)
            elif is_functions_project(root):
                functions.append(rel)
        for kind, matches in (("web", web), ("Azure Functions", functions)):
            if len(matches) > 1:
                raise InvalidUsageError(
                    f"Ambiguous .NET project: found multiple {kind} projects "
                    f"({', '.join(matches)}). Set the 'project' property to choose one."
                )
            if matches:
                return matches[0]
        return None

    def find_project_file(self, context: RepositoryContext) -> str | None:
        repo = context.source_repo
        explicit = context.get_property(PROJECT_PROPERTY) or self.project
        if explicit:
            if not repo.file_exists(*explicit.split("/")):
                raise InvalidUsageError(f"Could not find the .NET project file '{explicit}'.")
            return explicit

        at_root = self._candidates(repo, search_subdirs=False)
        if len(at_root) == 1:
            return at_root[0]
        if at_root:
            return self._narrow(repo, at_root)
        return self._narrow(repo, self._candidates(repo, search_subdirs=True))

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None:
        project = self.find_project_file(context)
        if project is None:
            return None
        repo = context.source_repo
        props = {"project_file": project}
        sdk = nested_str(read_json(repo, GLOBAL_JSON), "sdk", "version")
        if sdk:
            props["sdk_version"] = sdk

        root = read_xml(repo, *project.split("/"))
        version = target_runtime_version(root) if root is not None else None
        return PlatformDetectorResult(
            platform=PLATFORM_NAME, platform_version=version, additional_properties=props
        )
