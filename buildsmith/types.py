"""Shared models passed between detection, resolution and composition."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal

from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from buildsmith.repo import SourceRepo

_LETTER = re.compile(r"[A-Za-z]")


@dataclass(frozen=True)
class RepositoryContext:
    source_repo: SourceRepo
    operation_id: str | None = None
    properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def get_property(self, key: str) -> str | None:
        return self.properties.get(key)


class PlatformDetectorResult(BaseModel):
    """What a detector found: the platform and, when declared, the version it asked for."""

    platform: str
    platform_version: str | None = None
    additional_properties: dict[str, str] = Field(default_factory=dict)


class BuildScriptSnippet(BaseModel):
    script_text: str
    build_properties: dict[str, str] = Field(default_factory=dict)
    is_full_script: bool = False
    copy_source_to_destination: bool = True


class CheckerMessage(BaseModel):
    level: Literal["info", "warning", "error"] = "warning"
    content: str


def is_preview(version: str) -> bool:
    return bool(_LETTER.search(version))


def semver_key(version: str) -> Version | None:
    try:
        return Version(version.lstrip("vV"))
    except InvalidVersion:
        return None


class VersionCatalog(BaseModel):
    """Supported versions for one platform.

    Attributes
    ----------
    versions: list[str]
        Every supported version string, in the order the provider listed them.
    default_version: str | None
        Platform default advertised by the provider (e.g. ``defaultVersion.txt``).
    companions: dict[str, str]
        Optional runtime -> SDK mapping (dotnet).
    """

    platform: str
    versions: list[str] = Field(default_factory=list)
    default_version: str | None = None
    companions: dict[str, str] = Field(default_factory=dict)

    @property
    def final_versions(self) -> list[str]:
        return [v for v in self.versions if not is_preview(v)]

    @property
    def preview_versions(self) -> list[str]:
        return [v for v in self.versions if is_preview(v)]

    def latest(self) -> str | None:
        finals = [(semver_key(v), v) for v in self.final_versions]
        finals = [(k, v) for k, v in finals if k is not None]
        if finals:
            return max(finals)[1]
        previews = sorted(self.preview_versions, reverse=True)
        return previews[0] if previews else None


@dataclass
class GeneratedScript:
    script: str
    manifest: dict[str, str]
    checker_messages: list[CheckerMessage] = field(default_factory=list)
