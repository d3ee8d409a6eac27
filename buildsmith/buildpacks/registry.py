"""Ordered platform registry.

Registration order is part of the contract: detection, compatibility
filtering and the manifest's ``PlatformName`` all follow it.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx

from buildsmith.buildpacks.base import Platform
from buildsmith.buildpacks.dotnet import DotNetPlatform
from buildsmith.buildpacks.hugo import HugoPlatform
from buildsmith.buildpacks.node import NodePlatform
from buildsmith.buildpacks.php import PhpPlatform
from buildsmith.buildpacks.python import PythonPlatform
from buildsmith.catalog import VersionProvider, catalog_provider_for
from buildsmith.detect.dotnet import DotNetDetector
from buildsmith.detect.hugo import HugoDetector
from buildsmith.detect.nodejs import NodeDetector
from buildsmith.detect.php import PhpDetector
from buildsmith.detect.python import PythonDetector
from buildsmith.installer.dotnet import DotNetInstaller
from buildsmith.options import BuildOptions
from buildsmith.templates import Renderer, render

PLATFORM_NAMES = ("dotnet", "nodejs", "python", "php", "hugo")


def build_platforms(
    options: BuildOptions,
    versions: VersionProvider | None = None,
    renderer: Renderer = render,
    client: httpx.Client | None = None,
) -> list[Platform]:
    versions = versions or catalog_provider_for(options, client=client)
    return [
        DotNetPlatform(
            options,
            versions,
            DotNetDetector(project=options.project),
            installer=DotNetInstaller(options, renderer),
            renderer=renderer,
        ),
        NodePlatform(options, versions, NodeDetector(), renderer=renderer),
        PythonPlatform(options, versions, PythonDetector(), renderer=renderer),
        PhpPlatform(options, versions, PhpDetector(), renderer=renderer),
        HugoPlatform(options, versions, HugoDetector(), renderer=renderer),
    ]


def find_platform(platforms: Iterable[Platform], name: str) -> Platform | None:
    for platform in platforms:
        if platform.matches(name):
            return platform
    return None
