"""Node.js detector.

Signals, in order:
- ``package.json`` at the root (version from ``engines.node``)
- ``server.js`` or ``app.js`` at the root, unless an IIS startup file sits
  next to it (then the site is static: not Node)
"""

from __future__ import annotations

from buildsmith.detect.base import logger, nested_str, read_json
from buildsmith.types import PlatformDetectorResult, RepositoryContext

PLATFORM_NAME = "nodejs"
PACKAGE_JSON = "package.json"
_ENTRY_FILES = ("server.js", "app.js")
IIS_STARTUP_FILES = (
    "default.htm",
    "default.html",
    "default.asp",
    "index.htm",
    "index.html",
    "iisstart.htm",
    "default.aspx",
    "index.php",
)


class NodeDetector:
    platform_name = PLATFORM_NAME

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None:
        repo = context.source_repo
        if repo.file_exists(PACKAGE_JSON):
            return PlatformDetectorResult(
                platform=PLATFORM_NAME,
                platform_version=nested_str(read_json(repo, PACKAGE_JSON), "engines", "node"),
                additional_properties={"package_json": "true"},
            )

        if not any(repo.file_exists(f) for f in _ENTRY_FILES):
            return None
        for name in IIS_STARTUP_FILES:
            if repo.file_exists(name):
                logger.info(f"Found {name} at the root; not treating the repo as Node.js")
                return None
        return PlatformDetectorResult(
            platform=PLATFORM_NAME,
            additional_properties={"package_json": "false"},
        )
