"""Detection contract and shared helpers.

A detector answers one question for one platform: does this repository use it,
and if so, which version does the repository ask for?

- ``None`` means "not applicable" (never raise for that case).
- A result with ``platform_version=None`` means "used, no version declared".
- Malformed manifest files are logged and read as "no declared version".
- Detectors only read the repository.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from typing import Any, Protocol

from buildsmith.logging import get_logger
from buildsmith.repo import SourceRepo
from buildsmith.types import PlatformDetectorResult, RepositoryContext

logger = get_logger(__name__)


class PlatformDetector(Protocol):
    platform_name: str

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None: ...


def read_json(repo: SourceRepo, *parts: str) -> dict[str, Any] | None:
    """Parse a JSON object from the repo; ``None`` if missing, unreadable or malformed."""
    if not repo.file_exists(*parts):
        return None
    name = "/".join(parts)
    try:
        data = json.loads(repo.read_file(*parts))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning(f"Could not read {name}: {exc}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {name}: top-level value is not an object")
        return None
    return data


def read_xml(repo: SourceRepo, *parts: str) -> ET.Element | None:
    name = "/".join(parts)
    try:
        return ET.fromstring(repo.read_file(*parts))
    except (OSError, UnicodeDecodeError, ET.ParseError) as exc:
        logger.warning(f"Could not parse {name}: {exc}")
        return None


def nested_str(data: dict[str, Any] | None, *keys: str) -> str | None:
    """``nested_str(pkg, "engines", "node")``; ``None`` unless the leaf is a non-empty string."""
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if isinstance(node, str) and node.strip():
        return node.strip()
    return None


def root_files(repo: SourceRepo, pattern: str) -> list[str]:
    return [p.name for p in repo.enumerate_files(pattern, search_subdirs=False)]
