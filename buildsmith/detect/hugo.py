"""Hugo detector.

A root site config (``config.*`` or ``hugo.*``) that sets ``baseURL``, or a
``config/_default`` directory. Hugo sites do not declare a version.
"""

from __future__ import annotations

import re

from buildsmith.detect.base import logger
from buildsmith.types import PlatformDetectorResult, RepositoryContext

PLATFORM_NAME = "hugo"
_CONFIG_NAMES = [
    f"{stem}.{ext}" for stem in ("config", "hugo") for ext in ("toml", "yaml", "yml", "json")
]
_BASE_URL = re.compile(r"""^\s*["']?baseurl["']?\s*[:=]""", re.IGNORECASE | re.MULTILINE)


class HugoDetector:
    platform_name = PLATFORM_NAME

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None:
        repo = context.source_repo
        if repo.dir_exists("config", "_default"):
            return PlatformDetectorResult(platform=PLATFORM_NAME)
        for name in _CONFIG_NAMES:
            if not repo.file_exists(name):
                continue
            try:
                text = repo.read_file(name)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning(f"Could not read {name}: {exc}")
                continue
            if _BASE_URL.search(text):
                return PlatformDetectorResult(
                    platform=PLATFORM_NAME, additional_properties={"config_file": name}
                )
        return None
