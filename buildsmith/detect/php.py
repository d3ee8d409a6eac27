"""PHP detector: ``composer.json`` (``require.php``) or any root ``*.php`` file."""

from __future__ import annotations

from buildsmith.detect.base import nested_str, read_json, root_files
from buildsmith.types import PlatformDetectorResult, RepositoryContext

PLATFORM_NAME = "php"
COMPOSER_JSON = "composer.json"


class PhpDetector:
    platform_name = PLATFORM_NAME

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None:
        repo = context.source_repo
        if repo.file_exists(COMPOSER_JSON):
            version = nested_str(read_json(repo, COMPOSER_JSON), "require", "php")
            return PlatformDetectorResult(platform=PLATFORM_NAME, platform_version=version)
        if root_files(repo, "*.php"):
            return PlatformDetectorResult(platform=PLATFORM_NAME)
        return None
