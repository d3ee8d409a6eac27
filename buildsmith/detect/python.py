"""Python detector: requirements/setup files plus root sources, or a ``runtime.txt``."""

from __future__ import annotations

from buildsmith.detect.base import logger, root_files
from buildsmith.types import PlatformDetectorResult, RepositoryContext

PLATFORM_NAME = "python"
RUNTIME_TXT = "runtime.txt"
_MANIFESTS = ("requirements.txt", "setup.py", "pyproject.toml")


def _runtime_version(text: str) -> str | None:
    """``python-3.7.4`` -> ``3.7.4``."""
    line = text.strip().splitlines()[0].strip() if text.strip() else ""
    if not line.lower().startswith("python"):
        return None
    version = line[len("python") :].lstrip("-= ").strip()
    return version or None


class PythonDetector:
    platform_name = PLATFORM_NAME

    def detect(self, context: RepositoryContext) -> PlatformDetectorResult | None:
        repo = context.source_repo
        runtime_text = None
        if repo.file_exists(RUNTIME_TXT):
            try:
                runtime_text = repo.read_file(RUNTIME_TXT)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning(f"Could not read {RUNTIME_TXT}: {exc}")

        has_manifest = any(repo.file_exists(m) for m in _MANIFESTS)
        declares_python = runtime_text is not None and "python" in runtime_text.lower()
        if not declares_python and not (has_manifest and root_files(repo, "*.py")):
            return None

        version = _runtime_version(runtime_text) if declares_python else None
        return PlatformDetectorResult(platform=PLATFORM_NAME, platform_version=version)
