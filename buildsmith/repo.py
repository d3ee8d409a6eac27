"""Read-only view over an application source tree."""

from __future__ import annotations

import subprocess
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

from buildsmith.logging import get_logger

logger = get_logger(__name__)


class SourceRepo(Protocol):
    @property
    def root_path(self) -> Path: ...

    def file_exists(self, *parts: str) -> bool: ...

    def dir_exists(self, *parts: str) -> bool: ...

    def read_file(self, *parts: str) -> str: ...

    def read_all_lines(self, *parts: str) -> list[str]: ...

    def enumerate_files(self, pattern: str, search_subdirs: bool = True) -> Iterator[Path]: ...

    def get_git_commit_id(self) -> str | None: ...


class LocalSourceRepo:
    """SourceRepo backed by a directory on disk. Paths are relative to the root."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root_path(self) -> Path:
        return self._root

    def _path(self, *parts: str) -> Path:
        return self._root.joinpath(*parts)

    def file_exists(self, *parts: str) -> bool:
        return self._path(*parts).is_file()

    def dir_exists(self, *parts: str) -> bool:
        return self._path(*parts).is_dir()

    def read_file(self, *parts: str) -> str:
        return self._path(*parts).read_text(encoding="utf-8")

    def read_all_lines(self, *parts: str) -> list[str]:
        return self.read_file(*parts).splitlines()

    def enumerate_files(self, pattern: str, search_subdirs: bool = True) -> Iterator[Path]:
        """Yield files matching *pattern* (glob), sorted for stable ordering."""
        matches = self._root.rglob(pattern) if search_subdirs else self._root.glob(pattern)
        yield from sorted(p for p in matches if p.is_file())

    def get_git_commit_id(self) -> str | None:
        if not self.dir_exists(".git"):
            return None
        try:
            proc = subprocess.run(
                ["git", "rev-parse", "HEAD"],
                cwd=self._root,
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning(f"Could not read git commit id: {exc}")
            return None
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None
