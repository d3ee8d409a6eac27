from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from buildsmith.options import BuildOptions
from buildsmith.repo import LocalSourceRepo
from buildsmith.types import RepositoryContext


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create *files* (relative path -> text) under *root*."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


def context_for(options: BuildOptions, **properties: str) -> RepositoryContext:
    return RepositoryContext(
        source_repo=LocalSourceRepo(options.source_dir),
        operation_id="op-1234",
        properties=properties,
    )


@pytest.fixture
def make_options(tmp_path: Path) -> Callable[..., BuildOptions]:
    """Options whose install roots live under tmp_path (nothing baked in)."""

    def _make(source: Path, **fields) -> BuildOptions:
        values = dict(
            source_dir=source,
            built_in_install_root_dir=tmp_path / "builtin",
            dynamic_install_root_dir=tmp_path / "dynamic",
            benv_path=str(tmp_path / "no-benv"),
        )
        values.update(fields)
        return BuildOptions(**values)

    return _make


@pytest.fixture
def tree() -> Callable[[Path, dict[str, str]], Path]:
    return write_tree


@pytest.fixture
def make_context() -> Callable[..., RepositoryContext]:
    return context_for
