from __future__ import annotations

import json
from pathlib import Path

from buildsmith.checkers import (
    DEFAULT_CHECKERS,
    NodePackageScriptsChecker,
    NodeVersionChecker,
    run_checkers,
)
from buildsmith.repo import LocalSourceRepo
from buildsmith.types import CheckerMessage


class _BrokenChecker:
    def applies_to(self, tools: dict[str, str]) -> bool:
        return True

    def check_source_repo(self, repo) -> list[CheckerMessage]:
        raise RuntimeError("boom")

    def check_tool_versions(self, tools: dict[str, str]) -> list[CheckerMessage]:
        return []


class _InfoChecker:
    def applies_to(self, tools: dict[str, str]) -> bool:
        return True

    def check_source_repo(self, repo) -> list[CheckerMessage]:
        return [CheckerMessage(level="info", content="looks fine")]

    def check_tool_versions(self, tools: dict[str, str]) -> list[CheckerMessage]:
        return []


def test_old_node_is_flagged() -> None:
    messages = NodeVersionChecker().check_tool_versions({"node": "14.21.3"})
    assert len(messages) == 1
    assert messages[0].level == "warning"
    assert "14.21.3" in messages[0].content


def test_supported_or_unparseable_node_is_quiet() -> None:
    checker = NodeVersionChecker()
    assert checker.check_tool_versions({"node": "18.20.4"}) == []
    assert checker.check_tool_versions({"node": "lts"}) == []


def test_global_installs_in_scripts(tmp_path: Path) -> None:
    scripts = {
        "postinstall": "npm install -g bower && bower install",
        "build": "npm install --global-style && tsc",
        "lint": "eslint .",
    }
    (tmp_path / "package.json").write_text(json.dumps({"scripts": scripts}), encoding="utf-8")
    messages = NodePackageScriptsChecker().check_source_repo(LocalSourceRepo(tmp_path))
    assert len(messages) == 1
    assert "postinstall" in messages[0].content


def test_checkers_only_apply_to_their_tools(tmp_path: Path) -> None:
    assert run_checkers(DEFAULT_CHECKERS, LocalSourceRepo(tmp_path), {"python": "3.8.18"}) == []


def test_failing_checker_is_skipped(tmp_path: Path) -> None:
    messages = run_checkers(
        [_BrokenChecker(), _InfoChecker(), NodeVersionChecker()],
        LocalSourceRepo(tmp_path),
        {"node": "16.20.2"},
    )
    assert [m.level for m in messages] == ["info", "warning"]
