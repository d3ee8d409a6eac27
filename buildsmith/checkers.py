"""Advisory checks over the repository and the selected tool versions.

Checkers only produce messages; they never stop a build. A checker that raises
is logged and skipped.
"""

from __future__ import annotations

import re
from typing import Protocol

from buildsmith.detect.base import read_json
from buildsmith.detect.nodejs import PACKAGE_JSON
from buildsmith.logging import get_logger
from buildsmith.repo import SourceRepo
from buildsmith.types import CheckerMessage, semver_key

logger = get_logger(__name__)

MIN_SUPPORTED_NODE_MAJOR = 18
_GLOBAL_INSTALL = re.compile(r"\bnpm\s+(?:install|i|add)\b[^&|;]*\s(?:-g|--global)(?=\s|$)")


class Checker(Protocol):
    def applies_to(self, tools: dict[str, str]) -> bool: ...

    def check_source_repo(self, repo: SourceRepo) -> list[CheckerMessage]: ...

    def check_tool_versions(self, tools: dict[str, str]) -> list[CheckerMessage]: ...


class NodeVersionChecker:
    def applies_to(self, tools: dict[str, str]) -> bool:
        return "node" in tools

    def check_source_repo(self, repo: SourceRepo) -> list[CheckerMessage]:
        return []

    def check_tool_versions(self, tools: dict[str, str]) -> list[CheckerMessage]:
        version = tools.get("node", "")
        key = semver_key(version)
        if key is None or key.major >= MIN_SUPPORTED_NODE_MAJOR:
            return []
        return [
            CheckerMessage(
                level="warning",
                content=(
                    f"Node.js {version} is out of support. Consider upgrading to "
                    f"{MIN_SUPPORTED_NODE_MAJOR} or later."
                ),
            )
        ]


class NodePackageScriptsChecker:
    def applies_to(self, tools: dict[str, str]) -> bool:
        return "node" in tools

    def check_source_repo(self, repo: SourceRepo) -> list[CheckerMessage]:
        scripts = (read_json(repo, PACKAGE_JSON) or {}).get("scripts")
        if not isinstance(scripts, dict):
            return []
        messages = []
        for name, command in scripts.items():
            if isinstance(command, str) and _GLOBAL_INSTALL.search(command):
                messages.append(
                    CheckerMessage(
                        level="warning",
                        content=(
                            f"Script '{name}' in {PACKAGE_JSON} installs packages globally "
                            f"('{command}'). Declare them as dependencies instead."
                        ),
                    )
                )
        return messages

    def check_tool_versions(self, tools: dict[str, str]) -> list[CheckerMessage]:
        return []


DEFAULT_CHECKERS: tuple[Checker, ...] = (NodeVersionChecker(), NodePackageScriptsChecker())


def run_checkers(
    checkers: tuple[Checker, ...] | list[Checker], repo: SourceRepo, tools: dict[str, str]
) -> list[CheckerMessage]:
    messages: list[CheckerMessage] = []
    for checker in checkers:
        name = type(checker).__name__
        try:
            if not checker.applies_to(tools):
                continue
            messages.extend(checker.check_source_repo(repo))
            messages.extend(checker.check_tool_versions(tools))
        except Exception:
            logger.exception(f"Checker {name} failed; ignoring it")
    for message in messages:
        if message.level == "info":
            logger.info(message.content)
        else:
            logger.warning(message.content)
    return messages
