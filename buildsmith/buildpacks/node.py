"""Node.js buildpack.

Installs dependencies with yarn (when ``yarn.lock`` is present) or npm, runs
the ``build`` script when ``package.json`` defines one, and optionally prunes
dev dependencies.
"""

from __future__ import annotations

from buildsmith.buildpacks.base import Platform
from buildsmith.detect.base import read_json
from buildsmith.detect.nodejs import PACKAGE_JSON
from buildsmith.repo import SourceRepo
from buildsmith.types import BuildScriptSnippet, PlatformDetectorResult, RepositoryContext

NODE_MODULES = "node_modules"
YARN_LOCK = "yarn.lock"


class NodePlatform(Platform):
    name = "nodejs"
    aliases = ("node",)
    tool_name = "node"
    manifest_version_key = "NodeVersion"

    def is_clean_repo(self, repo: SourceRepo) -> bool:
        return not repo.dir_exists(NODE_MODULES)

    def generate_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> BuildScriptSnippet:
        repo = context.source_repo
        version = result.platform_version or ""
        package_json = read_json(repo, PACKAGE_JSON) or {}

        scripts = package_json.get("scripts")
        has_build = isinstance(scripts, dict) and "build" in scripts
        yarn = repo.file_exists(YARN_LOCK)
        if yarn:
            install, build, prune = (
                "yarn install --prefer-offline",
                "yarn run build",
                "yarn install --production --prefer-offline",
            )
        else:
            install, build, prune = "npm install", "npm run build", "npm prune --production"

        deps = package_json.get("dependencies")
        if isinstance(deps, dict):
            self.log_dependencies(version, [f"{k}@{v}" for k, v in deps.items()])

        script = self.render(
            "nodejs",
            {
                "install_dir": self.installer.install_dir(version),
                "npm_registry_url": self.options.npm_registry_url,
                "has_package_json": repo.file_exists(PACKAGE_JSON),
                "install_command": install,
                "build_command": build if has_build else "",
                "prune_dev_dependencies": self.options.prune_dev_dependencies,
                "prune_command": prune,
            },
        )
        return BuildScriptSnippet(
            script_text=script, build_properties={self.manifest_version_key: version}
        )

    def exclude_from_intermediate(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> list[str]:
        return [NODE_MODULES]
