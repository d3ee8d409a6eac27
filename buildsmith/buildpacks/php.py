"""PHP buildpack: ``composer install`` when ``composer.json`` is present."""

from __future__ import annotations

from buildsmith.buildpacks.base import Platform
from buildsmith.detect.base import read_json
from buildsmith.detect.php import COMPOSER_JSON
from buildsmith.types import BuildScriptSnippet, PlatformDetectorResult, RepositoryContext


class PhpPlatform(Platform):
    name = "php"
    tool_name = "php"
    manifest_version_key = "PhpVersion"

    def generate_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> BuildScriptSnippet:
        version = result.platform_version or ""
        composer = read_json(context.source_repo, COMPOSER_JSON) or {}
        require = composer.get("require")
        if isinstance(require, dict):
            self.log_dependencies(version, [f"{k}:{v}" for k, v in require.items()])
        script = self.render("php", {"install_dir": self.installer.install_dir(version)})
        return BuildScriptSnippet(
            script_text=script, build_properties={self.manifest_version_key: version}
        )
