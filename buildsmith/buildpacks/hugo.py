"""Hugo buildpack.

Hugo renders the site straight into the destination directory, so the
source tree itself is not copied there. Other platforms in the same build
(e.g. Node.js for asset pipelines) still run first, in registration order.
"""

from __future__ import annotations

from buildsmith.buildpacks.base import Platform
from buildsmith.types import BuildScriptSnippet, PlatformDetectorResult, RepositoryContext


class HugoPlatform(Platform):
    name = "hugo"
    tool_name = "hugo"
    manifest_version_key = "HugoVersion"

    def generate_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> BuildScriptSnippet:
        version = result.platform_version or ""
        script = self.render("hugo", {"install_dir": self.installer.install_dir(version)})
        return BuildScriptSnippet(
            script_text=script,
            build_properties={self.manifest_version_key: version},
            copy_source_to_destination=False,
        )
