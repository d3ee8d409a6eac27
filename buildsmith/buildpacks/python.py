"""Python buildpack.

Turns a resolved detection result into a build snippet that either creates a
virtual environment (default, named ``pythonenv<major.minor>``) or installs
packages into a target directory (``packagedir`` build property).

Build properties read from the repository context:

- ``virtualenv_name``: name of the virtual environment to create
- ``packagedir``: install packages into this directory instead (no venv)
- ``compress_virtualenv``: ``tar-gz`` (default when empty) or ``zip``
"""

from __future__ import annotations

from buildsmith.buildpacks.base import Platform, logger
from buildsmith.errors import InvalidUsageError, UnsupportedVersionError
from buildsmith.repo import SourceRepo
from buildsmith.types import BuildScriptSnippet, PlatformDetectorResult, RepositoryContext

VIRTUALENV_NAME_PROPERTY = "virtualenv_name"
PACKAGE_DIR_PROPERTY = "packagedir"
COMPRESS_VIRTUALENV_PROPERTY = "compress_virtualenv"
DEFAULT_PACKAGE_DIR = "__buildsmith_packages__"
REQUIREMENTS_TXT = "requirements.txt"

MANIFEST_COMPRESSED_FILE = "compressed_virtualenv_file"

_COMPRESS_COMMANDS = {
    "tar-gz": ("tar -zcf", "{}.tar.gz"),
    "zip": ("zip -y -q -r", "{}.zip"),
}


def default_virtualenv_name(version: str) -> str:
    return f"pythonenv{'.'.join(version.split('.')[:2])}"


def virtualenv_module(version: str) -> tuple[str, str]:
    """Module and copy flag used to create the venv for *version*."""
    major = version.split(".")[0]
    if major == "2":
        return "virtualenv", ""
    if major == "3":
        return "venv", "--copies"
    raise UnsupportedVersionError("python", version)


class PythonPlatform(Platform):
    name = "python"
    tool_name = "python"
    manifest_version_key = "PythonVersion"

    def _virtualenv_name(self, context: RepositoryContext) -> str | None:
        return (context.get_property(VIRTUALENV_NAME_PROPERTY) or "").strip() or None

    def _package_dir(self, context: RepositoryContext) -> str | None:
        return (context.get_property(PACKAGE_DIR_PROPERTY) or "").strip() or None

    def _compression(self, context: RepositoryContext, venv_name: str) -> tuple[str, str] | None:
        if COMPRESS_VIRTUALENV_PROPERTY not in context.properties:
            return None
        option = (context.get_property(COMPRESS_VIRTUALENV_PROPERTY) or "").strip().lower() or "tar-gz"
        if option not in _COMPRESS_COMMANDS:
            raise InvalidUsageError(
                f"Unsupported value '{option}' for '{COMPRESS_VIRTUALENV_PROPERTY}'. "
                f"Use one of: {', '.join(_COMPRESS_COMMANDS)}."
            )
        command, file_format = _COMPRESS_COMMANDS[option]
        return command, file_format.format(venv_name)

    def _effective_virtualenv_name(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> str | None:
        package_dir = self._package_dir(context)
        venv_name = self._virtualenv_name(context)
        if package_dir and venv_name:
            raise InvalidUsageError(
                f"Options '{PACKAGE_DIR_PROPERTY}' and '{VIRTUALENV_NAME_PROPERTY}' are mutually "
                "exclusive. Provide only the target package directory or the virtual environment name."
            )
        if package_dir:
            return None
        return venv_name or default_virtualenv_name(result.platform_version or "")

    def is_clean_repo(self, repo: SourceRepo) -> bool:
        return not any(repo.dir_exists(d) for d in (DEFAULT_PACKAGE_DIR, ".venv", "venv"))

    def generate_snippet(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> BuildScriptSnippet:
        version = result.platform_version or ""
        props = {self.manifest_version_key: version}
        venv_name = self._effective_virtualenv_name(context, result)
        package_dir = self._package_dir(context)

        module, copy_param = "", ""
        compression = None
        if venv_name:
            props[VIRTUALENV_NAME_PROPERTY] = venv_name
            module, copy_param = virtualenv_module(version)
            compression = self._compression(context, venv_name)
            if compression:
                props[MANIFEST_COMPRESSED_FILE] = compression[1]
        else:
            props[PACKAGE_DIR_PROPERTY] = package_dir

        repo = context.source_repo
        if repo.file_exists(REQUIREMENTS_TXT):
            try:
                deps = [
                    line.strip()
                    for line in repo.read_all_lines(REQUIREMENTS_TXT)
                    if line.strip() and not line.lstrip().startswith("#")
                ]
                self.log_dependencies(version, deps)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning(f"Could not read {REQUIREMENTS_TXT} to log dependencies: {exc}")

        parts = version.split(".")
        script = self.render(
            "python",
            {
                "install_dir": self.installer.install_dir(version),
                "major": parts[0],
                "major_minor": ".".join(parts[:2]),
                "requirements_file": REQUIREMENTS_TXT,
                "virtualenv_name": venv_name,
                "virtualenv_module": module,
                "virtualenv_copy_param": copy_param,
                "package_dir": package_dir,
                "run_collectstatic": not self.options.disable_collectstatic,
                "compress_command": compression[0] if compression else "",
                "compressed_file": compression[1] if compression else "",
            },
        )
        return BuildScriptSnippet(script_text=script, build_properties=props)

    def exclude_from_intermediate(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> list[str]:
        dirs = [DEFAULT_PACKAGE_DIR]
        venv_name = self._virtualenv_name(context) or (
            None if self._package_dir(context) else default_virtualenv_name(result.platform_version or "")
        )
        if venv_name:
            dirs += [venv_name, f"{venv_name}.zip", f"{venv_name}.tar.gz"]
        return dirs

    def exclude_from_output(
        self, context: RepositoryContext, result: PlatformDetectorResult
    ) -> list[str]:
        venv_name = self._effective_virtualenv_name(context, result)
        if venv_name and self._compression(context, venv_name):
            # only the archive ships
            return [venv_name]
        return []
