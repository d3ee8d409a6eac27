"""Build options: one immutable struct per invocation.

Settings are layered (lowest precedence first):

1. ``build.env`` in the source directory (``KEY=VALUE`` lines)
2. process environment variables
3. explicit overrides (command line)

Only :func:`load_options` reads the environment; every other component receives
a :class:`BuildOptions` instance.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from buildsmith.errors import InvalidUsageError

BUILD_ENV_FILE_NAME = "build.env"
DEFAULT_DYNAMIC_INSTALL_ROOT_DIR = "/tmp/buildsmith/platforms"
DEFAULT_BUILT_IN_INSTALL_ROOT_DIR = "/opt"
DEFAULT_BENV_PATH = "/opt/buildsmith/benv"

FUNCTIONS_APP_TYPE = "functions"
STATIC_SITES_APP_TYPE = "static-sites"
VALID_APP_TYPES = (FUNCTIONS_APP_TYPE, STATIC_SITES_APP_TYPE)

PLATFORM_ALIASES = {"node": "nodejs", "dotnetcore": "dotnet", "dotnet-core": "dotnet"}

# Prefix used in "<PREFIX>_VERSION" style settings.
_SETTING_PREFIXES = {"nodejs": "NODE"}

_TRUE = {"true", "1", "yes", "on"}


def canonical_platform_name(name: str) -> str:
    lowered = name.strip().lower()
    return PLATFORM_ALIASES.get(lowered, lowered)


def setting_prefix(platform: str) -> str:
    platform = canonical_platform_name(platform)
    return _SETTING_PREFIXES.get(platform, platform.upper().replace("-", "_"))


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class BuildOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_dir: Path
    destination_dir: Path | None = None
    intermediate_dir: Path | None = None
    manifest_dir: Path | None = None

    platform_name: str | None = None
    platform_version: str | None = None
    platform_versions: dict[str, str] = Field(default_factory=dict)
    default_versions: dict[str, str] = Field(default_factory=dict)
    disabled_platforms: frozenset[str] = frozenset()

    enable_multi_platform_build: bool = False
    enable_checkers: bool = True
    enable_dynamic_install: bool = False
    dynamic_install_root_dir: Path = Path(DEFAULT_DYNAMIC_INSTALL_ROOT_DIR)
    built_in_install_root_dir: Path = Path(DEFAULT_BUILT_IN_INSTALL_ROOT_DIR)
    sdk_storage_base_url: str | None = None

    pre_build_command: str | None = None
    pre_build_script_path: str | None = None
    post_build_command: str | None = None
    post_build_script_path: str | None = None

    required_os_packages: tuple[str, ...] = ()
    app_type: str | None = None
    project: str | None = None
    disable_collectstatic: bool = False
    npm_registry_url: str | None = None
    prune_dev_dependencies: bool = False
    benv_path: str = DEFAULT_BENV_PATH
    scm_commit_id: str | None = None
    force: bool = False
    # "-p key=value" build properties
    properties: dict[str, str] = Field(default_factory=dict)

    def is_platform_enabled(self, platform: str) -> bool:
        return canonical_platform_name(platform) not in self.disabled_platforms

    def version_for(self, platform: str) -> str | None:
        """Version explicitly requested by the user for *platform*, if any."""
        platform = canonical_platform_name(platform)
        if (
            self.platform_name
            and self.platform_version
            and canonical_platform_name(self.platform_name) == platform
        ):
            return self.platform_version
        return self.platform_versions.get(platform)

    def default_version_for(self, platform: str) -> str | None:
        return self.default_versions.get(canonical_platform_name(platform))

    @classmethod
    def from_settings(
        cls,
        settings: Mapping[str, str],
        *,
        source_dir: Path,
        platforms: Iterable[str],
        **fields,
    ) -> BuildOptions:
        s = {k.upper(): v for k, v in settings.items() if v is not None}

        def get(key: str) -> str | None:
            return _clean(s.get(key))

        versions: dict[str, str] = {}
        defaults: dict[str, str] = {}
        disabled: set[str] = set()
        for name in platforms:
            name = canonical_platform_name(name)
            prefix = setting_prefix(name)
            if v := get(f"{prefix}_VERSION"):
                versions[name] = v
            if v := get(f"{prefix}_DEFAULT_VERSION"):
                defaults[name] = v
            if _as_bool(s.get(f"DISABLE_{prefix}_BUILD")):
                disabled.add(name)

        os_packages = tuple(
            pkg.strip() for pkg in (get("REQUIRED_OS_PACKAGES") or "").split(",") if pkg.strip()
        )
        values = dict(
            source_dir=source_dir,
            platform_name=get("PLATFORM_NAME"),
            platform_version=get("PLATFORM_VERSION"),
            platform_versions=versions,
            default_versions=defaults,
            disabled_platforms=frozenset(disabled),
            enable_multi_platform_build=_as_bool(s.get("ENABLE_MULTIPLATFORM_BUILD")),
            enable_checkers=not _as_bool(s.get("DISABLE_CHECKERS")),
            enable_dynamic_install=_as_bool(s.get("ENABLE_DYNAMIC_INSTALL")),
            dynamic_install_root_dir=Path(
                get("DYNAMIC_INSTALL_ROOT_DIR") or DEFAULT_DYNAMIC_INSTALL_ROOT_DIR
            ),
            built_in_install_root_dir=Path(
                get("BUILT_IN_INSTALL_ROOT_DIR") or DEFAULT_BUILT_IN_INSTALL_ROOT_DIR
            ),
            sdk_storage_base_url=get("SDK_STORAGE_BASE_URL"),
            pre_build_command=get("PRE_BUILD_COMMAND"),
            pre_build_script_path=get("PRE_BUILD_SCRIPT_PATH"),
            post_build_command=get("POST_BUILD_COMMAND"),
            post_build_script_path=get("POST_BUILD_SCRIPT_PATH"),
            required_os_packages=os_packages,
            app_type=get("APP_TYPE"),
            project=get("PROJECT"),
            disable_collectstatic=_as_bool(s.get("DISABLE_COLLECTSTATIC")),
            npm_registry_url=get("NPM_REGISTRY_URL"),
            prune_dev_dependencies=_as_bool(s.get("PRUNE_DEV_DEPENDENCIES")),
            benv_path=get("BENV_PATH") or DEFAULT_BENV_PATH,
            scm_commit_id=get("SCM_COMMIT_ID"),
        )
        values.update({k: v for k, v in fields.items() if v is not None})
        return cls(**values)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def parse_key_value_lines(lines: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines; blank lines and ``#`` comments are skipped."""
    out: dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        out[key.strip()] = value
    return out


def read_env_file(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return parse_key_value_lines(path.read_text(encoding="utf-8").splitlines())


def parse_properties(items: Iterable[str] | None) -> dict[str, str]:
    """Turn repeated ``-p key=value`` arguments into a dict (value may be empty)."""
    props: dict[str, str] = {}
    for item in items or []:
        if "=" in item:
            key, value = item.split("=", 1)
        else:
            key, value = item, ""
        key = key.strip()
        if not key:
            raise InvalidUsageError(f"Invalid property '{item}': a key is required.")
        props[key] = value.strip().strip('"')
    return props


def load_options(
    source_dir: str | Path,
    *,
    platforms: Iterable[str],
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, str | None] | None = None,
    **fields,
) -> BuildOptions:
    """Build :class:`BuildOptions` from ``build.env``, the environment and *overrides*."""
    source = Path(source_dir).resolve()
    settings: dict[str, str] = {}
    settings.update(read_env_file(source / BUILD_ENV_FILE_NAME))
    settings.update(os.environ if environ is None else environ)
    settings.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return BuildOptions.from_settings(settings, source_dir=source, platforms=platforms, **fields)


def parse_platforms_and_versions(text: str) -> list[tuple[str, str | None]]:
    """Parse ``dotnet=3.1.200,php=7.4.5,node`` into ``(name, version)`` pairs.

    Newlines work as separators too, so the same parser reads a versions file.
    """
    pairs: list[tuple[str, str | None]] = []
    for raw in text.replace("\n", ",").split(","):
        item = raw.strip()
        if not item or item.startswith("#"):
            continue
        name, _, version = item.partition("=")
        name = name.strip()
        if not name:
            raise InvalidUsageError(f"Invalid platform entry '{item}': a name is required.")
        pairs.append((name, version.strip() or None))
    return pairs
