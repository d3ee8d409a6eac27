from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from buildsmith.buildpacks.registry import PLATFORM_NAMES
from buildsmith.core import validate_build_options
from buildsmith.errors import InvalidUsageError
from buildsmith.options import (
    BuildOptions,
    load_options,
    parse_key_value_lines,
    parse_platforms_and_versions,
    parse_properties,
)


def _load(src: Path, environ: dict[str, str], **kwargs) -> BuildOptions:
    return load_options(src, platforms=PLATFORM_NAMES, environ=environ, **kwargs)


def test_settings_precedence(tmp_path: Path) -> None:
    (tmp_path / "build.env").write_text(
        "# build settings\nNODE_VERSION=12\nPYTHON_VERSION='3.7'\nPHP_VERSION=7.4\n",
        encoding="utf-8",
    )
    options = _load(
        tmp_path,
        {"PYTHON_VERSION": "3.9", "PHP_VERSION": "8.0"},
        overrides={"PHP_VERSION": "8.2", "NODE_VERSION": None},
    )
    assert options.platform_versions == {"nodejs": "12", "python": "3.9", "php": "8.2"}
    assert options.source_dir == tmp_path.resolve()


def test_platform_settings(tmp_path: Path) -> None:
    options = _load(
        tmp_path,
        {
            "DOTNET_DEFAULT_VERSION": "6.0",
            "DISABLE_HUGO_BUILD": "true",
            "disable_php_build": "1",
            "ENABLE_MULTIPLATFORM_BUILD": "TRUE",
            "DISABLE_CHECKERS": "false",
            "REQUIRED_OS_PACKAGES": "libgdiplus, tzdata ,",
        },
    )
    assert options.default_versions == {"dotnet": "6.0"}
    assert options.disabled_platforms == frozenset({"hugo", "php"})
    assert options.enable_multi_platform_build
    assert options.enable_checkers
    assert options.required_os_packages == ("libgdiplus", "tzdata")
    assert not options.is_platform_enabled("php")
    assert options.is_platform_enabled("node")


def test_dynamic_install_settings(tmp_path: Path) -> None:
    options = _load(
        tmp_path,
        {
            "ENABLE_DYNAMIC_INSTALL": "true",
            "DYNAMIC_INSTALL_ROOT_DIR": "/var/sdks",
            "SDK_STORAGE_BASE_URL": "https://sdks.example.test",
        },
    )
    assert options.enable_dynamic_install
    assert options.dynamic_install_root_dir == Path("/var/sdks")
    assert options.built_in_install_root_dir == Path("/opt")
    assert options.sdk_storage_base_url == "https://sdks.example.test"


def test_explicit_platform_version_uses_alias(tmp_path: Path) -> None:
    options = _load(
        tmp_path, {"PLATFORM_NAME": "node", "PLATFORM_VERSION": "14", "NODE_VERSION": "12"}
    )
    assert options.version_for("nodejs") == "14"
    assert options.version_for("python") is None


def test_fields_override_settings(tmp_path: Path) -> None:
    options = _load(tmp_path, {"PROJECT": "a.csproj"}, project="b.csproj", force=True)
    assert options.project == "b.csproj"
    assert options.force


def test_options_are_frozen(tmp_path: Path) -> None:
    options = BuildOptions(source_dir=tmp_path)
    with pytest.raises(ValidationError):
        options.platform_name = "python"


def test_parse_key_value_lines() -> None:
    lines = ["", "# c", "A=1", 'B="two words"', "C = x=y", "novalue"]
    assert parse_key_value_lines(lines) == {"A": "1", "B": "two words", "C": "x=y"}


def test_parse_properties() -> None:
    assert parse_properties(["virtualenv_name=env", 'packagedir="pkgs"', "compress_virtualenv"]) == {
        "virtualenv_name": "env",
        "packagedir": "pkgs",
        "compress_virtualenv": "",
    }
    assert parse_properties(None) == {}
    with pytest.raises(InvalidUsageError):
        parse_properties(["=value"])


def test_parse_platforms_and_versions() -> None:
    text = "dotnet=3.1.200,php=7.4.5, node\n# comment\npython=3.8\n"
    assert parse_platforms_and_versions(text) == [
        ("dotnet", "3.1.200"),
        ("php", "7.4.5"),
        ("node", None),
        ("python", "3.8"),
    ]
    with pytest.raises(InvalidUsageError):
        parse_platforms_and_versions("=1.0")


def test_validate_requires_existing_source(tmp_path: Path) -> None:
    with pytest.raises(InvalidUsageError, match="source directory"):
        validate_build_options(BuildOptions(source_dir=tmp_path / "missing"))


def test_validate_version_needs_platform(tmp_path: Path) -> None:
    with pytest.raises(InvalidUsageError, match="platform name"):
        validate_build_options(BuildOptions(source_dir=tmp_path, platform_version="3.8"))


def test_validate_app_type(tmp_path: Path) -> None:
    validate_build_options(BuildOptions(source_dir=tmp_path, app_type="Static-Sites"))
    with pytest.raises(InvalidUsageError, match="app type"):
        validate_build_options(BuildOptions(source_dir=tmp_path, app_type="desktop"))


def test_validate_intermediate_dir(tmp_path: Path) -> None:
    with pytest.raises(InvalidUsageError, match="same as the source"):
        validate_build_options(BuildOptions(source_dir=tmp_path, intermediate_dir=tmp_path))
    with pytest.raises(InvalidUsageError, match="child of the source"):
        validate_build_options(
            BuildOptions(source_dir=tmp_path, intermediate_dir=tmp_path / "obj" / "tmp")
        )
    validate_build_options(
        BuildOptions(source_dir=tmp_path, intermediate_dir=tmp_path.parent / "elsewhere")
    )
