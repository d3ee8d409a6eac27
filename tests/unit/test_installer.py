from __future__ import annotations

from pathlib import Path

import pytest

from buildsmith.buildpacks.registry import build_platforms, find_platform
from buildsmith.catalog import StaticVersionProvider
from buildsmith.errors import ConfigurationMissingError
from buildsmith.installer.base import (
    CHECKSUM_HEADER_NAME,
    SENTINEL_FILE_NAME,
    PlatformInstaller,
)
from buildsmith.installer.dotnet import DotNetInstaller
from buildsmith.types import PlatformDetectorResult

BASE_URL = "https://sdks.example.test"


def test_built_in_version_counts_as_installed(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path)
    (options.built_in_install_root_dir / "python" / "3.8.18").mkdir(parents=True)
    installer = PlatformInstaller(options, "python")
    assert installer.is_version_installed("3.8.18")
    assert not installer.is_version_installed("3.9.19")


def test_version_lookup_ignores_case(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path)
    (options.built_in_install_root_dir / "dotnet" / "runtimes" / "9.0.0-Preview.1").mkdir(parents=True)
    assert DotNetInstaller(options).is_version_installed("9.0.0-preview.1")


def test_dynamic_install_needs_sentinel(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path)
    installer = PlatformInstaller(options, "nodejs")
    version_dir = installer.install_dir("18.20.4")
    version_dir.mkdir(parents=True)
    assert not installer.is_version_installed("18.20.4")  # partial install
    (version_dir / SENTINEL_FILE_NAME).write_text("\n", encoding="utf-8")
    assert installer.is_version_installed("18.20.4")


def test_installer_snippet_downloads_verifies_then_marks(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path, sdk_storage_base_url=BASE_URL + "/")
    snippet = PlatformInstaller(options, "nodejs").get_installer_script_snippet("18.20.4")

    install_dir = tmp_path / "dynamic" / "nodejs" / "18.20.4"
    assert f'mkdir -p "{install_dir}"' in snippet
    assert 'PLATFORM_BINARY_FILE_NAME="nodejs-18.20.4.tar.gz"' in snippet
    assert f'"{BASE_URL}/nodejs/$PLATFORM_BINARY_FILE_NAME"' in snippet
    assert f'grep -i "^{CHECKSUM_HEADER_NAME}:"' in snippet
    # checksum check runs before extraction, and the sentinel is written last
    assert snippet.index("sha512sum -c") < snippet.index("tar -xzf")
    assert snippet.index("tar -xzf") < snippet.index(SENTINEL_FILE_NAME)
    assert f'"{install_dir}/{SENTINEL_FILE_NAME}"' in snippet


def test_installer_snippet_custom_directory(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path, sdk_storage_base_url=BASE_URL)
    target = tmp_path / "elsewhere"
    snippet = PlatformInstaller(options, "php").get_installer_script_snippet("8.1.29", target)
    assert f'cd "{target}"' in snippet


def test_missing_storage_url(tmp_path: Path, make_options) -> None:
    installer = PlatformInstaller(make_options(tmp_path), "php")
    with pytest.raises(ConfigurationMissingError) as exc:
        installer.get_installer_script_snippet("8.1.29")
    assert exc.value.setting == "SDK_STORAGE_BASE_URL"
    assert exc.value.exit_code == 5


def test_dotnet_installer_records_sdk_for_runtime(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path, sdk_storage_base_url=BASE_URL)
    installer = DotNetInstaller(options)
    snippet = installer.get_dotnet_installer_script_snippet("8.0.7", "8.0.303")

    sdk_dir = tmp_path / "dynamic" / "dotnet" / "sdks" / "8.0.303"
    runtime_dir = tmp_path / "dynamic" / "dotnet" / "runtimes" / "8.0.7"
    assert 'PLATFORM_BINARY_FILE_NAME="dotnet-8.0.303.tar.gz"' in snippet
    assert f'cd "{sdk_dir}"' in snippet
    assert f'echo "8.0.303" > "{runtime_dir}/sdkVersion.txt"' in snippet
    assert snippet.rstrip().endswith(f'"{runtime_dir}/{SENTINEL_FILE_NAME}"')


def test_dotnet_installed_sdk_version(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path)
    runtime = options.built_in_install_root_dir / "dotnet" / "runtimes" / "6.0.32"
    runtime.mkdir(parents=True)
    (runtime / "sdkVersion.txt").write_text("6.0.400\n", encoding="utf-8")
    installer = DotNetInstaller(options)
    assert installer.installed_sdk_version("6.0.32") == "6.0.400"
    assert installer.installed_sdk_version("8.0.7") is None


def test_dotnet_sdk_install_follows_sentinel_rule(tmp_path: Path, make_options) -> None:
    options = make_options(tmp_path)
    installer = DotNetInstaller(options)
    partial = options.dynamic_install_root_dir / "dotnet" / "sdks" / "8.0.100"
    partial.mkdir(parents=True)
    assert not installer.is_sdk_installed("8.0.100")

    (partial / SENTINEL_FILE_NAME).write_text("\n", encoding="utf-8")
    assert installer.is_sdk_installed("8.0.100")

    shipped = options.built_in_install_root_dir / "dotnet" / "sdks" / "8.0.303"
    shipped.mkdir(parents=True)
    assert installer.is_sdk_installed("8.0.303")
    assert installer.sdk_dir("8.0.303") == shipped


def _node(options):
    platforms = build_platforms(options, versions=StaticVersionProvider())
    return find_platform(platforms, "nodejs")


def test_platform_skips_install_when_dynamic_install_is_off(
    tmp_path: Path, make_options, make_context
) -> None:
    options = make_options(tmp_path, sdk_storage_base_url=BASE_URL)
    result = PlatformDetectorResult(platform="nodejs", platform_version="18.20.4")
    assert _node(options).get_installer_script_snippet(make_context(options), result) is None


def test_platform_skips_install_when_already_present(
    tmp_path: Path, make_options, make_context
) -> None:
    options = make_options(tmp_path, enable_dynamic_install=True, sdk_storage_base_url=BASE_URL)
    (options.built_in_install_root_dir / "nodejs" / "18.20.4").mkdir(parents=True)
    result = PlatformDetectorResult(platform="nodejs", platform_version="18.20.4")
    assert _node(options).get_installer_script_snippet(make_context(options), result) is None


def test_platform_installs_missing_version(tmp_path: Path, make_options, make_context) -> None:
    options = make_options(tmp_path, enable_dynamic_install=True, sdk_storage_base_url=BASE_URL)
    result = PlatformDetectorResult(platform="nodejs", platform_version="18.20.4")
    snippet = _node(options).get_installer_script_snippet(make_context(options), result)
    assert snippet is not None
    assert "nodejs-18.20.4.tar.gz" in snippet
