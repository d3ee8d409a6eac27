"""Supported-version catalogs.

Three providers, each returning a :class:`VersionCatalog`:

- :class:`StaticVersionProvider` bundled lists (used when nothing else is available)
- :class:`OnDiskVersionProvider` versions baked into the build image
- :class:`SdkStorageVersionProvider` the SDK storage container listing, over HTTP

:func:`catalog_provider_for` picks and combines them from :class:`BuildOptions`.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Protocol

import httpx

from buildsmith.errors import BuildError
from buildsmith.logging import get_logger
from buildsmith.options import BuildOptions
from buildsmith.types import VersionCatalog, semver_key

logger = get_logger(__name__)

DEFAULT_VERSION_FILE_NAME = "defaultVersion.txt"
SDK_VERSION_FILE_NAME = "sdkVersion.txt"

_DOTNET_SDKS = {
    "3.1.32": "3.1.426",
    "5.0.17": "5.0.408",
    "6.0.32": "6.0.424",
    "7.0.20": "7.0.410",
    "8.0.7": "8.0.303",
    "9.0.0-preview.6.24327.7": "9.0.100-preview.6.24328.19",
}

BUNDLED_CATALOGS: dict[str, VersionCatalog] = {
    "python": VersionCatalog(
        platform="python",
        versions=[
            "2.7.18",
            "3.6.15",
            "3.7.0",
            "3.7.17",
            "3.8.18",
            "3.9.19",
            "3.10.14",
            "3.11.9",
            "3.12.4",
            "3.13.0rc2",
        ],
        default_version="3.8",
    ),
    "nodejs": VersionCatalog(
        platform="nodejs",
        versions=[
            "6.11.2",
            "8.17.0",
            "10.24.1",
            "12.22.12",
            "14.21.3",
            "16.20.2",
            "18.20.4",
            "20.15.1",
            "22.4.1",
        ],
        default_version="16",
    ),
    "php": VersionCatalog(
        platform="php",
        versions=["7.3.33", "7.4.33", "8.0.30", "8.1.29", "8.2.21", "8.3.9"],
        default_version="8.1",
    ),
    "hugo": VersionCatalog(
        platform="hugo",
        versions=["0.59.1", "0.76.5", "0.81.0", "0.119.0", "0.128.2"],
        default_version="0.119.0",
    ),
    "dotnet": VersionCatalog(
        platform="dotnet",
        versions=list(_DOTNET_SDKS),
        default_version="8.0",
        companions=dict(_DOTNET_SDKS),
    ),
}

# Sub-directory (relative to an install root) that holds one directory per version.
VERSIONS_SUBDIR = {"dotnet": "dotnet/runtimes"}


def versions_dir(root: Path, platform: str) -> Path:
    return root / VERSIONS_SUBDIR.get(platform, platform)


class VersionProvider(Protocol):
    def get_catalog(self, platform: str) -> VersionCatalog: ...


class StaticVersionProvider:
    def __init__(self, catalogs: dict[str, VersionCatalog] | None = None) -> None:
        self._catalogs = BUNDLED_CATALOGS if catalogs is None else catalogs

    def get_catalog(self, platform: str) -> VersionCatalog:
        return self._catalogs.get(platform) or VersionCatalog(platform=platform)


class OnDiskVersionProvider:
    """Lists version directories under the built-in install root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def get_catalog(self, platform: str) -> VersionCatalog:
        base = versions_dir(self.root, platform)
        if not base.is_dir():
            return VersionCatalog(platform=platform)
        versions: list[str] = []
        companions: dict[str, str] = {}
        for child in sorted(base.iterdir()):
            if not child.is_dir():
                continue
            versions.append(child.name)
            sdk_file = child / SDK_VERSION_FILE_NAME
            if sdk_file.is_file():
                companions[child.name] = sdk_file.read_text(encoding="utf-8").strip()
        default = None
        default_file = base / DEFAULT_VERSION_FILE_NAME
        if default_file.is_file():
            default = _first_line(default_file.read_text(encoding="utf-8"))
        return VersionCatalog(
            platform=platform, versions=versions, default_version=default, companions=companions
        )


def _first_line(text: str) -> str | None:
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            return line
    return None


def _child_text(elem: ET.Element, name: str) -> str | None:
    # metadata names vary in case between uploads
    for child in elem:
        if child.tag.lower() == name.lower():
            return (child.text or "").strip() or None
    return None


def parse_storage_listing(xml_text: str, platform: str) -> tuple[list[str], dict[str, str]]:
    """Read version metadata out of a container listing.

    Returns the versions and, for dotnet, the runtime -> newest SDK mapping.
    """
    root = ET.fromstring(xml_text)
    versions: list[str] = []
    companions: dict[str, str] = {}
    for blob in root.iter("Blob"):
        meta = blob.find("Metadata")
        if meta is None:
            continue
        if platform == "dotnet":
            runtime = _child_text(meta, "Runtime_version")
            sdk = _child_text(meta, "Sdk_version")
            if not runtime or not sdk:
                continue
            current = companions.get(runtime)
            if current is None or _newer(sdk, current):
                companions[runtime] = sdk
            if runtime not in versions:
                versions.append(runtime)
        else:
            version = _child_text(meta, "Version")
            if version and version not in versions:
                versions.append(version)
    return versions, companions


def _newer(a: str, b: str) -> bool:
    ka, kb = semver_key(a), semver_key(b)
    if ka is None or kb is None:
        return a > b
    return ka > kb


class SdkStorageVersionProvider:
    def __init__(self, base_url: str, client: httpx.Client | None = None, timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    def _get(self, client: httpx.Client, url: str, **params: str) -> httpx.Response:
        try:
            return client.get(url, params=params or None)
        except httpx.HTTPError as exc:
            raise BuildError(f"Could not reach SDK storage at {url}: {exc}") from exc

    def get_catalog(self, platform: str) -> VersionCatalog:
        client = self._client or httpx.Client(timeout=self._timeout)
        try:
            listing_url = f"{self.base_url}/{platform}"
            r = self._get(client, listing_url, restype="container", comp="list", include="metadata")
            if r.status_code != 200:
                raise BuildError(f"SDK storage listing {listing_url} returned HTTP {r.status_code}")
            versions, companions = parse_storage_listing(r.text, platform)

            default = None
            default_url = f"{listing_url}/{DEFAULT_VERSION_FILE_NAME}"
            d = self._get(client, default_url)
            if d.status_code == 200:
                default = _first_line(d.text)
            else:
                logger.warning(f"No default version at {default_url} (HTTP {d.status_code})")
        finally:
            if self._client is None:
                client.close()
        return VersionCatalog(
            platform=platform, versions=versions, default_version=default, companions=companions
        )


class CombinedVersionProvider:
    """Union of several providers; the first provider that names a default wins."""

    def __init__(self, *providers: VersionProvider) -> None:
        self.providers = providers
        self._cache: dict[str, VersionCatalog] = {}

    def get_catalog(self, platform: str) -> VersionCatalog:
        if platform in self._cache:
            return self._cache[platform]
        versions: list[str] = []
        companions: dict[str, str] = {}
        default = None
        for provider in self.providers:
            cat = provider.get_catalog(platform)
            versions.extend(v for v in cat.versions if v not in versions)
            for k, v in cat.companions.items():
                companions.setdefault(k, v)
            default = default or cat.default_version
        catalog = VersionCatalog(
            platform=platform, versions=versions, default_version=default, companions=companions
        )
        self._cache[platform] = catalog
        return catalog


class FallbackVersionProvider:
    """Uses *primary* unless it lists no versions at all."""

    def __init__(self, primary: VersionProvider, fallback: VersionProvider) -> None:
        self.primary = primary
        self.fallback = fallback

    def get_catalog(self, platform: str) -> VersionCatalog:
        catalog = self.primary.get_catalog(platform)
        if catalog.versions:
            return catalog
        return self.fallback.get_catalog(platform)


def catalog_provider_for(options: BuildOptions, client: httpx.Client | None = None) -> VersionProvider:
    """Built-in image versions, plus storage when dynamic install is on.

    Without dynamic install, an image with nothing baked in falls back to the
    bundled lists so scripts can still be generated for another host.
    """
    on_disk = OnDiskVersionProvider(options.built_in_install_root_dir)
    if options.enable_dynamic_install and options.sdk_storage_base_url:
        return CombinedVersionProvider(
            on_disk, SdkStorageVersionProvider(options.sdk_storage_base_url, client=client)
        )
    return FallbackVersionProvider(on_disk, StaticVersionProvider())
