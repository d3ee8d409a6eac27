from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from buildsmith.catalog import (
    CombinedVersionProvider,
    FallbackVersionProvider,
    OnDiskVersionProvider,
    SdkStorageVersionProvider,
    StaticVersionProvider,
    catalog_provider_for,
    parse_storage_listing,
)
from buildsmith.errors import BuildError
from buildsmith.options import BuildOptions
from buildsmith.types import VersionCatalog

BASE_URL = "https://sdks.example.test"

NODE_LISTING = """<?xml version="1.0" encoding="utf-8"?>
<EnumerationResults ContainerName="nodejs">
  <Blobs>
    <Blob><Name>nodejs-6.11.2.tar.gz</Name><Metadata><Version>6.11.2</Version></Metadata></Blob>
    <Blob><Name>nodejs-18.20.4.tar.gz</Name><Metadata><version>18.20.4</version></Metadata></Blob>
    <Blob><Name>defaultVersion.txt</Name></Blob>
  </Blobs>
</EnumerationResults>
"""

DOTNET_LISTING = """<?xml version="1.0" encoding="utf-8"?>
<EnumerationResults>
  <Blobs>
    <Blob><Metadata><Runtime_version>8.0.7</Runtime_version><Sdk_version>8.0.204</Sdk_version></Metadata></Blob>
    <Blob><Metadata><Runtime_version>8.0.7</Runtime_version><Sdk_version>8.0.303</Sdk_version></Metadata></Blob>
    <Blob><Metadata><Runtime_version>6.0.32</Runtime_version><Sdk_version>6.0.424</Sdk_version></Metadata></Blob>
    <Blob><Metadata><Runtime_version>7.0.20</Runtime_version></Metadata></Blob>
  </Blobs>
</EnumerationResults>
"""


class _CountingProvider:
    def __init__(self, catalog: VersionCatalog) -> None:
        self.catalog = catalog
        self.calls = 0

    def get_catalog(self, platform: str) -> VersionCatalog:
        self.calls += 1
        return self.catalog


def test_on_disk_lists_version_directories(tmp_path: Path) -> None:
    for v in ("3.8.18", "3.9.19"):
        (tmp_path / "python" / v).mkdir(parents=True)
    (tmp_path / "python" / "defaultVersion.txt").write_text("# comment\n3.9\n", encoding="utf-8")
    catalog = OnDiskVersionProvider(tmp_path).get_catalog("python")
    assert catalog.versions == ["3.8.18", "3.9.19"]
    assert catalog.default_version == "3.9"


def test_on_disk_dotnet_reads_runtimes_and_sdk_records(tmp_path: Path) -> None:
    runtime = tmp_path / "dotnet" / "runtimes" / "8.0.7"
    runtime.mkdir(parents=True)
    (runtime / "sdkVersion.txt").write_text("8.0.303\n", encoding="utf-8")
    catalog = OnDiskVersionProvider(tmp_path).get_catalog("dotnet")
    assert catalog.versions == ["8.0.7"]
    assert catalog.companions == {"8.0.7": "8.0.303"}


def test_on_disk_missing_root_is_empty(tmp_path: Path) -> None:
    assert OnDiskVersionProvider(tmp_path / "nope").get_catalog("php").versions == []


def test_parse_listing_reads_version_metadata() -> None:
    versions, companions = parse_storage_listing(NODE_LISTING, "nodejs")
    assert versions == ["6.11.2", "18.20.4"]
    assert companions == {}


def test_parse_dotnet_listing_keeps_newest_sdk_per_runtime() -> None:
    versions, companions = parse_storage_listing(DOTNET_LISTING, "dotnet")
    assert versions == ["8.0.7", "6.0.32"]
    assert companions == {"8.0.7": "8.0.303", "6.0.32": "6.0.424"}


def test_storage_provider_lists_container_and_default() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/nodejs/defaultVersion.txt":
            return httpx.Response(200, text="18.20.4\n")
        return httpx.Response(200, text=NODE_LISTING)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    catalog = SdkStorageVersionProvider(BASE_URL + "/", client=client).get_catalog("nodejs")

    assert catalog.versions == ["6.11.2", "18.20.4"]
    assert catalog.default_version == "18.20.4"
    listing = seen[0]
    assert listing.url.path == "/nodejs"
    assert listing.url.params["restype"] == "container"
    assert listing.url.params["comp"] == "list"
    assert listing.url.params["include"] == "metadata"


def test_storage_provider_without_default_file() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("defaultVersion.txt"):
            return httpx.Response(404)
        return httpx.Response(200, text=NODE_LISTING)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    catalog = SdkStorageVersionProvider(BASE_URL, client=client).get_catalog("nodejs")
    assert catalog.default_version is None


def test_storage_provider_listing_error() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(403)))
    with pytest.raises(BuildError, match="HTTP 403"):
        SdkStorageVersionProvider(BASE_URL, client=client).get_catalog("php")


def test_storage_provider_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(BuildError, match="Could not reach SDK storage"):
        SdkStorageVersionProvider(BASE_URL, client=client).get_catalog("php")


def test_combined_unions_versions_and_caches() -> None:
    first = _CountingProvider(VersionCatalog(platform="php", versions=["8.1.29"]))
    second = _CountingProvider(
        VersionCatalog(platform="php", versions=["8.1.29", "8.3.9"], default_version="8.3")
    )
    combined = CombinedVersionProvider(first, second)
    catalog = combined.get_catalog("php")
    combined.get_catalog("php")
    assert catalog.versions == ["8.1.29", "8.3.9"]
    assert catalog.default_version == "8.3"
    assert first.calls == 1
    assert second.calls == 1


def test_fallback_only_when_primary_is_empty(tmp_path: Path) -> None:
    provider = FallbackVersionProvider(OnDiskVersionProvider(tmp_path), StaticVersionProvider())
    assert "3.8.18" in provider.get_catalog("python").versions
    (tmp_path / "python" / "3.11.2").mkdir(parents=True)
    assert provider.get_catalog("python").versions == ["3.11.2"]


def test_provider_selection(tmp_path: Path) -> None:
    base = BuildOptions(source_dir=tmp_path, built_in_install_root_dir=tmp_path)
    assert isinstance(catalog_provider_for(base), FallbackVersionProvider)
    dynamic = base.model_copy(
        update={"enable_dynamic_install": True, "sdk_storage_base_url": BASE_URL}
    )
    assert isinstance(catalog_provider_for(dynamic), CombinedVersionProvider)
    # dynamic install without a storage URL cannot list remote versions
    no_url = base.model_copy(update={"enable_dynamic_install": True})
    assert isinstance(catalog_provider_for(no_url), FallbackVersionProvider)
