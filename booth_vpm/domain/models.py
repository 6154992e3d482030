"""
Pydantic models for the Booth VPM repository.

This module defines all data models used throughout the application, including:
- Booth products and downloadable items (input from the scraper)
- VPM package manifests and the repository manifest (persisted output)
- Ephemeral conversion records (raw packages, raw asset entries)
- Repository statistics and rebuild metadata

All models use Pydantic for validation, serialization, and type safety.
Persisted documents use camelCase keys, so those fields carry aliases and
must be dumped with ``by_alias=True``.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Target runtime tag written into every generated package manifest.
DEFAULT_UNITY_VERSION = "2022.3"

DEFAULT_REPOSITORY_NAME = "Booth Purchased Items VPM Repository"
DEFAULT_REPOSITORY_ID = "com.booth.purchased.vpm"
DEFAULT_REPOSITORY_AUTHOR = "Booth Purchased Items Manager"


# ---------------------------------------------------------------------------
# Booth input models (products.json)
# ---------------------------------------------------------------------------


class BoothProductItem(BaseModel):
    """
    A single downloadable file attached to a purchased Booth product.

    The item name's extension reflects the actual downloaded file type.
    """

    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(
        alias="itemId",
        serialization_alias="itemId",
        description="Booth download identifier for this file.",
    )
    item_name: str = Field(
        alias="itemName",
        serialization_alias="itemName",
        description="Original filename as shown on Booth (e.g. 'avatar-tool.unitypackage.zip').",
    )
    download_url: Optional[str] = Field(
        default=None,
        alias="downloadURL",
        serialization_alias="downloadURL",
        description="URL the scraper downloaded this file from.",
    )


class BoothProduct(BaseModel):
    """
    A purchased Booth product with its downloadable items.

    Read-only input produced by the scraping layer.
    """

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(
        alias="productId",
        serialization_alias="productId",
        description="Booth product identifier.",
    )
    product_name: str = Field(
        alias="productName",
        serialization_alias="productName",
        description="Human-readable product title.",
    )
    product_url: Optional[str] = Field(
        default=None,
        alias="productURL",
        serialization_alias="productURL",
    )
    thumbnail_url: Optional[str] = Field(
        default=None,
        alias="thumbnailURL",
        serialization_alias="thumbnailURL",
    )
    shop_name: str = Field(
        alias="shopName",
        serialization_alias="shopName",
        description="Display name of the shop that sells this product.",
    )
    shop_url: str = Field(
        alias="shopURL",
        serialization_alias="shopURL",
        description="Shop URL in the form 'https://<shop>.booth.pm/'.",
    )
    items: List[BoothProductItem] = Field(
        default_factory=list,
        description="Downloadable files attached to this product.",
    )


# ---------------------------------------------------------------------------
# VPM manifest models (package.json / vpm.json)
# ---------------------------------------------------------------------------


class Author(BaseModel):
    name: str
    email: Optional[str] = None


class PackageManifest(BaseModel):
    """
    Manifest of a single published package version.

    Persisted at: <REPOSITORY>/packages/<name>/<version>/package.json and
    embedded in vpm.json. Immutable once written for a given (name, version).
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(
        description="Package name, unique within the repository (e.g. 'com.booth.shop.12345').",
    )
    display_name: str = Field(
        alias="displayName",
        serialization_alias="displayName",
        description="Human-friendly name shown by package manager clients.",
    )
    version: str = Field(
        description="Semver-like version string, optionally with a '-N' collision suffix.",
    )
    description: str = Field(
        default="",
        description="Free text; embeds '[Hash: <md5>]' of the source bytes for de-duplication.",
    )
    author: Optional[Author] = Field(
        default=None,
        description="Shop that published the original product.",
    )
    unity: str = Field(
        default=DEFAULT_UNITY_VERSION,
        description="Minimum Unity version (target runtime tag).",
    )
    url: str = Field(
        default="",
        description="Download URL of the package archive.",
    )
    vpm_dependencies: Optional[Dict[str, str]] = Field(
        default=None,
        alias="vpmDependencies",
        serialization_alias="vpmDependencies",
    )
    legacy_folders: Optional[Dict[str, str]] = Field(
        default=None,
        alias="legacyFolders",
        serialization_alias="legacyFolders",
        description="Mapping of legacy asset folders to GUIDs, so clients can migrate old imports.",
    )
    legacy_files: Optional[Dict[str, str]] = Field(
        default=None,
        alias="legacyFiles",
        serialization_alias="legacyFiles",
    )
    legacy_packages: Optional[List[str]] = Field(
        default=None,
        alias="legacyPackages",
        serialization_alias="legacyPackages",
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class PackageVersions(BaseModel):
    """All published versions of one package, keyed by version string."""

    versions: Dict[str, PackageManifest] = Field(default_factory=dict)


class RepositoryManifest(BaseModel):
    """
    Root document of the VPM repository.

    The in-memory copy is the only mutation target during a run and grows
    monotonically: entries are added, never removed or rewritten.

    Persisted at: <REPOSITORY>/vpm.json
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(
        default=DEFAULT_REPOSITORY_NAME,
        description="Display name of the repository.",
    )
    id: str = Field(
        default=DEFAULT_REPOSITORY_ID,
        description="Reverse-domain identifier of the repository.",
    )
    url: str = Field(
        default="",
        description="URL where this vpm.json is served from.",
    )
    author: Optional[Author] = Field(
        default_factory=lambda: Author(name=DEFAULT_REPOSITORY_AUTHOR),
    )
    packages: Dict[str, PackageVersions] = Field(
        default_factory=dict,
        description="Dictionary mapping package names to their published versions.",
    )

    def has_version(self, package_name: str, version: str) -> bool:
        package = self.packages.get(package_name)
        return package is not None and version in package.versions

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class RepositoryMetadata(BaseModel):
    """
    Bookkeeping that decides whether the repository must be rebuilt.

    Persisted at: <REPOSITORY>/.metadata.json
    """

    model_config = ConfigDict(populate_by_name=True)

    converter_version: str = Field(
        alias="converterVersion",
        serialization_alias="converterVersion",
    )
    generated_at: datetime = Field(
        alias="generatedAt",
        serialization_alias="generatedAt",
    )
    config_hash: str = Field(
        alias="configHash",
        serialization_alias="configHash",
    )


# ---------------------------------------------------------------------------
# Conversion records (ephemeral, never persisted)
# ---------------------------------------------------------------------------


class RawPackage(BaseModel):
    """
    A pre-conversion asset bundle yielded by the archive extractor.

    Either a single .unitypackage or a container archive that still has to be
    searched for one.
    """

    path: Path = Field(description="File backing this raw package.")
    display_name: str = Field(
        description="Decoded name used for identifier and version heuristics.",
    )

    @property
    def is_container(self) -> bool:
        return self.path.suffix.lower() == ".zip"


class RawAssetEntry(BaseModel):
    """One asset parsed from an extracted .unitypackage tree."""

    asset_path: str = Field(
        description="Destination path declared in the entry's 'pathname' file (e.g. 'Assets/Foo/Bar.prefab').",
    )
    file_path: Path = Field(description="The entry's 'asset' blob on disk.")
    meta_path: Optional[Path] = Field(
        default=None,
        description="The entry's 'asset.meta' blob, if present.",
    )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class PackageStats(BaseModel):
    name: str
    versions: List[str] = Field(default_factory=list)


class RepositoryStats(BaseModel):
    total_packages: int = 0
    total_versions: int = 0
    packages: List[PackageStats] = Field(default_factory=list)
