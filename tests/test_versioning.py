"""Tests for version resolution."""

import os
from datetime import datetime
from pathlib import Path

import pytest

from booth_vpm.domain.models import PackageManifest, PackageVersions, RepositoryManifest
from booth_vpm.domain.versioning import (
    date_based_version,
    extract_version_from_filename,
    normalize_version,
    resolve_version,
)

PACKAGE = "com.booth.shop.1.tool"


def _repository_with(*versions: str) -> RepositoryManifest:
    return RepositoryManifest(
        packages={
            PACKAGE: PackageVersions(
                versions={
                    v: PackageManifest(name=PACKAGE, display_name="Tool", version=v)
                    for v in versions
                }
            )
        }
    )


@pytest.fixture
def dated_file(tmp_path: Path) -> Path:
    path = tmp_path / "Tool.unitypackage"
    path.write_bytes(b"payload")
    stamp = datetime(2025, 6, 8, 12, 0, 0).timestamp()
    os.utime(path, (stamp, stamp))
    return path


class TestExtractVersion:
    """Test filename version idioms."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("Tool_v2.8.5.unitypackage", "2.8.5"),
            ("Tool-v1.unitypackage", "1.0.0"),
            ("Tool_ver1.0.0.zip", "1.0.0"),
            ("Tool_ver.1.2.zip", "1.2.0"),
            ("ToolV1.2.unitypackage", "1.2.0"),
            ("Tool_version_3.1.zip", "3.1.0"),
            ("Tool_1.03.unitypackage", "1.3.0"),
            ("Tool_1_6_1.unitypackage", "1.6.1"),
            ("Tool1.0.1.unitypackage.zip", "1.0.1"),
            ("Tool_v1.2.3.4.zip", "1.2.3"),
        ],
    )
    def test_patterns(self, filename: str, expected: str) -> None:
        """Test that common version idioms are recognized and normalized."""
        assert extract_version_from_filename(filename) == expected

    def test_no_version(self) -> None:
        """Test that names without a version token yield None."""
        assert extract_version_from_filename("avatar-tool.unitypackage.zip") is None

    def test_normalize(self) -> None:
        """Test normalization of separators, zeros and component count."""
        assert normalize_version("01_02") == "1.2.0"
        assert normalize_version("2.0.0.7") == "2.0.0"

    def test_date_based_version(self) -> None:
        """Test that date versions carry no zero padding."""
        assert date_based_version(datetime(2025, 6, 8)) == "2025.6.8"


class TestResolveVersion:
    """Test collision-free version resolution."""

    def test_item_name_tried_first(self, dated_file: Path) -> None:
        """Test that the original item name wins over the package filename."""
        version = resolve_version(
            dated_file, PACKAGE, _repository_with(), item_name="Tool_v1.0.0.zip", display_name="Tool_v2.0.0.unitypackage"
        )
        assert version == "1.0.0"

    def test_taken_version_falls_through(self, dated_file: Path) -> None:
        """Test that a version already published is never returned."""
        version = resolve_version(
            dated_file,
            PACKAGE,
            _repository_with("1.0.0"),
            item_name="Tool_v1.0.0.zip",
            display_name="Tool_v2.0.0.unitypackage",
        )
        assert version == "2.0.0"

    def test_date_fallback(self, dated_file: Path) -> None:
        """Test that the modification date is used when no filename version exists."""
        assert resolve_version(dated_file, PACKAGE, _repository_with(), item_name="Tool.zip") == "2025.6.8"

    def test_date_collisions_get_increasing_suffixes(self, dated_file: Path) -> None:
        """Test that repeated date collisions produce -1, -2, ... suffixes."""
        repository = _repository_with()
        seen = []
        for _ in range(3):
            version = resolve_version(dated_file, PACKAGE, repository, item_name="Tool.zip")
            seen.append(version)
            repository.packages[PACKAGE].versions[version] = PackageManifest(
                name=PACKAGE, display_name="Tool", version=version
            )
        assert seen == ["2025.6.8", "2025.6.8-1", "2025.6.8-2"]

    def test_other_packages_do_not_collide(self, dated_file: Path) -> None:
        """Test that versions of other packages are ignored."""
        version = resolve_version(
            dated_file, "com.booth.shop.2", _repository_with("1.0.0"), item_name="Tool_v1.0.0.zip"
        )
        assert version == "1.0.0"
