"""Tests for content identifier resolution."""

from pathlib import Path

import pytest

from booth_vpm.domain.identifier import (
    CONTENT_FULL,
    CONTENT_MULTI_PACKAGE,
    CONTENT_SCRIPTS,
    CONTENT_TEXTURE_MATERIAL,
    MAX_IDENTIFIER_LENGTH,
    ContentProfile,
    classify_profile,
    identifier_from_content,
    identifier_from_filename,
    resolve_identifier,
    strip_archive_extensions,
    strip_meaningless_words,
    strip_version_suffix,
)


class TestCleaningRules:
    """Test the individual filename cleaning rules."""

    def test_strips_stacked_archive_extensions(self) -> None:
        """Test that .unitypackage.zip is removed as a whole."""
        assert strip_archive_extensions("avatar-tool.unitypackage.zip") == "avatar-tool"
        assert strip_archive_extensions("Shirt.UnityPackage") == "Shirt"

    @pytest.mark.parametrize(
        "stem,expected",
        [
            ("Hair_v1.0.0", "Hair"),
            ("Hair_ver.1.0.0", "Hair"),
            ("Hair_Ver1.1", "Hair"),
            ("HairV1.2", "Hair"),
            ("Hair", "Hair"),
        ],
    )
    def test_strips_version_suffix(self, stem: str, expected: str) -> None:
        """Test that recognized trailing version tokens are removed."""
        assert strip_version_suffix(stem) == expected

    def test_strips_meaningless_words_case_insensitively(self) -> None:
        """Test that boilerplate words are removed regardless of case."""
        assert strip_meaningless_words("Hair_MATERIALS") == "Hair_"
        assert strip_meaningless_words("FullSet") == ""


class TestIdentifierFromFilename:
    """Test filename-derived identifiers."""

    def test_version_suffix_does_not_change_identity(self) -> None:
        """Test that packages differing only by version share an identifier."""
        first = resolve_identifier("AliceBob_v1.2.unitypackage")
        second = resolve_identifier("AliceBob_v9.9.unitypackage")
        assert first == second == "alicebob"

    def test_capitalized_words_are_joined(self) -> None:
        """Test that several capitalized words form one compound identifier."""
        assert identifier_from_filename("Alice_Bob_v1.0.0.unitypackage") == "alicebob"

    def test_first_part_used_otherwise(self) -> None:
        """Test that mixed parts fall back to the first part."""
        assert identifier_from_filename("avatar-tool.unitypackage") == "avatar"
        assert identifier_from_filename("Hair_Materials.unitypackage") == "hair"

    def test_truncated_to_max_length(self) -> None:
        """Test that long identifiers are truncated."""
        identifier = identifier_from_filename("SuperLongIdentifierNameHere_v1.0.0.zip")
        assert identifier == "superlongidentifiern"
        assert len(identifier) == MAX_IDENTIFIER_LENGTH

    def test_boilerplate_only_names(self) -> None:
        """Test that names made only of boilerplate classify by keyword."""
        assert identifier_from_filename("Materials.unitypackage") == "materials"
        assert identifier_from_filename("Texture_Set.zip") == "textures"
        assert identifier_from_filename("FullSet.unitypackage") == ""

    def test_deterministic(self) -> None:
        """Test that the same name always yields the same identifier."""
        assert identifier_from_filename("Shirt_v2.unitypackage") == identifier_from_filename(
            "Shirt_v2.unitypackage"
        )


class TestContentClassification:
    """Test archive content analysis."""

    def test_texture_material(self) -> None:
        """Test that texture-heavy small archives are texture-material."""
        profile = ContentProfile(total=10, texture=8, code=1)
        assert classify_profile(profile) == CONTENT_TEXTURE_MATERIAL

    def test_scripts(self) -> None:
        """Test that code-heavy small archives are scripts."""
        profile = ContentProfile(total=10, texture=1, code=8)
        assert classify_profile(profile) == CONTENT_SCRIPTS

    def test_multi_package(self) -> None:
        """Test that several embedded packages classify as multi-package."""
        profile = ContentProfile(total=3, texture=0, code=0, packages=3)
        assert classify_profile(profile) == CONTENT_MULTI_PACKAGE

    def test_full_when_truncated(self) -> None:
        """Test that archives beyond the scan limit classify as full."""
        profile = ContentProfile(total=500, texture=250, code=250, truncated=True)
        assert classify_profile(profile) == CONTENT_FULL

    def test_unclassified(self) -> None:
        """Test that archives with nothing recognizable get no label."""
        assert classify_profile(ContentProfile(total=2)) is None

    def test_content_fallback_for_containers(self, tmp_path: Path, make_zip) -> None:
        """Test that a boilerplate-named container is identified by its content."""
        archive = make_zip(
            tmp_path / "FullSet.zip",
            {"a.png": b"1", "b.png": b"2", "c.mat": b"3"},
        )
        assert resolve_identifier("FullSet.zip", archive) == CONTENT_TEXTURE_MATERIAL

    def test_filename_takes_priority_over_content(self, tmp_path: Path, make_zip) -> None:
        """Test that a usable filename wins over content analysis."""
        archive = make_zip(tmp_path / "Shirt.zip", {"a.png": b"1"})
        assert resolve_identifier("Shirt.zip", archive) == "shirt"

    def test_unreadable_container(self, tmp_path: Path) -> None:
        """Test that an unreadable container yields no identifier."""
        broken = tmp_path / "FullSet.zip"
        broken.write_bytes(b"not a zip")
        assert identifier_from_content(broken) == ""
