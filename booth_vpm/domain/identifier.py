"""
Derive a short identifier that tells sibling packages of one purchase apart.

The filename heuristics are an ordered list of small rules so new filename
idioms can be added without disturbing the existing ordering. Archive content
analysis is only consulted when the filename yields nothing.
"""
from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 20

# Extensions stripped (repeatedly) before looking at a filename stem.
ARCHIVE_EXTENSIONS = (".zip", ".unitypackage")

VERSION_SUFFIX_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"_?v\d+\.\d+\.\d+$", re.IGNORECASE),          # _v1.0.0, v1.0.0
    re.compile(r"_?ver\.?\d+\.\d+\.\d+$", re.IGNORECASE),     # _ver1.0.0, _ver.1.0.0
    re.compile(r"_?ver\d+\.\d+$", re.IGNORECASE),             # _Ver1.1
    re.compile(r"v\d+\.\d+$", re.IGNORECASE),                 # V1.2
)

# Longest first so 'Materials' is removed before 'Material' can leave an 's'.
MEANINGLESS_WORDS = ("Materials", "Material", "FullSet", "Texture", "Full", "Tex", "Set")

_EDGE_SEPARATORS = re.compile(r"^[._-]+|[._-]+$")
_SEPARATORS = re.compile(r"[._-]+")
_CAPITALIZED_WORD = re.compile(r"^[A-Z][a-z]+$")
_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Archive content analysis. These thresholds are empirical, not a contract.
CONTENT_SCAN_LIMIT = 500
TEXTURE_MATERIAL_MAX_ENTRIES = 200
TEXTURE_EXTENSIONS = frozenset(
    {".png", ".jpg", ".jpeg", ".tga", ".psd", ".tif", ".tiff", ".bmp", ".exr", ".mat"}
)
CODE_EXTENSIONS = frozenset(
    {".cs", ".prefab", ".unity", ".asmdef", ".dll", ".shader", ".cginc", ".hlsl", ".controller", ".anim"}
)
TEXTURE_KEYWORDS = ("texture", "material")
CODE_KEYWORDS = ("script",)

CONTENT_TEXTURE_MATERIAL = "texture-material"
CONTENT_SCRIPTS = "scripts"
CONTENT_MULTI_PACKAGE = "multi-package"
CONTENT_FULL = "full"


def strip_archive_extensions(filename: str) -> str:
    stem = Path(filename).name
    lowered = stem.lower()
    while True:
        for ext in ARCHIVE_EXTENSIONS:
            if lowered.endswith(ext) and len(lowered) > len(ext):
                stem = stem[: -len(ext)]
                lowered = lowered[: -len(ext)]
                break
        else:
            return stem


def strip_version_suffix(stem: str) -> str:
    for pattern in VERSION_SUFFIX_PATTERNS:
        stem = pattern.sub("", stem)
    return stem


def strip_edge_separators(text: str) -> str:
    return _EDGE_SEPARATORS.sub("", text)


def strip_meaningless_words(text: str) -> str:
    for word in MEANINGLESS_WORDS:
        text = re.sub(re.escape(word), "", text, flags=re.IGNORECASE)
    return text


# Each cleaning step is applied in order to the filename stem.
CLEANING_STEPS: Sequence[Callable[[str], str]] = (
    strip_version_suffix,
    strip_edge_separators,
    strip_meaningless_words,
    strip_edge_separators,
)


def classify_empty_stem(original_stem: str) -> str:
    """Name a package whose stem was nothing but boilerplate."""
    lowered = original_stem.lower()
    if "material" in lowered:
        return "materials"
    if "texture" in lowered:
        return "textures"
    return ""


def identifier_from_parts(parts: List[str]) -> str:
    # Several capitalized words are treated as one compound proper name
    # (e.g. multiple avatar names bundled together).
    if len(parts) > 1 and all(_CAPITALIZED_WORD.match(part) for part in parts):
        return "".join(parts).lower()[:MAX_IDENTIFIER_LENGTH]
    return _NON_ALNUM.sub("", parts[0].lower())[:MAX_IDENTIFIER_LENGTH]


def identifier_from_filename(filename: str) -> str:
    """
    Derive an identifier from a filename alone.

    Returns the empty string when the file needs no disambiguation.
    """
    original_stem = strip_archive_extensions(filename)

    clean = original_stem
    for step in CLEANING_STEPS:
        clean = step(clean)

    if not clean:
        return classify_empty_stem(original_stem)

    parts = [part for part in _SEPARATORS.split(clean) if part]
    if not parts:
        return ""
    return identifier_from_parts(parts)


@dataclass
class ContentProfile:
    """Counts gathered from the first entries of a container archive."""

    total: int = 0
    texture: int = 0
    code: int = 0
    packages: int = 0
    truncated: bool = False
    names: List[str] = field(default_factory=list)


def profile_archive(container: Path, limit: int = CONTENT_SCAN_LIMIT) -> ContentProfile:
    profile = ContentProfile()
    with zipfile.ZipFile(container) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            if profile.total >= limit:
                profile.truncated = True
                break
            profile.total += 1
            name = info.filename.lower()
            suffix = Path(name).suffix
            if suffix == ".unitypackage":
                profile.packages += 1
            if suffix in TEXTURE_EXTENSIONS or any(k in name for k in TEXTURE_KEYWORDS):
                profile.texture += 1
            if suffix in CODE_EXTENSIONS or any(k in name for k in CODE_KEYWORDS):
                profile.code += 1
    return profile


def _is_texture_material(p: ContentProfile) -> bool:
    return p.texture > p.code and p.total < TEXTURE_MATERIAL_MAX_ENTRIES


def _is_scripts(p: ContentProfile) -> bool:
    return p.code > p.texture and p.total < TEXTURE_MATERIAL_MAX_ENTRIES


def _is_multi_package(p: ContentProfile) -> bool:
    return p.packages > 1


def _is_full(p: ContentProfile) -> bool:
    return p.truncated or (p.texture > 0 and p.code > 0)


CONTENT_RULES: Sequence[Tuple[str, Callable[[ContentProfile], bool]]] = (
    (CONTENT_TEXTURE_MATERIAL, _is_texture_material),
    (CONTENT_SCRIPTS, _is_scripts),
    (CONTENT_MULTI_PACKAGE, _is_multi_package),
    (CONTENT_FULL, _is_full),
)


def classify_profile(profile: ContentProfile) -> Optional[str]:
    for label, predicate in CONTENT_RULES:
        if predicate(profile):
            return label
    return None


def identifier_from_content(container: Path, limit: int = CONTENT_SCAN_LIMIT) -> str:
    try:
        profile = profile_archive(container, limit)
    except (OSError, zipfile.BadZipFile) as e:
        logger.debug(f"Could not analyze archive content of {container}: {e}")
        return ""
    return classify_profile(profile) or ""


def resolve_identifier(display_name: str, container: Optional[Path] = None) -> str:
    """
    Return a short lowercase identifier for a raw package, or '' for singletons.

    Filename-derived identifiers always win; archive content is only analyzed
    when the filename yields nothing and the source is a container.
    """
    identifier = identifier_from_filename(display_name)
    if identifier or container is None:
        return identifier
    return identifier_from_content(container)
