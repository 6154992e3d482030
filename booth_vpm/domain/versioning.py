"""
Version resolution for converted packages.

Versions come from filename idioms first (original item name, then the raw
package's own name) and fall back to the source file's modification date.
A version already present in the repository manifest is never returned.
"""
from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Tuple

from booth_vpm.domain.identifier import strip_archive_extensions
from booth_vpm.domain.models import RepositoryManifest

# Ordered; the first pattern that matches wins. Group 1 holds the version.
VERSION_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"[_-]v(\d+(?:\.\d+)*)", re.IGNORECASE),              # _v2.8.5, -v1.0, -v1
    re.compile(r"[_-]ver\.?(\d+(?:\.\d+)*)", re.IGNORECASE),         # _ver1.0.0, _ver.1.0.0, _Ver1
    re.compile(r"[_-]V(\d+(?:\.\d+)*)"),                             # _V1.0
    re.compile(r"V(\d+(?:\.\d+)*)", re.IGNORECASE),                  # V1.2 without separator
    re.compile(r"[_-]version[_-]?(\d+(?:\.\d+)*)", re.IGNORECASE),   # _version1.0, _version_1.0
    re.compile(r"[_-](\d+(?:\.\d+)+)"),                              # _1.03, _2.8.5
    re.compile(r"[_-](\d+[_-]\d+[_-]\d+)(?:[_-]|$)"),                # _1_6_1
    re.compile(r"(\d+(?:\.\d+)*)$"),                                 # name1.0.1 before the extension
)

VERSION_COMPONENTS = 3


def normalize_version(raw: str) -> str:
    """'1_03' -> '1.3.0'; leading zeros dropped, padded/truncated to three parts."""
    parts = [str(int(part)) for part in re.split(r"[._-]", raw) if part]
    while len(parts) < VERSION_COMPONENTS:
        parts.append("0")
    return ".".join(parts[:VERSION_COMPONENTS])


def extract_version_from_filename(filename: str) -> Optional[str]:
    stem = strip_archive_extensions(filename)
    for pattern in VERSION_PATTERNS:
        match = pattern.search(stem)
        if match:
            return normalize_version(match.group(1))
    return None


def date_based_version(moment: datetime) -> str:
    return f"{moment.year}.{moment.month}.{moment.day}"


def _version_taken(repository: RepositoryManifest, package_name: str, version: str) -> bool:
    return repository.has_version(package_name, version)


def resolve_version(
    package_path: Path,
    package_name: str,
    repository: RepositoryManifest,
    item_name: Optional[str] = None,
    display_name: Optional[str] = None,
) -> str:
    """
    Return a version string not yet used for ``package_name``.

    Args:
        package_path: Raw package file; its mtime drives the date fallback.
        package_name: Target package name.
        repository: Current repository manifest.
        item_name: Original Booth item name, tried first.
        display_name: The raw package's own name (defaults to the file name).
    """
    candidates: Iterable[Optional[str]] = (item_name, display_name or package_path.name)
    for candidate in candidates:
        if not candidate:
            continue
        version = extract_version_from_filename(candidate)
        if version and not _version_taken(repository, package_name, version):
            return version

    modified = datetime.fromtimestamp(package_path.stat().st_mtime)
    date_version = date_based_version(modified)
    if not _version_taken(repository, package_name, date_version):
        return date_version

    # 2025.6.8 -> 2025.6.8-1 -> 2025.6.8-2 ...
    counter = 1
    while _version_taken(repository, package_name, f"{date_version}-{counter}"):
        counter += 1
    return f"{date_version}-{counter}"
