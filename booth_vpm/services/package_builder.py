"""
Turns raw packages into distributable VPM package archives.

A .unitypackage is a gzipped tar in which every asset occupies a directory
named after its GUID, holding a ``pathname`` file (destination path inside
the Unity project), the ``asset`` payload and usually an ``asset.meta``.
Assets are copied into a Runtime/ or Editor/ tree, each tree gets an
assembly definition, and the result is zipped to
``packages/<name>/<version>/<name>-<version>.zip``.

Anything that cannot be restructured still ends up installable: the
fallback package holds only package.json and the original file.
"""
import json
import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional

from booth_vpm.domain.models import PackageManifest, RawAssetEntry, RawPackage
from booth_vpm.domain.vpm_utils import (
    package_file_name,
    sanitize_filename,
    validate_path_safety,
)

logger = logging.getLogger(__name__)

RUNTIME_DIR = "Runtime"
EDITOR_DIR = "Editor"
MANIFEST_FILENAME = "package.json"
MAX_CONTAINER_DEPTH = 3

_ASSETS_PREFIXES = ("Assets/", "Assets\\")


class PackageBuildError(Exception):
    """Raised when a raw package cannot be restructured."""


def is_editor_asset(asset_path: str) -> bool:
    lowered = asset_path.lower()
    return (
        "/editor/" in lowered
        or "\\editor\\" in lowered
        or lowered.endswith("editor.cs")
        or "editorwindow" in lowered
        or "inspector" in lowered
    )


def strip_assets_prefix(asset_path: str) -> str:
    for prefix in _ASSETS_PREFIXES:
        if asset_path.startswith(prefix):
            return asset_path[len(prefix):]
    return asset_path


def parse_asset_entries(unpacked_dir: Path) -> List[RawAssetEntry]:
    """
    Collect (pathname, asset) pairs from an unpacked .unitypackage tree.

    Directories without an ``asset`` blob describe folders and are skipped.
    """
    entries: List[RawAssetEntry] = []
    for entry_dir in sorted(p for p in unpacked_dir.iterdir() if p.is_dir()):
        pathname_file = entry_dir / "pathname"
        asset_file = entry_dir / "asset"
        if not pathname_file.is_file() or not asset_file.is_file():
            continue

        lines = pathname_file.read_text(encoding="utf-8", errors="replace").splitlines()
        asset_path = lines[0].strip() if lines else ""
        if not asset_path:
            continue

        meta_file = entry_dir / "asset.meta"
        entries.append(
            RawAssetEntry(
                asset_path=asset_path,
                file_path=asset_file,
                meta_path=meta_file if meta_file.is_file() else None,
            )
        )
    return entries


def generate_asmdef(package_name: str, editor: bool = False) -> dict:
    runtime_name = f"{package_name}.{RUNTIME_DIR}"
    return {
        "name": f"{package_name}.{EDITOR_DIR}" if editor else runtime_name,
        "rootNamespace": "".join(c for c in package_name if c.isalnum()),
        "references": [runtime_name] if editor else [],
        "includePlatforms": ["Editor"] if editor else [],
        "excludePlatforms": [],
        "allowUnsafeCode": False,
        "overrideReferences": False,
        "precompiledReferences": [],
        "autoReferenced": True,
        "defineConstraints": [],
        "versionDefines": [],
        "noEngineReferences": False,
    }


def zip_directory(source_dir: Path, zip_path: Path) -> None:
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(source_dir.rglob("*")):
            if path.is_file():
                zf.write(path, arcname=path.relative_to(source_dir).as_posix())


class PackageStructureBuilder:
    def __init__(self, repository_dir: Path):
        self.packages_dir = repository_dir / "packages"

    def package_dir(self, package_name: str, version: str) -> Path:
        return self.packages_dir / package_name / version

    def build(
        self,
        raw_package: RawPackage,
        manifest: PackageManifest,
        original_name: Optional[str] = None,
    ) -> Path:
        """
        Materialize ``raw_package`` as a published package version.

        Writes package.json and the package archive into the version
        directory and returns the archive path.

        Args:
            raw_package: Source .unitypackage or container archive.
            manifest: Manifest of the version being built.
            original_name: Filename used for the original file in a fallback package.
        """
        package_dir = self.package_dir(manifest.name, manifest.version)
        package_dir.mkdir(parents=True, exist_ok=True)
        zip_path = package_dir / package_file_name(manifest.name, manifest.version)

        try:
            with tempfile.TemporaryDirectory(prefix="booth-vpm-build-") as tmp:
                build_root = Path(tmp) / "package"
                build_root.mkdir()
                self._build_structure(raw_package.path, build_root, manifest, depth=0)
                zip_directory(build_root, zip_path)
            logger.info(f"Created VPM package {zip_path.name}")
        except Exception as e:
            logger.warning(f"Could not restructure {raw_package.display_name} ({e}); creating fallback package")
            self.build_fallback(raw_package.path, zip_path, manifest, original_name or raw_package.display_name)

        (package_dir / MANIFEST_FILENAME).write_text(manifest.to_json(), encoding="utf-8")
        return zip_path

    def build_fallback(
        self,
        source: Path,
        zip_path: Path,
        manifest: PackageManifest,
        original_name: Optional[str] = None,
    ) -> None:
        """Package.json plus the untouched source file; a plain copy if even that fails."""
        filename = sanitize_filename(original_name or "") or source.name
        try:
            with tempfile.TemporaryDirectory(prefix="booth-vpm-fallback-") as tmp:
                root = Path(tmp)
                (root / MANIFEST_FILENAME).write_text(manifest.to_json(), encoding="utf-8")
                shutil.copy2(source, root / filename)
                zip_directory(root, zip_path)
            logger.info(f"Created fallback VPM package {zip_path.name}")
        except OSError as e:
            logger.error(f"Failed to create fallback package {zip_path.name}: {e}; copying source as is")
            shutil.copy2(source, zip_path)

    def _build_structure(
        self,
        source: Path,
        build_root: Path,
        manifest: PackageManifest,
        depth: int,
    ) -> None:
        if source.suffix.lower() == ".zip":
            if depth >= MAX_CONTAINER_DEPTH:
                raise PackageBuildError(f"containers nested deeper than {MAX_CONTAINER_DEPTH} levels")
            with tempfile.TemporaryDirectory(prefix="booth-vpm-container-") as tmp:
                inner = self._pull_first_package(source, Path(tmp))
                if inner is None:
                    raise PackageBuildError(f"no unitypackage inside {source.name}")
                logger.debug(f"Using {inner.name} from container {source.name}")
                self._build_structure(inner, build_root, manifest, depth + 1)
            return

        with tempfile.TemporaryDirectory(prefix="booth-vpm-unpack-") as tmp:
            unpacked = Path(tmp)
            with tarfile.open(source, "r:*") as tar:
                tar.extractall(unpacked, filter="data")

            entries = parse_asset_entries(unpacked)
            if not entries:
                raise PackageBuildError(f"{source.name} contains no assets")
            self._copy_entries(entries, build_root, manifest.name)

        (build_root / MANIFEST_FILENAME).write_text(manifest.to_json(), encoding="utf-8")

    def _copy_entries(self, entries: List[RawAssetEntry], build_root: Path, package_name: str) -> None:
        for entry in entries:
            editor = is_editor_asset(entry.asset_path)
            subtree = build_root / (EDITOR_DIR if editor else RUNTIME_DIR)
            relative = strip_assets_prefix(entry.asset_path).replace("\\", "/")
            target = subtree / relative
            try:
                validate_path_safety(target, subtree)
            except ValueError:
                logger.warning(f"Skipping asset with unsafe path {entry.asset_path!r}")
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(entry.file_path, target)
            if entry.meta_path is not None:
                shutil.copy2(entry.meta_path, target.with_name(f"{target.name}.meta"))

        self._write_asmdef(build_root / RUNTIME_DIR, package_name, editor=False)
        self._write_asmdef(build_root / EDITOR_DIR, package_name, editor=True)

    @staticmethod
    def _write_asmdef(subtree: Path, package_name: str, editor: bool) -> None:
        asmdef = generate_asmdef(package_name, editor=editor)
        subtree.mkdir(parents=True, exist_ok=True)
        (subtree / f"{asmdef['name']}.asmdef").write_text(
            json.dumps(asmdef, indent=2), encoding="utf-8"
        )

    @staticmethod
    def _pull_first_package(container: Path, dest: Path) -> Optional[Path]:
        """
        Copy the first .unitypackage (or, failing that, the first nested zip)
        out of ``container`` into ``dest``.
        """
        with zipfile.ZipFile(container, "r") as zf:
            infos = [i for i in zf.infolist() if not i.is_dir()]
            for suffix in (".unitypackage", ".zip"):
                for info in infos:
                    if info.filename.lower().endswith(suffix):
                        target = dest / f"inner{suffix}"
                        with zf.open(info, "r") as src, open(target, "wb") as dst:
                            shutil.copyfileobj(src, dst)
                        return target
        return None
