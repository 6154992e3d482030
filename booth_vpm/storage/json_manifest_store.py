import hashlib
import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from booth_vpm.domain.models import (
    DEFAULT_UNITY_VERSION,
    PackageManifest,
    PackageStats,
    PackageVersions,
    RepositoryManifest,
    RepositoryMetadata,
    RepositoryStats,
)
from booth_vpm.domain.vpm_utils import generate_repository_url
from booth_vpm.storage.manifest_store import (
    ManifestStore,
    RepositoryManifestError,
    RepositoryPersistError,
)

logger = logging.getLogger(__name__)

CONVERTER_VERSION = "1.0.0"
MANIFEST_FILENAME = "vpm.json"
METADATA_FILENAME = ".metadata.json"


class JsonManifestStore(ManifestStore):
    def __init__(
        self,
        repository_dir: Path,
        base_url: Optional[str] = None,
        manifest_filename: str = MANIFEST_FILENAME,
    ):
        self._repository_dir = repository_dir
        self._base_url = base_url
        self._manifest_path = repository_dir / manifest_filename
        self._metadata_path = repository_dir / METADATA_FILENAME
        self._repository: Optional[RepositoryManifest] = None

    @property
    def repository_dir(self) -> Path:
        return self._repository_dir

    @property
    def manifest_path(self) -> Path:
        return self._manifest_path

    def config_hash(self) -> str:
        config = {"baseUrl": self._base_url or "", "unity": DEFAULT_UNITY_VERSION}
        return hashlib.sha256(json.dumps(config, sort_keys=True).encode("utf-8")).hexdigest()

    def prepare(self, force_rebuild: bool = False) -> None:
        metadata = self._read_metadata()
        config_hash = self.config_hash()

        if metadata is None:
            self._write_metadata()
            return

        outdated = (
            metadata.converter_version != CONVERTER_VERSION
            or metadata.config_hash != config_hash
        )
        if not (force_rebuild or outdated):
            return

        if self._manifest_path.exists():
            # A corrupt manifest must fail the run, not disappear into a backup.
            self._read_manifest()

        reason = "forced" if force_rebuild else "configuration or converter version changed"
        backup_dir = self._repository_dir.with_name(
            f"{self._repository_dir.name}.backup-{datetime.now().strftime('%Y%m%d-%H%M%S')}"
        )
        logger.warning(f"Rebuilding VPM repository ({reason}); previous state moved to {backup_dir}")
        shutil.move(str(self._repository_dir), str(backup_dir))
        self._repository = None
        self._write_metadata()

    def load(self) -> RepositoryManifest:
        if self._manifest_path.exists():
            repository = self._read_manifest()
        else:
            repository = RepositoryManifest(
                url=generate_repository_url(
                    self._repository_dir, self._base_url, self._manifest_path.name
                ),
            )

        self._repository = repository
        return repository

    def get_repository(self) -> RepositoryManifest:
        if self._repository is None:
            return self.load()
        return self._repository

    def merge(self, manifest: PackageManifest) -> None:
        repository = self.get_repository()
        package = repository.packages.setdefault(manifest.name, PackageVersions())
        if manifest.version in package.versions:
            # Recorded versions are immutable.
            return
        package.versions[manifest.version] = manifest

    def persist(self) -> None:
        repository = self.get_repository()
        tmp_path = self._manifest_path.with_name(f"{self._manifest_path.name}.tmp")
        try:
            self._manifest_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(repository.to_json(), encoding="utf-8")
            tmp_path.replace(self._manifest_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise RepositoryPersistError(
                f"Failed to write repository manifest {self._manifest_path}: {e}"
            ) from e

        stats = self.stats()
        logger.debug(
            f"Updated VPM repository: {stats.total_packages} packages, {stats.total_versions} versions"
        )

    def stats(self) -> RepositoryStats:
        repository = self.get_repository()
        packages = [
            PackageStats(name=name, versions=list(package.versions.keys()))
            for name, package in repository.packages.items()
        ]
        return RepositoryStats(
            total_packages=len(packages),
            total_versions=sum(len(p.versions) for p in packages),
            packages=packages,
        )

    def _read_manifest(self) -> RepositoryManifest:
        try:
            raw = self._manifest_path.read_text(encoding="utf-8")
            return RepositoryManifest.model_validate_json(raw)
        except (OSError, ValidationError) as e:
            raise RepositoryManifestError(
                f"Repository manifest {self._manifest_path} is unreadable: {e}"
            ) from e

    def _read_metadata(self) -> Optional[RepositoryMetadata]:
        if not self._metadata_path.exists():
            return None
        try:
            return RepositoryMetadata.model_validate_json(
                self._metadata_path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable rebuild metadata {self._metadata_path}: {e}")
            return None

    def _write_metadata(self) -> None:
        metadata = RepositoryMetadata(
            converter_version=CONVERTER_VERSION,
            generated_at=datetime.now(),
            config_hash=self.config_hash(),
        )
        self._repository_dir.mkdir(parents=True, exist_ok=True)
        self._metadata_path.write_text(
            metadata.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
