from abc import ABC, abstractmethod
from pathlib import Path

from booth_vpm.domain.models import (
    PackageManifest,
    RepositoryManifest,
    RepositoryStats,
)


class RepositoryStoreError(Exception):
    """Base class for failures of the repository manifest store. Always fatal."""


class RepositoryManifestError(RepositoryStoreError):
    """The persisted repository manifest exists but cannot be read or parsed."""


class RepositoryPersistError(RepositoryStoreError):
    """The repository manifest could not be written to disk."""


class ManifestStore(ABC):
    """
    Abstract base class for repository manifest storage.
    """

    @property
    @abstractmethod
    def repository_dir(self) -> Path:
        """Root directory of the repository (holds packages/)."""
        pass

    @abstractmethod
    def prepare(self, force_rebuild: bool = False) -> None:
        """Check rebuild metadata and back up the repository if it is outdated."""
        pass

    @abstractmethod
    def load(self) -> RepositoryManifest:
        """
        Load the persisted manifest, or synthesize an empty one if none exists.
        Raises RepositoryManifestError if the document is corrupt.
        """
        pass

    @abstractmethod
    def get_repository(self) -> RepositoryManifest:
        """Return the in-memory manifest, loading it on first use."""
        pass

    @abstractmethod
    def merge(self, manifest: PackageManifest) -> None:
        """Record a package version in the in-memory manifest."""
        pass

    @abstractmethod
    def persist(self) -> None:
        """
        Write the in-memory manifest to disk.
        Raises RepositoryPersistError on failure.
        """
        pass

    @abstractmethod
    def stats(self) -> RepositoryStats:
        """Summarize packages and versions of the in-memory manifest."""
        pass
