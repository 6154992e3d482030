import hashlib
import logging
from pathlib import Path

from booth_vpm.domain.models import RepositoryManifest
from booth_vpm.domain.vpm_utils import description_has_hash

logger = logging.getLogger(__name__)


def compute_file_hash(path: Path) -> str:
    """MD5 of the file's bytes; independent of its name."""
    hasher = hashlib.md5()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def is_already_processed(
    package_name: str,
    file_hash: str,
    repository: RepositoryManifest,
) -> bool:
    """
    True if any published version of ``package_name`` was built from these bytes.

    The hash embedded in a manifest description is the only signal consulted,
    so renamed files with identical content are still recognized.
    """
    package = repository.packages.get(package_name)
    if package is None:
        return False
    for version, manifest in package.versions.items():
        if description_has_hash(manifest.description, file_hash):
            logger.debug(f"Content {file_hash} already published as {package_name}@{version}")
            return True
    return False
