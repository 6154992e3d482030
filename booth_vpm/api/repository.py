import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, Response

from booth_vpm.core.dependencies import get_manifest_store
from booth_vpm.domain.models import RepositoryManifest, RepositoryStats
from booth_vpm.domain.vpm_utils import validate_path_safety
from booth_vpm.storage.manifest_store import ManifestStore, RepositoryManifestError

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_repository(store: ManifestStore) -> RepositoryManifest:
    # Re-read on every request so conversions made by the CLI show up.
    try:
        return store.load()
    except RepositoryManifestError as e:
        logger.error(f"Cannot serve repository manifest: {e}")
        raise HTTPException(status_code=500, detail="Repository manifest is unreadable")


@router.get("/vpm.json")
async def get_repository_manifest(store: ManifestStore = Depends(get_manifest_store)) -> Response:
    """
    The repository index consumed by VPM clients.
    """
    repository = _load_repository(store)
    return Response(content=repository.to_json(), media_type="application/json")


@router.get("/stats", response_model=RepositoryStats)
async def get_repository_stats(store: ManifestStore = Depends(get_manifest_store)) -> RepositoryStats:
    _load_repository(store)
    return store.stats()


@router.get("/packages/{package_name}/{version}/{filename}")
async def download_package_file(
    package_name: str,
    version: str,
    filename: str,
    store: ManifestStore = Depends(get_manifest_store),
) -> FileResponse:
    """
    Serve package.json or the package archive of a published version.
    """
    packages_dir = store.repository_dir / "packages"
    target = packages_dir / package_name / version / filename
    try:
        validate_path_safety(target, packages_dir)
    except ValueError:
        raise HTTPException(status_code=404, detail="File not found")

    if not target.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    media_type = "application/json" if target.suffix == ".json" else "application/zip"
    return FileResponse(
        path=str(target),
        filename=target.name,
        media_type=media_type,
    )
