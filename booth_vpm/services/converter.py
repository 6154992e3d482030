import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from booth_vpm.core.config import Settings
from booth_vpm.domain.identifier import resolve_identifier
from booth_vpm.domain.models import (
    Author,
    BoothProduct,
    BoothProductItem,
    PackageManifest,
    RawPackage,
)
from booth_vpm.domain.versioning import resolve_version
from booth_vpm.domain.vpm_utils import (
    build_description,
    generate_legacy_folders,
    generate_package_name,
    generate_package_url,
    is_convertible_item,
    sanitize_display_name,
)
from booth_vpm.services.deduplicator import compute_file_hash, is_already_processed
from booth_vpm.services.extractor import ArchiveExtractor
from booth_vpm.services.package_builder import PackageStructureBuilder
from booth_vpm.storage.json_manifest_store import JsonManifestStore
from booth_vpm.storage.manifest_store import ManifestStore, RepositoryStoreError

logger = logging.getLogger(__name__)


class VpmConverter:
    """
    Converts downloaded Booth items into VPM packages, one raw package at a time.

    The repository manifest is persisted after every converted package. Per-item
    and per-package failures are logged and skipped; manifest store failures
    abort the run.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[ManifestStore] = None,
        extractor: Optional[ArchiveExtractor] = None,
        builder: Optional[PackageStructureBuilder] = None,
    ):
        self.settings = settings
        self.store = store or JsonManifestStore(settings.repository_dir, base_url=settings.base_url)
        self.extractor = extractor or ArchiveExtractor(settings.unzip_command)
        self.builder = builder or PackageStructureBuilder(self.store.repository_dir)

    def get_item_path(self, product: BoothProduct, item: BoothProductItem) -> Path:
        extension = Path(item.item_name).suffix
        return self.settings.downloaded_items_dir / product.product_id / f"{item.item_id}{extension}"

    async def convert_products(self, products: Iterable[BoothProduct]) -> List[PackageManifest]:
        """Convert every candidate item of ``products``; returns the newly published manifests."""
        if not self.settings.vpm_enabled:
            logger.info("VPM conversion is disabled")
            return []

        self.store.prepare(force_rebuild=self.settings.force_rebuild)
        self.store.load()

        converted: List[PackageManifest] = []
        for product in products:
            items = [item for item in product.items if is_convertible_item(item.item_name)]
            if not items:
                continue

            logger.info(f"Processing product {product.product_name} ({product.product_id})")
            for item in items:
                try:
                    converted.extend(await self.convert_item(product, item))
                except RepositoryStoreError:
                    raise
                except Exception as e:
                    logger.error(
                        f"Failed to convert item {item.item_name} of {product.product_name} "
                        f"({product.product_id}): {e}",
                        exc_info=True,
                    )

        logger.info(f"VPM conversion finished: {len(converted)} new package versions")
        return converted

    async def convert_item(self, product: BoothProduct, item: BoothProductItem) -> List[PackageManifest]:
        item_path = self.get_item_path(product, item)
        if not item_path.exists():
            logger.warning(f"Downloaded file not found for {item.item_name}: {item_path}")
            return []

        logger.info(f"Converting item {item.item_name}")
        result = await self.extractor.extract(item_path, item.item_name)
        converted: List[PackageManifest] = []
        try:
            for raw_package in result.packages:
                try:
                    manifest = self.convert_raw_package(product, item, raw_package)
                except RepositoryStoreError:
                    raise
                except Exception as e:
                    logger.error(
                        f"Failed to convert {raw_package.display_name} from {item.item_name} of "
                        f"{product.product_name} ({product.product_id}): {e}",
                        exc_info=True,
                    )
                    continue
                if manifest is not None:
                    converted.append(manifest)
        finally:
            result.cleanup()
        return converted

    def convert_raw_package(
        self,
        product: BoothProduct,
        item: BoothProductItem,
        raw_package: RawPackage,
    ) -> Optional[PackageManifest]:
        """
        Name, version, build and record one raw package.

        Returns None when the same bytes were already published under the
        derived package name.
        """
        repository = self.store.get_repository()

        identifier = resolve_identifier(
            raw_package.display_name,
            raw_package.path if raw_package.is_container else None,
        )
        package_name = generate_package_name(product, identifier)

        file_hash = compute_file_hash(raw_package.path)
        if is_already_processed(package_name, file_hash, repository):
            logger.debug(f"Skipping {raw_package.display_name}: already published as {package_name}")
            return None

        version = resolve_version(
            raw_package.path,
            package_name,
            repository,
            item_name=item.item_name,
            display_name=raw_package.display_name,
        )

        package_dir = self.builder.package_dir(package_name, version)
        if package_dir.exists():
            logger.warning(f"Removing unpublished leftover directory {package_dir}")
            shutil.rmtree(package_dir)

        manifest = PackageManifest(
            name=package_name,
            display_name=sanitize_display_name(product.product_name),
            version=version,
            description=build_description(product.product_name, item.item_name, file_hash),
            author=Author(name=product.shop_name),
            url=generate_package_url(
                package_name, version, self.store.repository_dir, self.settings.base_url
            ),
            legacy_folders=generate_legacy_folders(package_name),
        )

        self.builder.build(raw_package, manifest, original_name=raw_package.display_name)
        self.store.merge(manifest)
        self.store.persist()

        logger.info(f"Converted {package_name}@{version}")
        return manifest
