import hashlib
import re
from pathlib import Path
from typing import Dict, Optional

from booth_vpm.domain.models import BoothProduct

_SHOP_URL = re.compile(r"https://([^.]+)\.booth\.pm")
_DISPLAY_NAME_FORBIDDEN = re.compile(r'[<>:"/\\|?*]')
_FILENAME_FORBIDDEN = re.compile(r'[<>:"|?*\x00-\x1f]')


def is_convertible_item(item_name: str) -> bool:
    """Only Unity packages and zip archives are candidates for conversion."""
    lowered = item_name.lower()
    return ".unitypackage" in lowered or lowered.endswith(".zip")


def shop_slug(shop_url: str) -> str:
    match = _SHOP_URL.match(shop_url or "")
    return match.group(1) if match else "unknown"


def generate_package_name(product: BoothProduct, identifier: Optional[str] = None) -> str:
    """
    Build the package name for a product.

    'https://avatarcreator.booth.pm/' + '12345' + 'red' -> 'com.booth.avatarcreator.12345.red'
    """
    base = f"com.booth.{shop_slug(product.shop_url)}.{product.product_id}"
    if identifier:
        return f"{base}.{identifier}"
    return base


def sanitize_display_name(name: str) -> str:
    return _DISPLAY_NAME_FORBIDDEN.sub("", name).strip()


def sanitize_filename(filename: str) -> str:
    """Remove characters that are unsafe in a single path component."""
    sanitized = _FILENAME_FORBIDDEN.sub("", filename)
    return sanitized.replace("/", "").replace("\\", "")


def package_file_name(package_name: str, version: str) -> str:
    return f"{package_name}-{version}.zip"


def generate_package_url(
    package_name: str,
    version: str,
    repository_dir: Path,
    base_url: Optional[str] = None,
) -> str:
    """
    URL of a package archive: hosted under ``base_url`` when configured,
    otherwise a file:// URI pointing at the archive on disk.
    """
    filename = package_file_name(package_name, version)
    if base_url:
        return f"{base_url.rstrip('/')}/packages/{package_name}/{version}/{filename}"
    zip_path = repository_dir / "packages" / package_name / version / filename
    return zip_path.resolve().as_uri()


def generate_repository_url(
    repository_dir: Path,
    base_url: Optional[str] = None,
    manifest_filename: str = "vpm.json",
) -> str:
    if base_url:
        return f"{base_url.rstrip('/')}/{manifest_filename}"
    return (repository_dir / manifest_filename).resolve().as_uri()


def generate_legacy_folders(package_name: str) -> Dict[str, str]:
    guid = hashlib.md5(package_name.encode("utf-8")).hexdigest()
    return {f"Assets\\{package_name}": guid}


def build_description(product_name: str, item_name: str, file_hash: str) -> str:
    return f"{product_name} - {item_name} (from Booth) [Hash: {file_hash}]"


def description_has_hash(description: Optional[str], file_hash: str) -> bool:
    return bool(description) and file_hash in description


def validate_path_safety(path: Path, base_dir: Path) -> None:
    """
    Validate that a path stays within the base directory.

    Raises:
        ValueError: If path escapes the base directory
    """
    resolved_path = path.resolve()
    resolved_base = base_dir.resolve()

    if not resolved_path.is_relative_to(resolved_base):
        raise ValueError(f"Path {path} escapes base directory {base_dir}")
