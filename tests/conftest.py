"""Shared fixtures: real .unitypackage and zip archives built under tmp_path."""

import hashlib
import io
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import pytest

from booth_vpm.core.config import Settings
from booth_vpm.domain.models import BoothProduct


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def build_unitypackage(
    path: Path,
    assets: Dict[str, bytes],
    folders: Iterable[str] = (),
) -> Path:
    """Write a gzipped tar laid out like a .unitypackage (<guid>/pathname, asset, asset.meta)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for folder in folders:
            guid = hashlib.md5(folder.encode("utf-8")).hexdigest()
            _add_bytes(tar, f"{guid}/pathname", folder.encode("utf-8"))
            _add_bytes(tar, f"{guid}/asset.meta", f"guid: {guid}\nfolderAsset: yes\n".encode())
        for asset_path, content in assets.items():
            guid = hashlib.md5(asset_path.encode("utf-8")).hexdigest()
            _add_bytes(tar, f"{guid}/pathname", f"{asset_path}\n00\n".encode("utf-8"))
            _add_bytes(tar, f"{guid}/asset", content)
            _add_bytes(tar, f"{guid}/asset.meta", f"guid: {guid}\n".encode())
    return path


def build_zip(path: Path, members: Dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_STORED) as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


def build_zip_with_raw_names(path: Path, members: Dict[bytes, bytes]) -> Path:
    """
    Write a zip whose directory table holds the given raw name bytes without
    the UTF-8 flag, the way Japanese Windows archivers store Shift_JIS names.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    placeholders: List[bytes] = []
    with zipfile.ZipFile(path, "w", zipfile.ZIP_STORED) as zf:
        for index, (raw_name, data) in enumerate(members.items()):
            placeholder = f"{index:0{len(raw_name)}d}".encode("ascii")
            placeholders.append(placeholder)
            zf.writestr(placeholder.decode("ascii"), data)

    content = path.read_bytes()
    for placeholder, raw_name in zip(placeholders, members):
        content = content.replace(placeholder, raw_name)
    path.write_bytes(content)
    return path


@pytest.fixture
def make_unitypackage() -> Callable[..., Path]:
    return build_unitypackage


@pytest.fixture
def make_zip() -> Callable[..., Path]:
    return build_zip


@pytest.fixture
def make_raw_name_zip() -> Callable[..., Path]:
    return build_zip_with_raw_names


@pytest.fixture
def sample_assets() -> Dict[str, bytes]:
    return {
        "Assets/AvatarTool/Prefabs/Tool.prefab": b"%YAML 1.1\nprefab",
        "Assets/AvatarTool/Scripts/Tool.cs": b"public class Tool {}",
        "Assets/AvatarTool/Editor/ToolEditor.cs": b"public class ToolEditor {}",
    }


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        vpm_enabled=True,
        repository_dir=tmp_path / "repository",
        downloaded_items_dir=tmp_path / "items",
        products_path=tmp_path / "products.json",
        unzip_command=["booth-vpm-missing-unzip"],
    )


@pytest.fixture
def make_product() -> Callable[..., BoothProduct]:
    def _make(
        product_id: str = "12345",
        shop: str = "avatarcreator",
        items: Optional[List[Dict[str, str]]] = None,
        product_name: str = "Avatar Tool",
    ) -> BoothProduct:
        return BoothProduct.model_validate(
            {
                "productId": product_id,
                "productName": product_name,
                "shopName": shop.capitalize(),
                "shopURL": f"https://{shop}.booth.pm/",
                "items": items or [],
            }
        )

    return _make
