from typing import Optional

from booth_vpm.core.config import Settings
from booth_vpm.storage.manifest_store import ManifestStore
from booth_vpm.storage.json_manifest_store import JsonManifestStore

_settings: Optional[Settings] = None
_manifest_store: Optional[ManifestStore] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings

def get_manifest_store() -> ManifestStore:
    global _manifest_store
    if _manifest_store is None:
        settings = get_settings()
        _manifest_store = JsonManifestStore(settings.repository_dir, base_url=settings.base_url)
    return _manifest_store
