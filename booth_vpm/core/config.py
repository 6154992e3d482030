"""
Runtime settings read from environment variables.

Every value has a default so a bare checkout works against ./data.
"""
from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

ENABLED_ENV_VAR = "VPM_ENABLED"
BASE_URL_ENV_VAR = "VPM_BASE_URL"
REPOSITORY_DIR_ENV_VAR = "VPM_REPOSITORY_DIR"
DOWNLOADED_ITEMS_DIR_ENV_VAR = "DOWNLOADED_ITEMS_DIR"
PRODUCTS_PATH_ENV_VAR = "PRODUCTS_PATH"
FORCE_REBUILD_ENV_VAR = "VPM_FORCE_REBUILD"
UNZIP_COMMAND_ENV_VAR = "VPM_UNZIP_COMMAND"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_bool(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in _TRUE_VALUES


class Settings(BaseModel):
    """
    Configuration of the converter and the distribution server.
    """

    vpm_enabled: bool = Field(
        default=False,
        description="If False, conversion is skipped entirely.",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL the repository is hosted at. None means file:// URLs.",
    )
    repository_dir: Path = Field(
        default=Path("data/vpm-repository"),
        description="Repository root holding vpm.json and packages/.",
    )
    downloaded_items_dir: Path = Field(
        default=Path("data/items"),
        description="Where the scraper stores downloaded items (<productId>/<itemId>.<ext>).",
    )
    products_path: Path = Field(
        default=Path("data/products.json"),
        description="Product list written by the scraper.",
    )
    force_rebuild: bool = Field(
        default=False,
        description="Move the current repository to a backup and start over.",
    )
    unzip_command: List[str] = Field(
        default_factory=lambda: ["unzip", "-q", "-o"],
        description="External command used when built-in zip extraction fails.",
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values: dict = {
            "vpm_enabled": _parse_bool(env.get(ENABLED_ENV_VAR)),
            "force_rebuild": _parse_bool(env.get(FORCE_REBUILD_ENV_VAR)),
            "base_url": env.get(BASE_URL_ENV_VAR) or None,
        }
        for key, var in (
            ("repository_dir", REPOSITORY_DIR_ENV_VAR),
            ("downloaded_items_dir", DOWNLOADED_ITEMS_DIR_ENV_VAR),
            ("products_path", PRODUCTS_PATH_ENV_VAR),
        ):
            if env.get(var):
                values[key] = Path(env[var]).expanduser()
        if env.get(UNZIP_COMMAND_ENV_VAR):
            values["unzip_command"] = shlex.split(env[UNZIP_COMMAND_ENV_VAR])
        return cls(**values)
