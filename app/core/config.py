"""
Configuration for the modpack hub.

Responsible for:
* Determining the data directory (via env var + sensible default).
* Loading and persisting hub-level configuration (hub.json).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DATA_ROOT_ENV_VAR = "MODPACK_HUB_DATA_DIR"
LOG_LEVEL_ENV_VAR = "MODPACK_HUB_LOG_LEVEL"
CONFIG_FILENAME = "hub.json"

# Resolve repository root (project root, not the Python package root)
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"


class HubConfig(BaseModel):
    """
    Top-level configuration for the hub.

    Persisted at: <DATA_DIR>/hub.json
    """

    metadata_filename: str = Field(
        default="metadata.json",
        description="Name of the metadata document inside the data directory.",
    )
    content_dirname: str = Field(
        default="modpacks",
        description="Name of the directory (inside the data directory) holding stored archives.",
    )
    manifest_path: str = Field(
        default="modrinth.index.json",
        description="Path of the manifest entry inside uploaded archives.",
    )
    max_upload_bytes: int = Field(
        default=512 * 1024 * 1024,
        ge=1,
        description="Largest accepted archive upload, in bytes.",
    )
    display_suffix: str = Field(
        default=".mrpack",
        description="Suffix removed from filenames when building display names.",
    )
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API from a browser.",
    )


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable MODPACK_HUB_DATA_DIR
    2. '<workspace root>/data'
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = _DEFAULT_DATA_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()


def load_config(data_dir: Optional[Path] = None) -> HubConfig:
    """
    Load hub.json, merging with defaults for any missing fields,
    and write it back so any new fields are persisted.
    """
    path = (data_dir or get_data_dir()) / CONFIG_FILENAME
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            config = HubConfig(**raw)
        except Exception as e:
            # If parsing fails, fall back to defaults and overwrite file.
            logger.warning(f"Could not read {path}, using defaults: {e}")
            config = HubConfig()
    else:
        config = HubConfig()

    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    return config
