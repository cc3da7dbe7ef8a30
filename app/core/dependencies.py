from pathlib import Path
from typing import Optional

from app.core.config import HubConfig, get_data_dir, load_config
from app.services.ingestion import IngestionService
from app.storage.db_manager import MetadataStore
from app.storage.json_db_manager import JsonMetadataStore

_config: Optional[HubConfig] = None
_metadata_store: Optional[JsonMetadataStore] = None
_ingestion_service: Optional[IngestionService] = None


def get_config() -> HubConfig:
    global _config
    if _config is None:
        _config = load_config(get_data_dir())
    return _config


def get_content_dir() -> Path:
    d = get_data_dir() / get_config().content_dirname
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_metadata_store() -> MetadataStore:
    global _metadata_store
    if _metadata_store is None:
        _metadata_store = JsonMetadataStore(
            get_data_dir() / get_config().metadata_filename,
            get_content_dir(),
        )
    return _metadata_store


def get_ingestion_service() -> IngestionService:
    global _ingestion_service
    if _ingestion_service is None:
        config = get_config()
        _ingestion_service = IngestionService(
            get_metadata_store(),
            get_content_dir(),
            manifest_path=config.manifest_path,
            max_upload_bytes=config.max_upload_bytes,
        )
    return _ingestion_service


def reset_dependencies() -> None:
    """Drop cached singletons so the next call re-reads the environment."""
    global _config, _metadata_store, _ingestion_service
    _config = None
    _metadata_store = None
    _ingestion_service = None
