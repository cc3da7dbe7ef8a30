"""Shared pytest fixtures for modpack hub tests."""

from __future__ import annotations

import io
import json
import struct
import zipfile
from pathlib import Path
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

from app.core import dependencies
from app.core.config import DATA_ROOT_ENV_VAR
from app.services.ingestion import IngestionService
from app.storage.json_db_manager import JsonMetadataStore


# ============================================================================
# Archive Fixtures
# ============================================================================


def build_mrpack(
    manifest: Optional[object] = None,
    *,
    manifest_path: str = "modrinth.index.json",
    raw_manifest: Optional[bytes] = None,
    extra_entries: Optional[dict] = None,
) -> bytes:
    """Build an in-memory .mrpack archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        if raw_manifest is not None:
            zf.writestr(manifest_path, raw_manifest)
        elif manifest is not None:
            zf.writestr(manifest_path, json.dumps(manifest))
        for name, content in (extra_entries or {}).items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def fabric_manifest() -> dict:
    return {
        "formatVersion": 1,
        "game": "minecraft",
        "versionId": "1.4.0",
        "name": "Roots",
        "dependencies": {"minecraft": "1.21.1", "fabric-loader": "0.16.5"},
        "files": [
            {"path": "mods/sodium-fabric-0.6.0.jar", "hashes": {}, "downloads": []},
            {"path": "mods/cool_mod-2.0.jar"},
            {"path": "mods/JustName.jar"},
        ],
    }


@pytest.fixture
def make_mrpack() -> Callable[..., bytes]:
    return build_mrpack


@pytest.fixture
def shifted_offset_archive(fabric_manifest) -> bytes:
    """
    Archive whose end record claims the central directory starts 4096 bytes
    later than it does, so every local header offset resolves below zero.
    """
    data = bytearray(build_mrpack(fabric_manifest))
    eocd = len(data) - 22
    (offset_cd,) = struct.unpack_from("<I", data, eocd + 16)
    struct.pack_into("<I", data, eocd + 16, offset_cd + 4096)
    return bytes(data)


@pytest.fixture
def bad_entry_name_archive(fabric_manifest) -> bytes:
    """Archive with a UTF-8 flagged entry name that is not valid UTF-8."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_STORED) as zf:
        zf.writestr("modrinth.index.json", json.dumps(fabric_manifest))
        zf.writestr("overrides/caf\u00e9.txt", "x")
    return buffer.getvalue().replace("\u00e9".encode("utf-8"), b"\xff\xfe")


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def content_dir(data_dir: Path) -> Path:
    return data_dir / "modpacks"


@pytest.fixture
def store(data_dir: Path, content_dir: Path) -> JsonMetadataStore:
    return JsonMetadataStore(data_dir / "metadata.json", content_dir)


@pytest.fixture
def service(store: JsonMetadataStore, content_dir: Path) -> IngestionService:
    return IngestionService(store, content_dir, max_upload_bytes=1024 * 1024)


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def client(data_dir: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(DATA_ROOT_ENV_VAR, str(data_dir))
    dependencies.reset_dependencies()

    from app.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client

    dependencies.reset_dependencies()
