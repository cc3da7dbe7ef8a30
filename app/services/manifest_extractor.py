"""
Read the manifest embedded in an uploaded modpack archive.

A modpack (.mrpack) is a plain ZIP file with a JSON index at a fixed path.
Everything happens in memory; nothing is written to disk.
"""
from __future__ import annotations

import io
import json
import logging
import struct
import zipfile
import zlib

from pydantic import ValidationError

from app.domain.errors import ArchiveCorrupt, ManifestMalformed, ManifestMissing
from app.domain.models import ManifestDocument

logger = logging.getLogger(__name__)

MANIFEST_PATH = "modrinth.index.json"


def extract_manifest(archive_bytes: bytes, manifest_path: str = MANIFEST_PATH) -> ManifestDocument:
    """
    Open the archive bytes and parse the manifest entry.

    Raises:
        ArchiveCorrupt: the bytes are not a readable ZIP container.
        ManifestMissing: there is no entry at ``manifest_path``.
        ManifestMalformed: the entry is not a valid manifest document.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(archive_bytes), "r") as zip_ref:
            if manifest_path not in zip_ref.namelist():
                raise ManifestMissing(f"{manifest_path} not found in the .mrpack file.")
            raw = zip_ref.read(manifest_path)
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        struct.error,
        EOFError,
        OSError,
        ValueError,
        RuntimeError,
        NotImplementedError,
    ) as e:
        # ValueError: bad header offsets or undecodable entry names;
        # RuntimeError: encrypted entries; NotImplementedError: unsupported compression
        raise ArchiveCorrupt(f"Uploaded file is not a valid archive: {e}") from e

    try:
        data = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ManifestMalformed(f"{manifest_path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestMalformed(f"{manifest_path} must contain a JSON object")

    try:
        manifest = ManifestDocument.model_validate(data)
    except ValidationError as e:
        raise ManifestMalformed(f"{manifest_path} has an unexpected shape: {e}") from e

    logger.debug(f"Parsed manifest with {len(manifest.dependencies)} dependencies and {len(manifest.files)} files")
    return manifest
