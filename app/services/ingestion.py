"""
Ingestion of uploaded modpack archives.

This service handles:
- Validating the upload (filename, size, duplicate key)
- Extracting the manifest and deriving metadata from it
- Storing the archive bytes in the content directory
- Creating the metadata record
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi.concurrency import run_in_threadpool

from app.domain.derivation import derive_metadata
from app.domain.errors import (
    ArchiveCorrupt,
    ArchiveTooLarge,
    Conflict,
    InvalidFilename,
    IOFailure,
    ModpackHubError,
)
from app.domain.models import PackageRecord
from app.services.manifest_extractor import MANIFEST_PATH, extract_manifest
from app.storage.db_manager import MetadataStore

logger = logging.getLogger(__name__)


def validate_filename(filename: str) -> str:
    """
    Ensure the filename is usable as both a metadata key and a file name
    directly inside the content directory.
    """
    if not filename or not filename.strip():
        raise InvalidFilename("Archive filename must not be empty.")
    if "/" in filename or "\\" in filename or "\x00" in filename:
        raise InvalidFilename(f"Archive filename '{filename}' must not contain path separators.")
    if filename.startswith("."):
        raise InvalidFilename(f"Archive filename '{filename}' must not start with a dot.")
    return filename


class IngestionService:
    """
    Turns uploaded archive bytes into a stored archive plus a metadata record.

    Nothing is written to disk until the manifest has been extracted and
    derived successfully.
    """

    def __init__(
        self,
        store: MetadataStore,
        content_dir: Path,
        manifest_path: str = MANIFEST_PATH,
        max_upload_bytes: Optional[int] = None,
    ):
        self.store = store
        self.content_dir = content_dir
        self.manifest_path = manifest_path
        self.max_upload_bytes = max_upload_bytes

    async def ingest(self, archive_bytes: bytes, original_filename: str) -> PackageRecord:
        filename = validate_filename(original_filename)

        if not archive_bytes:
            raise ArchiveCorrupt("Uploaded file is empty.")
        if self.max_upload_bytes is not None and len(archive_bytes) > self.max_upload_bytes:
            raise ArchiveTooLarge(
                f"Uploaded file is {len(archive_bytes)} bytes; the limit is {self.max_upload_bytes}."
            )

        # Checked again under the store lock by create_record.
        if await run_in_threadpool(self.store.contains, filename):
            raise Conflict(f"A modpack with the filename '{filename}' already exists.")

        manifest = await run_in_threadpool(extract_manifest, archive_bytes, self.manifest_path)
        derived = derive_metadata(manifest)
        record = PackageRecord(
            version=manifest.version_id,
            target_version=derived.target_version,
            loader_name=derived.loader_name,
            content_list=derived.content_list,
        )

        logger.info(
            f"Processing {filename}: {derived.loader_name} {derived.target_version}, "
            f"{len(derived.content_list)} files"
        )

        tmp_path = self.content_dir / f".{filename}.{uuid.uuid4().hex}.upload"
        target_path = self.content_dir / filename
        await self._write_archive(tmp_path, archive_bytes)

        try:
            await run_in_threadpool(self.store.create_record, filename, record)
        except ModpackHubError:
            tmp_path.unlink(missing_ok=True)
            raise

        try:
            tmp_path.replace(target_path)
        except OSError as e:
            logger.error(f"Failed to move archive into place for {filename}", exc_info=True)
            tmp_path.unlink(missing_ok=True)
            await self._rollback_record(filename)
            raise IOFailure(f"Failed to store archive '{filename}': {e}") from e

        logger.info(f"Successfully uploaded and processed {filename}")
        return record

    async def _write_archive(self, path: Path, archive_bytes: bytes) -> None:
        try:
            self.content_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(archive_bytes)
        except OSError as e:
            logger.error(f"Failed to write archive to {path}", exc_info=True)
            path.unlink(missing_ok=True)
            raise IOFailure(f"Failed to write archive: {e}") from e

    async def _rollback_record(self, filename: str) -> None:
        # Leaves content_dir/filename alone; it was never ours to write.
        try:
            await run_in_threadpool(self.store.remove_record, filename)
        except ModpackHubError as e:
            logger.error(f"Could not roll back record for {filename}: {e.message}")
