import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Tuple

from app.domain.errors import Conflict, IOFailure, NotFound
from app.domain.models import (
    ConsistencyReport,
    PackageRecord,
    PackageRecordUpdate,
)
from app.storage.db_manager import MetadataStore

logger = logging.getLogger(__name__)


class JsonMetadataStore(MetadataStore):
    """
    Metadata store backed by a single pretty-printed JSON document.

    The whole document is read at the start of every operation and rewritten
    in full at the end of every mutating one. A single lock serializes every
    read-modify-write cycle within the process.
    """

    def __init__(self, metadata_path: Path, content_dir: Path):
        self._metadata_path = metadata_path
        self._content_dir = content_dir
        self._lock = threading.RLock()

        # Ensure directories exist
        self._metadata_path.parent.mkdir(parents=True, exist_ok=True)
        self._content_dir.mkdir(parents=True, exist_ok=True)

    @property
    def metadata_path(self) -> Path:
        return self._metadata_path

    @property
    def content_dir(self) -> Path:
        return self._content_dir

    def archive_path(self, filename: str) -> Path:
        return self._content_dir / filename

    def list_records(self) -> List[Tuple[str, PackageRecord]]:
        with self._lock:
            return list(self._read_document().items())

    def contains(self, filename: str) -> bool:
        with self._lock:
            return filename in self._read_document()

    def get_record(self, filename: str) -> PackageRecord:
        with self._lock:
            document = self._read_document()
        record = document.get(filename)
        if record is None:
            raise NotFound(f"Modpack '{filename}' not found")
        return record

    def create_record(self, filename: str, record: PackageRecord) -> None:
        with self._lock:
            document = self._read_document()
            if filename in document:
                raise Conflict(f"A modpack with the filename '{filename}' already exists.")
            document[filename] = record
            self._write_document(document)
        logger.info(f"Created metadata record for {filename}")

    def update_fields(self, filename: str, update: PackageRecordUpdate) -> PackageRecord:
        changes = update.supplied_fields()
        with self._lock:
            document = self._read_document()
            current = document.get(filename)
            if current is None:
                raise NotFound(f"Modpack '{filename}' not found")
            updated = current.model_copy(update=changes)
            document[filename] = updated
            self._write_document(document)
        logger.info(f"Updated {sorted(changes)} for {filename}")
        return updated

    def remove_record(self, filename: str) -> None:
        with self._lock:
            document = self._read_document()
            if filename not in document:
                raise NotFound(f"Modpack '{filename}' not found in metadata.")
            del document[filename]
            self._write_document(document)

    def delete_record(self, filename: str) -> None:
        self.remove_record(filename)

        # The record is the source of truth; a leftover archive is not an error.
        try:
            self.archive_path(filename).unlink()
        except OSError as e:
            logger.warning(f"Could not remove archive for {filename}: {e}")
        logger.info(f"Deleted metadata record for {filename}")

    def check_consistency(self) -> ConsistencyReport:
        with self._lock:
            keys = list(self._read_document().keys())
            try:
                on_disk = {p.name for p in self._content_dir.iterdir() if p.is_file()}
            except OSError as e:
                raise IOFailure(f"Failed to list content directory: {e}") from e

        # Upload temp files are in-flight ingestions, not orphans.
        on_disk = {name for name in on_disk if not name.startswith(".")}
        return ConsistencyReport(
            missing_archives=[k for k in keys if k not in on_disk],
            orphaned_archives=sorted(on_disk.difference(keys)),
        )

    def _read_document(self) -> Dict[str, PackageRecord]:
        if not self._metadata_path.exists():
            return {}

        try:
            raw = json.loads(self._metadata_path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.error(f"Failed to read {self._metadata_path}", exc_info=True)
            raise IOFailure(f"Failed to read metadata document: {e}") from e
        except ValueError as e:
            logger.error(f"Metadata document {self._metadata_path} is not valid JSON")
            raise IOFailure(f"Metadata document is corrupt: {e}") from e

        if not isinstance(raw, dict):
            raise IOFailure("Metadata document must be a JSON object")

        try:
            return {filename: PackageRecord(**data) for filename, data in raw.items()}
        except (TypeError, ValueError) as e:
            raise IOFailure(f"Metadata document has an invalid record: {e}") from e

    def _write_document(self, document: Dict[str, PackageRecord]) -> None:
        payload = {filename: record.to_document() for filename, record in document.items()}
        tmp_path = self._metadata_path.with_name(f".{self._metadata_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self._metadata_path)
        except OSError as e:
            logger.error(f"Failed to write {self._metadata_path}", exc_info=True)
            tmp_path.unlink(missing_ok=True)
            raise IOFailure(f"Failed to write metadata document: {e}") from e
