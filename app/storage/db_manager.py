from abc import ABC, abstractmethod
from typing import List, Tuple

from app.domain.models import (
    ConsistencyReport,
    PackageRecord,
    PackageRecordUpdate,
)


class MetadataStore(ABC):
    """
    Abstract base class for the package metadata store.

    Records are keyed by archive filename (case-sensitive, extension included).
    """

    @abstractmethod
    def list_records(self) -> List[Tuple[str, PackageRecord]]:
        """Return every (filename, record) pair in insertion order."""
        pass

    @abstractmethod
    def contains(self, filename: str) -> bool:
        """Return True if a record exists for the filename."""
        pass

    @abstractmethod
    def get_record(self, filename: str) -> PackageRecord:
        """Get a record by filename. Raises NotFound if absent."""
        pass

    @abstractmethod
    def create_record(self, filename: str, record: PackageRecord) -> None:
        """Insert a new record. Raises Conflict if the filename is taken."""
        pass

    @abstractmethod
    def update_fields(self, filename: str, update: PackageRecordUpdate) -> PackageRecord:
        """
        Overwrite only the editable fields supplied in the update.
        Raises NotFound if absent.
        """
        pass

    @abstractmethod
    def remove_record(self, filename: str) -> None:
        """
        Remove only the record; the archive file is left alone.
        Raises NotFound if absent.
        """
        pass

    @abstractmethod
    def delete_record(self, filename: str) -> None:
        """
        Remove a record and, best-effort, its archive file.
        Raises NotFound if absent.
        """
        pass

    @abstractmethod
    def check_consistency(self) -> ConsistencyReport:
        """Compare record keys against the archives in the content directory."""
        pass
