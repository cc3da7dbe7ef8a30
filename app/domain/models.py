"""
Pydantic models for the modpack hub.

This module defines all data models used throughout the application, including:
- The manifest embedded in uploaded modpack archives
- Stored package records and the partial update payload
- API response models

Records are serialized with camelCase keys (via aliases) so the on-disk
metadata document and the HTTP API share a single shape.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator


# ---------------------------------------------------------------------------
# Manifest Models
# ---------------------------------------------------------------------------


class ManifestFile(BaseModel):
    """
    A single file entry listed in the archive manifest.

    Only the path is consumed; download URLs, hashes and env hints that the
    manifest may carry are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    path: str = Field(
        description="Path of the file inside the target instance (e.g. 'mods/sodium-0.5.8.jar').",
    )


class ManifestDocument(BaseModel):
    """
    Parsed form of the manifest embedded in a modpack archive.

    Transient: parsed once per ingestion and discarded afterwards. Unknown
    fields are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version_id: Optional[str] = Field(
        default=None,
        alias="versionId",
        description="Upstream version identifier of the modpack.",
    )
    dependencies: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="Mapping of dependency name (e.g. 'minecraft', 'fabric-loader') to version string.",
    )
    files: List[ManifestFile] = Field(
        default_factory=list,
        description="Files included in the modpack, in archive order.",
    )

    @field_validator("version_id", mode="before")
    @classmethod
    def _coerce_version_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, (dict, list)):
            return value
        return str(value)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependency_versions(cls, value: Any) -> Any:
        # Only the keys drive loader detection; values are kept as text.
        if not isinstance(value, dict):
            return value
        return {
            key: None if version is None or isinstance(version, (dict, list)) else str(version)
            for key, version in value.items()
        }


# ---------------------------------------------------------------------------
# Package Record Models
# ---------------------------------------------------------------------------


class PackageRecord(BaseModel):
    """
    Stored metadata for a single modpack archive.

    Derived fields (target_version, loader_name, content_list) are set once at
    ingestion time; only extra_args and notes are editable afterwards.

    Persisted in: <DATA_DIR>/metadata.json, keyed by archive filename.
    Keys this model does not know (e.g. added by hand) are kept as-is.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: Optional[str] = Field(
        default=None,
        description="Opaque upstream version identifier. Omitted when the manifest has none.",
    )
    target_version: str = Field(
        default="Unknown",
        alias="targetVersion",
        description="Game version this modpack targets, or 'Unknown'.",
    )
    loader_name: str = Field(
        default="Vanilla",
        alias="loaderName",
        description="Detected mod loader (e.g. 'Fabric'), or 'Vanilla'.",
    )
    content_list: List[str] = Field(
        default_factory=list,
        alias="contentList",
        description="Human-readable names of the included files, in archive order.",
    )
    extra_args: str = Field(
        default="",
        alias="extraArgs",
        description="Operator-editable free text (e.g. JVM arguments).",
    )
    notes: str = Field(
        default="",
        description="Operator-editable free text.",
    )

    def to_document(self) -> dict:
        """Serialize to the camelCase shape stored in the metadata document."""
        return self.model_dump(by_alias=True, exclude_none=True)


class PackageRecordUpdate(BaseModel):
    """
    Partial update for the editable fields of a record.

    Fields that are not supplied are left unchanged; use ``supplied_fields()``
    to tell an omitted field apart from an explicit empty string.
    """

    model_config = ConfigDict(populate_by_name=True)

    extra_args: Optional[str] = Field(default=None, alias="extraArgs")
    notes: Optional[str] = Field(default=None)

    def supplied_fields(self) -> Dict[str, str]:
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


# ---------------------------------------------------------------------------
# API Response Models
# ---------------------------------------------------------------------------


class PackageSummary(PackageRecord):
    """
    A record as presented to API clients: the stored fields plus the
    filename key and a display name derived from it.
    """

    filename: str
    name: str

    @classmethod
    def from_record(cls, filename: str, record: PackageRecord, display_suffix: str = ".mrpack") -> "PackageSummary":
        data = record.model_dump()
        data.update(filename=filename, name=display_name(filename, display_suffix))
        return cls(**data)


class ConsistencyReport(BaseModel):
    """Result of comparing metadata keys with the files in the content directory."""

    model_config = ConfigDict(populate_by_name=True)

    missing_archives: List[str] = Field(
        default_factory=list,
        alias="missingArchives",
        description="Filenames that have a record but no archive on disk.",
    )
    orphaned_archives: List[str] = Field(
        default_factory=list,
        alias="orphanedArchives",
        description="Archive files on disk that have no record.",
    )

    @property
    def consistent(self) -> bool:
        return not self.missing_archives and not self.orphaned_archives


def display_name(filename: str, suffix: str = ".mrpack") -> str:
    """
    Turn an archive filename into a display name: drop the first occurrence
    of the suffix and replace underscores with spaces.
    """
    return filename.replace(suffix, "", 1).replace("_", " ")
