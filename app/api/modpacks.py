"""
API endpoints for modpack metadata.

This module provides:
- Listing and reading stored modpack records
- Uploading a modpack archive (metadata is derived from its manifest)
- Editing the operator fields (extraArgs, notes) of a record
- Deleting a record together with its archive
- An operational consistency check between records and stored archives

Domain errors are not handled here; the application-level exception handler
renders them as JSON with the matching status code.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from app.core.config import HubConfig
from app.core.dependencies import get_config, get_ingestion_service, get_metadata_store
from app.domain.models import (
    ConsistencyReport,
    PackageRecordUpdate,
    PackageSummary,
)
from app.services.ingestion import IngestionService
from app.storage.db_manager import MetadataStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/modpacks", response_model=List[PackageSummary], response_model_exclude_none=True)
def list_modpacks(
    store: MetadataStore = Depends(get_metadata_store),
    config: HubConfig = Depends(get_config),
) -> List[PackageSummary]:
    """
    Return every stored record, in the order the archives were uploaded.
    """
    return [
        PackageSummary.from_record(filename, record, config.display_suffix)
        for filename, record in store.list_records()
    ]


@router.get("/modpacks/{filename}", response_model=PackageSummary, response_model_exclude_none=True)
def get_modpack(
    filename: str,
    store: MetadataStore = Depends(get_metadata_store),
    config: HubConfig = Depends(get_config),
) -> PackageSummary:
    record = store.get_record(filename)
    return PackageSummary.from_record(filename, record, config.display_suffix)


@router.post("/modpacks", status_code=status.HTTP_201_CREATED)
async def upload_modpack(
    modpack_file: Optional[UploadFile] = File(None, alias="modpackFile"),
    service: IngestionService = Depends(get_ingestion_service),
    config: HubConfig = Depends(get_config),
) -> JSONResponse:
    """
    Upload a .mrpack archive.

    The manifest inside the archive is parsed and the loader, game version
    and mod list are derived from it. The archive itself is stored so it can
    be downloaded later.

    Args:
        modpack_file: The uploaded archive (multipart field 'modpackFile').
        service: Ingestion service dependency.

    Returns:
        JSON response with the filename and the created record.
    """
    if modpack_file is None or not modpack_file.filename:
        return JSONResponse(
            status_code=400,
            content={"error": "MissingUpload", "message": "No modpack file uploaded."},
        )

    filename = modpack_file.filename
    try:
        archive_bytes = await modpack_file.read()
    finally:
        await modpack_file.close()

    record = await service.ingest(archive_bytes, filename)
    summary = PackageSummary.from_record(filename, record, config.display_suffix)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": f"Successfully uploaded and processed {filename}",
            "filename": filename,
            "record": summary.model_dump(mode="json", by_alias=True, exclude_none=True),
        },
    )


@router.put("/modpacks/{filename}", response_model=PackageSummary, response_model_exclude_none=True)
def update_modpack(
    filename: str,
    update: PackageRecordUpdate,
    store: MetadataStore = Depends(get_metadata_store),
    config: HubConfig = Depends(get_config),
) -> PackageSummary:
    """
    Update the operator-editable fields of a record.

    Only the fields present in the request body are changed.
    """
    record = store.update_fields(filename, update)
    return PackageSummary.from_record(filename, record, config.display_suffix)


@router.delete("/modpacks/{filename}")
def delete_modpack(
    filename: str,
    store: MetadataStore = Depends(get_metadata_store),
) -> JSONResponse:
    store.delete_record(filename)
    return JSONResponse(
        status_code=200,
        content={"success": True, "message": "Modpack deleted successfully"},
    )


@router.get("/admin/consistency", response_model=ConsistencyReport)
def check_consistency(store: MetadataStore = Depends(get_metadata_store)) -> ConsistencyReport:
    """
    Report records without an archive and archives without a record.

    Nothing is repaired; this is a read-only operational check.
    """
    report = store.check_consistency()
    if not report.consistent:
        logger.warning(
            f"Metadata and content directory disagree: "
            f"{len(report.missing_archives)} missing, {len(report.orphaned_archives)} orphaned"
        )
    return report
