"""
Tests for the archive ingestion service.
"""

import asyncio
import threading
from pathlib import Path

import pytest

from app.domain.derivation import derive_metadata
from app.domain.errors import (
    ArchiveCorrupt,
    ArchiveTooLarge,
    Conflict,
    InvalidFilename,
    IOFailure,
    ManifestMalformed,
    ManifestMissing,
    NotFound,
)
from app.domain.models import ManifestDocument, PackageRecord
from app.services.ingestion import IngestionService


def _listing(path):
    return sorted(p.name for p in path.iterdir()) if path.exists() else []


@pytest.mark.asyncio
async def test_ingest_stores_archive_and_record(service, store, content_dir, make_mrpack, fabric_manifest):
    data = make_mrpack(fabric_manifest)

    record = await service.ingest(data, "1.21.1_Roots.mrpack")

    assert (content_dir / "1.21.1_Roots.mrpack").read_bytes() == data
    assert store.get_record("1.21.1_Roots.mrpack").model_dump() == record.model_dump()
    assert _listing(content_dir) == ["1.21.1_Roots.mrpack"]


@pytest.mark.asyncio
async def test_ingested_record_matches_derivation(service, store, make_mrpack, fabric_manifest):
    await service.ingest(make_mrpack(fabric_manifest), "Roots.mrpack")

    stored = store.get_record("Roots.mrpack")
    derived = derive_metadata(ManifestDocument.model_validate(fabric_manifest))
    assert stored.version == "1.4.0"
    assert stored.target_version == derived.target_version
    assert stored.loader_name == derived.loader_name
    assert stored.content_list == derived.content_list
    assert stored.extra_args == ""
    assert stored.notes == ""


@pytest.mark.asyncio
async def test_ingest_without_version_id(service, store, make_mrpack):
    await service.ingest(make_mrpack({"dependencies": {"minecraft": "1.20.1"}, "files": []}), "Plain.mrpack")

    record = store.get_record("Plain.mrpack")
    assert record.version is None
    assert record.loader_name == "Vanilla"
    assert "version" not in record.to_document()


@pytest.mark.asyncio
async def test_ingest_conflict_does_no_work(service, store, content_dir, make_mrpack, fabric_manifest):
    store.create_record("Roots.mrpack", PackageRecord(notes="original"))
    before = store.metadata_path.read_bytes()

    with pytest.raises(Conflict):
        # Not even a valid archive: the duplicate key is rejected first.
        await service.ingest(b"garbage", "Roots.mrpack")

    assert store.metadata_path.read_bytes() == before
    assert _listing(content_dir) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "build, error",
    [
        (lambda make: make(extra_entries={"overrides/a.txt": "a"}), ManifestMissing),
        (lambda make: make(raw_manifest=b"not json"), ManifestMalformed),
        (lambda make: b"PK\x03\x04 definitely broken", ArchiveCorrupt),
    ],
)
async def test_invalid_archive_writes_nothing(service, store, content_dir, data_dir, make_mrpack, build, error):
    data_before = _listing(data_dir)

    with pytest.raises(error):
        await service.ingest(build(make_mrpack), "Broken.mrpack")

    assert _listing(content_dir) == []
    assert _listing(data_dir) == data_before
    assert not store.metadata_path.exists()


@pytest.mark.asyncio
async def test_empty_upload(service):
    with pytest.raises(ArchiveCorrupt):
        await service.ingest(b"", "Empty.mrpack")


@pytest.mark.asyncio
async def test_upload_too_large(store, content_dir, make_mrpack, fabric_manifest):
    service = IngestionService(store, content_dir, max_upload_bytes=10)

    with pytest.raises(ArchiveTooLarge):
        await service.ingest(make_mrpack(fabric_manifest), "Roots.mrpack")
    assert _listing(content_dir) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("filename", ["", "../escape.mrpack", "nested/pack.mrpack", "..\\win.mrpack", ".hidden"])
async def test_invalid_filename(service, make_mrpack, fabric_manifest, filename):
    with pytest.raises(InvalidFilename):
        await service.ingest(make_mrpack(fabric_manifest), filename)


@pytest.mark.asyncio
async def test_failed_create_removes_uploaded_archive(service, store, content_dir, make_mrpack, fabric_manifest, monkeypatch):
    # Another request wins the key between the early check and the create.
    def lose_race(filename, record):
        raise Conflict(f"A modpack with the filename '{filename}' already exists.")

    monkeypatch.setattr(store, "create_record", lose_race)

    with pytest.raises(Conflict):
        await service.ingest(make_mrpack(fabric_manifest), "Roots.mrpack")

    assert _listing(content_dir) == []


@pytest.mark.asyncio
async def test_concurrent_ingest_of_different_files(service, store, make_mrpack, fabric_manifest):
    names = [f"pack-{i}.mrpack" for i in range(5)]
    data = make_mrpack(fabric_manifest)

    await asyncio.gather(*(service.ingest(data, name) for name in names))

    assert sorted(name for name, _ in store.list_records()) == names


@pytest.mark.asyncio
async def test_concurrent_ingest_of_same_file(service, store, content_dir, make_mrpack, fabric_manifest):
    data = make_mrpack(fabric_manifest)

    results = await asyncio.gather(
        service.ingest(data, "Roots.mrpack"),
        service.ingest(data, "Roots.mrpack"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, PackageRecord) for r in results) == 1
    assert sum(isinstance(r, Conflict) for r in results) == 1
    assert len(store.list_records()) == 1
    assert _listing(content_dir) == ["Roots.mrpack"]


def _fail_upload_moves(monkeypatch):
    original_replace = Path.replace

    def replace(self, target):
        if self.name.endswith(".upload"):
            raise OSError("No space left on device")
        return original_replace(self, target)

    monkeypatch.setattr(Path, "replace", replace)


@pytest.mark.asyncio
async def test_failed_move_removes_record_again(service, store, content_dir, make_mrpack, fabric_manifest, monkeypatch):
    _fail_upload_moves(monkeypatch)

    with pytest.raises(IOFailure):
        await service.ingest(make_mrpack(fabric_manifest), "Roots.mrpack")

    assert not store.contains("Roots.mrpack")
    assert _listing(content_dir) == []


@pytest.mark.asyncio
async def test_failed_rollback_keeps_original_error(service, store, content_dir, make_mrpack, fabric_manifest, monkeypatch):
    # A stray archive from earlier is not touched by the rollback.
    (content_dir / "Roots.mrpack").write_bytes(b"stray")
    _fail_upload_moves(monkeypatch)

    def already_gone(filename):
        raise NotFound(f"Modpack '{filename}' not found in metadata.")

    monkeypatch.setattr(store, "remove_record", already_gone)

    with pytest.raises(IOFailure):
        await service.ingest(make_mrpack(fabric_manifest), "Roots.mrpack")

    assert _listing(content_dir) == ["Roots.mrpack"]
    assert (content_dir / "Roots.mrpack").read_bytes() == b"stray"


@pytest.mark.asyncio
async def test_ingest_with_null_and_numeric_manifest_values(service, store, make_mrpack):
    manifest = {
        "versionId": 2,
        "dependencies": {"minecraft": None, "quilt-loader": 0.26},
        "files": [{"path": "mods/qsl-7.0.jar"}],
    }

    record = await service.ingest(make_mrpack(manifest), "Quilted.mrpack")

    assert record.version == "2"
    assert record.target_version == "Unknown"
    assert record.loader_name == "Quilt"
    assert store.get_record("Quilted.mrpack").content_list == ["Qsl"]


@pytest.mark.asyncio
async def test_busy_store_does_not_block_event_loop(service, store, make_mrpack, fabric_manifest):
    locked = threading.Event()

    def hold_store_lock():
        with store._lock:
            locked.set()
            threading.Event().wait(0.5)

    holder = threading.Thread(target=hold_store_lock)
    holder.start()
    locked.wait()

    ticks = 0
    ingest = asyncio.ensure_future(service.ingest(make_mrpack(fabric_manifest), "Roots.mrpack"))
    while not ingest.done():
        ticks += 1
        await asyncio.sleep(0.01)

    await ingest
    holder.join()
    assert ticks > 10
    assert store.contains("Roots.mrpack")
