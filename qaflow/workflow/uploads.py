"""
Duplicate & persistence resolver for upload batches.

Pairs are processed one at a time and committed one at a time. A blob or
record store failure aborts the rest of the batch, but records committed
before the failing pair stay persisted; the error carries what was created.
"""

import asyncio
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.config import settings
from qaflow.errors import BlobStoreError, DependencyError
from qaflow.models.enums import FileStatus, SoldStatus
from qaflow.models.tables import FileRecord, utcnow
from qaflow.observability.metrics import (
    duplicates_skipped_total,
    file_records_created_total,
    upload_batches_failed_total,
)
from qaflow.storage.blob_store import BlobStore
from qaflow.storage.keys import upload_key
from qaflow.workflow.pairing import PairCandidate, UploadedBlob, build_pairs

logger = structlog.get_logger(__name__)

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
DUPLICATE_CONSTRAINT = "uq_file_records_owner_base_name"


@dataclass
class UploadSummary:
    total_files: int = 0
    unique_filenames: int = 0
    uploaded_records: int = 0
    fully_mapped: int = 0
    audio_only: int = 0
    text_only: int = 0


@dataclass
class UploadBatchResult:
    created: list[FileRecord] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    summary: UploadSummary = field(default_factory=UploadSummary)


class UploadBatchAborted(DependencyError):
    """A pair failed to store; earlier pairs of the batch remain persisted."""

    def __init__(self, message: str, partial: UploadBatchResult):
        super().__init__(message)
        self.partial = partial
        self.details = {
            "created_ids": [str(r.id) for r in partial.created],
            "duplicates_skipped": partial.duplicates,
            "summary": asdict(partial.summary),
        }


def summarize(total_files: int, created: list[FileRecord]) -> UploadSummary:
    """Counts over the records this batch actually created."""
    return UploadSummary(
        total_files=total_files,
        unique_filenames=len({r.base_name for r in created}),
        uploaded_records=len(created),
        fully_mapped=sum(1 for r in created if r.audio_available and r.text_available),
        audio_only=sum(1 for r in created if r.audio_available and not r.text_available),
        text_only=sum(1 for r in created if r.text_available and not r.audio_available),
    )


async def find_existing(session: AsyncSession, owner_id: uuid.UUID, base_name: str) -> Optional[uuid.UUID]:
    """Id of the owner's record with this base name, if any."""
    return await session.scalar(
        select(FileRecord.id).where(
            FileRecord.owner_id == owner_id,
            FileRecord.base_name == base_name,
        )
    )


def _read_blob(blob: UploadedBlob) -> bytes:
    try:
        return blob.read_bytes()
    except OSError as e:
        raise DependencyError(f"Failed to read staged upload {blob.filename}: {e}") from e


async def _store_assets(store: BlobStore, uploads: list[tuple[str, bytes, str]], base_name: str) -> None:
    """Upload every present side concurrently; on any failure remove the ones that landed."""
    results = await asyncio.gather(
        *(asyncio.to_thread(store.put, key, data, content_type) for key, data, content_type in uploads),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, BaseException)]
    if not failures:
        return

    landed = [u for u, result in zip(uploads, results) if not isinstance(result, BaseException)]
    await _delete_assets(store, landed)
    raise BlobStoreError(f"Failed to upload {base_name}: {failures[0]}") from failures[0]


async def _delete_assets(store: BlobStore, uploads: list[tuple[str, bytes, str]]) -> None:
    for key, _, _ in uploads:
        await asyncio.to_thread(store.delete, key)


def is_duplicate_violation(error: IntegrityError) -> bool:
    """True when the violated constraint is the owner/base-name uniqueness rule."""
    message = str(error.orig)
    # PostgreSQL names the constraint; SQLite lists the columns
    return DUPLICATE_CONSTRAINT in message or (
        "file_records.owner_id" in message and "file_records.base_name" in message
    )


async def persist_pair(
    session: AsyncSession,
    store: BlobStore,
    owner_id: uuid.UUID,
    owner_name: str,
    pair: PairCandidate,
) -> Optional[FileRecord]:
    """
    Store one pair's assets and commit its FileRecord.
    Returns None when the owner already has this base name.
    Staged temp files are removed whatever happens.
    """
    uploads = []
    try:
        try:
            existing = await find_existing(session, owner_id, pair.base_name)
        except SQLAlchemyError as e:
            await session.rollback()
            raise DependencyError(f"Duplicate lookup failed for {pair.base_name}: {e}") from e
        if existing:
            logger.info("duplicate_skipped", owner_id=str(owner_id), base_name=pair.base_name)
            return None

        timestamp_ms = int(time.time() * 1000)
        audio_key = text_key = None
        if pair.audio is not None:
            audio_key = upload_key(str(owner_id), pair.base_name, settings.AUDIO_EXTENSION, timestamp_ms)
            audio_type = pair.audio.content_type or settings.DEFAULT_AUDIO_MIME_TYPE
            uploads.append((audio_key, _read_blob(pair.audio), audio_type))
        if pair.text is not None:
            text_key = upload_key(str(owner_id), pair.base_name, settings.TEXT_EXTENSION, timestamp_ms)
            uploads.append((text_key, _read_blob(pair.text), TEXT_CONTENT_TYPE))

        await _store_assets(store, uploads, pair.base_name)

        record = FileRecord(
            base_name=pair.base_name,
            audio_key=audio_key,
            text_key=text_key,
            audio_available=audio_key is not None,
            text_available=text_key is not None,
            audio_mime_type=(pair.audio.content_type if pair.audio else None) or settings.DEFAULT_AUDIO_MIME_TYPE,
            owner_id=owner_id,
            owner_name=owner_name,
            status=FileStatus.PROCESSING.value,
            sold_status=SoldStatus.UNSOLD.value,
            uploaded_at=utcnow(),
        )
        session.add(record)
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            await _delete_assets(store, uploads)
            if isinstance(e, IntegrityError) and is_duplicate_violation(e):
                # Another batch committed the same (owner, base name) first
                logger.info("duplicate_skipped_on_commit", owner_id=str(owner_id), base_name=pair.base_name)
                return None
            raise DependencyError(f"Failed to save record for {pair.base_name}: {e}") from e

        # All columns are set client-side; detach so a later rollback in this batch cannot expire it
        session.expunge(record)
        logger.info(
            "file_record_created",
            file_record_id=str(record.id),
            base_name=record.base_name,
            audio_available=record.audio_available,
            text_available=record.text_available,
        )
        return record
    finally:
        pair.discard()


async def process_upload_batch(
    session: AsyncSession,
    store: BlobStore,
    blobs: list[UploadedBlob],
    owner_id: uuid.UUID,
    owner_name: str,
) -> UploadBatchResult:
    """Pair the batch, skip the owner's existing base names, persist the rest."""
    logger.info("upload_batch_started", owner_id=str(owner_id), total_files=len(blobs))

    pairs = build_pairs(blobs)
    result = UploadBatchResult(summary=UploadSummary(total_files=len(blobs)))

    for index, pair in enumerate(pairs):
        try:
            record = await persist_pair(session, store, owner_id, owner_name, pair)
        except DependencyError as e:
            upload_batches_failed_total.inc()
            for remaining in pairs[index + 1:]:
                remaining.discard()
            result.summary = summarize(len(blobs), result.created)
            logger.error(
                "upload_batch_aborted",
                owner_id=str(owner_id),
                base_name=pair.base_name,
                persisted=len(result.created),
                error=str(e),
            )
            raise UploadBatchAborted(
                f"{e.message}. {len(result.created)} record(s) from this batch were already saved.",
                result,
            ) from e

        if record is None:
            result.duplicates.append(pair.base_name)
            duplicates_skipped_total.inc()
            continue

        result.created.append(record)
        shape = "fully_mapped" if record.fully_mapped else ("audio_only" if record.audio_available else "text_only")
        file_records_created_total.labels(shape=shape).inc()

    result.summary = summarize(len(blobs), result.created)
    logger.info(
        "upload_batch_completed",
        owner_id=str(owner_id),
        **asdict(result.summary),
        duplicates=result.duplicates,
    )
    return result
