"""
File record operations outside the pairing/assignment core:
sold status, comments, QA-edited review text, download URLs, listings,
administrative deletion and dashboard stats.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.config import settings
from qaflow.errors import (
    BlobNotFoundError,
    DependencyError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from qaflow.models.enums import AssetKind, FileStatus, SoldStatus
from qaflow.models.tables import Assignment, Comment, FileRecord, Review, User, utcnow
from qaflow.storage.blob_store import BlobStore
from qaflow.storage.keys import upload_key
from qaflow.workflow.identity import Principal
from qaflow.workflow.uploads import TEXT_CONTENT_TYPE

logger = structlog.get_logger(__name__)


@dataclass
class TextContent:
    text_content: Optional[str]
    review_content: str
    original_key: Optional[str]
    review_key: Optional[str]


@dataclass
class DownloadLink:
    url: str
    filename: str
    kind: AssetKind
    expires_in: int


def can_access(principal: Principal, record: FileRecord) -> bool:
    """Managers and QA reviewers see everything; uploaders see their own records."""
    if principal.is_manager or principal.is_qa:
        return True
    return record.owner_id == principal.id


async def get_file_record(session: AsyncSession, file_record_id: uuid.UUID) -> FileRecord:
    # Reload so the comment collection is current even for an identity-mapped record
    record = await session.get(FileRecord, file_record_id, populate_existing=True)
    if record is None:
        raise NotFoundError("File record not found")
    return record


async def get_accessible_record(
    session: AsyncSession, file_record_id: uuid.UUID, principal: Principal
) -> FileRecord:
    record = await get_file_record(session, file_record_id)
    if not can_access(principal, record):
        raise ForbiddenError("You are not allowed to access this file")
    return record


async def list_records(
    session: AsyncSession,
    owner_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    sold_status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[FileRecord], int]:
    conditions = []
    if owner_id:
        conditions.append(FileRecord.owner_id == owner_id)
    if status:
        conditions.append(FileRecord.status == status)
    if sold_status:
        conditions.append(FileRecord.sold_status == sold_status)
    if search:
        conditions.append(FileRecord.base_name.ilike(f"%{search}%"))

    total = await session.scalar(select(func.count(FileRecord.id)).where(*conditions)) or 0
    result = await session.execute(
        select(FileRecord)
        .where(*conditions)
        .order_by(FileRecord.uploaded_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def update_sold_status(
    session: AsyncSession, file_record_id: uuid.UUID, sold_status: Optional[str], principal: Principal
) -> FileRecord:
    """Owner, Admin or Monitor may flip the sold flag."""
    if not sold_status or sold_status not in tuple(s.value for s in SoldStatus):
        raise ValidationError("sold_status is required (Sold or Unsold)")

    record = await get_file_record(session, file_record_id)
    if record.owner_id != principal.id and not principal.is_manager:
        raise ForbiddenError("You cannot update sold status for this record")

    record.sold_status = sold_status
    await session.flush()
    logger.info("sold_status_updated", file_record_id=str(record.id), sold_status=sold_status)
    return record


async def add_comment(
    session: AsyncSession, file_record_id: uuid.UUID, message: Optional[str], principal: Principal
) -> list[Comment]:
    if not message or not message.strip():
        raise ValidationError("message is required")

    record = await get_file_record(session, file_record_id)
    if not (principal.is_qa or principal.is_manager):
        raise ForbiddenError("You cannot comment on this record")

    comment = Comment(
        author_id=principal.id,
        author_name=principal.name,
        role=principal.role,
        message=message,
        created_at=utcnow(),
    )
    record.comments.append(comment)
    await session.flush()
    logger.info("comment_added", file_record_id=str(record.id), comment_id=str(comment.id))
    return list(record.comments)


async def delete_comment(
    session: AsyncSession, file_record_id: uuid.UUID, comment_id: uuid.UUID, principal: Principal
) -> None:
    """Only the author or an Admin may delete a comment."""
    comment = await session.scalar(
        select(Comment).where(Comment.id == comment_id, Comment.file_record_id == file_record_id)
    )
    if comment is None:
        raise NotFoundError("Comment not found")
    if comment.author_id != principal.id and not principal.is_admin:
        raise ForbiddenError("You cannot delete this comment")

    await session.delete(comment)
    await session.flush()
    logger.info("comment_deleted", file_record_id=str(file_record_id), comment_id=str(comment_id))


async def save_review_text(
    session: AsyncSession,
    store: BlobStore,
    file_record_id: uuid.UUID,
    content: Optional[str],
    principal: Principal,
) -> str:
    """
    Store the QA-edited transcript. The key is minted on first save and
    reused on every later save. Returns the key.
    """
    if not isinstance(content, str):
        raise ValidationError("content field is required")

    record = await get_file_record(session, file_record_id)
    if not (principal.is_qa or principal.is_manager):
        raise ForbiddenError("This action is limited to QA and management roles")

    key = record.review_text_key or upload_key(
        str(record.owner_id), record.base_name, settings.REVIEW_TEXT_EXTENSION
    )
    await asyncio.to_thread(store.put, key, content.encode("utf-8"), TEXT_CONTENT_TYPE)

    if record.review_text_key is None:
        record.review_text_key = key
        await session.flush()
    logger.info("review_text_saved", file_record_id=str(record.id), key=key)
    return key


async def get_text_content(
    session: AsyncSession, store: BlobStore, file_record_id: uuid.UUID, principal: Principal
) -> TextContent:
    """Original transcript (None when never uploaded) and the QA-edited one ("" when none)."""
    record = await get_accessible_record(session, file_record_id, principal)

    text_content = None
    if record.text_available and record.text_key:
        data = await asyncio.to_thread(store.get, record.text_key)
        text_content = data.decode("utf-8")

    review_content = ""
    if record.review_text_key:
        try:
            data = await asyncio.to_thread(store.get, record.review_text_key)
            review_content = data.decode("utf-8")
        except BlobNotFoundError:
            review_content = ""

    return TextContent(
        text_content=text_content,
        review_content=review_content,
        original_key=record.text_key,
        review_key=record.review_text_key,
    )


async def mint_file_url(
    session: AsyncSession,
    store: BlobStore,
    file_record_id: uuid.UUID,
    kind: str,
    principal: Principal,
) -> DownloadLink:
    try:
        asset = AssetKind(kind)
    except ValueError:
        raise ValidationError("type must be one of audio, text, review")

    record = await get_accessible_record(session, file_record_id, principal)

    if asset is AssetKind.AUDIO:
        key = record.audio_key if record.audio_available else None
        filename = f"{record.base_name}{settings.AUDIO_EXTENSION}"
    elif asset is AssetKind.TEXT:
        key = record.text_key if record.text_available else None
        filename = f"{record.base_name}{settings.TEXT_EXTENSION}"
    else:
        key = record.review_text_key
        filename = f"{record.base_name}{settings.REVIEW_TEXT_EXTENSION}"

    if not key:
        raise NotFoundError(f"{asset.value.capitalize()} file not available")

    ttl = settings.DOWNLOAD_URL_TTL_SECONDS
    url = await asyncio.to_thread(store.mint_download_url, key, ttl)
    return DownloadLink(url=url, filename=filename, kind=asset, expires_in=ttl)


async def delete_file_record(
    session: AsyncSession, store: BlobStore, file_record_id: uuid.UUID
) -> None:
    """
    Administrative delete: cascades to assignments, reviews and comments.
    Commits before touching the blob store, so a failed commit leaves the
    record and its blobs intact.
    """
    record = await get_file_record(session, file_record_id)
    keys = [k for k in (record.audio_key, record.text_key, record.review_text_key) if k]

    await session.execute(delete(Review).where(Review.file_record_id == record.id))
    await session.execute(delete(Assignment).where(Assignment.file_record_id == record.id))
    await session.execute(delete(Comment).where(Comment.file_record_id == record.id))
    await session.execute(delete(FileRecord).where(FileRecord.id == record.id))
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise DependencyError(f"Failed to delete file record {file_record_id}: {e}") from e

    for key in keys:
        await asyncio.to_thread(store.delete, key)
    logger.info("file_record_deleted", file_record_id=str(file_record_id), blobs=len(keys))


async def get_stats(session: AsyncSession, recent: int = 20) -> dict:
    """Headline counts plus the latest uploads, assignments and reviews."""
    total_users = await session.scalar(select(func.count(User.id))) or 0
    total_records = await session.scalar(select(func.count(FileRecord.id))) or 0
    processing = await session.scalar(
        select(func.count(FileRecord.id)).where(FileRecord.status == FileStatus.PROCESSING.value)
    ) or 0
    completed = await session.scalar(
        select(func.count(FileRecord.id)).where(FileRecord.status == FileStatus.COMPLETED.value)
    ) or 0

    uploads = await session.execute(
        select(FileRecord).order_by(FileRecord.uploaded_at.desc()).limit(recent)
    )
    assignments = await session.execute(
        select(Assignment).order_by(Assignment.assigned_at.desc()).limit(recent)
    )
    reviews = await session.execute(
        select(Review).order_by(Review.reviewed_at.desc()).limit(recent)
    )

    return {
        "total_users": total_users,
        "total_file_records": total_records,
        "processing_count": processing,
        "completed_count": completed,
        "uploads": list(uploads.scalars().all()),
        "assignments": list(assignments.scalars().unique().all()),
        "reviews": list(reviews.scalars().unique().all()),
    }
