"""
/api/v1/file-records endpoints.
Record detail, sold status, comments, review text and download links.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.dependencies import get_blob_store, get_current_principal, get_db, verify_api_key
from qaflow.schemas.records import (
    CommentCreate,
    CommentResponse,
    DownloadLinkResponse,
    FileRecordDetail,
    FileRecordListResponse,
    FileRecordSummary,
    ReviewTextSavedResponse,
    ReviewTextUpdate,
    SoldStatusUpdate,
    TextContentResponse,
)
from qaflow.storage.blob_store import BlobStore
from qaflow.workflow import records
from qaflow.workflow.identity import Principal

router = APIRouter(
    prefix="/api/v1/file-records",
    tags=["file-records"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("", response_model=FileRecordListResponse)
async def list_all(
    status_filter: Optional[str] = Query(None, alias="status"),
    sold_status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
):
    """All records for managers and QA; uploaders only see their own."""
    owner_id = None if (principal.is_manager or principal.is_qa) else principal.id
    items, total = await records.list_records(
        session,
        owner_id=owner_id,
        status=status_filter,
        sold_status=sold_status,
        search=search,
        limit=limit,
        offset=offset,
    )
    return FileRecordListResponse(
        items=[FileRecordSummary.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{file_record_id}", response_model=FileRecordDetail)
async def detail(
    file_record_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
):
    record = await records.get_accessible_record(session, file_record_id, principal)
    return FileRecordDetail.model_validate(record)


@router.patch("/{file_record_id}/sold-status", response_model=FileRecordDetail)
async def set_sold_status(
    file_record_id: uuid.UUID,
    body: SoldStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
):
    record = await records.update_sold_status(session, file_record_id, body.sold_status, principal)
    return FileRecordDetail.model_validate(record)


@router.post(
    "/{file_record_id}/comments",
    response_model=list[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def comment(
    file_record_id: uuid.UUID,
    body: CommentCreate,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
):
    comments = await records.add_comment(session, file_record_id, body.message, principal)
    return [CommentResponse.model_validate(c) for c in comments]


@router.delete("/{file_record_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_comment(
    file_record_id: uuid.UUID,
    comment_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
):
    await records.delete_comment(session, file_record_id, comment_id, principal)


@router.get("/{file_record_id}/text", response_model=TextContentResponse)
async def text_content(
    file_record_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    content = await records.get_text_content(session, store, file_record_id, principal)
    return TextContentResponse(
        text_content=content.text_content,
        review_content=content.review_content,
        original_key=content.original_key,
        review_key=content.review_key,
    )


@router.put("/{file_record_id}/review-text", response_model=ReviewTextSavedResponse)
async def save_review_text(
    file_record_id: uuid.UUID,
    body: ReviewTextUpdate,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    key = await records.save_review_text(session, store, file_record_id, body.content, principal)
    return ReviewTextSavedResponse(review_key=key)


@router.get("/{file_record_id}/url", response_model=DownloadLinkResponse)
async def download_url(
    file_record_id: uuid.UUID,
    type: str = Query("text"),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Presigned URL for the audio, transcript or QA-edited transcript."""
    link = await records.mint_file_url(session, store, file_record_id, type, principal)
    return DownloadLinkResponse(
        url=link.url,
        filename=link.filename,
        type=link.kind.value,
        expires_in=link.expires_in,
    )
