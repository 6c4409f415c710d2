"""
/api/v1/uploads endpoints.
Batch upload of paired audio/text files and the uploader's own records.
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.config import settings
from qaflow.dependencies import get_blob_store, get_db, require_roles, verify_api_key
from qaflow.errors import DependencyError
from qaflow.models.enums import UPLOADER_ROLES
from qaflow.schemas.records import (
    FileRecordListResponse,
    FileRecordSummary,
    UploadBatchResponse,
    UploadSummaryResponse,
)
from qaflow.storage.blob_store import BlobStore
from qaflow.storage.keys import staging_path
from qaflow.workflow.identity import Principal
from qaflow.workflow.pairing import UploadedBlob, discard_file_safe
from qaflow.workflow.records import list_records
from qaflow.workflow.uploads import process_upload_batch

router = APIRouter(prefix="/api/v1/uploads", tags=["uploads"], dependencies=[Depends(verify_api_key)])


async def stage_upload(upload: UploadFile, owner_id: str) -> UploadedBlob:
    """Spool a multipart file to the staging directory."""
    filename = upload.filename or ""
    path = staging_path(settings.UPLOAD_STAGING_DIR, owner_id, filename or "unnamed")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(await upload.read())
    except OSError as e:
        discard_file_safe(path)
        raise DependencyError(f"Failed to stage upload {filename}: {e}") from e
    return UploadedBlob(filename=filename, path=path, content_type=upload.content_type)


async def stage_batch(files: list[UploadFile], owner_id: str) -> list[UploadedBlob]:
    """Stage every file, or none: a failure removes the files staged so far."""
    staged: list[UploadedBlob] = []
    try:
        for upload in files:
            staged.append(await stage_upload(upload, owner_id))
    except Exception:
        for blob in staged:
            blob.discard()
        raise
    return staged


@router.post("", response_model=UploadBatchResponse, status_code=status.HTTP_201_CREATED)
async def upload_batch(
    files: list[UploadFile] = File(...),
    principal: Principal = Depends(require_roles(*UPLOADER_ROLES)),
    session: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Upload a folder's worth of .mp3/.txt files; pairs are formed by filename."""
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files were provided")
    if len(files) > settings.MAX_FILES_PER_BATCH:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Too many files: {len(files)}. Max: {settings.MAX_FILES_PER_BATCH}",
        )

    blobs = await stage_batch(files, str(principal.id))
    result = await process_upload_batch(session, store, blobs, principal.id, principal.name)

    return UploadBatchResponse(
        summary=UploadSummaryResponse(**asdict(result.summary)),
        duplicates_skipped=result.duplicates,
        created=[FileRecordSummary.model_validate(r) for r in result.created],
    )


@router.get("/mine", response_model=FileRecordListResponse)
async def my_uploads(
    status_filter: Optional[str] = Query(None, alias="status"),
    sold_status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_roles(*UPLOADER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """The caller's own records, newest first."""
    items, total = await list_records(
        session,
        owner_id=principal.id,
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
