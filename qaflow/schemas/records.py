"""
Pydantic request/response schemas for file records, uploads and comments.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# ── Request Schemas ──────────────────────────────────────────

class SoldStatusUpdate(BaseModel):
    sold_status: Optional[str] = None


class CommentCreate(BaseModel):
    message: Optional[str] = None


class ReviewTextUpdate(BaseModel):
    content: Optional[str] = None


# ── Response Schemas ─────────────────────────────────────────

class CommentResponse(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    author_name: str
    role: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FileRecordSummary(BaseModel):
    """Record as shown in list endpoints."""
    id: uuid.UUID
    base_name: str
    audio_available: bool
    text_available: bool
    owner_id: uuid.UUID
    owner_name: str
    sold_status: str
    status: str
    uploaded_at: datetime
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FileRecordDetail(FileRecordSummary):
    audio_key: Optional[str] = None
    text_key: Optional[str] = None
    review_text_key: Optional[str] = None
    audio_mime_type: str
    comments: list[CommentResponse] = []


class FileRecordListResponse(BaseModel):
    """Paginated record list."""
    items: list[FileRecordSummary]
    total: int
    limit: int
    offset: int


class UploadSummaryResponse(BaseModel):
    total_files: int
    unique_filenames: int
    uploaded_records: int
    fully_mapped: int
    audio_only: int
    text_only: int


class UploadBatchResponse(BaseModel):
    summary: UploadSummaryResponse
    duplicates_skipped: list[str]
    created: list[FileRecordSummary]


class TextContentResponse(BaseModel):
    text_content: Optional[str] = None
    review_content: str = ""
    original_key: Optional[str] = None
    review_key: Optional[str] = None


class ReviewTextSavedResponse(BaseModel):
    review_key: str


class DownloadLinkResponse(BaseModel):
    url: str
    filename: str
    type: str
    expires_in: int
