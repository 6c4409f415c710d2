"""
Pydantic request/response schemas for assignment and review endpoints.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from qaflow.schemas.records import FileRecordSummary


# ── Request Schemas ──────────────────────────────────────────

class AssignRequest(BaseModel):
    """Fields are optional so missing values surface as workflow validation errors."""
    file_record_id: Optional[uuid.UUID] = None
    reviewer_id: Optional[uuid.UUID] = None


class ReviewSubmitRequest(BaseModel):
    assignment_id: Optional[uuid.UUID] = None
    sold_status: Optional[str] = None
    review_status: Optional[str] = None
    comment: str = ""


class RoleUpdate(BaseModel):
    role: Optional[str] = None


# ── Response Schemas ─────────────────────────────────────────

class AssignmentResponse(BaseModel):
    id: uuid.UUID
    file_record_id: uuid.UUID
    assigned_by_id: uuid.UUID
    assigned_by_name: str
    assigned_to_id: uuid.UUID
    assigned_to_name: str
    team_tag: str
    status: str
    assigned_at: datetime

    model_config = {"from_attributes": True}


class AssignmentWithRecord(AssignmentResponse):
    file_record: FileRecordSummary


class AssignResultResponse(BaseModel):
    assignment: AssignmentResponse
    mode: str


class AssignmentListResponse(BaseModel):
    items: list[AssignmentWithRecord]
    total: int
    limit: int
    offset: int


class ReviewResponse(BaseModel):
    id: uuid.UUID
    file_record_id: uuid.UUID
    assignment_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewer_name: str
    team_tag: str
    status: str
    sold_status: str
    comment: str
    assigned_manager_id: Optional[uuid.UUID] = None
    assigned_manager_name: Optional[str] = None
    reviewed_at: datetime

    model_config = {"from_attributes": True}


class ReviewWithRecord(ReviewResponse):
    file_record: FileRecordSummary


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class StatsResponse(BaseModel):
    total_users: int
    total_file_records: int
    processing_count: int
    completed_count: int
    uploads: list[FileRecordSummary]
    assignments: list[AssignmentResponse]
    reviews: list[ReviewResponse]
