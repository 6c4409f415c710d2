"""
/api/v1/manager endpoints.
Monitor/Admin view of unassigned records, assignment and reassignment.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.dependencies import get_db, require_roles, verify_api_key
from qaflow.models.enums import MANAGER_ROLES, AssignmentMode
from qaflow.schemas.records import FileRecordListResponse, FileRecordSummary
from qaflow.schemas.workflow import (
    AssignmentListResponse,
    AssignmentResponse,
    AssignmentWithRecord,
    AssignRequest,
    AssignResultResponse,
    UserSummary,
)
from qaflow.workflow.assignments import (
    assign_or_reassign,
    list_assignments,
    list_qa_users,
    list_unassigned,
)
from qaflow.workflow.identity import Principal

router = APIRouter(
    prefix="/api/v1/manager",
    tags=["manager"],
    dependencies=[Depends(verify_api_key)],
)

manager_only = require_roles(*MANAGER_ROLES)


@router.get("/file-records", response_model=FileRecordListResponse)
async def unassigned_records(
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(manager_only),
    session: AsyncSession = Depends(get_db),
):
    """Records available for assignment (default status filter: Processing)."""
    items, total = await list_unassigned(
        session, status=status_filter, search=search, limit=limit, offset=offset
    )
    return FileRecordListResponse(
        items=[FileRecordSummary.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/assign", response_model=AssignResultResponse)
async def assign(
    body: AssignRequest,
    response: Response,
    principal: Principal = Depends(manager_only),
    session: AsyncSession = Depends(get_db),
):
    """Assign a record to a QA reviewer, or reassign its active assignment."""
    result = await assign_or_reassign(session, body.file_record_id, body.reviewer_id, principal)
    if result.mode is AssignmentMode.CREATED:
        response.status_code = status.HTTP_201_CREATED
    return AssignResultResponse(
        assignment=AssignmentResponse.model_validate(result.assignment),
        mode=result.mode.value,
    )


@router.get("/assignments", response_model=AssignmentListResponse)
async def assignments(
    team_tag: Optional[str] = Query(None),
    reviewer_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(10, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(manager_only),
    session: AsyncSession = Depends(get_db),
):
    items, total = await list_assignments(
        session, team_tag=team_tag, reviewer_id=reviewer_id, limit=limit, offset=offset
    )
    return AssignmentListResponse(
        items=[AssignmentWithRecord.model_validate(a) for a in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/qa-users", response_model=list[UserSummary])
async def qa_users(
    principal: Principal = Depends(manager_only),
    session: AsyncSession = Depends(get_db),
):
    return [UserSummary.model_validate(u) for u in await list_qa_users(session)]
