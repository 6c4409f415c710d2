"""
/api/v1/admin endpoints.
Dashboard stats, record deletion and user administration.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.dependencies import get_blob_store, get_db, require_roles, verify_api_key
from qaflow.models.enums import Role
from qaflow.schemas.records import FileRecordSummary
from qaflow.schemas.workflow import (
    AssignmentResponse,
    ReviewResponse,
    RoleUpdate,
    StatsResponse,
    UserSummary,
)
from qaflow.storage.blob_store import BlobStore
from qaflow.workflow.records import delete_file_record, get_stats
from qaflow.workflow.users import delete_user, list_users, update_user_role

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(verify_api_key), Depends(require_roles(Role.ADMIN.value))],
)


@router.get("/stats", response_model=StatsResponse)
async def stats(session: AsyncSession = Depends(get_db)):
    data = await get_stats(session)
    return StatsResponse(
        total_users=data["total_users"],
        total_file_records=data["total_file_records"],
        processing_count=data["processing_count"],
        completed_count=data["completed_count"],
        uploads=[FileRecordSummary.model_validate(r) for r in data["uploads"]],
        assignments=[AssignmentResponse.model_validate(a) for a in data["assignments"]],
        reviews=[ReviewResponse.model_validate(r) for r in data["reviews"]],
    )


@router.delete("/file-records/{file_record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_file_record(
    file_record_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Delete a record with its assignments, reviews, comments and blobs."""
    await delete_file_record(session, store, file_record_id)


@router.get("/users", response_model=list[UserSummary])
async def users(session: AsyncSession = Depends(get_db)):
    return [UserSummary.model_validate(u) for u in await list_users(session)]


@router.patch("/users/{user_id}/role", response_model=UserSummary)
async def change_role(
    user_id: uuid.UUID,
    body: RoleUpdate,
    session: AsyncSession = Depends(get_db),
):
    """Move a user between roles, including into or out of a QA team."""
    user = await update_user_role(session, user_id, body.role)
    return UserSummary.model_validate(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(user_id: uuid.UUID, session: AsyncSession = Depends(get_db)):
    await delete_user(session, user_id)
