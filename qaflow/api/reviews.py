"""
/api/v1/reviews endpoints.
QA reviewers' work queue, submission and history.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.dependencies import get_db, require_roles, verify_api_key
from qaflow.models.enums import QA_TEAMS
from qaflow.schemas.workflow import (
    AssignmentWithRecord,
    ReviewResponse,
    ReviewSubmitRequest,
    ReviewWithRecord,
)
from qaflow.workflow.assignments import list_active_for_reviewer
from qaflow.workflow.identity import Principal
from qaflow.workflow.reviews import ReviewVerdict, list_reviews_for_reviewer, submit_review

router = APIRouter(prefix="/api/v1/reviews", tags=["reviews"], dependencies=[Depends(verify_api_key)])

qa_only = require_roles(*QA_TEAMS)


@router.get("/assigned", response_model=list[AssignmentWithRecord])
async def assigned_to_me(
    principal: Principal = Depends(qa_only),
    session: AsyncSession = Depends(get_db),
):
    assignments = await list_active_for_reviewer(session, principal.id)
    return [AssignmentWithRecord.model_validate(a) for a in assignments]


@router.post("/submit", response_model=ReviewResponse)
async def submit(
    body: ReviewSubmitRequest,
    principal: Principal = Depends(qa_only),
    session: AsyncSession = Depends(get_db),
):
    """Submit the verdict for one of the caller's assignments."""
    review = await submit_review(
        session,
        body.assignment_id,
        ReviewVerdict(
            sold_status=body.sold_status,
            review_status=body.review_status,
            comment=body.comment,
        ),
        principal,
    )
    return ReviewResponse.model_validate(review)


@router.get("/mine", response_model=list[ReviewWithRecord])
async def my_reviews(
    principal: Principal = Depends(qa_only),
    session: AsyncSession = Depends(get_db),
):
    reviews = await list_reviews_for_reviewer(session, principal.id)
    return [ReviewWithRecord.model_validate(r) for r in reviews]
