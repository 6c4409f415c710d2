"""
Review submission.

The only path that completes an assignment and its file record. The review
row, the assignment flip and the record flip are written in one transaction.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from qaflow.models.enums import AssignmentStatus, FileStatus, ReviewStatus, SoldStatus
from qaflow.models.tables import Assignment, FileRecord, Review, utcnow
from qaflow.observability.metrics import reviews_submitted_total
from qaflow.workflow.identity import Principal

logger = structlog.get_logger(__name__)

SOLD_STATUSES = tuple(s.value for s in SoldStatus)
REVIEW_STATUSES = tuple(s.value for s in ReviewStatus)


@dataclass
class ReviewVerdict:
    sold_status: Optional[str]
    review_status: Optional[str]
    comment: str = ""


async def submit_review(
    session: AsyncSession,
    assignment_id: Optional[uuid.UUID],
    verdict: ReviewVerdict,
    reviewer: Principal,
) -> Review:
    """
    Record a reviewer's verdict and complete the assignment and file record.

    Checks run in order and the first failure wins: required fields, enum
    values, assignment exists, assignment belongs to the reviewer, assignment
    not already completed.
    """
    if not assignment_id or not verdict.sold_status or not verdict.review_status:
        raise ValidationError("assignment_id, sold_status and review_status are required")
    if verdict.sold_status not in SOLD_STATUSES:
        raise ValidationError("Invalid sold status")
    if verdict.review_status not in REVIEW_STATUSES:
        raise ValidationError("Invalid review status")

    assignment = await session.scalar(
        select(Assignment).where(Assignment.id == assignment_id).with_for_update(of=Assignment)
    )
    if assignment is None:
        raise NotFoundError("Assignment not found")
    if assignment.assigned_to_id != reviewer.id:
        raise ForbiddenError("You are not authorized to review this assignment")
    if assignment.status == AssignmentStatus.COMPLETED.value:
        raise ConflictError("This assignment has already been completed")

    # Compare-and-swap: a concurrent submission or reassignment loses here
    claimed = await session.execute(
        update(Assignment)
        .where(
            Assignment.id == assignment.id,
            Assignment.assigned_to_id == reviewer.id,
            Assignment.status == AssignmentStatus.ASSIGNED.value,
        )
        .values(status=AssignmentStatus.COMPLETED.value)
    )
    if claimed.rowcount != 1:
        raise ConflictError("This assignment has already been completed")

    now = utcnow()
    await session.execute(
        update(FileRecord)
        .where(FileRecord.id == assignment.file_record_id)
        .values(status=FileStatus.COMPLETED.value, completed_at=now)
    )

    review = Review(
        file_record_id=assignment.file_record_id,
        assignment_id=assignment.id,
        reviewer_id=reviewer.id,
        reviewer_name=reviewer.name,
        team_tag=assignment.team_tag,
        status=verdict.review_status,
        sold_status=verdict.sold_status,
        comment=verdict.comment or "",
        assigned_manager_id=assignment.assigned_by_id,
        assigned_manager_name=assignment.assigned_by_name,
        reviewed_at=now,
    )
    session.add(review)
    await session.flush()

    reviews_submitted_total.labels(status=review.status, team_tag=review.team_tag).inc()
    logger.info(
        "review_submitted",
        review_id=str(review.id),
        assignment_id=str(assignment.id),
        file_record_id=str(assignment.file_record_id),
        status=review.status,
        sold_status=review.sold_status,
    )
    return review


async def list_reviews_for_reviewer(session: AsyncSession, reviewer_id: uuid.UUID) -> list[Review]:
    result = await session.execute(
        select(Review)
        .where(Review.reviewer_id == reviewer_id)
        .order_by(Review.reviewed_at.desc())
    )
    return list(result.scalars().unique().all())
