"""
Assignment state machine.

A file record is Unassigned (no active assignment), Assigned (exactly one
assignment with status Assigned) or Completed (record status Completed).
Managers move Unassigned -> Assigned and reassign while Processing; only
review submission moves a record to Completed, and Completed is terminal.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.errors import ConflictError, NotFoundError, ValidationError
from qaflow.models.enums import QA_TEAMS, AssignmentMode, AssignmentStatus, FileStatus
from qaflow.models.tables import Assignment, FileRecord, User, utcnow
from qaflow.observability.metrics import assignments_total
from qaflow.workflow.identity import Principal

logger = structlog.get_logger(__name__)


@dataclass
class AssignmentResult:
    assignment: Assignment
    mode: AssignmentMode


async def get_active_assignment(session: AsyncSession, file_record_id: uuid.UUID) -> Optional[Assignment]:
    return await session.scalar(
        select(Assignment).where(
            Assignment.file_record_id == file_record_id,
            Assignment.status == AssignmentStatus.ASSIGNED.value,
        )
    )


async def assign_or_reassign(
    session: AsyncSession,
    file_record_id: Optional[uuid.UUID],
    reviewer_id: Optional[uuid.UUID],
    manager: Principal,
) -> AssignmentResult:
    """
    Assign a file record to a QA reviewer, or move its active assignment
    to a different reviewer.

    The record row is locked for the rest of the transaction. A concurrent
    first assignment that slips past the lock is caught by the partial
    unique index on active assignments and reported as a conflict.
    """
    if not file_record_id or not reviewer_id:
        raise ValidationError("file_record_id and reviewer_id are required")

    record = await session.scalar(
        select(FileRecord).where(FileRecord.id == file_record_id).with_for_update()
    )
    if record is None:
        raise NotFoundError("File record not found")

    reviewer = await session.get(User, reviewer_id)
    if reviewer is None:
        raise NotFoundError("Reviewer not found")
    if reviewer.role not in QA_TEAMS:
        raise ConflictError("Selected user is not part of a QA team")

    if record.status == FileStatus.COMPLETED.value:
        raise ConflictError("Completed file records cannot be reassigned")

    now = utcnow()
    active = await get_active_assignment(session, record.id)

    if active is not None:
        result = await session.execute(
            update(Assignment)
            .where(
                Assignment.id == active.id,
                Assignment.status == AssignmentStatus.ASSIGNED.value,
            )
            .values(
                assigned_to_id=reviewer.id,
                assigned_to_name=reviewer.name,
                team_tag=reviewer.role,
                assigned_by_id=manager.id,
                assigned_by_name=manager.name,
                assigned_at=now,
            )
        )
        if result.rowcount != 1:
            raise ConflictError("Assignment was completed before it could be reassigned")
        await session.flush()

        assignments_total.labels(mode=AssignmentMode.REASSIGNED.value, team_tag=reviewer.role).inc()
        logger.info(
            "assignment_reassigned",
            assignment_id=str(active.id),
            file_record_id=str(record.id),
            reviewer_id=str(reviewer.id),
            team_tag=reviewer.role,
        )
        return AssignmentResult(assignment=active, mode=AssignmentMode.REASSIGNED)

    assignment = Assignment(
        file_record_id=record.id,
        assigned_by_id=manager.id,
        assigned_by_name=manager.name,
        assigned_to_id=reviewer.id,
        assigned_to_name=reviewer.name,
        team_tag=reviewer.role,
        status=AssignmentStatus.ASSIGNED.value,
        assigned_at=now,
        created_at=now,
    )
    session.add(assignment)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("File record was assigned concurrently; retry the request") from e

    assignments_total.labels(mode=AssignmentMode.CREATED.value, team_tag=reviewer.role).inc()
    logger.info(
        "assignment_created",
        assignment_id=str(assignment.id),
        file_record_id=str(record.id),
        reviewer_id=str(reviewer.id),
        team_tag=reviewer.role,
    )
    return AssignmentResult(assignment=assignment, mode=AssignmentMode.CREATED)


def _unassigned_filter(status: Optional[str], search: Optional[str]):
    active = exists().where(
        Assignment.file_record_id == FileRecord.id,
        Assignment.status == AssignmentStatus.ASSIGNED.value,
    )
    conditions = [
        FileRecord.status == (status or FileStatus.PROCESSING.value),
        ~active,
    ]
    if search:
        conditions.append(FileRecord.base_name.ilike(f"%{search}%"))
    return conditions


async def list_unassigned(
    session: AsyncSession,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[FileRecord], int]:
    """File records with no active assignment, newest upload first."""
    conditions = _unassigned_filter(status, search)
    total = await session.scalar(select(func.count(FileRecord.id)).where(*conditions)) or 0
    result = await session.execute(
        select(FileRecord)
        .where(*conditions)
        .order_by(FileRecord.uploaded_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_assignments(
    session: AsyncSession,
    team_tag: Optional[str] = None,
    reviewer_id: Optional[uuid.UUID] = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Assignment], int]:
    conditions = []
    if team_tag and team_tag in QA_TEAMS:
        conditions.append(Assignment.team_tag == team_tag)
    if reviewer_id:
        conditions.append(Assignment.assigned_to_id == reviewer_id)

    total = await session.scalar(select(func.count(Assignment.id)).where(*conditions)) or 0
    result = await session.execute(
        select(Assignment)
        .where(*conditions)
        .order_by(Assignment.assigned_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().unique().all()), total


async def list_active_for_reviewer(session: AsyncSession, reviewer_id: uuid.UUID) -> list[Assignment]:
    """The reviewer's open work queue."""
    result = await session.execute(
        select(Assignment)
        .where(
            Assignment.assigned_to_id == reviewer_id,
            Assignment.status == AssignmentStatus.ASSIGNED.value,
        )
        .order_by(Assignment.assigned_at.desc())
    )
    return list(result.scalars().unique().all())


async def list_qa_users(session: AsyncSession) -> list[User]:
    result = await session.execute(
        select(User).where(User.role.in_(QA_TEAMS)).order_by(User.name)
    )
    return list(result.scalars().all())
