"""
User administration: listing accounts, changing roles, removing accounts.

A user's role is also their QA team tag, so a role change is refused while
the user still holds active assignments.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.errors import ConflictError, NotFoundError, ValidationError
from qaflow.models.enums import AssignmentStatus, Role
from qaflow.models.tables import Assignment, User

logger = structlog.get_logger(__name__)

ROLES = tuple(r.value for r in Role)


async def list_users(session: AsyncSession) -> list[User]:
    """Every account, newest first."""
    result = await session.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all())


async def list_agents(session: AsyncSession) -> list[User]:
    result = await session.execute(
        select(User).where(User.role == Role.AGENT.value).order_by(User.name)
    )
    return list(result.scalars().all())


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_user_role(session: AsyncSession, user_id: uuid.UUID, role: Optional[str]) -> User:
    if not role or role not in ROLES:
        raise ValidationError("Invalid role selected")

    user = await get_user(session, user_id)
    if user.role == role:
        return user

    active = await session.scalar(
        select(func.count(Assignment.id)).where(
            Assignment.assigned_to_id == user.id,
            Assignment.status == AssignmentStatus.ASSIGNED.value,
        )
    )
    if active:
        raise ConflictError(
            f"User still holds {active} active assignment(s); reassign them before changing role"
        )

    previous = user.role
    user.role = role
    await session.flush()
    logger.info("user_role_updated", user_id=str(user.id), previous_role=previous, role=role)
    return user


async def delete_user(session: AsyncSession, user_id: uuid.UUID) -> None:
    """Remove an account that owns no records and is referenced by no workflow rows."""
    user = await get_user(session, user_id)
    await session.delete(user)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("User is referenced by file records, assignments, reviews or comments") from e
    logger.info("user_deleted", user_id=str(user_id))
