"""
SQLAlchemy ORM models.
FileRecord is the root entity; assignments, reviews and comments hang off it.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qaflow.models.database import Base
from qaflow.models.enums import AssignmentStatus, FileStatus, Role, SoldStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_ACTIVE_ASSIGNMENT = text(f"status = '{AssignmentStatus.ASSIGNED.value}'")


# ────────────────────────────────────────────────────────────
# USERS
# ────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Role.USER.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ────────────────────────────────────────────────────────────
# FILE RECORDS (audio/text pairs)
# ────────────────────────────────────────────────────────────
class FileRecord(Base):
    __tablename__ = "file_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    base_name: Mapped[str] = mapped_column(Text, nullable=False)
    # None when the counterpart was never uploaded
    audio_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    text_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audio_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    text_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    audio_mime_type: Mapped[str] = mapped_column(
        String(100), nullable=False, default="audio/mpeg"
    )
    review_text_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    owner_name: Mapped[str] = mapped_column(Text, nullable=False)
    sold_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SoldStatus.UNSOLD.value, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=FileStatus.PROCESSING.value, index=True
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    comments = relationship(
        "Comment",
        back_populates="file_record",
        order_by="Comment.created_at",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "base_name", name="uq_file_records_owner_base_name"),
    )

    @property
    def fully_mapped(self) -> bool:
        return self.audio_available and self.text_available


# ────────────────────────────────────────────────────────────
# COMMENTS
# ────────────────────────────────────────────────────────────
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("file_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    author_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    file_record = relationship("FileRecord", back_populates="comments")


# ────────────────────────────────────────────────────────────
# ASSIGNMENTS
# ────────────────────────────────────────────────────────────
class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("file_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    assigned_by_name: Mapped[str] = mapped_column(Text, nullable=False)
    assigned_to_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    assigned_to_name: Mapped[str] = mapped_column(Text, nullable=False)
    team_tag: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AssignmentStatus.ASSIGNED.value, index=True
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    file_record = relationship("FileRecord", lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint("file_record_id", "assigned_to_id", name="uq_assignments_file_reviewer"),
        # At most one active assignment per file record
        Index(
            "uq_assignments_active_file",
            "file_record_id",
            unique=True,
            postgresql_where=_ACTIVE_ASSIGNMENT,
            sqlite_where=_ACTIVE_ASSIGNMENT,
        ),
    )


# ────────────────────────────────────────────────────────────
# REVIEWS
# ────────────────────────────────────────────────────────────
class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("file_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    reviewer_name: Mapped[str] = mapped_column(Text, nullable=False)
    team_tag: Mapped[str] = mapped_column(String(8), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    sold_status: Mapped[str] = mapped_column(String(16), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Snapshot of the assigning manager at submission time
    assigned_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    assigned_manager_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    file_record = relationship("FileRecord", lazy="joined", innerjoin=True)

    __table_args__ = (
        Index("idx_reviews_team_reviewed", "team_tag", "reviewed_at"),
    )
