"""Interview workflow model and status enum."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class InterviewStatus(enum.StrEnum):
    INVITED = "Invited"
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-Show"


class Interview(Base):
    __tablename__ = "interviews"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,  # one invitation per student
    )
    slot_id = Column(
        UUID(as_uuid=True),
        ForeignKey("interview_slots.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    invitation_token = Column(String(64), unique=True, nullable=True, index=True)
    token_expired_at = Column(DateTime(timezone=True), nullable=True)  # set when the token is consumed
    status = Column(
        SQLEnum(InterviewStatus, name="interview_status", values_callable=lambda e: [s.value for s in e]),
        nullable=False,
        default=InterviewStatus.INVITED,
    )

    interviewer = Column(String(255), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    student = relationship("Student", back_populates="interview")
    slot = relationship("InterviewSlot", back_populates="interview")

    __table_args__ = (
        Index("idx_interviews_status", "status"),
        Index("idx_interviews_created", "created_at"),
    )
