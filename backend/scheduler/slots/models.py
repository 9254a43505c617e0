"""Interview slot model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class InterviewSlot(Base):
    __tablename__ = "interview_slots"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slot_at = Column(DateTime(timezone=True), nullable=False, unique=True)
    interviewer = Column(String(255), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    is_booked = Column(Boolean, nullable=False, default=False)
    booked_by_student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    booked_by = relationship("Student")
    interview = relationship("Interview", back_populates="slot", uselist=False)

    __table_args__ = (
        # is_booked is false exactly when no student holds the slot
        CheckConstraint(
            "(is_booked AND booked_by_student_id IS NOT NULL) OR (NOT is_booked AND booked_by_student_id IS NULL)",
            name="ck_slot_booking_consistent",
        ),
        Index("idx_slots_interviewer", "interviewer"),
        Index("idx_slots_booked", "is_booked"),
    )
