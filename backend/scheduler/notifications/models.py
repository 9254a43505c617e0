"""Outbound email queue."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class NotificationStatus(enum.StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(Base):
    """One email waiting for, or done with, delivery by the dispatcher."""

    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    interview_id = Column(
        UUID(as_uuid=True),
        ForeignKey("interviews.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    notification_type = Column(String(50), nullable=False)  # "invitation", "booking_confirmation"
    recipient = Column(String(255), nullable=False)
    subject = Column(String(500), default="")
    body_text = Column(Text, default="")
    body_html = Column(Text, default="")
    status = Column(String(20), nullable=False, default=NotificationStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_notifications_status_created", "status", "created_at"),)
