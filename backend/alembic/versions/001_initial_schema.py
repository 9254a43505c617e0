"""Initial schema: staff users, audit log, students, slots, interviews, notification outbox.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

INTERVIEW_STATUSES = ("Invited", "Scheduled", "Completed", "Cancelled", "No-Show")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("target_id", UUID(as_uuid=True), nullable=True),
        sa.Column("detail", sa.Text(), default=""),
        sa.Column("ip_address", sa.String(45), default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_target_id", "audit_logs", ["target_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "students",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(50), default=""),
        sa.Column("resume_path", sa.String(500), nullable=True),
        sa.Column("resume_filename", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_students_email", "students", ["email"])
    op.create_index("ix_students_created_at", "students", ["created_at"])

    op.create_table(
        "interview_slots",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("slot_at", sa.DateTime(timezone=True), nullable=False, unique=True),
        sa.Column("interviewer", sa.String(255), nullable=True),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("is_booked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "booked_by_student_id",
            UUID(as_uuid=True),
            sa.ForeignKey("students.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "(is_booked AND booked_by_student_id IS NOT NULL) OR (NOT is_booked AND booked_by_student_id IS NULL)",
            name="ck_slot_booking_consistent",
        ),
    )
    op.create_index("idx_slots_interviewer", "interview_slots", ["interviewer"])
    op.create_index("idx_slots_booked", "interview_slots", ["is_booked"])

    op.create_table(
        "interviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "student_id",
            UUID(as_uuid=True),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "slot_id",
            UUID(as_uuid=True),
            sa.ForeignKey("interview_slots.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("invitation_token", sa.String(64), unique=True, nullable=True),
        sa.Column("token_expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*INTERVIEW_STATUSES, name="interview_status"),
            nullable=False,
            server_default="Invited",
        ),
        sa.Column("interviewer", sa.String(255), nullable=True),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_interviews_invitation_token", "interviews", ["invitation_token"])
    op.create_index("idx_interviews_status", "interviews", ["status"])
    op.create_index("idx_interviews_created", "interviews", ["created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "interview_id",
            UUID(as_uuid=True),
            sa.ForeignKey("interviews.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), default=""),
        sa.Column("body_text", sa.Text(), default=""),
        sa.Column("body_html", sa.Text(), default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_interview_id", "notifications", ["interview_id"])
    op.create_index("idx_notifications_status_created", "notifications", ["status", "created_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("interviews")
    sa.Enum(name="interview_status").drop(op.get_bind(), checkfirst=True)
    op.drop_table("interview_slots")
    op.drop_table("students")
    op.drop_table("audit_logs")
    op.drop_table("users")
