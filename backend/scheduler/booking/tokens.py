"""Invitation tokens: issuing and resolving.

A token is 32 bytes from ``secrets`` rendered as 64 lowercase hex characters.
It is bound to exactly one Interview row and stays valid until a booking
consumes it (``token_expired_at`` set); there is no time-based expiry.
"""

import logging
import re
import secrets
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..errors import DuplicateInvitation, InvalidRequest, NotFound
from ..interviews.models import Interview, InterviewStatus
from ..notifications.service import enqueue_invitation
from ..students.models import Student

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed(token: str | None) -> bool:
    return bool(token) and _TOKEN_RE.fullmatch(token) is not None


def token_prefix(token: str | None) -> str:
    """Loggable stand-in for a token."""
    return f"{token[:10]}..." if token else "missing"


def invitation_link(token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/student/select-slot?token={token}"


def _new_invitation(db: Session, student: Student) -> Interview:
    interview = Interview(
        student_id=student.id,
        invitation_token=generate_token(),
        status=InterviewStatus.INVITED,
    )
    db.add(interview)
    db.flush()
    enqueue_invitation(
        db,
        interview_id=interview.id,
        name=student.name,
        email=student.email,
        link=invitation_link(interview.invitation_token),
    )
    return interview


def issue_invitation(db: Session, student_id: UUID) -> Interview:
    """Create the Invited interview for a student and queue the invitation email.

    One invitation per student: any existing interview row, whatever its
    status, refuses a new one. Flushes; the caller commits.
    """
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise NotFound("Student not found")
    if db.query(Interview.id).filter(Interview.student_id == student_id).first():
        raise DuplicateInvitation()

    try:
        interview = _new_invitation(db, student)
    except IntegrityError:
        # unique(student_id) caught a concurrent invitation
        db.rollback()
        raise DuplicateInvitation()

    logger.info("Invitation issued for %s (%s)", student.email, token_prefix(interview.invitation_token))
    return interview


def issue_bulk_invitations(db: Session, student_ids: list[UUID]) -> dict:
    """Invite several students at once, skipping those already invited. Flushes; the caller commits."""
    if not student_ids:
        raise InvalidRequest("No students selected for invitation")
    if len(student_ids) > settings.max_bulk_invitations:
        raise InvalidRequest(f"Cannot send more than {settings.max_bulk_invitations} invitations at once")

    unique_ids = list(dict.fromkeys(student_ids))
    students = db.query(Student).filter(Student.id.in_(unique_ids)).all()
    if not students:
        raise NotFound("No students found with the provided IDs")

    invited_ids = {
        row.student_id
        for row in db.query(Interview.student_id).filter(Interview.student_id.in_(unique_ids)).all()
    }
    found_ids = {s.id for s in students}

    invited = []
    for student in students:
        if student.id in invited_ids:
            continue
        try:
            interview = _new_invitation(db, student)
        except IntegrityError:
            db.rollback()
            raise DuplicateInvitation(f"Student {student.email} was invited concurrently; nothing was sent")
        invited.append({"studentId": str(student.id), "email": student.email, "interviewId": str(interview.id)})

    if not invited:
        raise DuplicateInvitation("All selected students have already been invited")

    logger.info("Bulk invitations: %d issued, %d skipped", len(invited), len(found_ids & invited_ids))
    return {
        "totalRequested": len(unique_ids),
        "invited": invited,
        "skippedExisting": len(found_ids & invited_ids),
        "notFound": [str(i) for i in unique_ids if i not in found_ids],
    }


def resolve_token(db: Session, token: str) -> Interview | None:
    """Interview (with its student loaded) for a token. No lifecycle checks are applied."""
    return (
        db.query(Interview)
        .options(joinedload(Interview.student))
        .filter(Interview.invitation_token == token)
        .first()
    )
