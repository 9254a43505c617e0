"""Interview service: staff listing and status workflow."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from ..booking.service import cancel_booking, release_slot
from ..database.base import as_utc, utcnow
from ..errors import InvalidRequest, InvalidTransition, NotFound
from ..slots.models import InterviewSlot
from .models import Interview, InterviewStatus

logger = logging.getLogger(__name__)

# Scheduled is only reachable by booking a slot with the invitation token
ALLOWED_TRANSITIONS: dict[InterviewStatus, set[InterviewStatus]] = {
    InterviewStatus.INVITED: {InterviewStatus.CANCELLED},
    InterviewStatus.SCHEDULED: {
        InterviewStatus.COMPLETED,
        InterviewStatus.CANCELLED,
        InterviewStatus.NO_SHOW,
    },
}


def _parse_id(value) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except (ValueError, TypeError):
        raise InvalidRequest("Invalid interview ID")


def _base_query(db: Session):
    return db.query(Interview).options(joinedload(Interview.student), joinedload(Interview.slot))


def list_interviews(db: Session, status: InterviewStatus | None = None) -> list[Interview]:
    query = _base_query(db)
    if status is not None:
        query = query.filter(Interview.status == status)
    return query.order_by(Interview.created_at.desc()).all()


def get_interview(db: Session, interview_id) -> Interview:
    interview = _base_query(db).filter(Interview.id == _parse_id(interview_id)).first()
    if not interview:
        raise NotFound("Interview not found")
    return interview


def delete_interview(db: Session, interview_id, *, now: datetime | None = None) -> Interview:
    """Delete an interview record. A booked slot is freed first. Flushes."""
    interview = get_interview(db, interview_id)
    if interview.slot_id is not None:
        slot = (
            db.query(InterviewSlot)
            .options(joinedload(InterviewSlot.booked_by))
            .filter(InterviewSlot.id == interview.slot_id)
            .first()
        )
        if slot is not None and slot.is_booked:
            release_slot(db, slot, "Interview deleted", now or utcnow())
    db.delete(interview)
    db.flush()
    logger.info("Interview deleted: %s", interview.id)
    return interview


def update_status(
    db: Session,
    interview_id,
    new_status: InterviewStatus,
    *,
    notes: str | None = None,
    request=None,
    now: datetime | None = None,
) -> Interview:
    """Apply a staff status change.

    Cancelling a Scheduled interview goes through ``cancel_booking`` so the
    slot is released in the same transaction (which commits). Other
    transitions are a conditional update on the current status; the caller
    commits.
    """
    interview = get_interview(db, interview_id)
    current = InterviewStatus(interview.status)
    if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot change interview status from {current} to {new_status}")

    now = now or utcnow()
    if current == InterviewStatus.SCHEDULED and new_status == InterviewStatus.CANCELLED and interview.slot_id:
        cancel_booking(db, interview.slot_id, notes, request=request, now=now)
        db.expire_all()
        return get_interview(db, interview.id)

    values = {Interview.status: new_status, Interview.updated_at: now}
    if notes is not None:
        values[Interview.notes] = notes.strip() or None
    rows = (
        db.query(Interview)
        .filter(Interview.id == interview.id, Interview.status == current)
        .update(values, synchronize_session=False)
    )
    if rows == 0:
        raise InvalidTransition("Interview status was changed by another request. Please reload.")
    db.flush()
    db.expire(interview)
    logger.info("Interview %s: %s -> %s", interview.id, current, new_status)
    return interview


def interview_to_dict(interview: Interview) -> dict:
    student = interview.student
    slot = interview.slot
    return {
        "id": str(interview.id),
        "studentId": str(interview.student_id),
        "studentName": student.name if student else None,
        "studentEmail": student.email if student else None,
        "status": str(interview.status),
        "slotId": str(interview.slot_id) if interview.slot_id else None,
        "slotDateTime": as_utc(slot.slot_at).isoformat() if slot else None,
        "interviewer": interview.interviewer,
        "meetingLink": interview.meeting_link,
        "notes": interview.notes,
        "tokenExpired": interview.token_expired_at is not None,
        "tokenExpiredAt": as_utc(interview.token_expired_at).isoformat() if interview.token_expired_at else None,
        "createdAt": as_utc(interview.created_at).isoformat() if interview.created_at else None,
        "updatedAt": as_utc(interview.updated_at).isoformat() if interview.updated_at else None,
    }
