"""Slot booking, cancellation, and resume updates keyed by invitation token.

Every write here is a compare-and-set: the UPDATE carries the condition that
made it legal, and an affected-row count of zero means a concurrent request
got there first. No application-level locks are taken. Booking writes the
slot and then the interview inside one transaction; if either update misses,
the transaction is rolled back and neither row changes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..audit.service import audit
from ..config import settings
from ..database.base import as_utc, utcnow
from ..errors import (
    AlreadyBooked,
    DependencyFailure,
    InvalidRequest,
    InvalidStatus,
    InvalidToken,
    NotFound,
    ResumeRequired,
    SchedulingError,
    SlotConflict,
    SlotUnavailable,
    TokenAlreadyUsed,
    TokenNoLongerValid,
)
from ..interviews.models import Interview, InterviewStatus
from ..notifications.service import emit_booking_confirmation
from ..slots.models import InterviewSlot
from ..storage.service import ResumeStorage
from ..students.models import Student
from .policy import offerable_for_booking
from .tokens import is_well_formed, resolve_token, token_prefix

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "Booking cancelled by admin"


@dataclass
class BookingResult:
    booking_id: UUID
    slot_id: UUID
    slot_at: datetime
    meeting_link: str
    interviewer: str
    student_name: str
    student_email: str

    def to_dict(self) -> dict:
        return {
            "message": "Interview slot booked successfully",
            "slotDateTime": self.slot_at.isoformat(),
            "meetingLink": self.meeting_link,
            "studentName": self.student_name,
            "interviewer": self.interviewer,
            "tokenExpired": True,
            "bookingId": str(self.booking_id),
        }


def _parse_slot_id(slot_id) -> UUID | None:
    if isinstance(slot_id, UUID):
        return slot_id
    try:
        return UUID(str(slot_id))
    except (ValueError, TypeError):
        return None


def _fallback_meeting_link(now: datetime) -> str:
    if settings.default_meeting_link:
        return settings.default_meeting_link
    return f"https://meet.google.com/new-{int(now.timestamp() * 1000)}"


# ── Booking ───────────────────────────────────────────────────────────


def find_bookable_slot(db: Session, slot_id: UUID, now: datetime) -> InterviewSlot | None:
    """Booking-time availability re-check (stricter grace window than the listing)."""
    slot = db.query(InterviewSlot).filter(InterviewSlot.id == slot_id).first()
    if slot is None or not offerable_for_booking(slot.slot_at, now, is_booked=slot.is_booked):
        return None
    return slot


def _claim_slot(db: Session, slot_id: UUID, student_id: UUID) -> bool:
    rows = (
        db.query(InterviewSlot)
        .filter(InterviewSlot.id == slot_id, InterviewSlot.is_booked == False)  # noqa: E712
        .update(
            {InterviewSlot.is_booked: True, InterviewSlot.booked_by_student_id: student_id},
            synchronize_session=False,
        )
    )
    return rows == 1


def _consume_token(
    db: Session,
    interview_id: UUID,
    slot_id: UUID,
    interviewer: str,
    meeting_link: str,
    now: datetime,
) -> bool:
    rows = (
        db.query(Interview)
        .filter(
            Interview.id == interview_id,
            Interview.token_expired_at.is_(None),
            Interview.status == InterviewStatus.INVITED,
        )
        .update(
            {
                Interview.slot_id: slot_id,
                Interview.interviewer: interviewer,
                Interview.meeting_link: meeting_link,
                Interview.status: InterviewStatus.SCHEDULED,
                Interview.token_expired_at: now,
                Interview.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    return rows == 1


def _token_race_outcome(db: Session, interview_id: UUID) -> SchedulingError:
    """Classify a missed interview update after the rollback."""
    current = db.query(Interview).filter(Interview.id == interview_id).first()
    if current is not None and current.token_expired_at is None:
        return InvalidStatus(f"Interview status is {current.status}. Cannot book slot.")
    return TokenAlreadyUsed(reason="Link was used to book an interview slot")


def book_slot(
    db: Session,
    slot_id,
    token: str | None,
    *,
    request: Request | None = None,
    now: datetime | None = None,
) -> BookingResult:
    """Book ``slot_id`` for the candidate holding ``token`` and consume the token.

    Raises a ``SchedulingError`` subclass for every refusal. Commits on
    success; the confirmation email is queued afterwards and its failure is
    only logged.
    """
    slot_uuid = _parse_slot_id(slot_id)
    if slot_uuid is None or not token:
        raise InvalidRequest()
    if not is_well_formed(token):
        raise InvalidRequest("Malformed invitation token")

    now = now or utcnow()
    logger.info("Booking request: slot=%s token=%s", slot_uuid, token_prefix(token))

    try:
        interview = resolve_token(db, token)
        if interview is None:
            raise InvalidToken()
        student = interview.student

        if interview.token_expired_at is not None:
            raise TokenAlreadyUsed(
                expiredAt=as_utc(interview.token_expired_at).isoformat(),
                reason="Link was used to book an interview slot",
            )
        if interview.slot_id is not None:
            raise AlreadyBooked(existingSlotId=str(interview.slot_id))
        if not student.resume_path:
            raise ResumeRequired()
        if interview.status != InterviewStatus.INVITED:
            raise InvalidStatus(f"Interview status is {interview.status}. Cannot book slot.")

        slot = find_bookable_slot(db, slot_uuid, now)
        if slot is None:
            raise SlotUnavailable()

        result = BookingResult(
            booking_id=interview.id,
            slot_id=slot_uuid,
            slot_at=as_utc(slot.slot_at),
            meeting_link=slot.meeting_link or _fallback_meeting_link(now),
            interviewer=slot.interviewer or settings.default_interviewer,
            student_name=student.name,
            student_email=student.email,
        )

        if not _claim_slot(db, slot_uuid, student.id):
            db.rollback()
            logger.info("Slot %s lost to a concurrent booking", slot_uuid)
            raise SlotConflict()

        if not _consume_token(db, interview.id, slot_uuid, result.interviewer, result.meeting_link, now):
            db.rollback()
            logger.info("Token %s consumed concurrently; slot claim rolled back", token_prefix(token))
            raise _token_race_outcome(db, interview.id)

        audit(
            db,
            request,
            "slot_book",
            f"student={result.student_email}, slot={result.slot_at.isoformat()}",
            target_id=slot_uuid,
        )
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError:
        # unique(interviews.slot_id) backs up the slot compare-and-set
        db.rollback()
        logger.info("Slot %s booking rejected by unique constraint", slot_uuid)
        raise SlotConflict()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Booking transaction failed for slot %s", slot_uuid)
        raise DependencyFailure()

    logger.info("Slot booked and token expired for %s at %s", result.student_email, result.slot_at.isoformat())

    try:
        emit_booking_confirmation(
            db,
            interview_id=result.booking_id,
            student_name=result.student_name,
            student_email=result.student_email,
            slot_at=result.slot_at,
            interviewer=result.interviewer,
            meeting_link=result.meeting_link,
        )
    except Exception:
        db.rollback()
        logger.exception("Failed to queue confirmation email for booking %s", result.booking_id)

    return result


# ── Cancellation ──────────────────────────────────────────────────────


def release_slot(db: Session, slot: InterviewSlot, reason: str, now: datetime) -> str | None:
    """Free a booked slot and cancel the interview holding it. Returns the student name.

    Does not commit. The consumed token stays consumed.
    """
    student_name = slot.booked_by.name if slot.booked_by else None
    rows = (
        db.query(InterviewSlot)
        .filter(InterviewSlot.id == slot.id, InterviewSlot.is_booked == True)  # noqa: E712
        .update(
            {InterviewSlot.is_booked: False, InterviewSlot.booked_by_student_id: None},
            synchronize_session=False,
        )
    )
    if rows == 0:
        raise NotFound("Booked slot not found")

    db.query(Interview).filter(Interview.slot_id == slot.id).update(
        {
            Interview.status: InterviewStatus.CANCELLED,
            Interview.slot_id: None,
            Interview.notes: reason,
            Interview.updated_at: now,
        },
        synchronize_session=False,
    )
    return student_name


def cancel_booking(
    db: Session,
    slot_id,
    reason: str | None = None,
    *,
    request: Request | None = None,
    now: datetime | None = None,
) -> dict:
    """Staff cancellation of a booked slot. Commits."""
    slot_uuid = _parse_slot_id(slot_id)
    if slot_uuid is None:
        raise InvalidRequest("Slot ID is required")
    reason = (reason or "").strip() or DEFAULT_CANCEL_REASON
    now = now or utcnow()

    try:
        slot = (
            db.query(InterviewSlot)
            .options(joinedload(InterviewSlot.booked_by))
            .filter(InterviewSlot.id == slot_uuid, InterviewSlot.is_booked == True)  # noqa: E712
            .with_for_update(of=InterviewSlot)
            .first()
        )
        if slot is None:
            raise NotFound("Booked slot not found")

        student_name = release_slot(db, slot, reason, now)
        audit(db, request, "slot_cancel", f"student={student_name}, reason={reason}", target_id=slot_uuid)
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Cancellation failed for slot %s", slot_uuid)
        raise DependencyFailure()

    logger.info("Booking cancelled for slot %s (%s)", slot_uuid, reason)
    return {
        "message": "Booking cancelled successfully",
        "slotId": str(slot_uuid),
        "studentName": student_name,
        "reason": reason,
    }


# ── Resume prerequisite ───────────────────────────────────────────────


def update_resume(
    db: Session,
    storage: ResumeStorage,
    token: str | None,
    data: bytes,
    filename: str | None,
    content_type: str | None,
    *,
    request: Request | None = None,
) -> dict:
    """Store a resume for the candidate holding ``token`` while the invitation is still open. Commits."""
    if not token:
        raise InvalidRequest("Token is required")
    storage.validate(filename, content_type, len(data))

    interview = resolve_token(db, token)
    if interview is None:
        raise NotFound("Invalid invitation token")
    if interview.token_expired_at is not None:
        raise TokenNoLongerValid(
            "This invitation link has expired and cannot be used to update resume",
            expiredAt=as_utc(interview.token_expired_at).isoformat(),
            reason="Link was already used to book an interview slot",
        )
    if interview.slot_id is not None:
        raise TokenNoLongerValid(
            "You have already completed the interview booking process",
            reason="Resume cannot be updated after slot booking",
        )
    if interview.status != InterviewStatus.INVITED:
        raise InvalidStatus(f"Interview status is {interview.status}. Cannot update resume.")

    student = interview.student
    student_name = student.name
    previous = student.resume_path
    locator = storage.save(data, filename)

    eligible = select(Interview.student_id).where(
        Interview.invitation_token == token,
        Interview.token_expired_at.is_(None),
        Interview.status == InterviewStatus.INVITED,
        Interview.slot_id.is_(None),
    )
    try:
        rows = (
            db.query(Student)
            .filter(Student.id.in_(eligible))
            .update(
                {Student.resume_path: locator, Student.resume_filename: filename},
                synchronize_session=False,
            )
        )
        if rows == 0:
            db.rollback()
            storage.delete(locator)
            raise TokenNoLongerValid(reason="Token no longer valid for updates")
        audit(db, request, "resume_upload", f"student={student.email}, file={filename}", target_id=student.id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.delete(locator)
        logger.exception("Resume update failed for token %s", token_prefix(token))
        raise DependencyFailure()

    if previous and previous != locator:
        storage.delete(previous)

    logger.info("Resume stored for %s: %s", student_name, locator)
    return {
        "message": "Resume updated successfully",
        "fileName": locator,
        "originalFileName": filename,
        "studentName": student_name,
    }
