"""Interview slot service: creation, listing, deletion."""

import logging
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..booking.policy import offerable_for_listing, start_of_today
from ..config import settings
from ..database.base import as_utc, utcnow
from ..errors import DuplicateSlot, InvalidRequest, NotFound, SlotInUse
from ..interviews.models import Interview
from .models import InterviewSlot

logger = logging.getLogger(__name__)


def _to_uuid(value) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def normalize_slot_time(value: datetime) -> datetime:
    """Store instants in UTC. Naive input is wall-clock time in the scheduling timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=settings.tzinfo)
    return value.astimezone(UTC)


def _validate_new_slot(slot_at: datetime, interviewer: str | None, now: datetime) -> tuple[datetime, str]:
    if not interviewer or not interviewer.strip():
        raise InvalidRequest("Interviewer is required")
    slot_at = normalize_slot_time(slot_at)
    if slot_at <= now:
        raise InvalidRequest("Slot date must be in the future")
    return slot_at, interviewer.strip()


def _slot_exists_at(db: Session, slot_at: datetime) -> bool:
    return db.query(InterviewSlot.id).filter(InterviewSlot.slot_at == slot_at).first() is not None


def create_slot(
    db: Session,
    slot_at: datetime,
    interviewer: str | None,
    meeting_link: str | None = None,
    *,
    now: datetime | None = None,
) -> InterviewSlot:
    slot_at, interviewer = _validate_new_slot(slot_at, interviewer, now or utcnow())
    if _slot_exists_at(db, slot_at):
        raise DuplicateSlot()

    slot = InterviewSlot(
        slot_at=slot_at,
        interviewer=interviewer,
        meeting_link=(meeting_link or "").strip() or None,
    )
    db.add(slot)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateSlot()
    logger.info("Slot created: %s by %s", slot_at.isoformat(), interviewer)
    return slot


def create_bulk_slots(db: Session, items: list[dict], *, now: datetime | None = None) -> dict:
    """Create many slots; invalid or duplicate items are reported, not fatal. Flushes."""
    if not items:
        raise InvalidRequest("Slots array cannot be empty")
    if len(items) > settings.max_bulk_slots:
        raise InvalidRequest(f"Cannot create more than {settings.max_bulk_slots} slots at once")

    now = now or utcnow()
    results = {"total": len(items), "successful": 0, "failed": 0, "duplicates": 0, "errors": []}
    seen: set[datetime] = set()

    for index, item in enumerate(items, 1):
        raw_at = item.get("slotDateTime")
        try:
            if raw_at is None:
                raise InvalidRequest("SlotDateTime is required")
            slot_at, interviewer = _validate_new_slot(raw_at, item.get("interviewer"), now)
        except InvalidRequest as exc:
            results["failed"] += 1
            results["errors"].append(
                {
                    "index": index,
                    "slotDateTime": raw_at.isoformat() if raw_at else "N/A",
                    "interviewer": item.get("interviewer") or "N/A",
                    "error": exc.message,
                }
            )
            continue

        if slot_at in seen or _slot_exists_at(db, slot_at):
            results["duplicates"] += 1
            results["errors"].append(
                {
                    "index": index,
                    "slotDateTime": slot_at.isoformat(),
                    "error": "Slot already exists at this date and time",
                }
            )
            continue

        seen.add(slot_at)
        db.add(
            InterviewSlot(
                slot_at=slot_at,
                interviewer=interviewer,
                meeting_link=(item.get("meetingLink") or "").strip() or None,
            )
        )
        results["successful"] += 1

    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateSlot("A slot in this batch was created concurrently; nothing was saved")

    logger.info(
        "Bulk slot creation: %d created, %d failed, %d duplicates",
        results["successful"],
        results["failed"],
        results["duplicates"],
    )
    return results


def _booked_query(db: Session):
    return db.query(InterviewSlot).options(joinedload(InterviewSlot.booked_by))


def list_slots(db: Session) -> list[InterviewSlot]:
    return _booked_query(db).order_by(InterviewSlot.slot_at.asc()).all()


def list_available_slots(db: Session, now: datetime | None = None) -> list[InterviewSlot]:
    """Unbooked slots a candidate may pick right now (listing grace window)."""
    now = now or utcnow()
    candidates = (
        db.query(InterviewSlot)
        .filter(
            InterviewSlot.is_booked == False,  # noqa: E712
            InterviewSlot.slot_at >= start_of_today(now).astimezone(UTC),
        )
        .order_by(InterviewSlot.slot_at.asc())
        .all()
    )
    return [s for s in candidates if offerable_for_listing(s.slot_at, now, is_booked=s.is_booked)]


def list_slots_in_range(db: Session, start: date, end: date) -> list[InterviewSlot]:
    """Slots whose reference-timezone calendar date lies in [start, end]."""
    if end < start:
        raise InvalidRequest("End date must not be before start date")
    tz = settings.tzinfo
    lower = datetime.combine(start, time.min, tzinfo=tz).astimezone(UTC)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz).astimezone(UTC)
    return (
        _booked_query(db)
        .filter(InterviewSlot.slot_at >= lower, InterviewSlot.slot_at < upper)
        .order_by(InterviewSlot.slot_at.asc())
        .all()
    )


def list_slots_by_interviewer(db: Session, interviewer: str) -> list[InterviewSlot]:
    if not interviewer or not interviewer.strip():
        raise InvalidRequest("Interviewer name is required")
    return (
        _booked_query(db)
        .filter(InterviewSlot.interviewer == interviewer.strip())
        .order_by(InterviewSlot.slot_at.asc())
        .all()
    )


def delete_slot(db: Session, slot_id) -> InterviewSlot:
    """Delete an unbooked slot. The DELETE itself re-checks is_booked. Flushes."""
    uid = _to_uuid(slot_id)
    if uid is None:
        raise InvalidRequest("Invalid slot ID format")

    slot = _booked_query(db).filter(InterviewSlot.id == uid).first()
    if not slot:
        raise NotFound("Slot not found")

    interview = db.query(Interview).filter(Interview.slot_id == uid).first()
    if slot.is_booked or interview is not None:
        reasons = []
        if slot.is_booked:
            reasons.append("is marked as booked")
        if slot.booked_by:
            reasons.append(f"is booked by {slot.booked_by.name}")
        if interview is not None:
            reasons.append(f"has an interview with status: {interview.status}")
        raise SlotInUse(
            f"Cannot delete this slot because it {' and '.join(reasons)}. "
            "Please cancel the booking first or contact the student."
        )

    rows = (
        db.query(InterviewSlot)
        .filter(InterviewSlot.id == uid, InterviewSlot.is_booked == False)  # noqa: E712
        .delete(synchronize_session=False)
    )
    if rows == 0:
        raise SlotInUse("Slot could not be deleted. It may have been booked by another user just now.")
    db.flush()
    logger.info("Slot deleted: %s", uid)
    return slot


def delete_bulk_slots(db: Session, slot_ids: list) -> dict:
    if not slot_ids:
        raise InvalidRequest("Slot IDs array is required")

    results = {"total": len(slot_ids), "successful": 0, "failed": 0, "booked": 0, "errors": []}
    for raw_id in slot_ids:
        try:
            delete_slot(db, raw_id)
        except SlotInUse as exc:
            results["booked"] += 1
            results["errors"].append({"slotId": str(raw_id), "error": exc.message})
        except (InvalidRequest, NotFound) as exc:
            results["failed"] += 1
            results["errors"].append({"slotId": str(raw_id), "error": exc.message})
        else:
            results["successful"] += 1

    logger.info("Bulk slot deletion: %s", {k: v for k, v in results.items() if k != "errors"})
    return results


def slot_to_dict(slot: InterviewSlot) -> dict:
    student = slot.booked_by
    return {
        "id": str(slot.id),
        "slotDateTime": as_utc(slot.slot_at).isoformat(),
        "interviewer": slot.interviewer,
        "meetingLink": slot.meeting_link,
        "isBooked": bool(slot.is_booked),
        "bookedByStudentId": str(slot.booked_by_student_id) if slot.booked_by_student_id else None,
        "studentName": student.name if student else None,
        "studentEmail": student.email if student else None,
        "createdAt": as_utc(slot.created_at).isoformat() if slot.created_at else None,
    }
