"""Candidate service: CRUD, token landing view, resume downloads."""

import logging
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..booking.tokens import resolve_token
from ..config import settings
from ..database.base import as_utc
from ..errors import (
    DuplicateEmail,
    InvalidRequest,
    InvalidStatus,
    NotFound,
    StudentInUse,
    TokenNoLongerValid,
)
from ..interviews.models import Interview, InterviewStatus
from ..storage.service import ResumeStorage, clean_student_name
from .models import Student

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return as_utc(value).isoformat() if value else None


def parse_student_id(value) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except (ValueError, TypeError):
        raise InvalidRequest("Invalid student ID")


def add_student(db: Session, name: str, email: str, phone: str) -> Student:
    """Create a candidate. Flushes; the caller commits."""
    name, email, phone = (name or "").strip(), (email or "").strip().lower(), (phone or "").strip()
    if not name or not email or not phone:
        raise InvalidRequest("Name, email, and phone are required")
    if db.query(Student.id).filter(Student.email == email).first():
        raise DuplicateEmail()

    student = Student(name=name, email=email, phone=phone)
    db.add(student)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateEmail()
    logger.info("Student added: %s", email)
    return student


def list_students(db: Session) -> list[Student]:
    return (
        db.query(Student)
        .options(joinedload(Student.interview))
        .order_by(Student.created_at.desc())
        .all()
    )


def get_student(db: Session, student_id) -> Student:
    student = (
        db.query(Student)
        .options(joinedload(Student.interview).joinedload(Interview.slot))
        .filter(Student.id == parse_student_id(student_id))
        .first()
    )
    if not student:
        raise NotFound("Student not found")
    return student


def get_student_by_token(db: Session, token: str | None) -> dict:
    """Landing view for the invitation link. Only an open invitation is shown."""
    if not token:
        raise InvalidRequest("Token is required")
    interview = resolve_token(db, token)
    if interview is None:
        raise NotFound("Invalid invitation token")

    student = interview.student
    if interview.token_expired_at is not None:
        raise TokenNoLongerValid(
            "This invitation link has expired and is no longer valid",
            expiredAt=_iso(interview.token_expired_at),
            reason="Link was used to book an interview slot",
            studentName=student.name,
        )
    if interview.slot_id is not None:
        raise TokenNoLongerValid(
            "You have already booked an interview slot with this invitation",
            reason="Interview already scheduled",
            slotId=str(interview.slot_id),
            meetingLink=interview.meeting_link,
            interviewer=interview.interviewer,
        )
    if interview.status != InterviewStatus.INVITED:
        raise InvalidStatus(f"Interview status is {interview.status}. Cannot proceed with slot selection.")

    return {
        "id": str(student.id),
        "name": student.name,
        "email": student.email,
        "phone": student.phone,
        "resumeLink": "uploaded" if student.resume_path else None,
        "createdAt": _iso(student.created_at),
        "interviewStatus": str(interview.status),
    }


def get_student_status(db: Session, student_id) -> dict:
    student = get_student(db, student_id)
    interview = student.interview
    slot = interview.slot if interview else None
    return {
        "student": {
            "id": str(student.id),
            "name": student.name,
            "email": student.email,
            "phone": student.phone,
            "hasResume": bool(student.resume_path),
            "resumeFileName": student.resume_filename,
        },
        "interview": {
            "status": str(interview.status) if interview else "Not Invited",
            "tokenExpired": bool(interview and interview.token_expired_at),
            "tokenExpiredAt": _iso(interview.token_expired_at) if interview else None,
            "slotId": str(interview.slot_id) if interview and interview.slot_id else None,
            "slotDateTime": _iso(slot.slot_at) if slot else None,
            "interviewer": interview.interviewer if interview else None,
            "meetingLink": interview.meeting_link if interview else None,
            "invitationSentAt": _iso(interview.created_at) if interview else None,
        },
    }


def delete_student(db: Session, storage: ResumeStorage, student_id) -> Student:
    """Delete a candidate without interview history. Flushes; the resume file goes after the flush."""
    uid = parse_student_id(student_id)
    student = db.query(Student).filter(Student.id == uid).first()
    if not student:
        raise NotFound("Student not found")

    interview = db.query(Interview).filter(Interview.student_id == uid).first()
    if interview is not None:
        raise StudentInUse(
            f"Cannot delete student with {str(interview.status).lower()} interview",
            interviewStatus=str(interview.status),
        )

    locator = student.resume_path
    db.delete(student)
    db.flush()
    if locator:
        storage.delete(locator)
    logger.info("Student deleted: %s", student.email)
    return student


def delete_students_created_between(db: Session, storage: ResumeStorage, start: date, end: date) -> dict:
    """Delete every candidate added on a reference-timezone calendar day in [start, end].

    Refused as a whole while any of them has an interview. Flushes, then removes
    the resume files of the rows that were actually deleted.
    """
    if end < start:
        raise InvalidRequest("End date must not be before start date")
    tz = settings.tzinfo
    lower = datetime.combine(start, time.min, tzinfo=tz).astimezone(UTC)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz).astimezone(UTC)
    in_range = (Student.created_at >= lower, Student.created_at < upper)

    total = db.query(Student).filter(*in_range).count()
    with_interviews = db.query(Student).filter(*in_range, Student.id.in_(select(Interview.student_id))).count()
    if with_interviews:
        raise StudentInUse(
            f"Cannot delete students with interviews. {with_interviews} out of {total} students "
            "have interview records.",
            studentsWithInterviews=with_interviews,
            totalStudents=total,
        )

    candidates = dict(db.query(Student.id, Student.resume_path).filter(*in_range).all())
    # An invitation issued since the check keeps its student
    deleted = (
        db.query(Student)
        .filter(Student.id.in_(list(candidates)), Student.id.notin_(select(Interview.student_id)))
        .delete(synchronize_session=False)
    )
    db.flush()

    kept = {row[0] for row in db.query(Student.id).filter(Student.id.in_(list(candidates))).all()}
    files_deleted = sum(
        1 for sid, locator in candidates.items() if locator and sid not in kept and storage.delete(locator)
    )
    logger.info("Bulk student delete %s..%s: %d rows, %d files", start, end, deleted, files_deleted)
    return {
        "deletedCount": deleted,
        "filesDeleted": files_deleted,
        "dateRange": {"start": start.isoformat(), "end": end.isoformat()},
    }


def resume_for_download(db: Session, storage: ResumeStorage, student_id) -> tuple[str, str]:
    """Return (filesystem path, download name) for a student's resume."""
    student = db.query(Student).filter(Student.id == parse_student_id(student_id)).first()
    if not student or not student.resume_path:
        raise NotFound("Student not found or no resume uploaded")
    if not storage.exists(student.resume_path):
        raise NotFound("Resume file not found on server")
    path = storage.path_for(student.resume_path)
    return str(path), f"{clean_student_name(student.name)}{path.suffix.lower()}"


def resumes_archive(db: Session, storage: ResumeStorage, student_ids: list) -> tuple[bytes, int, int]:
    """Zip the resumes of the given students. Returns (archive, added, skipped)."""
    if not student_ids:
        raise InvalidRequest("Student IDs array is required")
    ids = [parse_student_id(i) for i in student_ids]
    students = (
        db.query(Student)
        .filter(Student.id.in_(ids), Student.resume_path.isnot(None))
        .order_by(Student.name.asc())
        .all()
    )
    if not students:
        raise NotFound("No students with resumes found")

    archive, added, skipped = storage.build_zip([(s.name, s.resume_path) for s in students])
    if added == 0:
        raise NotFound("No resume files found on server")
    logger.info("Resume archive built: %d files, %d missing", added, skipped)
    return archive, added, skipped


def student_to_dict(student: Student) -> dict:
    interview = student.interview
    return {
        "id": str(student.id),
        "name": student.name,
        "email": student.email,
        "phone": student.phone,
        "hasResume": bool(student.resume_path),
        "resumeFileName": student.resume_filename,
        "createdAt": _iso(student.created_at),
        "interviewStatus": str(interview.status) if interview else None,
    }
