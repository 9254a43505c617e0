"""Tests for student service."""

import io
import uuid
import zipfile
from datetime import UTC, date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from scheduler.booking.service import book_slot
from scheduler.booking.tokens import generate_token
from scheduler.errors import (
    DuplicateEmail,
    InvalidRequest,
    InvalidStatus,
    NotFound,
    StudentInUse,
    TokenNoLongerValid,
)
from scheduler.interviews.models import InterviewStatus
from scheduler.students.models import Student
from scheduler.students.service import (
    add_student,
    delete_student,
    delete_students_created_between,
    get_student_by_token,
    get_student_status,
    list_students,
    resume_for_download,
    resumes_archive,
    student_to_dict,
)

IST = ZoneInfo("Asia/Kolkata")


class TestAddStudent:
    def test_trims_and_lowercases(self, db_session):
        student = add_student(db_session, "  Asha Rao ", " Asha@Example.COM ", " 98765 ")
        db_session.commit()
        assert student.name == "Asha Rao"
        assert student.email == "asha@example.com"
        assert student.phone == "98765"

    def test_duplicate_email_any_case(self, db_session, student):
        with pytest.raises(DuplicateEmail):
            add_student(db_session, "Other", "ASHA@example.com", "1")

    def test_required_fields(self, db_session):
        with pytest.raises(InvalidRequest):
            add_student(db_session, "Asha", "asha@example.com", "  ")


class TestListStudents:
    def test_newest_first_with_status(self, db_session, make_student, make_invitation):
        first = make_student("Asha Rao", "asha@example.com")
        second = make_student("Meera Nair", "meera@example.com")
        make_invitation(first)

        rows = [student_to_dict(s) for s in list_students(db_session)]
        assert [r["email"] for r in rows] == [second.email, first.email]
        assert rows[0]["interviewStatus"] is None
        assert rows[1]["interviewStatus"] == "Invited"


class TestGetStudentByToken:
    def test_open_invitation(self, db_session, invitation):
        data = get_student_by_token(db_session, invitation.invitation_token)
        assert data["name"] == "Ravi Kumar"
        assert data["resumeLink"] == "uploaded"
        assert data["interviewStatus"] == "Invited"

    def test_without_resume(self, db_session, student, make_invitation):
        interview = make_invitation(student)
        assert get_student_by_token(db_session, interview.invitation_token)["resumeLink"] is None

    def test_unknown_token(self, db_session):
        with pytest.raises(NotFound):
            get_student_by_token(db_session, generate_token())

    def test_missing_token(self, db_session):
        with pytest.raises(InvalidRequest):
            get_student_by_token(db_session, "")

    def test_consumed_token(self, db_session, invitation, future_slot):
        book_slot(db_session, future_slot.id, invitation.invitation_token)
        with pytest.raises(TokenNoLongerValid) as exc_info:
            get_student_by_token(db_session, invitation.invitation_token)
        assert exc_info.value.to_dict()["studentName"] == "Ravi Kumar"

    def test_slot_referenced_without_expiry(self, db_session, invitation, future_slot):
        invitation.slot_id = future_slot.id
        db_session.commit()
        with pytest.raises(TokenNoLongerValid):
            get_student_by_token(db_session, invitation.invitation_token)

    def test_cancelled_invitation(self, db_session, student, make_invitation):
        interview = make_invitation(student, status=InterviewStatus.CANCELLED)
        with pytest.raises(InvalidStatus):
            get_student_by_token(db_session, interview.invitation_token)


class TestGetStudentStatus:
    def test_not_invited(self, db_session, student):
        data = get_student_status(db_session, student.id)
        assert data["student"]["hasResume"] is False
        assert data["interview"]["status"] == "Not Invited"
        assert data["interview"]["tokenExpired"] is False

    def test_scheduled(self, db_session, invitation, future_slot):
        book_slot(db_session, future_slot.id, invitation.invitation_token)
        data = get_student_status(db_session, invitation.student_id)
        assert data["interview"]["status"] == "Scheduled"
        assert data["interview"]["tokenExpired"] is True
        assert data["interview"]["slotId"] == str(future_slot.id)
        assert data["interview"]["slotDateTime"] is not None

    def test_unknown(self, db_session):
        with pytest.raises(NotFound):
            get_student_status(db_session, uuid.uuid4())

    def test_invalid_id(self, db_session):
        with pytest.raises(InvalidRequest):
            get_student_status(db_session, "42")


class TestDeleteStudent:
    def test_deletes_and_removes_resume(self, db_session, storage, student):
        locator = storage.save(b"cv", "cv.pdf")
        student.resume_path = locator
        db_session.commit()

        delete_student(db_session, storage, student.id)
        db_session.commit()

        assert db_session.query(Student).count() == 0
        assert not storage.exists(locator)

    def test_refused_with_interview(self, db_session, storage, invitation):
        with pytest.raises(StudentInUse) as exc_info:
            delete_student(db_session, storage, invitation.student_id)
        assert exc_info.value.to_dict()["interviewStatus"] == "Invited"
        assert "invited interview" in exc_info.value.message

    def test_unknown(self, db_session, storage):
        with pytest.raises(NotFound):
            delete_student(db_session, storage, uuid.uuid4())


def _added_on(db_session, student, when):
    student.created_at = when.astimezone(UTC)
    db_session.commit()
    return student


class TestDeleteStudentsByDate:
    def test_deletes_range_and_resume_files(self, db_session, storage, make_student):
        inside = make_student("Meera Nair", "meera@example.com")
        locator = storage.save(b"cv", "cv.pdf")
        inside.resume_path = locator
        _added_on(db_session, inside, datetime(2026, 3, 10, 0, 15, tzinfo=IST))  # 18:45 UTC on the 9th
        late = make_student("Arjun Mehta", "arjun@example.com", resume=False)
        _added_on(db_session, late, datetime(2026, 3, 11, 23, 0, tzinfo=IST))
        early = make_student("Kiran Das", "kiran@example.com")
        _added_on(db_session, early, datetime(2026, 3, 9, 23, 45, tzinfo=IST))
        early_id = early.id

        results = delete_students_created_between(db_session, storage, date(2026, 3, 10), date(2026, 3, 11))
        db_session.commit()

        assert results == {
            "deletedCount": 2,
            "filesDeleted": 1,
            "dateRange": {"start": "2026-03-10", "end": "2026-03-11"},
        }
        assert [s.id for s in db_session.query(Student).all()] == [early_id]
        assert not storage.exists(locator)

    def test_refused_when_any_has_interview(self, db_session, storage, make_student, make_invitation):
        invited = make_student("Meera Nair", "meera@example.com")
        _added_on(db_session, invited, datetime(2026, 3, 10, 12, 0, tzinfo=UTC))
        other = make_student("Arjun Mehta", "arjun@example.com")
        _added_on(db_session, other, datetime(2026, 3, 10, 13, 0, tzinfo=UTC))
        make_invitation(invited)

        with pytest.raises(StudentInUse) as exc_info:
            delete_students_created_between(db_session, storage, date(2026, 3, 10), date(2026, 3, 10))

        assert exc_info.value.to_dict()["studentsWithInterviews"] == 1
        assert exc_info.value.to_dict()["totalStudents"] == 2
        assert db_session.query(Student).count() == 2

    def test_empty_range(self, db_session, storage, student):
        results = delete_students_created_between(db_session, storage, date(2001, 1, 1), date(2001, 1, 2))
        assert results["deletedCount"] == 0
        assert db_session.query(Student).count() == 1

    def test_reversed_dates(self, db_session, storage):
        with pytest.raises(InvalidRequest):
            delete_students_created_between(db_session, storage, date(2026, 3, 11), date(2026, 3, 10))


class TestResumeDownloads:
    def test_single_download(self, db_session, storage, student):
        student.resume_path = storage.save(b"%PDF", "whatever.pdf")
        db_session.commit()

        path, name = resume_for_download(db_session, storage, student.id)
        assert name == "Asha_Rao.pdf"
        assert Path(path).read_bytes() == b"%PDF"

    def test_no_resume(self, db_session, storage, student):
        with pytest.raises(NotFound):
            resume_for_download(db_session, storage, student.id)

    def test_file_missing_on_disk(self, db_session, storage, student_with_resume):
        with pytest.raises(NotFound):
            resume_for_download(db_session, storage, student_with_resume.id)

    def test_archive_dedupes_names_and_skips_missing(self, db_session, storage, make_student):
        a = make_student("Asha Rao", "asha@example.com")
        b = make_student("Asha Rao", "asha.rao@example.com")
        c = make_student("Meera Nair", "meera@example.com")
        a.resume_path = storage.save(b"a", "a.pdf")
        b.resume_path = storage.save(b"b", "b.pdf")
        c.resume_path = "resume-gone.pdf"
        db_session.commit()

        archive, added, skipped = resumes_archive(db_session, storage, [str(a.id), str(b.id), str(c.id)])

        assert (added, skipped) == (2, 1)
        names = sorted(zipfile.ZipFile(io.BytesIO(archive)).namelist())
        assert names == ["Asha_Rao.pdf", "Asha_Rao_1.pdf"]

    def test_archive_requires_ids(self, db_session, storage):
        with pytest.raises(InvalidRequest):
            resumes_archive(db_session, storage, [])

    def test_archive_without_resumes(self, db_session, storage, student):
        with pytest.raises(NotFound):
            resumes_archive(db_session, storage, [str(student.id)])
