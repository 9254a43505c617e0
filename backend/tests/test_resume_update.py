"""Tests for resume uploads keyed by invitation token."""

from unittest.mock import MagicMock, patch

import pytest

from scheduler.booking.service import book_slot, update_resume
from scheduler.booking.tokens import generate_token
from scheduler.errors import InvalidRequest, InvalidStatus, InvalidUpload, NotFound, TokenNoLongerValid
from scheduler.interviews.models import InterviewStatus
from scheduler.students.models import Student

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _stored_files(storage):
    return sorted(p.name for p in storage.base_dir.iterdir())


class TestUpdateResume:
    def test_stores_file_and_updates_student(self, db_session, storage, student, make_invitation):
        interview = make_invitation(student)
        result = update_resume(db_session, storage, interview.invitation_token, b"%PDF-1.4 cv", "Asha CV.pdf", PDF)

        assert result["studentName"] == "Asha Rao"
        assert result["originalFileName"] == "Asha CV.pdf"
        assert result["fileName"].startswith("resume-Asha_CV-")
        assert storage.exists(result["fileName"])

        db_session.expire_all()
        updated = db_session.get(Student, student.id)
        assert updated.resume_path == result["fileName"]
        assert updated.resume_filename == "Asha CV.pdf"

    def test_replacing_removes_previous_file(self, db_session, storage, student, make_invitation):
        interview = make_invitation(student)
        first = update_resume(db_session, storage, interview.invitation_token, b"one", "a.pdf", PDF)
        second = update_resume(db_session, storage, interview.invitation_token, b"two", "b.docx", DOCX)

        assert not storage.exists(first["fileName"])
        assert _stored_files(storage) == [second["fileName"]]

    def test_enables_booking(self, db_session, storage, student, future_slot, make_invitation):
        interview = make_invitation(student)
        update_resume(db_session, storage, interview.invitation_token, b"cv", "cv.pdf", PDF)
        assert book_slot(db_session, future_slot.id, interview.invitation_token).student_name == "Asha Rao"

    def test_missing_token(self, db_session, storage):
        with pytest.raises(InvalidRequest):
            update_resume(db_session, storage, "", b"cv", "cv.pdf", PDF)

    def test_rejects_bad_file_type(self, db_session, storage, invitation):
        with pytest.raises(InvalidUpload):
            update_resume(db_session, storage, invitation.invitation_token, b"x", "cv.exe", "application/octet-stream")
        assert _stored_files(storage) == []

    def test_rejects_oversized_file(self, db_session, storage, invitation):
        data = b"x" * (storage.max_bytes + 1)
        with pytest.raises(InvalidUpload):
            update_resume(db_session, storage, invitation.invitation_token, data, "cv.pdf", PDF)

    def test_unknown_token(self, db_session, storage):
        with pytest.raises(NotFound):
            update_resume(db_session, storage, generate_token(), b"cv", "cv.pdf", PDF)

    def test_refused_after_booking(self, db_session, storage, invitation, future_slot):
        book_slot(db_session, future_slot.id, invitation.invitation_token)
        with pytest.raises(TokenNoLongerValid) as exc_info:
            update_resume(db_session, storage, invitation.invitation_token, b"cv", "cv.pdf", PDF)
        assert exc_info.value.status_code == 410
        assert _stored_files(storage) == []

    def test_refused_for_cancelled_invitation(self, db_session, storage, student, make_invitation):
        interview = make_invitation(student, status=InterviewStatus.CANCELLED)
        with pytest.raises(InvalidStatus):
            update_resume(db_session, storage, interview.invitation_token, b"cv", "cv.pdf", PDF)

    def test_lost_race_discards_new_file(self, db_session, storage, invitation, future_slot):
        student = invitation.student
        token = invitation.invitation_token
        book_slot(db_session, future_slot.id, token)

        # The lookup saw the invitation before the booking committed
        stale = MagicMock(token_expired_at=None, slot_id=None, status=InterviewStatus.INVITED, student=student)
        with patch("scheduler.booking.service.resolve_token", return_value=stale):
            with pytest.raises(TokenNoLongerValid):
                update_resume(db_session, storage, token, b"late", "late.pdf", PDF)

        assert _stored_files(storage) == []
        db_session.expire_all()
        assert db_session.get(Student, student.id).resume_filename == "ravi.pdf"
