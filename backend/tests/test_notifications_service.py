"""Tests for the notification outbox and dispatcher."""

import smtplib
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from scheduler.config import settings
from scheduler.notifications.models import Notification, NotificationStatus
from scheduler.notifications.service import (
    _build_message,
    decrypt_value,
    dispatch_pending_notifications,
    emit_booking_confirmation,
    encrypt_value,
    enqueue_invitation,
    format_slot_time,
)


@pytest.fixture
def smtp_ready(monkeypatch):
    monkeypatch.setattr(settings, "smtp_user", "hr@example.com")
    monkeypatch.setattr(settings, "smtp_password", "app-password")
    monkeypatch.setattr(settings, "notification_max_attempts", 2)


def _queue(db_session, count=1):
    for i in range(count):
        enqueue_invitation(
            db_session,
            interview_id=None,
            name=f"Candidate {i}",
            email=f"c{i}@example.com",
            link=f"https://jobs.example.com/student/select-slot?token={i}",
        )
    db_session.commit()


class TestEncryptDecrypt:
    def test_roundtrip(self):
        plaintext = "my-secret-smtp-password"
        encrypted = encrypt_value(plaintext)
        assert encrypted != plaintext
        assert decrypt_value(encrypted) == plaintext

    def test_encrypted_starts_with_gAAAAA(self):
        assert encrypt_value("test").startswith("gAAAAA")


class TestMessages:
    def test_invitation_contains_link(self, db_session):
        n = enqueue_invitation(
            db_session, interview_id=None, name="Asha <b>", email="asha@example.com", link="https://x/?token=abc"
        )
        assert "https://x/?token=abc" in n.body_text
        assert "Asha &lt;b&gt;" in n.body_html
        assert n.notification_type == "invitation"

    def test_slot_time_in_reference_timezone(self):
        assert format_slot_time(datetime(2030, 1, 15, 4, 30, tzinfo=UTC)) == "15 Jan 2030, 10:00 AM Asia/Kolkata"

    def test_confirmation_copies_interviewer_when_configured(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "interviewer_notification_email", "panel@example.com")
        queued = emit_booking_confirmation(
            db_session,
            interview_id=None,
            student_name="Ravi Kumar",
            student_email="ravi@example.com",
            slot_at=datetime(2030, 1, 15, 4, 30, tzinfo=UTC),
            interviewer="Priya Sharma",
            meeting_link="https://meet.example.com/abc",
        )
        assert [n.recipient for n in queued] == ["ravi@example.com", "panel@example.com"]
        assert db_session.query(Notification).count() == 2

    def test_build_message_headers(self, smtp_ready, db_session):
        n = enqueue_invitation(db_session, interview_id=None, name="A", email="a@example.com", link="https://x")
        msg = _build_message(n)
        assert msg["To"] == "a@example.com"
        assert "hr@example.com" in msg["From"]
        assert msg["Message-ID"].endswith("@example.com>")


class TestDispatch:
    def test_noop_without_smtp(self, db_session, session_factory, monkeypatch):
        monkeypatch.setattr(settings, "smtp_user", "")
        _queue(db_session)
        assert dispatch_pending_notifications(session_factory) == 0
        assert db_session.query(Notification).one().status == NotificationStatus.PENDING

    def test_sends_pending(self, smtp_ready, db_session, session_factory):
        _queue(db_session, count=3)
        with patch("scheduler.notifications.service._send_email") as mock_send:
            sent = dispatch_pending_notifications(session_factory)

        assert sent == 3
        assert mock_send.call_count == 3
        db_session.expire_all()
        rows = db_session.query(Notification).all()
        assert all(r.status == NotificationStatus.SENT for r in rows)
        assert all(r.sent_at is not None and r.attempts == 1 for r in rows)

    def test_respects_limit(self, smtp_ready, db_session, session_factory):
        _queue(db_session, count=3)
        with patch("scheduler.notifications.service._send_email"):
            assert dispatch_pending_notifications(session_factory, limit=2) == 2
        db_session.expire_all()
        assert db_session.query(Notification).filter_by(status=NotificationStatus.PENDING).count() == 1

    def test_failure_retries_then_marks_failed(self, smtp_ready, db_session, session_factory):
        _queue(db_session)
        error = smtplib.SMTPServerDisconnected("gone")
        with patch("scheduler.notifications.service._send_email", side_effect=error):
            assert dispatch_pending_notifications(session_factory) == 0
            db_session.expire_all()
            row = db_session.query(Notification).one()
            assert row.status == NotificationStatus.PENDING
            assert row.attempts == 1
            assert "gone" in row.last_error

            assert dispatch_pending_notifications(session_factory) == 0
            db_session.expire_all()
            row = db_session.query(Notification).one()
            assert row.status == NotificationStatus.FAILED
            assert row.attempts == 2

    def test_undecryptable_password_counts_as_failed_attempt(
        self, smtp_ready, db_session, session_factory, monkeypatch
    ):
        monkeypatch.setattr(settings, "smtp_password", "gAAAAAnot-a-real-fernet-token")
        _queue(db_session)

        with patch("scheduler.notifications.service.smtplib.SMTP") as mock_smtp:
            for _ in range(3):
                assert dispatch_pending_notifications(session_factory) == 0

        mock_smtp.assert_not_called()
        db_session.expire_all()
        row = db_session.query(Notification).one()
        assert row.status == NotificationStatus.FAILED
        assert row.attempts == 2
        assert row.last_error.startswith("InvalidToken")

    def test_failed_rows_are_not_retried(self, smtp_ready, db_session, session_factory):
        _queue(db_session)
        db_session.query(Notification).update({Notification.status: NotificationStatus.FAILED.value})
        db_session.commit()
        with patch("scheduler.notifications.service._send_email") as mock_send:
            assert dispatch_pending_notifications(session_factory) == 0
        mock_send.assert_not_called()

    def test_decrypts_stored_password(self, smtp_ready, monkeypatch):
        from scheduler.notifications.service import _send_email

        monkeypatch.setattr(settings, "smtp_password", encrypt_value("real-password"))
        with patch("scheduler.notifications.service.smtplib.SMTP") as mock_smtp:
            _send_email(_build_message(Notification(recipient="a@example.com", subject="s", body_text="t")))
        server = mock_smtp.return_value.__enter__.return_value
        server.login.assert_called_once_with("hr@example.com", "real-password")
        server.send_message.assert_called_once()
