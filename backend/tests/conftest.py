"""Shared test fixtures."""

import uuid
from datetime import UTC, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scheduler.audit.models import AuditLog
from scheduler.auth.models import User
from scheduler.booking.tokens import generate_token
from scheduler.database.base import Base, utcnow
from scheduler.interviews.models import Interview, InterviewStatus
from scheduler.notifications.models import Notification
from scheduler.slots.models import InterviewSlot
from scheduler.storage.service import ResumeStorage
from scheduler.students.models import Student

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [AuditLog, User, Interview, Notification, InterviewSlot, Student]


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Create an in-memory SQLite database for testing.

    Note: SQLite drops tzinfo on round-trip and ignores FOR UPDATE,
    but works for service logic testing.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_user(db_session):
    user = User(
        id=uuid.uuid4(),
        email="hr@example.com",
        password_hash="$2b$12$fakehash",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def storage(tmp_path):
    store = ResumeStorage(tmp_path / "uploads", max_bytes=1024 * 1024)
    store.ensure_dir()
    return store


@pytest.fixture
def student(db_session):
    """A candidate who has not uploaded a resume yet."""
    s = Student(id=uuid.uuid4(), name="Asha Rao", email="asha@example.com", phone="9876543210")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def student_with_resume(db_session):
    s = Student(
        id=uuid.uuid4(),
        name="Ravi Kumar",
        email="ravi@example.com",
        phone="9123456780",
        resume_path="resume-ravi-1700000000000-abcd1234.pdf",
        resume_filename="ravi.pdf",
    )
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def make_invitation(db_session):
    """Factory: invitation (open by default) for a given student."""

    def _make(student, status=InterviewStatus.INVITED):
        interview = Interview(
            id=uuid.uuid4(),
            student_id=student.id,
            invitation_token=generate_token(),
            status=status,
        )
        db_session.add(interview)
        db_session.commit()
        return interview

    return _make


@pytest.fixture
def make_slot(db_session):
    def _make(slot_at, interviewer="Priya Sharma", meeting_link="https://meet.example.com/abc"):
        slot = InterviewSlot(
            id=uuid.uuid4(),
            slot_at=slot_at.astimezone(UTC),
            interviewer=interviewer,
            meeting_link=meeting_link,
        )
        db_session.add(slot)
        db_session.commit()
        return slot

    return _make


@pytest.fixture
def make_student(db_session):
    def _make(name, email, resume=True):
        stem = name.split()[0].lower()
        s = Student(
            id=uuid.uuid4(),
            name=name,
            email=email,
            phone="9000000000",
            resume_path=f"resume-{stem}.pdf" if resume else None,
            resume_filename=f"{stem}.pdf" if resume else None,
        )
        db_session.add(s)
        db_session.commit()
        return s

    return _make


@pytest.fixture
def invitation(make_invitation, student_with_resume):
    """Open invitation for a candidate whose resume is on file."""
    return make_invitation(student_with_resume)


@pytest.fixture
def future_slot(make_slot):
    return make_slot((utcnow() + timedelta(days=2)).replace(microsecond=0))
