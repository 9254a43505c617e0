"""Shared FastAPI dependencies."""

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from .auth.models import User
from .database.base import get_db
from .storage.service import ResumeStorage


class AuthRequired(Exception):
    """Raised when no staff session is present. Handled by exception handler in main.py."""

    pass


def get_session_factory(request: Request) -> sessionmaker[Session]:
    """Session factory for work that outlives the request (background tasks)."""
    return request.app.state.session_factory


def get_storage(request: Request) -> ResumeStorage:
    return request.app.state.storage


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Get the authenticated staff user from the session."""
    user_id_str = request.session.get("user_id")
    if not user_id_str:
        raise AuthRequired()
    try:
        user_id = UUID(user_id_str)
    except (ValueError, AttributeError):
        request.session.clear()
        raise AuthRequired()
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        request.session.clear()
        raise AuthRequired()
    return user
