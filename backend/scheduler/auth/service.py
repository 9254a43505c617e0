"""Staff authentication: password hashing and the bootstrap admin account."""

import logging
from datetime import UTC, datetime

import bcrypt
from sqlalchemy.orm import Session

from ..config import settings
from .models import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Verify credentials and return the active user, or None if invalid."""
    user = get_user_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    user.last_login_at = datetime.now(UTC)
    return user


def ensure_admin_user(db: Session) -> None:
    """Create the admin user from settings if it doesn't exist yet."""
    if not settings.admin_email or not settings.admin_password:
        return

    if get_user_by_email(db, settings.admin_email):
        return

    db.add(
        User(
            email=settings.admin_email.strip().lower(),
            password_hash=hash_password(settings.admin_password),
        )
    )
    db.flush()
    logger.info("Admin user created: %s", settings.admin_email)
