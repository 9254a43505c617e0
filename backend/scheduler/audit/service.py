"""Audit log service."""

import contextlib
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from ..rate_limit import client_ip
from .models import AuditLog


def _session_user_id(request: Request) -> UUID | None:
    uid = request.session.get("user_id") if "session" in request.scope else None
    if not uid:
        return None
    with contextlib.suppress(ValueError, AttributeError):
        return UUID(uid)
    return None


def audit(
    db: Session,
    request: Request | None,
    action: str,
    detail: str = "",
    *,
    target_id: UUID | None = None,
    user_id: UUID | None = None,
) -> None:
    """Add an audit entry to the current transaction; committed with the caller's work."""
    ip = ""
    if request is not None:
        ip = client_ip(request)
        if user_id is None:
            user_id = _session_user_id(request)

    db.add(
        AuditLog(
            user_id=user_id,
            action=action,
            target_id=target_id,
            detail=detail,
            ip_address=ip,
        )
    )
