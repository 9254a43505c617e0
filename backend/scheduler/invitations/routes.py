"""Invitation routes: issue tokens and queue invitation emails."""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from ..audit.service import audit
from ..auth.models import User
from ..booking.tokens import invitation_link, issue_bulk_invitations, issue_invitation
from ..database.base import get_db
from ..dependencies import get_current_user, get_session_factory
from ..notifications.service import dispatch_pending_notifications
from .schemas import BulkInvitationRequest, InvitationRequest

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("")
def invite(
    request: Request,
    payload: InvitationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
):
    interview = issue_invitation(db, payload.student_id)
    interview_id, token = interview.id, interview.invitation_token
    audit(db, request, "invitation_send", f"student={payload.student_id}", target_id=interview_id)
    db.commit()

    background_tasks.add_task(dispatch_pending_notifications, session_factory)
    return JSONResponse(
        {
            "message": "Invitation created and queued for delivery",
            "interviewId": str(interview_id),
            "invitationLink": invitation_link(token),
        },
        status_code=201,
    )


@router.post("/bulk")
def invite_bulk(
    request: Request,
    payload: BulkInvitationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
):
    summary = issue_bulk_invitations(db, payload.student_ids)
    audit(
        db,
        request,
        "invitation_bulk_send",
        f"invited={len(summary['invited'])}, skipped={summary['skippedExisting']}",
    )
    db.commit()

    background_tasks.add_task(dispatch_pending_notifications, session_factory)
    return JSONResponse({"message": f"{len(summary['invited'])} invitations queued", **summary})
