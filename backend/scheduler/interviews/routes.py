"""Interview JSON API routes (staff only)."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user
from .models import InterviewStatus
from .schemas import StatusUpdateRequest
from .service import delete_interview, get_interview, interview_to_dict, list_interviews, update_status

router = APIRouter(prefix="/interviews", tags=["interviews"])


@router.get("")
def all_interviews(
    status: InterviewStatus | None = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse([interview_to_dict(i) for i in list_interviews(db, status)])


@router.get("/{interview_id}")
def one_interview(interview_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return JSONResponse(interview_to_dict(get_interview(db, interview_id)))


@router.put("/{interview_id}/status")
def change_status(
    request: Request,
    interview_id: str,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    interview = update_status(db, interview_id, payload.status, notes=payload.notes, request=request)
    audit(db, request, "interview_status", f"status={payload.status}", target_id=interview.id)
    db.commit()
    return JSONResponse({"message": "Interview status updated", "interview": interview_to_dict(interview)})


@router.delete("/{interview_id}")
def remove_interview(
    request: Request,
    interview_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    interview = delete_interview(db, interview_id)
    deleted_id = interview.id
    audit(db, request, "interview_delete", f"student={interview.student_id}", target_id=deleted_id)
    db.commit()
    return JSONResponse({"message": "Interview deleted successfully", "interviewId": str(deleted_id)})
