"""Student routes: invitation-link landing, resume upload, staff management."""

from datetime import date

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse, Response
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..booking.service import update_resume
from ..config import settings
from ..database.base import get_db
from ..dependencies import get_current_user, get_storage
from ..rate_limit import limiter
from ..storage.service import ResumeStorage
from .schemas import BulkResumeDownloadRequest, StudentCreateRequest
from .service import (
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

router = APIRouter(prefix="/students", tags=["students"])


# --- Public (token holders) ---


@router.get("/by-token/{token}")
@limiter.limit(settings.rate_limit_public)
def student_by_token(request: Request, token: str, db: Session = Depends(get_db)):
    return JSONResponse(get_student_by_token(db, token))


@router.put("/resume/{token}")
@limiter.limit(settings.rate_limit_public)
def upload_resume(
    request: Request,
    token: str,
    resume: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    storage: ResumeStorage = Depends(get_storage),
):
    # Read at most one byte past the limit so oversized uploads are rejected without buffering them whole
    data = resume.file.read(storage.max_bytes + 1) if resume else b""
    filename = resume.filename if resume else None
    content_type = resume.content_type if resume else None
    return JSONResponse(update_resume(db, storage, token, data, filename, content_type, request=request))


# --- Staff ---


@router.get("")
def all_students(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return JSONResponse([student_to_dict(s) for s in list_students(db)])


@router.post("")
def create_student(
    request: Request,
    payload: StudentCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    student = add_student(db, payload.name, payload.email, payload.phone)
    audit(db, request, "student_add", f"email={student.email}", target_id=student.id)
    db.commit()
    return JSONResponse(
        {
            "message": "Student added successfully",
            "studentId": str(student.id),
            "student": {"id": str(student.id), "name": student.name, "email": student.email, "phone": student.phone},
        },
        status_code=201,
    )


@router.post("/bulk-download-resumes")
def download_resumes(
    request: Request,
    payload: BulkResumeDownloadRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ResumeStorage = Depends(get_storage),
):
    archive, added, skipped = resumes_archive(db, storage, payload.student_ids)
    audit(db, request, "resume_bulk_download", f"files={added}, missing={skipped}")
    db.commit()
    return Response(
        archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": 'attachment; filename="resumes.zip"',
            "X-Files-Added": str(added),
            "X-Files-Skipped": str(skipped),
        },
    )


@router.get("/{student_id}/status")
def student_status(student_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return JSONResponse(get_student_status(db, student_id))


@router.get("/{student_id}/resume/download")
def download_resume(
    request: Request,
    student_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ResumeStorage = Depends(get_storage),
):
    path, download_name = resume_for_download(db, storage, student_id)
    audit(db, request, "resume_download", f"file={download_name}")
    db.commit()
    return FileResponse(path, filename=download_name)


@router.delete("/bulk")
def remove_students_by_date(
    request: Request,
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ResumeStorage = Depends(get_storage),
):
    results = delete_students_created_between(db, storage, start, end)
    audit(db, request, "student_bulk_delete", f"range={start}..{end}, deleted={results['deletedCount']}")
    db.commit()
    return JSONResponse({"message": "Students deleted successfully", **results})


@router.delete("/{student_id}")
def remove_student(
    request: Request,
    student_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: ResumeStorage = Depends(get_storage),
):
    student = delete_student(db, storage, student_id)
    email = student.email
    audit(db, request, "student_delete", f"email={email}")
    db.commit()
    return JSONResponse({"message": "Student deleted successfully"})
