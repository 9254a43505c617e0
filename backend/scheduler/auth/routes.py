"""Authentication routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..database.base import get_db
from ..dependencies import get_current_user
from .models import User
from .schemas import LoginRequest, UserResponse
from .service import authenticate_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        audit(db, request, "login_failed", f"email={payload.email}")
        db.commit()
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)

    request.session["user_id"] = str(user.id)
    audit(db, request, "login", f"email={payload.email}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True, "user": UserResponse(id=str(user.id), email=user.email, is_active=True).model_dump()})


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    audit(db, request, "logout")
    db.commit()
    request.session.clear()
    return JSONResponse({"ok": True})


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return JSONResponse(UserResponse(id=str(user.id), email=user.email, is_active=bool(user.is_active)).model_dump())
