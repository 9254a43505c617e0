"""API v1 router: all JSON endpoints under /api/v1 prefix."""

from fastapi import APIRouter

from .auth.routes import router as auth_router
from .interviews.routes import router as interviews_router
from .invitations.routes import router as invitations_router
from .slots.routes import router as slots_router
from .students.routes import router as students_router

api_v1_router = APIRouter(prefix="/api/v1", tags=["api-v1"])

api_v1_router.include_router(auth_router)
api_v1_router.include_router(students_router)
api_v1_router.include_router(invitations_router)
api_v1_router.include_router(slots_router)
api_v1_router.include_router(interviews_router)
