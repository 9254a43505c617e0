"""FastAPI application factory with middleware, routers, and lifespan."""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .api_v1 import api_v1_router
from .auth.service import ensure_admin_user
from .config import settings, setup_logging
from .database.base import create_db_engine, create_session_factory, get_db
from .dependencies import AuthRequired
from .errors import SchedulingError
from .notifications.models import Notification, NotificationStatus
from .notifications.service import dispatch_pending_notifications
from .rate_limit import client_ip, limiter
from .storage.service import ResumeStorage

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
_startup_time: float = 0.0


def _run_migrations(database_url: str) -> None:
    """Run Alembic migrations (upgrade head) on startup."""
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(Path(__file__).parent.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    global _startup_time
    _startup_time = time.time()

    setup_logging()
    _run_migrations(settings.effective_database_url)

    engine = create_db_engine(settings.effective_database_url)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.storage = ResumeStorage(settings.upload_dir, settings.max_resume_bytes)
    app.state.storage.ensure_dir()

    db = app.state.session_factory()
    try:
        ensure_admin_user(db)
        db.commit()
    finally:
        db.close()

    # Deliver anything queued before the last shutdown
    try:
        sent = dispatch_pending_notifications(app.state.session_factory)
        if sent:
            logger.info("Startup dispatch sent %d queued notifications", sent)
    except Exception:
        logger.exception("Startup notification dispatch failed")

    logger.info("Interview scheduler started (timezone=%s)", settings.scheduling_timezone)
    yield

    engine.dispose()
    logger.info("Database engine disposed")


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    logger.warning("Rate limit hit on %s from %s", request.url.path, client_ip(request))
    return JSONResponse(
        {"error": "Too many requests, try again shortly", "code": "rate_limited", "detail": str(exc.detail)},
        status_code=429,
        headers={"Retry-After": "60"},
    )


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        if exc.status_code >= 500:
            logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(AuthRequired)
    async def auth_required_handler(request: Request, exc: AuthRequired):
        return JSONResponse({"error": "Authentication required", "code": "auth_required"}, status_code=401)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail, "code": "http_error"}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error", "code": "internal_error"}, status_code=500)

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


def _install_middleware(app: FastAPI) -> None:
    # Added innermost first; the proxy headers middleware ends up outermost
    # so the limiter and audit log see the real client address.
    app.add_middleware(SessionMiddleware, secret_key=settings.secret_key, max_age=86400 * 7)

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Files-Added", "X-Files-Skipped", "Content-Disposition"],
    )
    if settings.trusted_hosts_list != ["*"]:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts_list)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.forwarded_allow_ips_list)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Interview Scheduler", version=VERSION, lifespan=lifespan)
    _install_exception_handlers(app)
    _install_middleware(app)
    app.include_router(api_v1_router)

    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        """Liveness plus the database and notification outbox state."""
        try:
            pending = db.query(Notification).filter(Notification.status == NotificationStatus.PENDING).count()
            db_status = "ok"
        except SQLAlchemyError:
            pending, db_status = None, "unreachable"

        return {
            "status": "ok" if db_status == "ok" else "degraded",
            "db": db_status,
            "pending_notifications": pending,
            "timezone": settings.scheduling_timezone,
            "version": VERSION,
            "uptime_seconds": round(time.time() - _startup_time, 1) if _startup_time else 0.0,
        }

    return app


app = create_app()
