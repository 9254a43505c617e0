import logging
import logging.handlers
import re
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://scheduler:scheduler@db:5432/scheduler"
    secret_key: str = "change-me"

    # Staff bootstrap
    admin_email: str = ""
    admin_password: str = ""

    # HTTP
    cors_origins: str = "*"
    cors_allow_credentials: bool = True
    trusted_hosts: str = "*"
    # Peers whose X-Forwarded-For is believed; everyone else is keyed on the socket address
    forwarded_allow_ips: str = "127.0.0.1"
    frontend_url: str = "http://localhost:3000"
    rate_limit_public: str = "20/minute"

    # Scheduling
    scheduling_timezone: str = "Asia/Kolkata"
    listing_grace_minutes: int = 30
    booking_grace_minutes: int = 15
    default_interviewer: str = "HR Team"
    default_meeting_link: str = ""
    max_bulk_invitations: int = 50
    max_bulk_slots: int = 500

    # Resume storage
    upload_dir: str = "uploads"
    max_resume_bytes: int = 5 * 1024 * 1024

    # SMTP
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_sender_name: str = "HR Team"
    interviewer_notification_email: str = ""
    notification_max_attempts: int = 3

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10 MB
    log_backup_count: int = 5

    model_config = {"env_file": ".env"}

    @property
    def effective_database_url(self) -> str:
        # Heroku-style DSNs still use the deprecated scheme
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def trusted_hosts_list(self) -> list[str]:
        return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

    @property
    def forwarded_allow_ips_list(self) -> list[str]:
        return [h.strip() for h in self.forwarded_allow_ips.split(",") if h.strip()]

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.scheduling_timezone)


settings = Settings()


_TOKEN_PATTERN = re.compile(r"\b([0-9a-f]{10})[0-9a-f]{54}\b")


class TokenRedactingFilter(logging.Filter):
    """Cut invitation tokens in log output down to their 10-character prefix."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _TOKEN_PATTERN.sub(r"\1...", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    """Configure console, app.log (all levels) and error.log handlers.

    Every handler carries the token filter so a full invitation token
    never reaches stdout or disk.
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S"))

    detailed = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers = [
        console,
        _rotating_handler(log_dir / "app.log", logging.DEBUG, detailed),
        _rotating_handler(log_dir / "error.log", logging.ERROR, detailed),
    ]
    redact = TokenRedactingFilter()
    for handler in handlers:
        handler.addFilter(redact)
        root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, dir=%s, timezone=%s",
        settings.log_level, log_dir, settings.scheduling_timezone,
    )
