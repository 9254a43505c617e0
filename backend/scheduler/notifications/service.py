"""Email notifications: outbox writes and the SMTP dispatcher.

Scheduling code never talks to SMTP directly. It adds rows to the
``notifications`` table and ``dispatch_pending_notifications`` delivers them
later with its own session, so a slow or failing mail server cannot affect
an invitation or a booking. The SMTP password may be stored encrypted using
Fernet (AES-128-CBC) derived from SECRET_KEY.
"""

import base64
import hashlib
import logging
import smtplib
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from html import escape
from uuid import UUID

from cryptography.fernet import Fernet
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..database.base import as_utc
from .models import Notification, NotificationStatus

logger = logging.getLogger(__name__)


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str) -> str:
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


def smtp_configured() -> bool:
    return bool(settings.smtp_user and settings.smtp_password)


# ── Message content ───────────────────────────────────────────────────


def format_slot_time(slot_at: datetime) -> str:
    local = as_utc(slot_at).astimezone(settings.tzinfo)
    return local.strftime("%d %b %Y, %I:%M %p ") + settings.scheduling_timezone


def _html_page(title: str, paragraphs: list[str], rows: list[tuple[str, str]]) -> str:
    body = "".join(f'<p style="margin:0 0 16px; color:#374151; font-size:15px;">{p}</p>' for p in paragraphs)
    table = "".join(
        f'<tr><td style="padding:6px 0; color:#6b7280; font-size:13px; width:120px;">{escape(k)}</td>'
        f'<td style="padding:6px 0; color:#111827; font-size:14px; font-weight:600;">{v}</td></tr>'
        for k, v in rows
    )
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>{escape(title)}</title></head>
<body style="margin:0; padding:24px; background-color:#f4f4f5; font-family:Arial,Helvetica,sans-serif;">
  <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff; border-radius:8px;">
    <tr><td style="background-color:#1e40af; padding:20px 32px; border-radius:8px 8px 0 0;">
      <h1 style="margin:0; color:#ffffff; font-size:20px;">{escape(title)}</h1>
    </td></tr>
    <tr><td style="padding:32px;">{body}<table role="presentation" width="100%">{table}</table></td></tr>
  </table>
</body>
</html>"""


def enqueue_invitation(db: Session, *, interview_id: UUID, name: str, email: str, link: str) -> Notification:
    """Queue the invitation email. Added to the caller's transaction."""
    text_body = (
        f"Hello {name},\n\n"
        f"We are pleased to invite you for an interview.\n\n"
        f"Please open the link below to upload your resume and select your interview slot:\n"
        f"{link}\n\n"
        f"The link can be used once. After you book a slot it stops working.\n\n"
        f"Best regards,\n"
        f"{settings.smtp_sender_name}\n"
    )
    html_body = _html_page(
        "Interview Invitation",
        [
            f"Hello {escape(name)},",
            "We are pleased to invite you for an interview.",
            f'<a href="{escape(link)}">Upload your resume and select your interview slot</a>',
            "The link can be used once. After you book a slot it stops working.",
        ],
        [],
    )
    notification = Notification(
        interview_id=interview_id,
        notification_type="invitation",
        recipient=email,
        subject="Interview Invitation - Schedule Your Slot",
        body_text=text_body,
        body_html=html_body,
    )
    db.add(notification)
    return notification


def emit_booking_confirmation(
    db: Session,
    *,
    interview_id: UUID,
    student_name: str,
    student_email: str,
    slot_at: datetime,
    interviewer: str,
    meeting_link: str,
) -> list[Notification]:
    """Queue confirmation emails for a committed booking, in a transaction of their own."""
    when = format_slot_time(slot_at)
    text_body = (
        f"Hello {student_name},\n\n"
        f"Your interview is confirmed.\n\n"
        f"  When:         {when}\n"
        f"  Interviewer:  {interviewer}\n"
        f"  Meeting link: {meeting_link}\n\n"
        f"Best regards,\n"
        f"{settings.smtp_sender_name}\n"
    )
    html_body = _html_page(
        "Interview Confirmed",
        [f"Hello {escape(student_name)},", "Your interview is confirmed."],
        [
            ("When", escape(when)),
            ("Interviewer", escape(interviewer)),
            ("Meeting link", f'<a href="{escape(meeting_link)}">{escape(meeting_link)}</a>'),
        ],
    )

    recipients = [(student_email, "Interview Confirmed - Details Inside")]
    if settings.interviewer_notification_email:
        recipients.append((settings.interviewer_notification_email, f"Interview Scheduled with {student_name}"))

    queued = []
    for recipient, subject in recipients:
        notification = Notification(
            interview_id=interview_id,
            notification_type="booking_confirmation",
            recipient=recipient,
            subject=subject,
            body_text=text_body,
            body_html=html_body,
        )
        db.add(notification)
        queued.append(notification)
    db.commit()
    return queued


# ── Delivery ──────────────────────────────────────────────────────────


def _build_message(notification: Notification) -> MIMEMultipart:
    """Build a multipart email with proper anti-spam headers."""
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((settings.smtp_sender_name, settings.smtp_user))
    msg["To"] = notification.recipient
    msg["Reply-To"] = settings.smtp_user
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=settings.smtp_user.split("@")[-1] if "@" in settings.smtp_user else "local")
    msg["X-Mailer"] = "InterviewScheduler/1.0"
    msg["Subject"] = notification.subject
    msg.attach(MIMEText(notification.body_text or "", "plain", "utf-8"))
    if notification.body_html:
        msg.attach(MIMEText(notification.body_html, "html", "utf-8"))
    return msg


def _send_email(msg: MIMEMultipart) -> None:
    """Send an email via SMTP with STARTTLS. Raises on delivery failure."""
    # Decrypt password if it looks encrypted (Fernet tokens start with 'gAAAAA')
    password = settings.smtp_password
    if password.startswith("gAAAAA"):
        password = decrypt_value(password)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
        server.ehlo()
        server.starttls()
        server.ehlo()
        server.login(settings.smtp_user, password)
        server.send_message(msg)


def _claim_next(db: Session, seen: set[UUID]) -> Notification | None:
    # Row lock is held until the commit that follows delivery
    query = db.query(Notification).filter(Notification.status == NotificationStatus.PENDING.value)
    if seen:
        query = query.filter(Notification.id.notin_(seen))
    return query.order_by(Notification.created_at.asc()).with_for_update(skip_locked=True).first()


def dispatch_pending_notifications(session_factory: sessionmaker[Session], limit: int = 100) -> int:
    """Deliver queued emails. Returns the number sent.

    Runs as a background task after invitation/booking requests and once at
    startup. Each message is committed on its own so progress survives a crash.
    """
    if not smtp_configured():
        logger.debug("SMTP not configured, leaving notifications queued")
        return 0

    db = session_factory()
    sent = 0
    seen: set[UUID] = set()
    try:
        while len(seen) < limit:
            notification = _claim_next(db, seen)
            if notification is None:
                break
            seen.add(notification.id)
            notification.attempts = (notification.attempts or 0) + 1
            try:
                _send_email(_build_message(notification))
            except Exception as exc:
                notification.last_error = f"{type(exc).__name__}: {exc}"[:1000]
                if notification.attempts >= settings.notification_max_attempts:
                    notification.status = NotificationStatus.FAILED.value
                logger.exception(
                    "Failed to send %s to %s (attempt %d)",
                    notification.notification_type,
                    notification.recipient,
                    notification.attempts,
                )
            else:
                notification.status = NotificationStatus.SENT.value
                notification.sent_at = datetime.now(UTC)
                notification.last_error = None
                sent += 1
                logger.info("Sent %s to %s", notification.notification_type, notification.recipient)
            db.commit()
    finally:
        db.close()
    return sent
