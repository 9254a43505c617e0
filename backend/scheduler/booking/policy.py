"""Slot availability policy.

Decides whether a slot may be offered to candidates, relative to "today" in
the scheduling timezone. Slots on a later date are always offerable, slots on
an earlier date never are, and slots dated today stay offerable until a grace
window after their start time has passed. Listing uses a wider grace window
than the booking-time re-check, so a listed slot can legitimately be refused
when booked.
"""

from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from ..config import settings
from ..database.base import as_utc


def is_offerable(
    slot_at: datetime,
    now: datetime,
    *,
    grace: timedelta,
    tz: ZoneInfo,
    is_booked: bool = False,
) -> bool:
    if is_booked:
        return False
    slot_at, now = as_utc(slot_at), as_utc(now)
    slot_day = slot_at.astimezone(tz).date()
    today = now.astimezone(tz).date()
    if slot_day > today:
        return True
    if slot_day < today:
        return False
    return slot_at >= now - grace


def offerable_for_listing(slot_at: datetime, now: datetime, *, is_booked: bool = False) -> bool:
    return is_offerable(
        slot_at,
        now,
        grace=timedelta(minutes=settings.listing_grace_minutes),
        tz=settings.tzinfo,
        is_booked=is_booked,
    )


def offerable_for_booking(slot_at: datetime, now: datetime, *, is_booked: bool = False) -> bool:
    return is_offerable(
        slot_at,
        now,
        grace=timedelta(minutes=settings.booking_grace_minutes),
        tz=settings.tzinfo,
        is_booked=is_booked,
    )


def start_of_today(now: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Midnight of the current reference-timezone day; no offerable slot is earlier."""
    tz = tz or settings.tzinfo
    local_today = as_utc(now).astimezone(tz).date()
    return datetime.combine(local_today, time.min, tzinfo=tz)
