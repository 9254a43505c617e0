"""Tests for the slot availability policy."""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from scheduler.booking.policy import (
    is_offerable,
    offerable_for_booking,
    offerable_for_listing,
    start_of_today,
)

IST = ZoneInfo("Asia/Kolkata")
GRACE = timedelta(minutes=30)


def ist(*args) -> datetime:
    return datetime(*args, tzinfo=IST)


class TestIsOfferable:
    def test_later_day_is_offerable(self):
        now = ist(2030, 1, 15, 23, 50)
        assert is_offerable(ist(2030, 1, 16, 0, 5), now, grace=GRACE, tz=IST)

    def test_earlier_day_is_never_offerable_even_within_grace(self):
        now = ist(2030, 1, 16, 0, 5)
        assert not is_offerable(ist(2030, 1, 15, 23, 55), now, grace=GRACE, tz=IST)

    def test_later_today_is_offerable(self):
        now = ist(2030, 1, 15, 10, 0)
        assert is_offerable(ist(2030, 1, 15, 15, 0), now, grace=GRACE, tz=IST)

    def test_started_today_within_grace(self):
        now = ist(2030, 1, 15, 10, 0)
        assert is_offerable(ist(2030, 1, 15, 9, 40), now, grace=GRACE, tz=IST)

    def test_grace_boundary_is_inclusive(self):
        now = ist(2030, 1, 15, 10, 0)
        assert is_offerable(ist(2030, 1, 15, 9, 30), now, grace=GRACE, tz=IST)

    def test_started_today_beyond_grace(self):
        now = ist(2030, 1, 15, 10, 0)
        assert not is_offerable(ist(2030, 1, 15, 9, 29), now, grace=GRACE, tz=IST)

    def test_booked_slot_is_never_offerable(self):
        now = ist(2030, 1, 15, 10, 0)
        assert not is_offerable(ist(2030, 1, 20, 10, 0), now, grace=GRACE, tz=IST, is_booked=True)

    def test_day_is_taken_in_reference_timezone(self):
        # 20:00 UTC on the 15th is already the 16th in IST
        now = datetime(2030, 1, 15, 20, 0, tzinfo=UTC)
        slot = datetime(2030, 1, 15, 18, 0, tzinfo=UTC)  # 23:30 IST on the 15th
        assert not is_offerable(slot, now, grace=GRACE, tz=IST)

    def test_naive_values_are_treated_as_utc(self):
        now = datetime(2030, 1, 15, 4, 30)
        assert is_offerable(datetime(2030, 1, 15, 4, 10), now, grace=GRACE, tz=IST)


class TestListingVersusBooking:
    def test_listing_window_is_wider_than_booking_window(self):
        now = ist(2030, 1, 15, 10, 0)
        slot_at = ist(2030, 1, 15, 9, 40)  # 20 minutes ago
        assert offerable_for_listing(slot_at, now)
        assert not offerable_for_booking(slot_at, now)

    def test_both_accept_future_slot(self):
        now = ist(2030, 1, 15, 10, 0)
        slot_at = ist(2030, 1, 15, 9, 50)
        assert offerable_for_listing(slot_at, now)
        assert offerable_for_booking(slot_at, now)


class TestStartOfToday:
    def test_midnight_in_reference_timezone(self):
        now = datetime(2030, 1, 15, 20, 0, tzinfo=UTC)
        start = start_of_today(now, IST)
        assert start == ist(2030, 1, 16, 0, 0)

    def test_no_offerable_slot_is_earlier(self):
        now = ist(2030, 1, 15, 0, 10)
        assert ist(2030, 1, 15, 0, 0) >= start_of_today(now, IST)
