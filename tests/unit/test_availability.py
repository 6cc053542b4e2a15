import uuid
from datetime import UTC, date, datetime, timedelta

from ritual_booking.db.models import Booking, BookingStatus
from ritual_booking.schemas.slot import SlotStatus
from ritual_booking.services.availability_service import (
    resolve_day,
    resolve_slot_status,
    select_slot_booking,
)

BOOKING_DATE = date(2025, 3, 10)
CATALOG = {"morning": "6AM - 1PM", "afternoon": "7AM - 2PM"}


def _booking(
    slot_key: str = "morning",
    status: BookingStatus = BookingStatus.PENDING,
    created_at: datetime | None = None,
    pending_since: datetime | None = None,
) -> Booking:
    created = created_at or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
    return Booking(
        id=uuid.uuid4(),
        booking_date=BOOKING_DATE,
        slot_key=slot_key,
        user_name="Ravi Kumar",
        address="12 Temple St, Chennai",
        phone_number="+919876543210",
        status=status.value,
        pending_since=pending_since or created,
        created_at=created,
    )


def test_slot_without_bookings_is_available():
    assert resolve_slot_status([], "morning") == SlotStatus.AVAILABLE
    assert resolve_slot_status([_booking(slot_key="afternoon")], "morning") == SlotStatus.AVAILABLE


def test_expired_booking_behaves_like_absent():
    bookings = [_booking(status=BookingStatus.EXPIRED)]

    assert resolve_slot_status(bookings, "morning") == SlotStatus.AVAILABLE
    assert select_slot_booking(bookings, "morning") is None


def test_live_booking_status_is_reported():
    for status in (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CANCELLED):
        assert resolve_slot_status([_booking(status=status)], "morning").value == status.value


def test_duplicate_live_bookings_resolve_to_most_recent():
    older = _booking(status=BookingStatus.CANCELLED, created_at=datetime(2025, 3, 1, 9, 0, tzinfo=UTC))
    newer = _booking(status=BookingStatus.PENDING, created_at=datetime(2025, 3, 2, 9, 0, tzinfo=UTC))

    assert select_slot_booking([newer, older], "morning") is newer
    assert select_slot_booking([older, newer], "morning") is newer


def test_newer_expired_booking_does_not_hide_older_live_booking():
    live = _booking(status=BookingStatus.CONFIRMED, created_at=datetime(2025, 3, 1, 9, 0, tzinfo=UTC))
    expired = _booking(status=BookingStatus.EXPIRED, created_at=datetime(2025, 3, 5, 9, 0, tzinfo=UTC))

    assert resolve_slot_status([live, expired], "morning") == SlotStatus.CONFIRMED


def test_resolve_day_follows_catalog_order_and_reports_expiry():
    pending_since = datetime(2025, 3, 9, 8, 0)
    bookings = [_booking(slot_key="afternoon", pending_since=pending_since)]

    slots = resolve_day(bookings, CATALOG, timedelta(hours=12))

    assert [slot.slot_key for slot in slots] == ["morning", "afternoon"]
    assert slots[0].status == SlotStatus.AVAILABLE
    assert slots[0].expires_at is None
    assert slots[1].status == SlotStatus.PENDING
    assert slots[1].label == "7AM - 2PM"
    assert slots[1].pending_since == pending_since.replace(tzinfo=UTC)
    assert slots[1].expires_at == datetime(2025, 3, 9, 20, 0, tzinfo=UTC)


def test_confirmed_slot_has_no_countdown():
    slots = resolve_day([_booking(status=BookingStatus.CONFIRMED)], CATALOG, timedelta(minutes=10))

    assert slots[0].status == SlotStatus.CONFIRMED
    assert slots[0].pending_since is None
    assert slots[0].expires_at is None
