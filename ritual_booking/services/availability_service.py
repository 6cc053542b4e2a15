from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from ritual_booking.db.models import Booking, BookingStatus
from ritual_booking.schemas.slot import SlotAvailability, SlotStatus


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _recency_key(booking: Booking) -> tuple[datetime, str]:
    created_at = _as_utc(booking.created_at) if booking.created_at else datetime.min.replace(tzinfo=UTC)
    return created_at, str(booking.id)


def select_slot_booking(bookings_for_date: Iterable[Booking], slot_key: str) -> Booking | None:
    """Pick the record that decides a slot's status.

    Only one live record per (date, slot) should exist, but older rows that
    predate the uniqueness index or were revived by an admin may overlap.
    Expired records are ignored and the most recently created live record
    wins, with the id as a stable tie-break.
    """
    candidates = [
        booking
        for booking in bookings_for_date
        if booking.slot_key == slot_key and booking.status != BookingStatus.EXPIRED.value
    ]
    if not candidates:
        return None
    return max(candidates, key=_recency_key)


def resolve_slot_status(bookings_for_date: Iterable[Booking], slot_key: str) -> SlotStatus:
    booking = select_slot_booking(bookings_for_date, slot_key)
    if booking is None:
        return SlotStatus.AVAILABLE
    return SlotStatus(booking.status)


def resolve_day(
    bookings_for_date: Iterable[Booking],
    catalog: Mapping[str, str],
    expiry_window: timedelta,
) -> list[SlotAvailability]:
    bookings = list(bookings_for_date)
    slots: list[SlotAvailability] = []
    for slot_key, label in catalog.items():
        booking = select_slot_booking(bookings, slot_key)
        if booking is None:
            slots.append(SlotAvailability(slot_key=slot_key, label=label, status=SlotStatus.AVAILABLE))
            continue

        pending_since = None
        expires_at = None
        if booking.status == BookingStatus.PENDING.value and booking.pending_since is not None:
            pending_since = _as_utc(booking.pending_since)
            expires_at = pending_since + expiry_window
        slots.append(
            SlotAvailability(
                slot_key=slot_key,
                label=label,
                status=SlotStatus(booking.status),
                pending_since=pending_since,
                expires_at=expires_at,
            )
        )
    return slots


def list_bookings_for_date(db: Session, booking_date: date) -> list[Booking]:
    return list(db.scalars(select(Booking).where(Booking.booking_date == booking_date)).all())
