import uuid
from datetime import UTC, date, datetime, timedelta

import pytest

from ritual_booking.core.exceptions import (
    BookingUnavailableError,
    BookingValidationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from ritual_booking.db.models import Booking, BookingStatus, User, UserRole
from ritual_booking.schemas.booking import AdminBookingUpdateRequest, BookingCreateRequest
from ritual_booking.schemas.slot import SlotStatus
from ritual_booking.services.availability_service import list_bookings_for_date, resolve_slot_status
from ritual_booking.services.booking_events import event_broker
from ritual_booking.services.booking_service import (
    PAST_DATE_DETAIL,
    admin_override_booking,
    confirm_booking,
    create_pending_booking,
    decline_booking,
    delete_booking,
    get_booking,
    list_bookings,
)
from ritual_booking.services.settings_service import SystemSettings
from ritual_booking.tasks.expirations import expire_pending_bookings

NOW = datetime(2025, 3, 9, 10, 0, tzinfo=UTC)
OPEN = SystemSettings()


def _request(**overrides) -> BookingCreateRequest:
    payload = {
        "booking_date": date(2025, 3, 10),
        "slot_key": "morning",
        "user_name": "Ravi Kumar",
        "address": "12 Temple St, Chennai",
        "phone_number": "+919876543210",
    }
    payload.update(overrides)
    return BookingCreateRequest(**payload)


def _admin(db) -> User:
    admin = User(email="override-admin@example.com", hashed_password="x", role=UserRole.ADMIN.value)
    db.add(admin)
    db.commit()
    return admin


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo else value


def test_scenario_pending_booking_then_conflict(db_session):
    booking = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)

    assert booking.status == BookingStatus.PENDING.value
    assert booking.booking_date == date(2025, 3, 10)
    assert booking.slot_key == "morning"

    with pytest.raises(ConflictError) as exc_info:
        create_pending_booking(
            db_session,
            _request(user_name="Someone Else", phone_number="+919812345678"),
            system_settings=OPEN,
            now=NOW + timedelta(minutes=1),
        )
    assert exc_info.value.status_code == 409

    stored = list_bookings_for_date(db_session, date(2025, 3, 10))
    assert len(stored) == 1
    assert stored[0].user_name == "Ravi Kumar"


def test_create_then_get_returns_submitted_fields(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, owner_user_id=None, now=NOW)

    fetched = get_booking(db_session, created.id)

    assert fetched.status == BookingStatus.PENDING.value
    assert fetched.user_name == "Ravi Kumar"
    assert fetched.address == "12 Temple St, Chennai"
    assert fetched.phone_number == "+919876543210"
    assert _naive(fetched.pending_since) == _naive(NOW)
    assert fetched.confirmed_at is None
    assert fetched.admin_override is False
    assert fetched.owner_user_id is None


def test_confirm_sets_confirmed_at(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)

    confirm_booking(db_session, created.id, now=NOW + timedelta(hours=1))
    fetched = get_booking(db_session, created.id)

    assert fetched.status == BookingStatus.CONFIRMED.value
    assert _naive(fetched.confirmed_at) == _naive(NOW + timedelta(hours=1))


def test_decline_cancels_booking(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)

    decline_booking(db_session, created.id, now=NOW)

    fetched = get_booking(db_session, created.id)
    assert fetched.status == BookingStatus.CANCELLED.value
    assert fetched.cancelled_at is not None


def test_repeated_confirm_is_a_no_op(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    confirm_booking(db_session, created.id, now=NOW + timedelta(minutes=5))

    again = confirm_booking(db_session, created.id, now=NOW + timedelta(minutes=30))

    assert again.status == BookingStatus.CONFIRMED.value
    assert _naive(again.confirmed_at) == _naive(NOW + timedelta(minutes=5))


def test_terminal_bookings_reject_other_transitions(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    decline_booking(db_session, created.id, now=NOW)

    with pytest.raises(InvalidTransitionError) as exc_info:
        confirm_booking(db_session, created.id, now=NOW)
    assert exc_info.value.status_code == 409
    assert get_booking(db_session, created.id).status == BookingStatus.CANCELLED.value


def test_expired_booking_cannot_be_confirmed(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    expire_pending_bookings(db_session, now=NOW + timedelta(days=1), window=timedelta(hours=12))

    with pytest.raises(InvalidTransitionError):
        confirm_booking(db_session, created.id, now=NOW + timedelta(days=1))


def test_unknown_booking_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        get_booking(db_session, uuid.uuid4())
    with pytest.raises(NotFoundError):
        confirm_booking(db_session, uuid.uuid4())
    with pytest.raises(NotFoundError):
        delete_booking(db_session, uuid.uuid4())


def test_expired_slot_can_be_booked_again(db_session):
    first = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    expire_pending_bookings(db_session, now=NOW + timedelta(days=1), window=timedelta(hours=12))

    second = create_pending_booking(
        db_session,
        _request(user_name="Lakshmi"),
        system_settings=OPEN,
        now=NOW + timedelta(hours=13),
    )

    bookings = list_bookings_for_date(db_session, date(2025, 3, 10))
    assert {booking.id for booking in bookings} == {first.id, second.id}
    assert resolve_slot_status(bookings, "morning") == SlotStatus.PENDING


def test_cancelled_slot_stays_unavailable(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    decline_booking(db_session, created.id, now=NOW)

    with pytest.raises(ConflictError):
        create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)


def test_create_rejects_unknown_slot_and_past_date_without_writing(db_session):
    with pytest.raises(BookingValidationError) as exc_info:
        create_pending_booking(db_session, _request(slot_key="midnight"), system_settings=OPEN, now=NOW)
    assert exc_info.value.detail[0]["loc"] == ["body", "slot_key"]

    with pytest.raises(BookingValidationError) as exc_info:
        create_pending_booking(
            db_session, _request(booking_date=date(2025, 3, 8)), system_settings=OPEN, now=NOW
        )
    assert exc_info.value.detail[0]["msg"] == PAST_DATE_DETAIL

    assert db_session.query(Booking).count() == 0


def test_create_is_gated_by_settings_snapshot(db_session):
    with pytest.raises(BookingUnavailableError):
        create_pending_booking(
            db_session, _request(), system_settings=SystemSettings(maintenance_mode=True), now=NOW
        )
    with pytest.raises(BookingUnavailableError):
        create_pending_booking(
            db_session, _request(), system_settings=SystemSettings(booking_system_enabled=False), now=NOW
        )
    assert db_session.query(Booking).count() == 0


def test_admin_override_can_move_confirmed_back_to_pending(db_session):
    admin = _admin(db_session)
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    confirm_booking(db_session, created.id, now=NOW)
    override_time = NOW + timedelta(hours=2)

    updated = admin_override_booking(
        db_session,
        created.id,
        AdminBookingUpdateRequest(status=BookingStatus.PENDING, admin_notes="Customer asked to reschedule"),
        admin=admin,
        now=override_time,
    )

    assert updated.status == BookingStatus.PENDING.value
    assert updated.admin_override is True
    assert updated.admin_notes == "Customer asked to reschedule"
    assert updated.last_modified_by == "override-admin@example.com"
    assert _naive(updated.last_modified_at) == _naive(override_time)
    assert _naive(updated.pending_since) == _naive(override_time)


def test_admin_override_edits_contact_fields_only(db_session):
    admin = _admin(db_session)
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)

    updated = admin_override_booking(
        db_session,
        created.id,
        AdminBookingUpdateRequest(address="45 Temple Road, Madurai"),
        admin=admin,
        now=NOW,
    )

    assert updated.address == "45 Temple Road, Madurai"
    assert updated.status == BookingStatus.PENDING.value
    assert updated.admin_override is True


def test_admin_override_cannot_revive_into_taken_slot(db_session):
    admin = _admin(db_session)
    first = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    expire_pending_bookings(db_session, now=NOW + timedelta(days=1), window=timedelta(hours=12))
    create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW + timedelta(days=1))

    with pytest.raises(ConflictError):
        admin_override_booking(
            db_session,
            first.id,
            AdminBookingUpdateRequest(status=BookingStatus.CONFIRMED),
            admin=admin,
            now=NOW,
        )
    assert get_booking(db_session, first.id).status == BookingStatus.EXPIRED.value


def test_delete_removes_record_and_frees_slot(db_session):
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)

    delete_booking(db_session, created.id)

    assert db_session.query(Booking).count() == 0
    assert create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW).id != created.id


def test_list_bookings_filters_by_date_and_status(db_session):
    morning = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    create_pending_booking(db_session, _request(slot_key="afternoon"), system_settings=OPEN, now=NOW)
    create_pending_booking(
        db_session, _request(booking_date=date(2025, 3, 11)), system_settings=OPEN, now=NOW
    )
    confirm_booking(db_session, morning.id, now=NOW)

    assert len(list_bookings(db_session, booking_date=date(2025, 3, 10))) == 2
    confirmed = list_bookings(db_session, status=BookingStatus.CONFIRMED)
    assert [booking.id for booking in confirmed] == [morning.id]


def test_transitions_publish_changes(db_session):
    received = []
    unsubscribe = event_broker.subscribe(date(2025, 3, 10), received.append)
    try:
        created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
        confirm_booking(db_session, created.id, now=NOW)
        delete_booking(db_session, created.id)
    finally:
        unsubscribe()

    assert [(event.type, event.status) for event in received] == [
        ("insert", "pending"),
        ("update", "confirmed"),
        ("delete", None),
    ]


def test_admin_override_can_clear_notes(db_session):
    admin = _admin(db_session)
    created = create_pending_booking(db_session, _request(), system_settings=OPEN, now=NOW)
    admin_override_booking(
        db_session, created.id, AdminBookingUpdateRequest(admin_notes="call back"), admin=admin, now=NOW
    )

    cleared = admin_override_booking(
        db_session, created.id, AdminBookingUpdateRequest(admin_notes=None), admin=admin, now=NOW
    )

    assert cleared.admin_notes is None
    assert cleared.user_name == "Ravi Kumar"
    assert cleared.status == BookingStatus.PENDING.value
