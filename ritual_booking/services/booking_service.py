import logging
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ritual_booking.core.config import settings
from ritual_booking.core.exceptions import (
    BOOKING_NOT_FOUND_DETAIL,
    BookingValidationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from ritual_booking.core.metrics import BOOKING_TRANSITIONS
from ritual_booking.db.models import Booking, BookingStatus, User
from ritual_booking.schemas.booking import AdminBookingUpdateRequest, BookingCreateRequest
from ritual_booking.services.booking_events import publish_booking_change
from ritual_booking.services.settings_service import SystemSettings, ensure_booking_open

logger = logging.getLogger(__name__)

UNKNOWN_SLOT_DETAIL = "Unknown slot"
PAST_DATE_DETAIL = "Booking date must not be in the past"
SLOT_TAKEN_BY_LIVE_BOOKING_DETAIL = "Slot already has an active booking"


def get_booking(db: Session, booking_id: UUID) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(detail=BOOKING_NOT_FOUND_DETAIL)
    return booking


def list_bookings(
    db: Session,
    booking_date: date | None = None,
    status: BookingStatus | None = None,
    owner_user_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Booking]:
    query = select(Booking)
    if booking_date is not None:
        query = query.where(Booking.booking_date == booking_date)
    if status is not None:
        query = query.where(Booking.status == status.value)
    if owner_user_id is not None:
        query = query.where(Booking.owner_user_id == owner_user_id)
    query = query.order_by(Booking.booking_date.desc(), Booking.created_at.desc(), Booking.id)
    return list(db.scalars(query.limit(limit).offset(offset)).all())


def _record_transition(transition: str, booking: Booking) -> None:
    BOOKING_TRANSITIONS.labels(transition=transition).inc()
    logger.info(
        "booking_%s id=%s date=%s slot=%s status=%s",
        transition,
        booking.id,
        booking.booking_date,
        booking.slot_key,
        booking.status,
    )
    publish_booking_change("update", booking.id, booking.booking_date, booking.status)


def create_pending_booking(
    db: Session,
    payload: BookingCreateRequest,
    system_settings: SystemSettings,
    owner_user_id: int | None = None,
    now: datetime | None = None,
) -> Booking:
    current_time = now or datetime.now(UTC)
    ensure_booking_open(system_settings)

    if payload.slot_key not in settings.slot_catalog:
        raise BookingValidationError("slot_key", UNKNOWN_SLOT_DETAIL)
    if payload.booking_date < current_time.date():
        raise BookingValidationError("booking_date", PAST_DATE_DETAIL)

    booking = Booking(
        id=uuid4(),
        booking_date=payload.booking_date,
        slot_key=payload.slot_key,
        user_name=payload.user_name,
        address=payload.address,
        phone_number=payload.phone_number,
        status=BookingStatus.PENDING.value,
        pending_since=current_time,
        owner_user_id=owner_user_id,
        created_at=current_time,
    )
    db.add(booking)
    # The partial unique index on live (date, slot) rows makes this insert the
    # atomic check-then-write: a concurrent loser fails here, never the winner.
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "booking_conflict date=%s slot=%s",
            payload.booking_date,
            payload.slot_key,
        )
        raise ConflictError() from None

    db.refresh(booking)
    BOOKING_TRANSITIONS.labels(transition="create").inc()
    logger.info(
        "booking_created id=%s date=%s slot=%s owner=%s",
        booking.id,
        booking.booking_date,
        booking.slot_key,
        owner_user_id,
    )
    publish_booking_change("insert", booking.id, booking.booking_date, booking.status)
    return booking


def _transition_from_pending(
    db: Session,
    booking_id: UUID,
    target: BookingStatus,
    values: dict[str, Any],
    transition: str,
) -> Booking:
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING.value)
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        booking = get_booking(db, booking_id)
        if booking.status == target.value:
            return booking
        raise InvalidTransitionError(
            detail=f"Booking is {booking.status} and can no longer be {target.value}"
        )

    db.commit()
    booking = get_booking(db, booking_id)
    _record_transition(transition, booking)
    return booking


def confirm_booking(db: Session, booking_id: UUID, now: datetime | None = None) -> Booking:
    current_time = now or datetime.now(UTC)
    return _transition_from_pending(
        db=db,
        booking_id=booking_id,
        target=BookingStatus.CONFIRMED,
        values={"confirmed_at": current_time},
        transition="confirmed",
    )


def decline_booking(db: Session, booking_id: UUID, now: datetime | None = None) -> Booking:
    current_time = now or datetime.now(UTC)
    return _transition_from_pending(
        db=db,
        booking_id=booking_id,
        target=BookingStatus.CANCELLED,
        values={"cancelled_at": current_time},
        transition="cancelled",
    )


def admin_override_booking(
    db: Session,
    booking_id: UUID,
    patch: AdminBookingUpdateRequest,
    admin: User,
    now: datetime | None = None,
) -> Booking:
    current_time = now or datetime.now(UTC)
    booking = db.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
    if booking is None:
        raise NotFoundError(detail=BOOKING_NOT_FOUND_DETAIL)

    changes = patch.model_dump(exclude_unset=True)
    new_status: BookingStatus | None = changes.pop("status", None)
    for field, value in changes.items():
        setattr(booking, field, value)

    if new_status is not None and new_status.value != booking.status:
        booking.status = new_status.value
        if new_status == BookingStatus.PENDING:
            booking.pending_since = current_time
        elif new_status == BookingStatus.CONFIRMED and booking.confirmed_at is None:
            booking.confirmed_at = current_time
        elif new_status == BookingStatus.CANCELLED and booking.cancelled_at is None:
            booking.cancelled_at = current_time

    booking.admin_override = True
    booking.last_modified_by = admin.email
    booking.last_modified_at = current_time

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(detail=SLOT_TAKEN_BY_LIVE_BOOKING_DETAIL) from None

    db.refresh(booking)
    _record_transition("admin_override", booking)
    return booking


def delete_booking(db: Session, booking_id: UUID) -> None:
    booking = get_booking(db, booking_id)
    booking_date = booking.booking_date
    db.delete(booking)
    db.commit()

    BOOKING_TRANSITIONS.labels(transition="delete").inc()
    logger.info("booking_deleted id=%s date=%s", booking_id, booking_date)
    publish_booking_change("delete", booking_id, booking_date)
