import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from ritual_booking.core.config import settings
from ritual_booking.core.metrics import BOOKINGS_EXPIRED
from ritual_booking.db.models import Booking, BookingStatus
from ritual_booking.db.session import SessionLocal
from ritual_booking.services.booking_events import publish_booking_change
from ritual_booking.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def expiry_window() -> timedelta:
    return timedelta(minutes=settings.booking_expiry_window_minutes)


def expire_pending_bookings(
    db: Session,
    now: datetime | None = None,
    window: timedelta | None = None,
) -> int:
    """Move every pending booking older than the expiry window to expired.

    A single conditional UPDATE does the work, so concurrent sweeps and
    confirmations cannot both win and re-running the sweep is a no-op.
    """
    current_time = now or datetime.now(UTC)
    expire_before = current_time - (window if window is not None else expiry_window())

    expired_rows = db.execute(
        update(Booking)
        .where(
            Booking.status == BookingStatus.PENDING.value,
            Booking.pending_since < expire_before,
        )
        .values(status=BookingStatus.EXPIRED.value)
        .returning(Booking.id, Booking.booking_date)
        .execution_options(synchronize_session=False)
    ).all()
    db.commit()

    if expired_rows:
        BOOKINGS_EXPIRED.inc(len(expired_rows))
        logger.info("bookings_expired count=%s before=%s", len(expired_rows), expire_before.isoformat())
    for booking_id, booking_date in expired_rows:
        publish_booking_change("update", booking_id, booking_date, BookingStatus.EXPIRED.value)

    return len(expired_rows)


@celery_app.task(name="bookings.expire_pending")
def expire_pending_bookings_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        expired_count = expire_pending_bookings(db=db)
        return {"expired_count": expired_count}
    finally:
        db.close()
