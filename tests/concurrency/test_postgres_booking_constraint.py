import os
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime

import pytest
from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import sessionmaker

from ritual_booking.core.exceptions import ConflictError
from ritual_booking.db.base import Base
from ritual_booking.db.models import Booking, BookingStatus
from ritual_booking.schemas.booking import BookingCreateRequest
from ritual_booking.services.booking_service import create_pending_booking
from ritual_booking.services.settings_service import SystemSettings

POSTGRES_URL = os.getenv("TEST_POSTGRES_DATABASE_URL")

pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(not POSTGRES_URL, reason="TEST_POSTGRES_DATABASE_URL is not set"),
]

BOOKING_DATE = date(2099, 1, 5)
WORKERS = 10


@pytest.fixture()
def pg_session_factory():
    engine = create_engine(POSTGRES_URL, pool_size=WORKERS)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    with factory() as session:
        session.execute(delete(Booking).where(Booking.booking_date == BOOKING_DATE))
        session.commit()
    engine.dispose()


def test_partial_unique_index_allows_one_live_booking(pg_session_factory):
    barrier = threading.Barrier(WORKERS)
    now = datetime(2099, 1, 1, 9, 0, tzinfo=UTC)

    def attempt(index: int) -> str:
        payload = BookingCreateRequest(
            booking_date=BOOKING_DATE,
            slot_key="afternoon",
            user_name=f"Devotee {index}",
            address="12 Temple St, Chennai",
            phone_number="+919876543210",
        )
        with pg_session_factory() as session:
            barrier.wait()
            try:
                create_pending_booking(session, payload, system_settings=SystemSettings(), now=now)
            except ConflictError:
                return "conflict"
            return "created"

    with ThreadPoolExecutor(max_workers=WORKERS) as executor:
        outcomes = list(executor.map(attempt, range(WORKERS)))

    assert outcomes.count("created") == 1

    with pg_session_factory() as session:
        live = session.scalar(
            select(func.count())
            .select_from(Booking)
            .where(Booking.booking_date == BOOKING_DATE, Booking.status != BookingStatus.EXPIRED.value)
        )
    assert live == 1


def test_expired_rows_do_not_block_the_slot(pg_session_factory):
    with pg_session_factory() as session:
        session.add(
            Booking(
                id=uuid.uuid4(),
                booking_date=BOOKING_DATE,
                slot_key="morning",
                user_name="Old Request",
                address="12 Temple St, Chennai",
                phone_number="+919876543210",
                status=BookingStatus.EXPIRED.value,
                pending_since=datetime(2098, 12, 1, tzinfo=UTC),
            )
        )
        session.commit()

        booking = create_pending_booking(
            session,
            BookingCreateRequest(
                booking_date=BOOKING_DATE,
                slot_key="morning",
                user_name="New Request",
                address="12 Temple St, Chennai",
                phone_number="+919876543210",
            ),
            system_settings=SystemSettings(),
            now=datetime(2099, 1, 1, 9, 0, tzinfo=UTC),
        )

    assert booking.status == BookingStatus.PENDING.value
