from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ritual_booking.core.config import settings
from ritual_booking.db.session import get_db
from ritual_booking.schemas.slot import DayAvailabilityResponse
from ritual_booking.services.availability_service import list_bookings_for_date, resolve_day
from ritual_booking.services.settings_service import load_system_settings
from ritual_booking.tasks.expirations import expiry_window

router = APIRouter(prefix="/slots", tags=["slots"])


def build_day_availability(db: Session, booking_date: date) -> DayAvailabilityResponse:
    system_settings = load_system_settings(db)
    bookings = list_bookings_for_date(db, booking_date)
    return DayAvailabilityResponse(
        booking_date=booking_date,
        booking_system_enabled=system_settings.booking_system_enabled,
        maintenance_mode=system_settings.maintenance_mode,
        slots=resolve_day(bookings, settings.slot_catalog, expiry_window()),
    )


@router.get("", response_model=DayAvailabilityResponse, status_code=status.HTTP_200_OK)
def get_day_availability(
    booking_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
) -> DayAvailabilityResponse:
    return build_day_availability(db, booking_date)
