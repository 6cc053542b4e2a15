from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ritual_booking.api.deps import require_roles
from ritual_booking.api.pagination import LimitParam, OffsetParam
from ritual_booking.db.models import BookingStatus, User, UserRole
from ritual_booking.db.session import get_db
from ritual_booking.schemas.admin import AdminSettingResponse, AdminSettingUpdateRequest
from ritual_booking.schemas.booking import AdminBookingResponse, AdminBookingUpdateRequest
from ritual_booking.services.booking_service import admin_override_booking, delete_booking, list_bookings
from ritual_booking.services.settings_service import list_settings, update_setting

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles(UserRole.ADMIN)


@router.get("/bookings", response_model=list[AdminBookingResponse], status_code=status.HTTP_200_OK)
def list_all_bookings(
    booking_date: date | None = Query(default=None, alias="date"),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[AdminBookingResponse]:
    bookings = list_bookings(db, booking_date=booking_date, status=status_filter, limit=limit, offset=offset)
    return [AdminBookingResponse.model_validate(booking) for booking in bookings]


@router.patch("/bookings/{booking_id}", response_model=AdminBookingResponse, status_code=status.HTTP_200_OK)
def override_booking(
    booking_id: UUID,
    payload: AdminBookingUpdateRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminBookingResponse:
    booking = admin_override_booking(db=db, booking_id=booking_id, patch=payload, admin=current_user)
    return AdminBookingResponse.model_validate(booking)


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_booking(
    booking_id: UUID,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    delete_booking(db=db, booking_id=booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/settings", response_model=list[AdminSettingResponse], status_code=status.HTTP_200_OK)
def get_all_settings(
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[AdminSettingResponse]:
    return [AdminSettingResponse.model_validate(setting) for setting in list_settings(db)]


@router.put("/settings/{setting_key}", response_model=AdminSettingResponse, status_code=status.HTTP_200_OK)
def change_setting(
    setting_key: str,
    payload: AdminSettingUpdateRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminSettingResponse:
    setting = update_setting(db=db, key=setting_key, value=payload.setting_value)
    return AdminSettingResponse.model_validate(setting)
