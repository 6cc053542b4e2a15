from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ritual_booking.api.deps import get_current_user
from ritual_booking.api.pagination import LimitParam, OffsetParam
from ritual_booking.db.models.user import User
from ritual_booking.db.session import get_db
from ritual_booking.schemas.booking import BookingResponse
from ritual_booking.schemas.user import UserResponse
from ritual_booking.services.booking_service import list_bookings

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.get("/me/bookings", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
def list_my_bookings(
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BookingResponse]:
    bookings = list_bookings(db, owner_user_id=current_user.id, limit=limit, offset=offset)
    return [BookingResponse.model_validate(booking) for booking in bookings]
