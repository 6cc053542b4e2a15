from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints, field_validator, model_validator

from ritual_booking.db.models.booking import BookingStatus

PHONE_NUMBER_PATTERN = r"^\+?[1-9]\d{9,14}$"

UserName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=500)]
PhoneNumber = Annotated[str, StringConstraints(strip_whitespace=True, pattern=PHONE_NUMBER_PATTERN)]


class BookingCreateRequest(BaseModel):
    booking_date: date
    slot_key: str = Field(min_length=1, max_length=32)
    user_name: UserName
    address: Address
    phone_number: PhoneNumber


class AdminBookingUpdateRequest(BaseModel):
    status: BookingStatus | None = None
    user_name: UserName | None = None
    address: Address | None = None
    phone_number: PhoneNumber | None = None
    admin_notes: str | None = Field(default=None, max_length=2000)

    @field_validator("status", "user_name", "address", "phone_number")
    @classmethod
    def reject_null(cls, value):
        # Only admin_notes may be cleared.
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @model_validator(mode="after")
    def validate_not_empty(self) -> "AdminBookingUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class BookingResponse(BaseModel):
    id: UUID
    booking_date: date
    slot_key: str
    user_name: str
    address: str
    phone_number: str
    status: BookingStatus
    pending_since: datetime | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminBookingResponse(BookingResponse):
    owner_user_id: int | None
    admin_override: bool
    admin_notes: str | None
    last_modified_by: str | None
    last_modified_at: datetime | None


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    confirm_url: str
    whatsapp_url: str


class BookingConfirmedResponse(BaseModel):
    booking: BookingResponse
    whatsapp_url: str


class ExpireBookingsResponse(BaseModel):
    expired_count: int
