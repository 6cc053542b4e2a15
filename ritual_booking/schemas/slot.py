from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class SlotAvailability(BaseModel):
    slot_key: str
    label: str
    status: SlotStatus
    pending_since: datetime | None = None
    expires_at: datetime | None = None


class DayAvailabilityResponse(BaseModel):
    booking_date: date
    booking_system_enabled: bool
    maintenance_mode: bool
    slots: list[SlotAvailability]
