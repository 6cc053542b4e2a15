from ritual_booking.db.models.admin_setting import AdminSetting
from ritual_booking.db.models.booking import LIVE_BOOKING_STATUSES, Booking, BookingStatus
from ritual_booking.db.models.user import User, UserRole

__all__ = [
    "AdminSetting",
    "Booking",
    "BookingStatus",
    "LIVE_BOOKING_STATUSES",
    "User",
    "UserRole",
]
