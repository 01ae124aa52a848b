# app/models/__init__.py
from .base import Base
from .user import User
from .availability import WorkingHourRule, AvailabilitySettings, DateException, TimeSlot
from .booking import Booking, BookingStatus, ACTIVE_STATUSES

__all__ = [
    "Base",
    "User",
    "WorkingHourRule",
    "AvailabilitySettings",
    "DateException",
    "TimeSlot",
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
]
