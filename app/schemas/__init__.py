# app/schemas/__init__.py
from .availability import (
    CamelModel,
    WorkingHourRuleIn,
    WorkingHoursUpdate,
    AvailabilitySettingsUpdate,
    DateExceptionUpdate,
    TimeSlotIn,
    TimeSlotsReplace,
    TimeSlotToggle,
)

from .booking import (
    BookingCreate,
    BookingStatusUpdate,
    BookingReschedule,
    BookingContactUpdate,
)

__all__ = [
    "CamelModel",
    "WorkingHourRuleIn",
    "WorkingHoursUpdate",
    "AvailabilitySettingsUpdate",
    "DateExceptionUpdate",
    "TimeSlotIn",
    "TimeSlotsReplace",
    "TimeSlotToggle",
    "BookingCreate",
    "BookingStatusUpdate",
    "BookingReschedule",
    "BookingContactUpdate",
]
