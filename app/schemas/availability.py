"""
Pydantic schemas for availability configuration requests
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.utils.time_util import extract_time, parse_hhmm


class CamelModel(BaseModel):
    """Accepts camelCase keys on the wire and snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_time(value):
    if value is None:
        return value
    return extract_time(value)


# ============================================================================
# Working hours
# ============================================================================

class WorkingHourRuleIn(CamelModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday, 6=Saturday")
    start_time: str
    end_time: str
    is_working: bool = True

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        return _normalize_time(v)

    @model_validator(mode="after")
    def check_order(self):
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class WorkingHoursUpdate(CamelModel):
    """Full set of weekly rules; days not listed have no working hours"""
    working_hours: List[WorkingHourRuleIn] = Field(..., min_length=1, max_length=7)

    @field_validator("working_hours")
    @classmethod
    def unique_days(cls, v):
        days = [rule.day_of_week for rule in v]
        if len(days) != len(set(days)):
            raise ValueError("Each dayOfWeek may appear only once")
        return v


# ============================================================================
# Settings
# ============================================================================

class AvailabilitySettingsUpdate(CamelModel):
    slot_duration_minutes: int = Field(..., gt=0, le=24 * 60)
    break_duration_minutes: int = Field(0, ge=0, le=24 * 60)
    advance_booking_days: int = Field(30, ge=1, le=365)
    time_format_12h: bool = False


# ============================================================================
# Date exceptions
# ============================================================================

class DateExceptionUpdate(CamelModel):
    is_available: bool
    reason: Optional[str] = Field(None, max_length=255)


# ============================================================================
# Explicit windows
# ============================================================================

class TimeSlotIn(CamelModel):
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        return _normalize_time(v)

    @model_validator(mode="after")
    def check_order(self):
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class TimeSlotsReplace(CamelModel):
    """Replaces every explicit window stored for one date"""
    date: date
    time_slots: List[TimeSlotIn] = Field(default_factory=list)

    @field_validator("time_slots")
    @classmethod
    def no_overlaps(cls, v):
        ordered = sorted(v, key=lambda s: (parse_hhmm(s.start_time), parse_hhmm(s.end_time)))
        for prev, nxt in zip(ordered, ordered[1:]):
            if parse_hhmm(nxt.start_time) < parse_hhmm(prev.end_time):
                raise ValueError(
                    f"Time slots overlap: {prev.start_time}-{prev.end_time} and {nxt.start_time}-{nxt.end_time}"
                )
        return v


class TimeSlotToggle(CamelModel):
    date: date
    start_time: str
    end_time: str
    is_available: bool

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        return _normalize_time(v)

    @model_validator(mode="after")
    def check_order(self):
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self
