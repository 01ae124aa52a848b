"""
Pydantic schemas for booking requests.

Client-facing fields follow the public booking form rules: names are
letters, spaces, apostrophes and hyphens; phones are digits with an
optional leading "+".
"""
import datetime
import re
from typing import Optional
from uuid import UUID

from pydantic import ConfigDict, EmailStr, Field, field_validator, model_validator

from app.models.booking import BookingStatus
from app.schemas.availability import CamelModel
from app.utils.time_util import extract_time, parse_hhmm

NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
PHONE_RE = re.compile(r"^[\+]?[1-9][\d]{0,15}$")
PHONE_STRIP_RE = re.compile(r"[\s\-\(\)]")


def validate_client_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Name must be at least 2 characters")
    if len(v) > 100:
        raise ValueError("Name must be less than 100 characters")
    if not NAME_RE.match(v):
        raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
    return v


def validate_client_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if len(v) < 5 or len(v) > 100:
        raise ValueError("Email must be between 5 and 100 characters")
    return v


def validate_client_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    cleaned = PHONE_STRIP_RE.sub("", v)
    if not cleaned:
        return None
    if not PHONE_RE.match(cleaned):
        raise ValueError("Please enter a valid phone number")
    return cleaned


def validate_notes(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


# ============================================================================
# Request Schemas
# ============================================================================

class BookingCreate(CamelModel):
    """
    New booking. The window is named either by timeSlotId (a stored window
    id or a computed "YYYY-MM-DD_HH:MM_HH:MM" id) or by date + startTime +
    endTime. ownerId is required when the caller is not the owner.
    """
    owner_id: Optional[UUID] = None
    time_slot_id: Optional[str] = None
    date: Optional[datetime.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    client_name: str
    client_email: EmailStr
    client_phone: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("client_name")
    @classmethod
    def check_name(cls, v):
        return validate_client_name(v)

    @field_validator("client_email")
    @classmethod
    def check_email(cls, v):
        return validate_client_email(v)

    @field_validator("client_phone")
    @classmethod
    def check_phone(cls, v):
        return validate_client_phone(v)

    @field_validator("notes")
    @classmethod
    def check_notes(cls, v):
        return validate_notes(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        if v is None:
            return v
        return extract_time(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.time_slot_id:
            return self
        if self.date is None or self.start_time is None or self.end_time is None:
            raise ValueError("Either timeSlotId or date, startTime and endTime are required")
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class BookingStatusUpdate(CamelModel):
    booking_id: UUID
    status: BookingStatus


class BookingReschedule(CamelModel):
    """Move a booking to another window; the old booking is removed"""
    booking_id: UUID
    time_slot_id: Optional[str] = None
    date: Optional[datetime.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        if v is None:
            return v
        return extract_time(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.time_slot_id:
            return self
        if self.date is None or self.start_time is None or self.end_time is None:
            raise ValueError("Either timeSlotId or date, startTime and endTime are required")
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class BookingContactUpdate(CamelModel):
    """Client self-service edit. Times cannot be changed this way."""
    model_config = ConfigDict(extra="forbid")

    client_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("client_name")
    @classmethod
    def check_name(cls, v):
        if v is None:
            return v
        return validate_client_name(v)

    @field_validator("client_email")
    @classmethod
    def check_email(cls, v):
        return validate_client_email(v)

    @field_validator("client_phone")
    @classmethod
    def check_phone(cls, v):
        return validate_client_phone(v)

    @field_validator("notes")
    @classmethod
    def check_notes(cls, v):
        return validate_notes(v)
