# ============================================================================
# FILE: app/api/v1/dashboard/availability.py
# Owner availability configuration and the computed day view - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID

from app.config.database import get_db
from app.core.exceptions import UnauthorizedError
from app.models.user import User
from app.api.dependencies import get_current_user, optional_current_user, get_availability_cache
from app.schemas.availability import (
    AvailabilitySettingsUpdate,
    DateExceptionUpdate,
    TimeSlotsReplace,
    TimeSlotToggle,
    WorkingHoursUpdate,
)
from app.services.availability.availability_cache import AvailabilityCache
from app.services.availability.availability_service import AvailabilityService

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/day")
def get_day_availability(
        day: date = Query(..., alias="date", description="Date to compute (YYYY-MM-DD)"),
        owner_id: Optional[UUID] = Query(None, alias="ownerId", description="Owner whose availability to show"),
        current_user: Optional[User] = Depends(optional_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """
    Computed windows for one date.
    The owner sees booking details; anyone else gets the public view.
    """
    if current_user and (owner_id is None or owner_id == current_user.id):
        return AvailabilityService.get_day(db, cache, current_user.id, day)

    if owner_id is None:
        raise UnauthorizedError("Authentication or ownerId required")

    AvailabilityService.get_owner(db, owner_id)
    return AvailabilityService.get_day(db, cache, owner_id, day, public=True)


@router.get("/days")
def get_days_summary(
        start_date: date = Query(..., alias="startDate", description="First date of the range"),
        end_date: date = Query(..., alias="endDate", description="Last date of the range (inclusive)"),
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Per-date working flag and window counts. Requires authentication."""
    return AvailabilityService.get_days_summary(db, cache, current_user.id, start_date, end_date)


# ============================================================================
# Working hours
# ============================================================================

@router.get("/working-hours")
def get_working_hours(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    return AvailabilityService.get_working_hours(db, current_user.id)


@router.put("/working-hours")
def replace_working_hours(
        body: WorkingHoursUpdate,
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Replace the full weekly schedule."""
    return AvailabilityService.replace_working_hours(
        db=db,
        cache=cache,
        owner_id=current_user.id,
        rules=[rule.model_dump() for rule in body.working_hours]
    )


# ============================================================================
# Settings
# ============================================================================

@router.get("/settings")
def get_availability_settings(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    return AvailabilityService.get_availability_settings(db, current_user.id)


@router.put("/settings")
def update_availability_settings(
        body: AvailabilitySettingsUpdate,
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    return AvailabilityService.update_availability_settings(
        db=db,
        cache=cache,
        owner_id=current_user.id,
        slot_duration_minutes=body.slot_duration_minutes,
        break_duration_minutes=body.break_duration_minutes,
        advance_booking_days=body.advance_booking_days,
        time_format_12h=body.time_format_12h
    )


# ============================================================================
# Date exceptions
# ============================================================================

@router.get("/exceptions")
def list_exceptions(
        start_date: Optional[date] = Query(None, alias="startDate", description="Exceptions on or after this date"),
        end_date: Optional[date] = Query(None, alias="endDate", description="Exceptions on or before this date"),
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    return AvailabilityService.list_exceptions(db, current_user.id, start_date, end_date)


@router.put("/exceptions/{day}")
def upsert_exception(
        body: DateExceptionUpdate,
        day: date = Path(..., description="Date of the exception (YYYY-MM-DD)"),
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Mark a date as a day off, or open it outside the weekly schedule."""
    return AvailabilityService.upsert_exception(
        db=db,
        cache=cache,
        owner_id=current_user.id,
        day=day,
        is_available=body.is_available,
        reason=body.reason
    )


@router.delete("/exceptions/{day}")
def reset_day(
        day: date = Path(..., description="Date to reset (YYYY-MM-DD)"),
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Remove the exception and every unbooked stored window for the date."""
    return AvailabilityService.reset_day(db, cache, current_user.id, day)


# ============================================================================
# Stored windows
# ============================================================================

@router.get("/time-slots")
def list_time_slots(
        day: Optional[date] = Query(None, alias="date", description="Single date"),
        start_date: Optional[date] = Query(None, alias="startDate", description="Range start"),
        end_date: Optional[date] = Query(None, alias="endDate", description="Range end (inclusive)"),
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    return AvailabilityService.list_time_slots(db, current_user.id, day, start_date, end_date)


@router.post("/time-slots")
def replace_time_slots(
        body: TimeSlotsReplace,
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Replace every stored window for one date."""
    return AvailabilityService.replace_time_slots(
        db=db,
        cache=cache,
        owner_id=current_user.id,
        day=body.date,
        time_slots=[slot.model_dump() for slot in body.time_slots]
    )


@router.put("/time-slots")
def toggle_time_slot(
        body: TimeSlotToggle,
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Open or close a single window."""
    return AvailabilityService.toggle_time_slot(
        db=db,
        cache=cache,
        owner_id=current_user.id,
        day=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        is_available=body.is_available
    )
