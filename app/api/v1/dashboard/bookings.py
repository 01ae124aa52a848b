# ============================================================================
# FILE: app/api/v1/dashboard/bookings.py
# Booking creation (owner or public) and owner booking management
# ============================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID

from app.config.database import get_db
from app.core.exceptions import UnauthorizedError
from app.models.booking import BookingStatus
from app.models.user import User
from app.api.dependencies import get_current_user, optional_current_user, get_availability_cache, get_clock
from app.schemas.booking import BookingCreate, BookingReschedule, BookingStatusUpdate
from app.services.availability.availability_cache import AvailabilityCache
from app.services.booking.booking_service import BookingService
from app.services.booking.booking_state_machine import BookingStateMachine
from app.services.booking.conflict_guard import ConflictGuard
from app.utils.clock import Clock

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("")
def create_booking(
        body: BookingCreate,
        current_user: Optional[User] = Depends(optional_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """
    Book a window. Clients pass ownerId; an authenticated owner booking
    on their own calendar may omit it.
    """
    owner_id = body.owner_id or (current_user.id if current_user else None)
    if owner_id is None:
        raise UnauthorizedError("Authentication or ownerId required")

    booking = ConflictGuard.create_booking(db, cache, owner_id, body)
    return {
        "message": "Booking created successfully",
        "booking": BookingService.serialize_booking(booking, include_token=True),
    }


@router.get("")
def list_bookings(
        status: Optional[BookingStatus] = Query(None, description="Filter by status (pending, confirmed, cancelled, completed, no-show)"),
        start_date: Optional[date] = Query(None, alias="startDate", description="Bookings on or after this date"),
        end_date: Optional[date] = Query(None, alias="endDate", description="Bookings on or before this date"),
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    """List your bookings. Requires authentication."""
    return BookingService.list_bookings(
        db=db,
        owner_id=current_user.id,
        status=status,
        start_date=start_date,
        end_date=end_date
    )


@router.get("/by-date")
def bookings_by_date(
        start_date: date = Query(..., alias="startDate", description="Range start"),
        end_date: date = Query(..., alias="endDate", description="Range end (inclusive)"),
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
):
    """Bookings grouped by date. Requires authentication."""
    return BookingService.bookings_by_date(db, current_user.id, start_date, end_date)


@router.patch("")
def update_booking_status(
        body: BookingStatusUpdate,
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        clock: Clock = Depends(get_clock),
        db: Session = Depends(get_db)
):
    """Move a booking through its lifecycle."""
    booking = BookingStateMachine.transition(
        db=db,
        cache=cache,
        owner_id=current_user.id,
        booking_id=body.booking_id,
        target=body.status,
        clock=clock
    )
    return {
        "message": f"Booking {booking.status}",
        "booking": BookingService.serialize_booking(booking),
    }


@router.delete("")
def delete_booking(
        booking_id: UUID = Query(..., alias="bookingId", description="The booking ID"),
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Delete a booking and free its window."""
    return BookingStateMachine.delete(db, cache, current_user.id, booking_id)


@router.post("/reschedule")
def reschedule_booking(
        body: BookingReschedule,
        current_user: User = Depends(get_current_user),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Move a booking to another window."""
    booking = BookingService.reschedule(db, cache, current_user.id, body)
    return {
        "message": "Booking rescheduled successfully",
        "booking": BookingService.serialize_booking(booking),
    }
