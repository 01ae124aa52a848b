# ============================================================================
# FILE: app/api/v1/public/bookings.py
# Client self-service through the booking's access token (no login)
# ============================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.api.dependencies import get_availability_cache, get_clock
from app.schemas.booking import BookingContactUpdate
from app.services.availability.availability_cache import AvailabilityCache
from app.services.booking.booking_service import BookingService
from app.utils.clock import Clock

router = APIRouter(prefix="/bookings", tags=["public-bookings"])


def _public_view(booking) -> dict:
    result = BookingService.serialize_booking(booking)
    result.pop("ownerId", None)
    return result


@router.get("")
def view_booking(
        token: str = Query(..., min_length=1, description="Access token from the confirmation link"),
        db: Session = Depends(get_db)
):
    return {"booking": _public_view(BookingService.get_by_token(db, token))}


@router.patch("")
def edit_booking(
        body: BookingContactUpdate,
        token: str = Query(..., min_length=1),
        cache: AvailabilityCache = Depends(get_availability_cache),
        db: Session = Depends(get_db)
):
    """Change contact details or notes. Times cannot be changed here."""
    booking = BookingService.update_contact_by_token(db, cache, token, body)
    return {
        "message": "Booking updated successfully",
        "booking": _public_view(booking),
    }


@router.delete("")
def cancel_booking(
        token: str = Query(..., min_length=1),
        cache: AvailabilityCache = Depends(get_availability_cache),
        clock: Clock = Depends(get_clock),
        db: Session = Depends(get_db)
):
    """Cancel the booking and release its window."""
    booking = BookingService.cancel_by_token(db, cache, token, clock)
    return {
        "message": "Booking cancelled successfully",
        "booking": _public_view(booking),
    }
