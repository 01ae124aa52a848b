# ===== app/services/booking/booking_service.py =====
import logging
from collections import OrderedDict
from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, StoreUnavailableError, ValidationError
from app.models.availability import AvailabilitySettings
from app.models.booking import Booking, BookingStatus
from app.schemas.booking import BookingContactUpdate, BookingReschedule
from app.services.availability.availability_cache import AvailabilityCache
from app.services.booking.booking_state_machine import BookingStateMachine
from app.services.booking.conflict_guard import ConflictGuard
from app.utils.clock import Clock, utcnow
from app.utils.time_util import format_time, time_to_timestamp

logger = logging.getLogger(__name__)


class BookingService:
    """Queries, reschedule and client self-service around bookings"""

    @staticmethod
    def list_bookings(
            db: Session,
            owner_id: UUID,
            status: Optional[BookingStatus] = None,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        query = db.query(Booking).filter(Booking.owner_id == owner_id)

        if status:
            query = query.filter(Booking.status == BookingStatus(status).value)
        if start_date:
            query = query.filter(Booking.date >= start_date)
        if end_date:
            query = query.filter(Booking.date <= end_date)

        bookings = query.order_by(Booking.date.asc(), Booking.start_time.asc()).all()
        use_12h = BookingService._uses_12h(db, owner_id)

        return {
            "total": len(bookings),
            "bookings": [BookingService.serialize_booking(b, use_12h=use_12h) for b in bookings],
        }

    @staticmethod
    def bookings_by_date(
            db: Session,
            owner_id: UUID,
            start_date: date,
            end_date: date
    ) -> Dict[str, Any]:
        """Bookings in a date range grouped by date"""
        if end_date < start_date:
            raise ValidationError("endDate must not be before startDate")

        bookings = db.query(Booking).filter(
            Booking.owner_id == owner_id,
            Booking.date >= start_date,
            Booking.date <= end_date
        ).order_by(Booking.date.asc(), Booking.start_time.asc()).all()
        use_12h = BookingService._uses_12h(db, owner_id)

        grouped: Dict[str, list] = OrderedDict()
        for booking in bookings:
            grouped.setdefault(booking.date.isoformat(), []).append(
                BookingService.serialize_booking(booking, use_12h=use_12h)
            )

        return {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "bookingsByDate": grouped,
        }

    @staticmethod
    def reschedule(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            payload: BookingReschedule
    ) -> Booking:
        """
        Delete the old booking and claim the new window in one transaction.
        The new booking starts as pending and keeps the client's details and
        self-service token. If the new window is taken nothing changes.
        """
        old = BookingStateMachine.get_owned_booking(db, owner_id, payload.booking_id)
        if not old.is_active:
            raise ValidationError(
                f"Cannot reschedule a {old.status} booking",
                context={"booking_id": str(old.id)},
            )

        day, start_time, end_time = ConflictGuard.resolve_window_ref(
            db, owner_id, payload.time_slot_id, payload.date, payload.start_time, payload.end_time
        )
        if (day, start_time, end_time) == (old.date, old.start_time, old.end_time):
            raise ValidationError("Booking is already in this time slot")

        window = ConflictGuard.resolve_window(db, owner_id, day, start_time, end_time)
        old = BookingStateMachine.get_owned_booking(db, owner_id, payload.booking_id)
        old_id, old_day = old.id, old.date
        carried = {
            "client_name": old.client_name,
            "client_email": old.client_email,
            "client_phone": old.client_phone,
            "notes": old.notes,
            "access_token": old.access_token,
        }

        try:
            BookingStateMachine.release(db, old)
            booking = ConflictGuard.claim(db, window, **carried)
            db.commit()
        except OperationalError as e:
            db.rollback()
            raise StoreUnavailableError(
                "Booking store is temporarily unavailable, please retry",
                context={"booking_id": str(old_id), "error": str(e.orig)},
            )

        cache.invalidate(owner_id, old_day)
        cache.invalidate(owner_id, day)
        logger.info(f"Rescheduled booking {old_id} to {booking.id} ({day} {start_time}-{end_time})")
        return booking

    # ------------------------------------------------------------------
    # Client self-service by access token
    # ------------------------------------------------------------------

    @staticmethod
    def get_by_token(db: Session, token: str) -> Booking:
        if not token:
            raise NotFoundError("Booking not found")
        booking = db.query(Booking).filter(Booking.access_token == token).first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def update_contact_by_token(
            db: Session,
            cache: AvailabilityCache,
            token: str,
            payload: BookingContactUpdate
    ) -> Booking:
        booking = BookingService.get_by_token(db, token)
        if not booking.is_active:
            raise ValidationError(
                f"Cannot edit a {booking.status} booking",
                context={"booking_id": str(booking.id)},
            )

        changes = payload.model_dump(exclude_unset=True)
        if "client_name" in changes and changes["client_name"] is None:
            raise ValidationError("Name cannot be empty")
        if "client_email" in changes and changes["client_email"] is None:
            raise ValidationError("Email cannot be empty")

        for field, value in changes.items():
            setattr(booking, field, str(value) if field == "client_email" else value)
        db.commit()
        db.refresh(booking)

        cache.invalidate(booking.owner_id, booking.date)
        logger.info(f"Client updated contact details on booking {booking.id}")
        return booking

    @staticmethod
    def cancel_by_token(
            db: Session,
            cache: AvailabilityCache,
            token: str,
            clock: Clock = utcnow
    ) -> Booking:
        booking = BookingService.get_by_token(db, token)
        if booking.status in (BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value):
            raise ValidationError(
                f"Booking is already {booking.status}",
                context={"booking_id": str(booking.id)},
            )
        return BookingStateMachine.apply(db, cache, booking, BookingStatus.CANCELLED, clock)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def serialize_booking(
            booking: Booking,
            use_12h: bool = False,
            include_token: bool = False
    ) -> Dict[str, Any]:
        result = {
            "id": str(booking.id),
            "ownerId": str(booking.owner_id),
            "date": booking.date.isoformat(),
            "startTime": booking.start_time,
            "endTime": booking.end_time,
            "startTimestamp": time_to_timestamp(booking.date, booking.start_time),
            "endTimestamp": time_to_timestamp(booking.date, booking.end_time),
            "displayTime": f"{format_time(booking.start_time, use_12h)} - {format_time(booking.end_time, use_12h)}",
            "clientName": booking.client_name,
            "clientEmail": booking.client_email,
            "clientPhone": booking.client_phone,
            "notes": booking.notes,
            "status": booking.status,
            "createdAt": booking.created_at.isoformat() if booking.created_at else None,
            "updatedAt": booking.updated_at.isoformat() if booking.updated_at else None,
        }
        if include_token:
            result["accessToken"] = booking.access_token
        return result

    @staticmethod
    def _uses_12h(db: Session, owner_id: UUID) -> bool:
        settings_row = db.query(AvailabilitySettings).filter_by(owner_id=owner_id).first()
        return bool(settings_row and settings_row.time_format_12h)
