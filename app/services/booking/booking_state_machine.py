# ===== app/services/booking/booking_state_machine.py =====
import logging
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.settings import get_settings
from app.core.exceptions import ConflictError, ForbiddenError, GuardViolationError, NotFoundError, ValidationError
from app.models.availability import TimeSlot
from app.models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from app.services.availability.availability_cache import AvailabilityCache
from app.utils.clock import Clock, utcnow
from app.utils.time_util import to_datetime

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.NO_SHOW, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


class BookingStateMachine:
    """Status changes and deletion, keeping the held window in sync"""

    @staticmethod
    def get_owned_booking(db: Session, owner_id: UUID, booking_id: UUID) -> Booking:
        # Row lock until the caller commits (no-op on SQLite)
        booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
        if not booking:
            raise NotFoundError("Booking not found", context={"booking_id": str(booking_id)})
        if booking.owner_id != owner_id:
            raise ForbiddenError(
                "You do not have access to this booking",
                context={"booking_id": str(booking_id), "owner_id": str(owner_id)},
            )
        return booking

    @staticmethod
    def check_transition(booking: Booking, target: BookingStatus, now: datetime):
        """Raise when moving booking to target is illegal or not allowed yet"""
        current = BookingStatus(booking.status)
        context = {"booking_id": str(booking.id), "from": current.value, "to": target.value}

        if current == target:
            raise ValidationError(f"Booking is already {current.value}", context=context)
        if not can_transition(current, target):
            raise ValidationError(
                f"Cannot change booking status from {current.value} to {target.value}",
                context=context,
            )

        start = to_datetime(booking.date, booking.start_time)
        if target == BookingStatus.NO_SHOW:
            grace = get_settings().NO_SHOW_GRACE_MINUTES
            if now < start + timedelta(minutes=grace):
                raise GuardViolationError(
                    f"Cannot mark as no-show until {grace} minutes after the start time.",
                    context=context,
                )
        if target == BookingStatus.COMPLETED and now < start:
            raise GuardViolationError(
                "Cannot mark as completed before the start time.",
                context=context,
            )

    @staticmethod
    def transition(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            booking_id: UUID,
            target: BookingStatus,
            clock: Clock = utcnow
    ) -> Booking:
        booking = BookingStateMachine.get_owned_booking(db, owner_id, booking_id)
        return BookingStateMachine.apply(db, cache, booking, target, clock)

    @staticmethod
    def apply(
            db: Session,
            cache: AvailabilityCache,
            booking: Booking,
            target: BookingStatus,
            clock: Clock = utcnow
    ) -> Booking:
        """Guarded status change on an already-authorised booking"""
        target = BookingStatus(target)
        BookingStateMachine.check_transition(booking, target, clock())
        previous, booking_id = booking.status, booking.id
        context = {"booking_id": str(booking_id), "from": previous, "to": target.value}

        try:
            # Only moves the booking if it still has the status that was checked
            updated = db.query(Booking).filter(
                Booking.id == booking_id,
                Booking.owner_id == booking.owner_id,
                Booking.status == previous
            ).update(
                {Booking.status: target.value, Booking.updated_at: utcnow()},
                synchronize_session=False
            )
            if updated == 0:
                db.rollback()
                logger.info(f"Booking {booking_id} changed concurrently, {previous} -> {target.value} rejected")
                raise ConflictError(
                    "Booking was changed by another request, please reload and retry",
                    context=context,
                )

            window = BookingStateMachine._window_for(db, booking)
            if window is not None:
                if target == BookingStatus.CONFIRMED:
                    window.is_booked = True
                elif target == BookingStatus.CANCELLED:
                    window.is_booked = False
                    window.is_available = True
                # completed / no-show leave the window as it is

            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("This time slot is no longer available", context=context)
        except ConflictError:
            raise
        except Exception:
            db.rollback()
            raise
        db.refresh(booking)

        cache.invalidate(booking.owner_id, booking.date)
        logger.info(f"Booking {booking.id} moved from {previous} to {booking.status}")
        return booking

    @staticmethod
    def delete(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            booking_id: UUID
    ) -> Dict[str, str]:
        """Remove a booking and free its window"""
        booking = BookingStateMachine.get_owned_booking(db, owner_id, booking_id)
        day = booking.date

        try:
            BookingStateMachine.release(db, booking)
            db.commit()
        except Exception:
            db.rollback()
            raise

        cache.invalidate(owner_id, day)
        logger.info(f"Deleted booking {booking_id} for owner {owner_id}")
        return {"message": "Booking deleted successfully", "bookingId": str(booking_id)}

    @staticmethod
    def release(db: Session, booking: Booking):
        """Free the window and delete the booking row; caller commits"""
        window = BookingStateMachine._window_for(db, booking)
        held_by_other = db.query(Booking.id).filter(
            Booking.id != booking.id,
            Booking.owner_id == booking.owner_id,
            Booking.date == booking.date,
            Booking.start_time == booking.start_time,
            Booking.end_time == booking.end_time,
            Booking.status.in_(ACTIVE_STATUSES)
        ).first()
        if window is not None and held_by_other is None:
            window.is_booked = False
            window.is_available = True
        db.delete(booking)
        db.flush()

    @staticmethod
    def _window_for(db: Session, booking: Booking) -> Optional[TimeSlot]:
        return db.query(TimeSlot).filter_by(
            owner_id=booking.owner_id,
            date=booking.date,
            start_time=booking.start_time,
            end_time=booking.end_time
        ).first()
