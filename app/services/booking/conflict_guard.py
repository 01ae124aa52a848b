# ===== app/services/booking/conflict_guard.py =====
"""
Atomic booking creation.

A window is claimed with a single conditional UPDATE on its stored row
(is_booked false -> true). Exactly one of any number of concurrent
callers sees an affected row count of 1; the partial unique index on
active bookings backs this up at the store level.
"""
import secrets
import logging
from datetime import date
from typing import Any, Dict, Optional, Tuple, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InternalError, NotFoundError, StoreUnavailableError, ValidationError
from app.models.availability import TimeSlot
from app.models.booking import Booking, BookingStatus
from app.schemas.booking import BookingCreate
from app.services.availability.availability_cache import AvailabilityCache
from app.services.availability.availability_service import AvailabilityService
from app.services.availability.slot_generator import parse_window_id
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def new_access_token() -> str:
    return secrets.token_urlsafe(32)


def validation_message(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{location}: {message}" if location else message


class ConflictGuard:

    @staticmethod
    def create_booking(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            payload: Union[BookingCreate, Dict[str, Any]]
    ) -> Booking:
        """
        Validate, resolve the window, claim it and insert a pending booking
        in one transaction. Raises ConflictError when the window is taken.
        """
        if not isinstance(payload, BookingCreate):
            try:
                payload = BookingCreate.model_validate(payload)
            except PydanticValidationError as e:
                raise ValidationError(validation_message(e))

        AvailabilityService.get_owner(db, owner_id)
        day, start_time, end_time = ConflictGuard.resolve_window_ref(
            db, owner_id, payload.time_slot_id, payload.date, payload.start_time, payload.end_time
        )
        window = ConflictGuard.resolve_window(db, owner_id, day, start_time, end_time)

        try:
            booking = ConflictGuard.claim(
                db,
                window,
                client_name=payload.client_name,
                client_email=str(payload.client_email),
                client_phone=payload.client_phone,
                notes=payload.notes,
            )
            db.commit()
        except OperationalError as e:
            db.rollback()
            raise StoreUnavailableError(
                "Booking store is temporarily unavailable, please retry",
                context={"owner_id": str(owner_id), "date": day.isoformat(), "error": str(e.orig)},
            )

        cache.invalidate(owner_id, day)
        logger.info(f"Created booking {booking.id} for owner {owner_id} on {day} {start_time}-{end_time}")
        return booking

    @staticmethod
    def resolve_window_ref(
            db: Session,
            owner_id: UUID,
            time_slot_id: Optional[str],
            day: Optional[date],
            start_time: Optional[str],
            end_time: Optional[str]
    ) -> Tuple[date, str, str]:
        """Turn a timeSlotId or date/start/end triple into (date, start, end)"""
        if not time_slot_id:
            return day, start_time, end_time

        parsed = parse_window_id(time_slot_id)
        if parsed:
            return parsed

        try:
            row_id = UUID(time_slot_id)
        except ValueError:
            raise NotFoundError("Time slot not found", context={"time_slot_id": time_slot_id})

        row = db.query(TimeSlot).filter(TimeSlot.id == row_id, TimeSlot.owner_id == owner_id).first()
        if not row:
            raise NotFoundError("Time slot not found", context={"time_slot_id": time_slot_id})
        return row.date, row.start_time, row.end_time

    @staticmethod
    def resolve_window(db: Session, owner_id: UUID, day: date, start_time: str, end_time: str) -> TimeSlot:
        """
        Stored row for the window. A window that exists only in the computed
        day is inserted first; losing that insert race means another caller
        inserted the same row, which is then re-read.
        """
        row = ConflictGuard._find_row(db, owner_id, day, start_time, end_time)
        if row:
            return row

        view = AvailabilityService.compute_day(db, owner_id, day)
        computed = next(
            (w for w in view["timeSlots"] if w["startTime"] == start_time and w["endTime"] == end_time),
            None
        )
        if computed is None:
            raise NotFoundError(
                "Time slot not found",
                context={"owner_id": str(owner_id), "date": day.isoformat(), "window": (start_time, end_time)},
            )
        if not computed["isAvailable"]:
            raise ConflictError(
                "This time slot is no longer available",
                context={"owner_id": str(owner_id), "date": day.isoformat(), "window": (start_time, end_time)},
            )

        row = TimeSlot(
            owner_id=owner_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            is_available=True,
            is_booked=False,
        )
        db.add(row)
        try:
            # Committed ahead of the claim: if the claim then loses, this open
            # unbooked row stays behind, matching the computed window it stands for
            db.commit()
        except IntegrityError as e:
            db.rollback()
            row = ConflictGuard._find_row(db, owner_id, day, start_time, end_time)
            if row is None:
                raise InternalError(
                    "Could not store time slot",
                    context={"owner_id": str(owner_id), "date": day.isoformat(), "error": str(e.orig)},
                )
        return row

    @staticmethod
    def claim(
            db: Session,
            window: TimeSlot,
            client_name: str,
            client_email: str,
            client_phone: Optional[str] = None,
            notes: Optional[str] = None,
            access_token: Optional[str] = None
    ) -> Booking:
        """
        Conditional claim plus booking insert. Does not commit; the caller
        owns the transaction. Rolls back and raises ConflictError on loss.
        """
        window_id, owner_id = window.id, window.owner_id
        day, start_time, end_time = window.date, window.start_time, window.end_time
        context = {"owner_id": str(owner_id), "date": day.isoformat(), "window": (start_time, end_time)}

        claimed = db.query(TimeSlot).filter(
            TimeSlot.id == window_id,
            TimeSlot.is_booked.is_(False),
            TimeSlot.is_available.is_(True)
        ).update(
            {TimeSlot.is_booked: True, TimeSlot.updated_at: utcnow()},
            synchronize_session=False
        )
        if claimed == 0:
            db.rollback()
            logger.info(f"Booking conflict for owner {owner_id} on {day} {start_time}-{end_time}")
            raise ConflictError("This time slot is no longer available", context=context)

        booking = Booking(
            owner_id=owner_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            client_name=client_name,
            client_email=client_email,
            client_phone=client_phone,
            notes=notes,
            status=BookingStatus.PENDING.value,
            access_token=access_token or new_access_token(),
        )
        db.add(booking)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            logger.info(f"Active booking already exists for owner {owner_id} on {day} {start_time}-{end_time}")
            raise ConflictError("This time slot is no longer available", context=context)

        return booking

    @staticmethod
    def _find_row(db: Session, owner_id: UUID, day: date, start_time: str, end_time: str) -> Optional[TimeSlot]:
        return db.query(TimeSlot).filter_by(
            owner_id=owner_id, date=day, start_time=start_time, end_time=end_time
        ).first()
