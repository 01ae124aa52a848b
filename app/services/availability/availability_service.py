# ===== app/services/availability/availability_service.py =====
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.settings import get_settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.availability import AvailabilitySettings, DateException, TimeSlot, WorkingHourRule
from app.models.booking import ACTIVE_STATUSES, Booking
from app.models.user import User
from app.services.availability.availability_cache import AvailabilityCache
from app.services.availability.booking_overlay import BookingOverlay
from app.services.availability.exception_overlay import ExceptionOverlay
from app.services.availability.slot_generator import SlotGenerator
from app.utils.time_util import day_of_week

logger = logging.getLogger(__name__)

# Mon-Fri 09:00-17:00 working, weekend rows present but closed
DEFAULT_WORKING_HOURS = [
    {"day_of_week": 0, "start_time": "10:00", "end_time": "15:00", "is_working": False},
    {"day_of_week": 1, "start_time": "09:00", "end_time": "17:00", "is_working": True},
    {"day_of_week": 2, "start_time": "09:00", "end_time": "17:00", "is_working": True},
    {"day_of_week": 3, "start_time": "09:00", "end_time": "17:00", "is_working": True},
    {"day_of_week": 4, "start_time": "09:00", "end_time": "17:00", "is_working": True},
    {"day_of_week": 5, "start_time": "09:00", "end_time": "17:00", "is_working": True},
    {"day_of_week": 6, "start_time": "10:00", "end_time": "15:00", "is_working": False},
]


class AvailabilityService:
    """Computed day views plus the owner's availability configuration"""

    # ------------------------------------------------------------------
    # Owners
    # ------------------------------------------------------------------

    @staticmethod
    def get_owner(db: Session, owner_id: UUID) -> User:
        owner = db.query(User).filter(User.id == owner_id, User.is_active.is_(True)).first()
        if not owner:
            raise NotFoundError("Owner not found", context={"owner_id": str(owner_id)})
        return owner

    # ------------------------------------------------------------------
    # Lazily created defaults
    # ------------------------------------------------------------------

    @staticmethod
    def get_or_create_settings(db: Session, owner_id: UUID) -> AvailabilitySettings:
        settings_row = db.query(AvailabilitySettings).filter_by(owner_id=owner_id).first()
        if settings_row:
            return settings_row

        app_settings = get_settings()
        settings_row = AvailabilitySettings(
            owner_id=owner_id,
            slot_duration_minutes=app_settings.DEFAULT_SLOT_DURATION,
            break_duration_minutes=app_settings.DEFAULT_BREAK_DURATION,
            advance_booking_days=app_settings.DEFAULT_ADVANCE_BOOKING_DAYS,
            time_format_12h=False,
        )
        db.add(settings_row)
        try:
            db.commit()
        except IntegrityError:
            # Another request created them first
            db.rollback()
            return db.query(AvailabilitySettings).filter_by(owner_id=owner_id).one()

        db.refresh(settings_row)
        logger.info(f"Created default availability settings for owner {owner_id}")
        return settings_row

    @staticmethod
    def get_or_create_working_hours(db: Session, owner_id: UUID) -> List[WorkingHourRule]:
        rules = db.query(WorkingHourRule).filter_by(owner_id=owner_id).order_by(WorkingHourRule.day_of_week).all()
        if rules:
            return rules

        for default in DEFAULT_WORKING_HOURS:
            db.add(WorkingHourRule(owner_id=owner_id, **default))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
        else:
            logger.info(f"Created default working hours for owner {owner_id}")

        return db.query(WorkingHourRule).filter_by(owner_id=owner_id).order_by(WorkingHourRule.day_of_week).all()

    # ------------------------------------------------------------------
    # Computed day view
    # ------------------------------------------------------------------

    @staticmethod
    def compute_day(db: Session, owner_id: UUID, day: date) -> Dict[str, Any]:
        """Generator -> exception overlay -> booking overlay, owner variant"""
        settings_row = AvailabilityService.get_or_create_settings(db, owner_id)
        rules = AvailabilityService.get_or_create_working_hours(db, owner_id)
        rule = next((r for r in rules if r.day_of_week == day_of_week(day)), None)

        rows = db.query(TimeSlot).filter(
            TimeSlot.owner_id == owner_id,
            TimeSlot.date == day
        ).all()
        exception = db.query(DateException).filter_by(owner_id=owner_id, date=day).first()
        bookings = db.query(Booking).filter(
            Booking.owner_id == owner_id,
            Booking.date == day,
            Booking.status.in_(ACTIVE_STATUSES)
        ).all()

        baseline = SlotGenerator.generate(day, rule, settings_row)
        is_working_day, windows = ExceptionOverlay.apply(day, baseline, rows, exception)
        windows = BookingOverlay.apply(windows, bookings)

        return {
            "date": day.isoformat(),
            "isWorkingDay": is_working_day,
            "timeSlots": windows,
        }

    @staticmethod
    def get_day(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            day: date,
            public: bool = False
    ) -> Dict[str, Any]:
        """Cached day view; the public variant carries no booking details"""
        view = cache.get(owner_id, day)
        if view is None:
            # Read before computing; a write that lands meanwhile bumps it
            generation = cache.generation(owner_id, day)
            view = AvailabilityService.compute_day(db, owner_id, day)
            cache.set_if_unchanged(owner_id, day, view, generation)

        if public:
            view = dict(view)
            view["timeSlots"] = BookingOverlay.strip_details(view["timeSlots"])
        return view

    @staticmethod
    def get_days_summary(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            start_date: date,
            end_date: date
    ) -> Dict[str, Any]:
        """Per-date working flag and window counts for a date range"""
        AvailabilityService._check_range(start_date, end_date)

        days = []
        current = start_date
        while current <= end_date:
            view = AvailabilityService.get_day(db, cache, owner_id, current)
            windows = view["timeSlots"]
            days.append({
                "date": view["date"],
                "isWorkingDay": view["isWorkingDay"],
                "totalSlots": len(windows),
                "availableSlots": sum(1 for w in windows if w["isAvailable"]),
                "bookedSlots": sum(1 for w in windows if w["isBooked"]),
            })
            current += timedelta(days=1)

        return {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "days": days,
        }

    @staticmethod
    def _check_range(start_date: date, end_date: date):
        if end_date < start_date:
            raise ValidationError("endDate must not be before startDate")
        max_days = get_settings().MAX_RANGE_DAYS
        if (end_date - start_date).days + 1 > max_days:
            raise ValidationError(f"Date range cannot exceed {max_days} days")

    # ------------------------------------------------------------------
    # Working hours
    # ------------------------------------------------------------------

    @staticmethod
    def get_working_hours(db: Session, owner_id: UUID) -> Dict[str, Any]:
        rules = AvailabilityService.get_or_create_working_hours(db, owner_id)
        return {"workingHours": [AvailabilityService._serialize_rule(r) for r in rules]}

    @staticmethod
    def replace_working_hours(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            rules: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Replace the weekly rules as a full set in one transaction"""
        try:
            db.query(WorkingHourRule).filter_by(owner_id=owner_id).delete(synchronize_session=False)
            for rule in rules:
                db.add(WorkingHourRule(
                    owner_id=owner_id,
                    day_of_week=rule["day_of_week"],
                    start_time=rule["start_time"],
                    end_time=rule["end_time"],
                    is_working=rule["is_working"],
                ))
            db.commit()
        except Exception:
            db.rollback()
            raise

        cache.invalidate_owner(owner_id)
        logger.info(f"Replaced working hours for owner {owner_id} ({len(rules)} rules)")
        return AvailabilityService.get_working_hours(db, owner_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @staticmethod
    def get_availability_settings(db: Session, owner_id: UUID) -> Dict[str, Any]:
        return AvailabilityService._serialize_settings(
            AvailabilityService.get_or_create_settings(db, owner_id)
        )

    @staticmethod
    def update_availability_settings(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            slot_duration_minutes: int,
            break_duration_minutes: int,
            advance_booking_days: int,
            time_format_12h: bool
    ) -> Dict[str, Any]:
        if slot_duration_minutes <= 0:
            raise ValidationError("Slot duration must be a positive number of minutes")
        if break_duration_minutes < 0:
            raise ValidationError("Break duration cannot be negative")

        settings_row = AvailabilityService.get_or_create_settings(db, owner_id)
        settings_row.slot_duration_minutes = slot_duration_minutes
        settings_row.break_duration_minutes = break_duration_minutes
        settings_row.advance_booking_days = advance_booking_days
        settings_row.time_format_12h = time_format_12h
        db.commit()
        db.refresh(settings_row)

        cache.invalidate_owner(owner_id)
        logger.info(f"Updated availability settings for owner {owner_id}")
        return AvailabilityService._serialize_settings(settings_row)

    # ------------------------------------------------------------------
    # Date exceptions
    # ------------------------------------------------------------------

    @staticmethod
    def list_exceptions(
            db: Session,
            owner_id: UUID,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        query = db.query(DateException).filter(DateException.owner_id == owner_id)
        if start_date:
            query = query.filter(DateException.date >= start_date)
        if end_date:
            query = query.filter(DateException.date <= end_date)

        exceptions = query.order_by(DateException.date.asc()).all()
        return {"exceptions": [AvailabilityService._serialize_exception(e) for e in exceptions]}

    @staticmethod
    def upsert_exception(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            day: date,
            is_available: bool,
            reason: Optional[str] = None
    ) -> Dict[str, Any]:
        exception = db.query(DateException).filter_by(owner_id=owner_id, date=day).first()
        if exception:
            exception.is_available = is_available
            exception.reason = reason
        else:
            exception = DateException(owner_id=owner_id, date=day, is_available=is_available, reason=reason)
            db.add(exception)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                "Exception for this date was changed concurrently, please retry",
                context={"owner_id": str(owner_id), "date": day.isoformat()},
            )
        db.refresh(exception)

        cache.invalidate(owner_id, day)
        logger.info(f"Set date exception for owner {owner_id} on {day} (available={is_available})")
        return AvailabilityService._serialize_exception(exception)

    @staticmethod
    def reset_day(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            day: date
    ) -> Dict[str, Any]:
        """Drop the exception and every unbooked stored window for a date"""
        removed_exception = db.query(DateException).filter_by(
            owner_id=owner_id, date=day
        ).delete(synchronize_session=False)
        removed_windows = db.query(TimeSlot).filter(
            TimeSlot.owner_id == owner_id,
            TimeSlot.date == day,
            TimeSlot.is_booked.is_(False)
        ).delete(synchronize_session=False)
        db.commit()

        cache.invalidate(owner_id, day)
        logger.info(f"Reset {day} for owner {owner_id}: {removed_windows} windows removed")
        return {
            "date": day.isoformat(),
            "exceptionRemoved": bool(removed_exception),
            "timeSlotsRemoved": removed_windows,
        }

    # ------------------------------------------------------------------
    # Stored windows
    # ------------------------------------------------------------------

    @staticmethod
    def list_time_slots(
            db: Session,
            owner_id: UUID,
            day: Optional[date] = None,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        query = db.query(TimeSlot).filter(TimeSlot.owner_id == owner_id)
        if day:
            query = query.filter(TimeSlot.date == day)
        elif start_date and end_date:
            AvailabilityService._check_range(start_date, end_date)
            query = query.filter(TimeSlot.date >= start_date, TimeSlot.date <= end_date)
        else:
            raise ValidationError("Either date or startDate and endDate are required")

        rows = query.order_by(TimeSlot.date.asc(), TimeSlot.start_time.asc(), TimeSlot.end_time.asc()).all()
        return {"timeSlots": [AvailabilityService._serialize_time_slot(r) for r in rows]}

    @staticmethod
    def replace_time_slots(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            day: date,
            time_slots: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Replace a date's stored windows. Windows holding an active booking
        must survive and stay open; otherwise the whole write is rejected.
        """
        existing = {
            (row.start_time, row.end_time): row
            for row in db.query(TimeSlot).filter(TimeSlot.owner_id == owner_id, TimeSlot.date == day).all()
        }
        held = AvailabilityService._held_windows(db, owner_id, day)
        held.update(key for key, row in existing.items() if row.is_booked)

        wanted = {(s["start_time"], s["end_time"]): s for s in time_slots}

        for key in held:
            if key not in wanted or not wanted[key]["is_available"]:
                raise ConflictError(
                    f"Time slot {key[0]}-{key[1]} has an active booking and cannot be removed or closed",
                    context={"owner_id": str(owner_id), "date": day.isoformat(), "window": key},
                )

        try:
            for key, row in existing.items():
                if key not in wanted:
                    db.delete(row)

            for key, slot in wanted.items():
                row = existing.get(key)
                if row:
                    row.is_available = slot["is_available"]
                else:
                    db.add(TimeSlot(
                        owner_id=owner_id,
                        date=day,
                        start_time=key[0],
                        end_time=key[1],
                        is_available=slot["is_available"],
                        is_booked=False,
                    ))
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                "Time slots for this date were changed concurrently, please retry",
                context={"owner_id": str(owner_id), "date": day.isoformat()},
            )

        cache.invalidate(owner_id, day)
        logger.info(f"Replaced time slots for owner {owner_id} on {day} ({len(wanted)} windows)")
        return AvailabilityService.list_time_slots(db, owner_id, day=day)

    @staticmethod
    def toggle_time_slot(
            db: Session,
            cache: AvailabilityCache,
            owner_id: UUID,
            day: date,
            start_time: str,
            end_time: str,
            is_available: bool
    ) -> Dict[str, Any]:
        """Open or close a single window, creating the stored row if needed"""
        row = db.query(TimeSlot).filter_by(
            owner_id=owner_id, date=day, start_time=start_time, end_time=end_time
        ).first()

        if not is_available:
            booked = (row is not None and row.is_booked) or \
                (start_time, end_time) in AvailabilityService._held_windows(db, owner_id, day)
            if booked:
                raise ConflictError(
                    "Cannot close a time slot that has an active booking",
                    context={"owner_id": str(owner_id), "date": day.isoformat(),
                             "window": (start_time, end_time)},
                )

        if row:
            row.is_available = is_available
        else:
            row = TimeSlot(
                owner_id=owner_id,
                date=day,
                start_time=start_time,
                end_time=end_time,
                is_available=is_available,
                is_booked=False,
            )
            db.add(row)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(
                "Time slot was changed concurrently, please retry",
                context={"owner_id": str(owner_id), "date": day.isoformat()},
            )
        db.refresh(row)

        cache.invalidate(owner_id, day)
        return AvailabilityService._serialize_time_slot(row)

    @staticmethod
    def _held_windows(db: Session, owner_id: UUID, day: date) -> set:
        bookings = db.query(Booking.start_time, Booking.end_time).filter(
            Booking.owner_id == owner_id,
            Booking.date == day,
            Booking.status.in_(ACTIVE_STATUSES)
        ).all()
        return {(b.start_time, b.end_time) for b in bookings}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def _serialize_rule(rule: WorkingHourRule) -> Dict[str, Any]:
        return {
            "dayOfWeek": rule.day_of_week,
            "startTime": rule.start_time,
            "endTime": rule.end_time,
            "isWorking": rule.is_working,
        }

    @staticmethod
    def _serialize_settings(settings_row: AvailabilitySettings) -> Dict[str, Any]:
        return {
            "slotDurationMinutes": settings_row.slot_duration_minutes,
            "breakDurationMinutes": settings_row.break_duration_minutes,
            "advanceBookingDays": settings_row.advance_booking_days,
            "timeFormat12h": settings_row.time_format_12h,
        }

    @staticmethod
    def _serialize_exception(exception: DateException) -> Dict[str, Any]:
        return {
            "id": str(exception.id),
            "date": exception.date.isoformat(),
            "isAvailable": exception.is_available,
            "reason": exception.reason,
        }

    @staticmethod
    def _serialize_time_slot(row: TimeSlot) -> Dict[str, Any]:
        return {
            "id": str(row.id),
            "date": row.date.isoformat(),
            "startTime": row.start_time,
            "endTime": row.end_time,
            "isAvailable": row.is_available,
            "isBooked": row.is_booked,
        }
