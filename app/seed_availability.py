# ===== seed_availability.py =====
import sys
from datetime import date, timedelta
from uuid import UUID

from app.config.database import get_db
from app.models.availability import DateException, TimeSlot
from app.services.availability.availability_service import AvailabilityService


def next_weekday(start: date, weekday: int) -> date:
    """Next date on or after start with the given isoweekday (1=Mon ... 7=Sun)"""
    return start + timedelta(days=(weekday - start.isoweekday()) % 7)


def seed_availability(owner_id: UUID):
    db = next(get_db())

    try:
        # 1. Default settings (60 min windows) and Mon-Fri 9-5 working hours
        AvailabilityService.get_owner(db, owner_id)
        AvailabilityService.get_or_create_settings(db, owner_id)
        AvailabilityService.get_or_create_working_hours(db, owner_id)

        today = date.today()

        # 2. Example exception: next Friday off
        day_off = next_weekday(today, 5)
        if not db.query(DateException).filter_by(owner_id=owner_id, date=day_off).first():
            db.add(DateException(owner_id=owner_id, date=day_off, is_available=False, reason="Vacation"))

        # 3. Example exception: next Saturday opened with two morning windows
        saturday = next_weekday(today, 6)
        if not db.query(DateException).filter_by(owner_id=owner_id, date=saturday).first():
            db.add(DateException(owner_id=owner_id, date=saturday, is_available=True, reason="Saturday clinic"))
            db.add_all([
                TimeSlot(owner_id=owner_id, date=saturday, start_time="10:00", end_time="11:00"),
                TimeSlot(owner_id=owner_id, date=saturday, start_time="11:00", end_time="12:00"),
            ])

        db.commit()
        print(f"✅ Availability seeded for owner {owner_id} (day off {day_off}, open {saturday})")

    except Exception as e:
        db.rollback()
        print("❌ Error seeding availability:", e)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python -m app.seed_availability <owner-id>")
        sys.exit(1)
    seed_availability(UUID(sys.argv[1]))
