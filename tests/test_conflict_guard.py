import threading
import uuid
from datetime import date

import pytest

from app.core.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from app.models.availability import TimeSlot
from app.models.booking import Booking, BookingStatus
from app.services.availability.availability_service import AvailabilityService
from app.services.booking.conflict_guard import ConflictGuard

MONDAY = date(2025, 2, 10)
SATURDAY = date(2025, 2, 15)


def payload(**overrides):
    data = {
        "date": MONDAY.isoformat(),
        "startTime": "09:00",
        "endTime": "10:00",
        "clientName": "Jane Doe",
        "clientEmail": "jane@mail.com",
        "clientPhone": "+1 (555) 123-4567",
        "notes": "First visit",
    }
    data.update(overrides)
    return data


def test_creates_pending_booking_and_claims_window(db, cache, owner):
    booking = ConflictGuard.create_booking(db, cache, owner.id, payload())

    assert booking.status == BookingStatus.PENDING.value
    assert booking.client_phone == "+15551234567"
    assert booking.access_token
    window = db.query(TimeSlot).filter_by(owner_id=owner.id, date=MONDAY, start_time="09:00").one()
    assert window.is_booked is True
    assert (str(owner.id), MONDAY.isoformat()) in cache.invalidations


def test_accepts_full_timestamps(db, cache, owner):
    booking = ConflictGuard.create_booking(db, cache, owner.id, payload(
        startTime="2025-02-10T11:00:00+00:00",
        endTime="2025-02-10T12:00:00+00:00",
    ))

    assert (booking.start_time, booking.end_time) == ("11:00", "12:00")


def test_accepts_computed_window_id(db, cache, owner):
    booking = ConflictGuard.create_booking(db, cache, owner.id, payload(
        date=None, startTime=None, endTime=None, timeSlotId="2025-02-10_14:00_15:00",
    ))

    assert (booking.date, booking.start_time, booking.end_time) == (MONDAY, "14:00", "15:00")


def test_accepts_stored_window_id(db, cache, owner):
    AvailabilityService.toggle_time_slot(db, cache, owner.id, MONDAY, "18:00", "19:00", True)
    stored = db.query(TimeSlot).filter_by(owner_id=owner.id, start_time="18:00").one()

    booking = ConflictGuard.create_booking(db, cache, owner.id, payload(
        date=None, startTime=None, endTime=None, timeSlotId=str(stored.id),
    ))

    assert (booking.start_time, booking.end_time) == ("18:00", "19:00")


def test_second_booking_for_same_window_conflicts(db, cache, owner):
    ConflictGuard.create_booking(db, cache, owner.id, payload())

    with pytest.raises(ConflictError):
        ConflictGuard.create_booking(db, cache, owner.id, payload(clientName="John Roe", clientEmail="john@mail.com"))

    assert db.query(Booking).count() == 1


@pytest.mark.parametrize("overrides", [
    {"startTime": "08:00", "endTime": "09:00"},  # before opening
    {"startTime": "09:30", "endTime": "10:30"},  # not on the grid
    {"date": SATURDAY.isoformat()},  # closed day
    {"date": None, "startTime": None, "endTime": None, "timeSlotId": "9b2f5a2e-0d8e-4c55-9a43-8d1c1f0e6f00"},
])
def test_unknown_window_is_not_found(db, cache, owner, overrides):
    with pytest.raises(NotFoundError):
        ConflictGuard.create_booking(db, cache, owner.id, payload(**overrides))

    assert db.query(Booking).count() == 0


def test_unknown_owner_is_not_found(db, cache, owner):
    with pytest.raises(NotFoundError):
        ConflictGuard.create_booking(db, cache, uuid.uuid4(), payload())


def test_closed_window_conflicts(db, cache, owner):
    AvailabilityService.toggle_time_slot(db, cache, owner.id, MONDAY, "09:00", "10:00", False)

    with pytest.raises(ConflictError):
        ConflictGuard.create_booking(db, cache, owner.id, payload())


@pytest.mark.parametrize("overrides", [
    {"clientName": "J"},
    {"clientName": "Jane D0e"},
    {"clientEmail": "not-an-email"},
    {"clientPhone": "0123"},
    {"notes": "x" * 501},
    {"startTime": "10:00", "endTime": "09:00"},
    {"date": None},
    {"startTime": "9am"},
])
def test_invalid_input_is_rejected_before_any_write(db, cache, owner, overrides):
    with pytest.raises(ValidationError):
        ConflictGuard.create_booking(db, cache, owner.id, payload(**overrides))

    assert db.query(Booking).count() == 0
    assert db.query(TimeSlot).count() == 0


def test_window_is_bookable_again_after_cancel(db, cache, owner):
    first = ConflictGuard.create_booking(db, cache, owner.id, payload())
    first.status = BookingStatus.CANCELLED.value
    window = db.query(TimeSlot).filter_by(owner_id=owner.id, start_time="09:00").one()
    window.is_booked = False
    db.commit()

    second = ConflictGuard.create_booking(db, cache, owner.id, payload(clientName="John Roe"))

    assert second.id != first.id
    assert db.query(Booking).filter(Booking.status == "pending").count() == 1


def test_partial_unique_index_rejects_second_active_booking(db, cache, owner):
    ConflictGuard.create_booking(db, cache, owner.id, payload())
    # Simulate a window flag that drifted out of sync with the bookings table
    window = db.query(TimeSlot).filter_by(owner_id=owner.id, start_time="09:00").one()
    window.is_booked = False
    db.commit()

    with pytest.raises(ConflictError):
        ConflictGuard.create_booking(db, cache, owner.id, payload(clientName="John Roe"))

    db.expire_all()
    assert db.query(Booking).count() == 1
    assert db.query(TimeSlot).filter_by(owner_id=owner.id, start_time="09:00").one().is_booked is False


@pytest.mark.parametrize("pre_stored", [False, True])
def test_concurrent_callers_get_exactly_one_booking(session_factory, db, cache, owner, pre_stored):
    if pre_stored:
        AvailabilityService.toggle_time_slot(db, cache, owner.id, MONDAY, "09:00", "10:00", True)

    owner_id = owner.id
    callers = 6
    barrier = threading.Barrier(callers)
    results = []
    lock = threading.Lock()

    def attempt(index):
        session = session_factory()
        try:
            barrier.wait()
            ConflictGuard.create_booking(
                session, cache, owner_id, payload(clientEmail=f"client{index}@mail.com")
            )
            outcome = "booked"
        except ConflictError:
            outcome = "conflict"
        except Exception as e:  # surfaced through the assertion below
            outcome = repr(e)
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(callers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(results) == ["booked"] + ["conflict"] * (callers - 1)
    db.expire_all()
    active = db.query(Booking).filter(Booking.status.in_(["pending", "confirmed"])).all()
    assert len(active) == 1
    assert db.query(TimeSlot).filter_by(owner_id=owner_id, start_time="09:00").count() == 1


def test_lost_claim_leaves_open_stored_window(db, cache, owner, monkeypatch):
    def lose(db, window, *args, **kwargs):
        db.rollback()
        raise ConflictError("This time slot is no longer available")

    monkeypatch.setattr(ConflictGuard, "claim", staticmethod(lose))
    with pytest.raises(ConflictError):
        ConflictGuard.create_booking(db, cache, owner.id, payload())
    monkeypatch.undo()

    db.expire_all()
    row = db.query(TimeSlot).filter_by(owner_id=owner.id, date=MONDAY, start_time="09:00").one()
    assert row.is_booked is False
    assert row.is_available is True
    assert db.query(Booking).count() == 0

    # The leftover row is the same open window the computed day shows
    view = AvailabilityService.compute_day(db, owner.id, MONDAY)
    assert view["timeSlots"][0]["isAvailable"] is True
    booking = ConflictGuard.create_booking(db, cache, owner.id, payload())
    assert booking.start_time == "09:00"
    assert db.query(TimeSlot).filter_by(owner_id=owner.id, date=MONDAY).count() == 1


def test_unreadable_window_after_insert_race_is_internal_error(db, cache, owner, monkeypatch):
    db.add(TimeSlot(owner_id=owner.id, date=MONDAY, start_time="09:00", end_time="10:00",
                    is_available=True, is_booked=False))
    db.commit()
    # The row exists but cannot be found, so the insert hits the unique constraint
    monkeypatch.setattr(ConflictGuard, "_find_row", staticmethod(lambda *args, **kwargs: None))

    with pytest.raises(InternalError) as exc:
        ConflictGuard.create_booking(db, cache, owner.id, payload())
    assert exc.value.status_code == 500
    assert exc.value.to_dict() == {"message": "Could not store time slot", "error": "internal_error"}
