import uuid
from datetime import date

from app.models.booking import Booking, BookingStatus
from app.services.availability.booking_overlay import BookingOverlay
from app.services.availability.slot_generator import SlotGenerator

MONDAY = date(2025, 2, 10)


def booking(start, end, status=BookingStatus.PENDING, notes=None):
    return Booking(
        id=uuid.uuid4(),
        date=MONDAY,
        start_time=start,
        end_time=end,
        client_name="Jane Doe",
        client_email="jane@mail.com",
        notes=notes,
        status=status.value,
        access_token="t",
    )


def windows():
    return SlotGenerator.tile(MONDAY, "09:00", "12:00", 60)


def test_active_booking_marks_exact_window():
    held = booking("10:00", "11:00", BookingStatus.CONFIRMED, notes="First visit")

    result = BookingOverlay.apply(windows(), [held])

    booked = result[1]
    assert booked["isAvailable"] is False
    assert booked["isBooked"] is True
    assert booked["bookingDetails"] == {
        "bookingId": str(held.id),
        "clientName": "Jane Doe",
        "clientEmail": "jane@mail.com",
        "notes": "First visit",
        "status": "confirmed",
    }
    assert all("bookingDetails" not in w for w in (result[0], result[2]))


def test_inactive_bookings_are_ignored():
    inactive = [
        booking("09:00", "10:00", BookingStatus.CANCELLED),
        booking("10:00", "11:00", BookingStatus.COMPLETED),
        booking("11:00", "12:00", BookingStatus.NO_SHOW),
    ]

    assert BookingOverlay.apply(windows(), inactive) == windows()


def test_partial_overlap_does_not_match():
    result = BookingOverlay.apply(windows(), [booking("09:30", "10:30")])

    assert result == windows()


def test_public_view_strips_details():
    owner_view = BookingOverlay.apply(windows(), [booking("09:00", "10:00")])

    public = BookingOverlay.strip_details(owner_view)

    assert public[0]["isBooked"] is True
    assert public[0]["isAvailable"] is False
    assert all("bookingDetails" not in w for w in public)
    assert "bookingDetails" in owner_view[0]


def test_apply_is_idempotent():
    held = [booking("11:00", "12:00")]
    once = BookingOverlay.apply(windows(), held)

    assert BookingOverlay.apply(once, held) == once
