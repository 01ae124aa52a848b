# ===== app/services/availability/booking_overlay.py =====
from typing import Dict, List, Sequence

from app.models.booking import Booking


class BookingOverlay:
    """Mark windows held by active bookings"""

    @staticmethod
    def apply(windows: List[Dict], bookings: Sequence[Booking]) -> List[Dict]:
        """
        Owner view. A window whose (start, end) exactly matches a pending or
        confirmed booking becomes unavailable and booked, and carries the
        booking's details.
        """
        active = {
            (b.start_time, b.end_time): b
            for b in bookings
            if b.is_active
        }

        result = []
        for window in windows:
            window = dict(window)
            booking = active.get((window["startTime"], window["endTime"]))
            if booking is not None:
                window["isAvailable"] = False
                window["isBooked"] = True
                window["bookingDetails"] = {
                    "bookingId": str(booking.id),
                    "clientName": booking.client_name,
                    "clientEmail": booking.client_email,
                    "notes": booking.notes,
                    "status": booking.status,
                }
            else:
                window.pop("bookingDetails", None)
            result.append(window)
        return result

    @staticmethod
    def strip_details(windows: List[Dict]) -> List[Dict]:
        """Public view: never expose who booked a window"""
        return [
            {key: value for key, value in window.items() if key != "bookingDetails"}
            for window in windows
        ]
