# ===== app/services/availability/exception_overlay.py =====
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from app.models.availability import DateException, TimeSlot
from app.services.availability.slot_generator import make_window, window_sort_key


class ExceptionOverlay:
    """
    Merge stored windows and the date exception onto the generated baseline.

    Stored rows win over generated windows with the same (start, end); rows
    with no generated counterpart are added. An unavailable exception
    suppresses the generated baseline, leaving only stored rows.
    """

    @staticmethod
    def apply(
            day: date,
            baseline: List[Dict],
            rows: Sequence[TimeSlot],
            exception: Optional[DateException] = None
    ) -> Tuple[bool, List[Dict]]:
        """Return (is_working_day, windows) without mutating the inputs"""
        if exception is not None and not exception.is_available:
            if not rows:
                return False, []
            baseline = []

        windows = {(w["startTime"], w["endTime"]): dict(w) for w in baseline}

        for row in rows:
            key = (row.start_time, row.end_time)
            is_booked = bool(row.is_booked)
            is_available = bool(row.is_available) and not is_booked

            if key in windows:
                windows[key]["isAvailable"] = is_available
                windows[key]["isBooked"] = is_booked
            else:
                windows[key] = make_window(day, row.start_time, row.end_time, is_available, is_booked)

        merged = sorted(windows.values(), key=window_sort_key)

        if merged:
            return True, merged
        if exception is not None and exception.is_available:
            # Opened by the owner, no windows added yet
            return True, []
        return False, []
