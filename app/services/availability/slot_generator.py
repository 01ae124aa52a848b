# ===== app/services/availability/slot_generator.py =====
from datetime import date
from typing import Dict, List, Optional

from app.core.exceptions import ValidationError
from app.models.availability import AvailabilitySettings, WorkingHourRule
from app.utils.time_util import minutes_to_hhmm, parse_hhmm


def window_id(day: date, start_time: str, end_time: str) -> str:
    """Stable id of a computed window, e.g. 2025-02-10_09:00_10:00"""
    return f"{day.isoformat()}_{start_time}_{end_time}"


def parse_window_id(value: str) -> Optional[tuple]:
    """Inverse of window_id; None when the value is not a computed window id"""
    parts = value.split("_")
    if len(parts) != 3:
        return None
    try:
        day = date.fromisoformat(parts[0])
        parse_hhmm(parts[1])
        parse_hhmm(parts[2])
    except ValueError:
        return None
    return day, parts[1], parts[2]


def make_window(day: date, start_time: str, end_time: str,
                is_available: bool = True, is_booked: bool = False) -> Dict:
    return {
        "id": window_id(day, start_time, end_time),
        "startTime": start_time,
        "endTime": end_time,
        "isAvailable": is_available,
        "isBooked": is_booked,
    }


def window_sort_key(window: Dict):
    return parse_hhmm(window["startTime"]), parse_hhmm(window["endTime"])


class SlotGenerator:
    """Baseline windows for one date from the weekly rule and slot settings"""

    @staticmethod
    def generate(
            day: date,
            rule: Optional[WorkingHourRule],
            settings: AvailabilitySettings
    ) -> List[Dict]:
        if rule is None or not rule.is_working:
            return []

        return SlotGenerator.tile(
            day,
            rule.start_time,
            rule.end_time,
            settings.slot_duration_minutes,
            settings.break_duration_minutes or 0,
        )

    @staticmethod
    def tile(
            day: date,
            start_time: str,
            end_time: str,
            slot_minutes: int,
            break_minutes: int = 0
    ) -> List[Dict]:
        """
        Tile [start_time, end_time) with windows of slot_minutes, leaving
        break_minutes between consecutive windows. A trailing partial window
        is dropped.
        """
        if slot_minutes is None or slot_minutes <= 0:
            raise ValidationError(
                "Slot duration must be a positive number of minutes",
                context={"slot_minutes": slot_minutes},
            )
        if break_minutes < 0:
            raise ValidationError(
                "Break duration cannot be negative",
                context={"break_minutes": break_minutes},
            )

        windows = []
        current = parse_hhmm(start_time)
        day_end = parse_hhmm(end_time)

        while current + slot_minutes <= day_end:
            slot_end = current + slot_minutes
            windows.append(make_window(day, minutes_to_hhmm(current), minutes_to_hhmm(slot_end)))

            # Move to next slot (including break)
            current = slot_end + break_minutes

        return windows
