from datetime import date

import pytest

from app.core.exceptions import ValidationError
from app.models.availability import AvailabilitySettings, WorkingHourRule
from app.services.availability.slot_generator import SlotGenerator, parse_window_id, window_id
from app.utils.time_util import parse_hhmm

MONDAY = date(2025, 2, 10)


def rule(start="09:00", end="17:00", is_working=True):
    return WorkingHourRule(day_of_week=1, start_time=start, end_time=end, is_working=is_working)


def slot_settings(slot=60, gap=0):
    return AvailabilitySettings(slot_duration_minutes=slot, break_duration_minutes=gap)


def test_default_day_has_eight_hourly_windows():
    windows = SlotGenerator.generate(MONDAY, rule(), slot_settings())

    assert [(w["startTime"], w["endTime"]) for w in windows] == [
        ("09:00", "10:00"), ("10:00", "11:00"), ("11:00", "12:00"), ("12:00", "13:00"),
        ("13:00", "14:00"), ("14:00", "15:00"), ("15:00", "16:00"), ("16:00", "17:00"),
    ]
    assert all(w["isAvailable"] and not w["isBooked"] for w in windows)
    assert windows[0]["id"] == "2025-02-10_09:00_10:00"


def test_break_between_windows():
    windows = SlotGenerator.generate(MONDAY, rule(), slot_settings(slot=45, gap=15))

    assert len(windows) == 8
    assert windows[0]["startTime"] == "09:00" and windows[0]["endTime"] == "09:45"
    assert windows[1]["startTime"] == "10:00"
    assert windows[-1]["endTime"] == "16:45"


def test_trailing_partial_window_is_dropped():
    windows = SlotGenerator.generate(MONDAY, rule("09:00", "10:30"), slot_settings())

    assert [(w["startTime"], w["endTime"]) for w in windows] == [("09:00", "10:00")]


def test_window_ending_exactly_at_close_is_kept():
    windows = SlotGenerator.generate(MONDAY, rule("09:00", "11:00"), slot_settings(slot=30, gap=30))

    assert [(w["startTime"], w["endTime"]) for w in windows] == [("09:00", "09:30"), ("10:00", "10:30")]


def test_missing_or_closed_rule_yields_nothing():
    assert SlotGenerator.generate(MONDAY, None, slot_settings()) == []
    assert SlotGenerator.generate(MONDAY, rule(is_working=False), slot_settings()) == []


@pytest.mark.parametrize("slot", [0, -30])
def test_non_positive_slot_duration_is_rejected(slot):
    with pytest.raises(ValidationError):
        SlotGenerator.generate(MONDAY, rule(), slot_settings(slot=slot))


@pytest.mark.parametrize("slot,gap,start,end", [
    (15, 0, "08:00", "12:00"),
    (25, 5, "09:10", "17:00"),
    (60, 30, "07:00", "19:45"),
    (90, 10, "09:00", "17:00"),
    (480, 0, "09:00", "17:00"),
])
def test_windows_tile_the_working_hours(slot, gap, start, end):
    windows = SlotGenerator.generate(MONDAY, rule(start, end), slot_settings(slot=slot, gap=gap))

    assert windows, "expected at least one window"
    assert windows[0]["startTime"] == start
    for window in windows:
        assert parse_hhmm(window["endTime"]) - parse_hhmm(window["startTime"]) == slot
        assert parse_hhmm(window["endTime"]) <= parse_hhmm(end)
    for prev, nxt in zip(windows, windows[1:]):
        assert parse_hhmm(nxt["startTime"]) == parse_hhmm(prev["endTime"]) + gap
    # No room left for another full window
    assert parse_hhmm(windows[-1]["endTime"]) + gap + slot > parse_hhmm(end)


def test_window_id_round_trip():
    assert parse_window_id(window_id(MONDAY, "09:00", "10:00")) == (MONDAY, "09:00", "10:00")
    assert parse_window_id("not-a-window") is None
    assert parse_window_id("2025-02-10_9am_10am") is None
