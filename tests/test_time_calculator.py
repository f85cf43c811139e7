"""Tests for DTR minute derivation."""

from datetime import date, datetime, time

import pytest

from ph_payroll.attendance.punch_pairing import (
    PunchDirection,
    PunchEvent,
    PunchPairingResult,
    PunchPairProcessor,
)
from ph_payroll.attendance.time_calculator import ScheduleSnapshot, TimeCalculator

WORK_DATE = date(2025, 1, 6)  # Monday

DAY_SHIFT = ScheduleSnapshot(
    start_time=time(9, 0),
    end_time=time(18, 0),
    break_minutes=60,
    break_start=time(12, 0),
)

NIGHT_SHIFT = ScheduleSnapshot(
    start_time=time(22, 0),
    end_time=time(7, 0),
    break_minutes=60,
    break_start=time(2, 0),
)


def _pairs(*punches: tuple[str, PunchDirection], day: date = WORK_DATE) -> PunchPairingResult:
    events = []
    for stamp, direction in punches:
        hour, minute = stamp.split(":")
        events.append(
            PunchEvent(datetime(day.year, day.month, day.day, int(hour), int(minute)), direction)
        )
    return PunchPairProcessor().process(events)


IN = PunchDirection.IN
OUT = PunchDirection.OUT


@pytest.fixture
def calculator() -> TimeCalculator:
    return TimeCalculator()


class TestDayShift:
    """09:00-18:00 with a one-hour lunch."""

    def test_split_punches_with_early_arrival(self, calculator: TimeCalculator):
        pairing = _pairs(("08:55", IN), ("12:00", OUT), ("13:00", IN), ("18:30", OUT))
        result = calculator.compute(WORK_DATE, pairing, DAY_SHIFT)

        assert result.late_minutes == 0
        assert result.total_work_minutes == 510
        assert result.undertime_minutes == 0
        assert result.overtime_minutes == 30
        assert result.total_break_minutes == 60
        assert result.night_diff_minutes == 0

    def test_straight_punches_deduct_unpunched_lunch(self, calculator: TimeCalculator):
        pairing = _pairs(("09:00", IN), ("18:00", OUT))
        result = calculator.compute(WORK_DATE, pairing, DAY_SHIFT)

        assert result.scheduled_minutes == 480
        assert result.total_work_minutes == 480
        assert result.total_break_minutes == 60
        assert result.overtime_minutes == 0

    def test_late_and_undertime(self, calculator: TimeCalculator):
        pairing = _pairs(("09:20", IN), ("17:30", OUT))
        result = calculator.compute(WORK_DATE, pairing, DAY_SHIFT)

        assert result.late_minutes == 20
        assert result.undertime_minutes == 30
        assert result.total_work_minutes == 430

    def test_grace_period(self, calculator: TimeCalculator):
        schedule = ScheduleSnapshot(
            start_time=time(9, 0), end_time=time(18, 0), break_start=time(12, 0), grace_minutes=10
        )
        pairing = _pairs(("09:08", IN), ("18:00", OUT))

        assert calculator.compute(WORK_DATE, pairing, schedule).late_minutes == 0

    def test_rest_day_work_is_overtime(self, calculator: TimeCalculator):
        saturday = date(2025, 1, 11)
        pairing = _pairs(("10:00", IN), ("14:00", OUT), day=saturday)
        result = calculator.compute(saturday, pairing, DAY_SHIFT, is_rest_day=True)

        assert result.total_work_minutes == 180
        assert result.overtime_minutes == 180
        assert result.late_minutes == 0
        assert result.undertime_minutes == 0

    def test_missing_time_out_yields_no_minutes(self, calculator: TimeCalculator):
        pairing = _pairs(("09:00", IN))
        result = calculator.compute(WORK_DATE, pairing, DAY_SHIFT)

        assert result.total_work_minutes == 0
        assert result.first_in is not None


class TestNightShift:
    """22:00-07:00 shift crossing midnight."""

    def test_window_rolls_past_midnight(self):
        start, end = NIGHT_SHIFT.window(WORK_DATE)

        assert start == datetime(2025, 1, 6, 22, 0)
        assert end == datetime(2025, 1, 7, 7, 0)
        assert NIGHT_SHIFT.scheduled_minutes(WORK_DATE) == 480

    def test_morning_punch_belongs_to_previous_day(self):
        assert NIGHT_SHIFT.work_date_for(datetime(2025, 1, 7, 7, 5)) == WORK_DATE
        assert NIGHT_SHIFT.work_date_for(datetime(2025, 1, 7, 21, 55)) == date(2025, 1, 7)

    def test_night_differential(self, calculator: TimeCalculator):
        events = [
            PunchEvent(datetime(2025, 1, 6, 22, 0), IN),
            PunchEvent(datetime(2025, 1, 7, 7, 0), OUT),
        ]
        pairing = PunchPairProcessor().process(events)
        result = calculator.compute(WORK_DATE, pairing, NIGHT_SHIFT)

        assert result.total_work_minutes == 480
        # Unpunched break is taken from total minutes, not night minutes
        assert result.night_diff_minutes == 480
        assert result.late_minutes == 0
        assert result.undertime_minutes == 0
