"""Tests for punch normalization and pairing."""

from datetime import datetime

import pytest

from ph_payroll.attendance.punch_pairing import (
    PunchDirection,
    PunchEvent,
    PunchPairProcessor,
    normalize_direction,
)

IN = PunchDirection.IN
OUT = PunchDirection.OUT


def _at(hhmm: str, day: int = 6) -> datetime:
    hour, minute = hhmm.split(":")
    return datetime(2025, 1, day, int(hour), int(minute))


def _punch(hhmm: str, direction: PunchDirection, is_valid: bool = True) -> PunchEvent:
    return PunchEvent(punched_at=_at(hhmm), direction=direction, is_valid=is_valid)


@pytest.fixture
def processor() -> PunchPairProcessor:
    return PunchPairProcessor(duplicate_window_minutes=3)


class TestNormalizeDirection:
    """Device direction aliases."""

    @pytest.mark.parametrize("raw", ["in", "IN", " Check-In ", "time_in", "0", 0])
    def test_in_aliases(self, raw):
        assert normalize_direction(raw) == PunchDirection.IN

    @pytest.mark.parametrize("raw", ["out", "exit", "check_out", "1", 1])
    def test_out_aliases(self, raw):
        assert normalize_direction(raw) == PunchDirection.OUT

    def test_unknown_direction(self):
        assert normalize_direction("lunch") is None
        assert normalize_direction(None) is None


class TestPunchPairProcessor:
    """IN/OUT pairing rules."""

    def test_split_shift_pairs(self, processor: PunchPairProcessor):
        result = processor.process(
            [
                _punch("13:00", IN),
                _punch("08:55", IN),
                _punch("18:30", OUT),
                _punch("12:00", OUT),
            ]
        )

        assert [(p.start, p.end) for p in result.work_pairs] == [
            (_at("08:55"), _at("12:00")),
            (_at("13:00"), _at("18:30")),
        ]
        assert result.first_in == _at("08:55")
        assert result.last_out == _at("18:30")
        assert not result.needs_review

    def test_double_scan_collapses_to_earliest(self, processor: PunchPairProcessor):
        result = processor.process(
            [_punch("08:00", IN), _punch("08:02", IN), _punch("17:00", OUT)]
        )

        assert result.duplicates_removed == 1
        assert result.work_pairs[0].start == _at("08:00")

    def test_missing_time_out(self, processor: PunchPairProcessor):
        result = processor.process([_punch("08:00", IN)])

        assert result.work_pairs == []
        assert result.unpaired_in == _at("08:00")
        assert result.first_in == _at("08:00")
        assert result.review_reasons == ["Missing time-out"]

    def test_orphan_time_out(self, processor: PunchPairProcessor):
        result = processor.process([_punch("17:00", OUT)])

        assert result.orphan_outs == [_at("17:00")]
        assert result.needs_review
        assert result.has_punches

    def test_invalid_punches_dropped(self, processor: PunchPairProcessor):
        result = processor.process(
            [_punch("08:00", IN), _punch("09:00", OUT, is_valid=False), _punch("17:00", OUT)]
        )

        assert result.invalid_count == 1
        assert result.work_pairs[0].end == _at("17:00")

    def test_break_pairs(self, processor: PunchPairProcessor):
        result = processor.process(
            [
                _punch("08:00", IN),
                _punch("12:00", PunchDirection.BREAK_OUT),
                _punch("12:45", PunchDirection.BREAK_IN),
                _punch("17:00", OUT),
            ]
        )

        assert len(result.work_pairs) == 1
        assert result.break_pairs[0].seconds == 45 * 60

    def test_no_punches(self, processor: PunchPairProcessor):
        result = processor.process([])

        assert not result.has_punches
        assert result.first_in is None
