"""Late, undertime, overtime, and night differential minutes for one work date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from ph_payroll.attendance.punch_pairing import PunchPair, PunchPairingResult
from ph_payroll.models import WorkSchedule

DEFAULT_BREAK_OFFSET = timedelta(hours=4)


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Immutable view of a WorkSchedule row."""

    start_time: time
    end_time: time
    break_minutes: int = 60
    break_start: time | None = None
    grace_minutes: int = 0
    rest_days: tuple[int, ...] = (5, 6)
    night_diff_enabled: bool = True
    night_diff_start: time = time(22, 0)
    night_diff_end: time = time(6, 0)
    overtime_requires_approval: bool = True

    @classmethod
    def from_model(cls, schedule: WorkSchedule) -> ScheduleSnapshot:
        return cls(
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            break_minutes=schedule.break_minutes,
            break_start=schedule.break_start,
            grace_minutes=schedule.grace_minutes,
            rest_days=tuple(schedule.rest_days or ()),
            night_diff_enabled=schedule.night_diff_enabled,
            night_diff_start=schedule.night_diff_start,
            night_diff_end=schedule.night_diff_end,
            overtime_requires_approval=schedule.overtime_requires_approval,
        )

    @property
    def is_overnight(self) -> bool:
        return self.end_time <= self.start_time

    def window(self, work_date: date) -> tuple[datetime, datetime]:
        """Scheduled start/end; end rolls past midnight for overnight shifts."""
        start = datetime.combine(work_date, self.start_time)
        end = datetime.combine(work_date, self.end_time)
        if end <= start:
            end += timedelta(days=1)
        return start, end

    def scheduled_minutes(self, work_date: date) -> int:
        start, end = self.window(work_date)
        return max(int((end - start).total_seconds()) // 60 - self.break_minutes, 0)

    def break_window(self, work_date: date) -> tuple[datetime, datetime]:
        start, _ = self.window(work_date)
        if self.break_start is not None:
            break_start = datetime.combine(work_date, self.break_start)
            if break_start < start:
                break_start += timedelta(days=1)
        else:
            break_start = start + DEFAULT_BREAK_OFFSET
        return break_start, break_start + timedelta(minutes=self.break_minutes)

    def is_rest_day(self, work_date: date) -> bool:
        return work_date.weekday() in self.rest_days

    def work_date_for(self, punched_at: datetime) -> date:
        """Work date a punch belongs to.

        Morning punches on an overnight shift close the previous day's shift;
        the cut is the midpoint of the off-duty gap.
        """
        if not self.is_overnight:
            return punched_at.date()
        end = datetime.combine(punched_at.date(), self.end_time)
        start = datetime.combine(punched_at.date(), self.start_time)
        cut = end + (start - end) / 2
        if punched_at < cut:
            return punched_at.date() - timedelta(days=1)
        return punched_at.date()


@dataclass
class TimeComputation:
    scheduled_minutes: int = 0
    total_work_minutes: int = 0
    total_break_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    overtime_minutes: int = 0
    night_diff_minutes: int = 0
    first_in: datetime | None = None
    last_out: datetime | None = None


def _overlap_seconds(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> int:
    start = max(a_start, b_start)
    end = min(a_end, b_end)
    if end <= start:
        return 0
    return int((end - start).total_seconds())


class TimeCalculator:
    """Derives DTR minutes from paired punches and a schedule.

    Minutes are whole minutes (seconds floored). Late and undertime apply
    only to regular workdays; on rest days every worked minute is overtime.
    """

    def compute(
        self,
        work_date: date,
        pairing: PunchPairingResult,
        schedule: ScheduleSnapshot,
        is_rest_day: bool = False,
        is_holiday: bool = False,
    ) -> TimeComputation:
        result = TimeComputation(
            scheduled_minutes=schedule.scheduled_minutes(work_date),
            first_in=pairing.first_in,
            last_out=pairing.last_out,
        )
        if not pairing.work_pairs:
            return result

        regular_day = not is_rest_day and not is_holiday
        scheduled_start, scheduled_end = schedule.window(work_date)

        work = [
            PunchPair(max(p.start, scheduled_start), p.end) if regular_day else p
            for p in pairing.work_pairs
        ]
        work = [p for p in work if p.end > p.start]
        if not work:
            return result

        worked_seconds = sum(p.seconds for p in work)
        explicit_break_seconds = sum(
            _overlap_seconds(b.start, b.end, w.start, w.end)
            for b in pairing.break_pairs
            for w in work
        )
        gap_seconds = sum(
            max(int((nxt.start - prev.end).total_seconds()), 0)
            for prev, nxt in zip(work, work[1:])
        )
        observed_break = gap_seconds + explicit_break_seconds

        net_seconds = worked_seconds - explicit_break_seconds
        break_start, break_end = schedule.break_window(work_date)
        if _overlap_seconds(work[0].start, work[-1].end, break_start, break_end) > 0:
            unpaid_break = max(schedule.break_minutes * 60 - observed_break, 0)
            net_seconds -= unpaid_break
            observed_break += unpaid_break

        result.total_work_minutes = max(net_seconds, 0) // 60
        result.total_break_minutes = observed_break // 60

        if regular_day and pairing.first_in is not None:
            late = max(int((pairing.first_in - scheduled_start).total_seconds()) // 60, 0)
            result.late_minutes = 0 if late <= schedule.grace_minutes else late
        if regular_day and pairing.last_out is not None:
            result.undertime_minutes = max(
                int((scheduled_end - pairing.last_out).total_seconds()) // 60, 0
            )

        if is_rest_day:
            result.overtime_minutes = result.total_work_minutes
        else:
            result.overtime_minutes = max(
                result.total_work_minutes - result.scheduled_minutes, 0
            )

        if schedule.night_diff_enabled:
            result.night_diff_minutes = self._night_seconds(
                work_date, work, pairing.break_pairs, schedule
            ) // 60

        return result

    @staticmethod
    def _night_seconds(
        work_date: date,
        work: list[PunchPair],
        breaks: list[PunchPair],
        schedule: ScheduleSnapshot,
    ) -> int:
        total = 0
        for offset in (-1, 0, 1):
            anchor = work_date + timedelta(days=offset)
            night_start = datetime.combine(anchor, schedule.night_diff_start)
            night_end = datetime.combine(anchor, schedule.night_diff_end)
            if night_end <= night_start:
                night_end += timedelta(days=1)
            for pair in work:
                total += _overlap_seconds(pair.start, pair.end, night_start, night_end)
            for pair in breaks:
                total -= _overlap_seconds(pair.start, pair.end, night_start, night_end)
        return max(total, 0)
