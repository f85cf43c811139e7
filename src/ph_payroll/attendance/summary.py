"""Attendance totals consumed by payroll computation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from ph_payroll.calculators.types import ZERO, HolidayType, OvertimeBucket


@dataclass(frozen=True)
class HolidayWorked:
    work_date: date
    holiday_type: HolidayType
    name: str


@dataclass
class DtrSummary:
    """Aggregated DTR totals for one employee over a cutoff."""

    employee_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    record_count: int = 0

    days_worked: Decimal = ZERO
    absent_days: Decimal = ZERO
    leave_days: Decimal = ZERO
    holiday_days: Decimal = ZERO
    rest_days_worked: Decimal = ZERO

    regular_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    overtime_minutes: int = 0
    approved_overtime_minutes: int = 0
    night_diff_minutes: int = 0

    # Approved (payable) overtime minutes per premium class
    overtime_breakdown: dict[OvertimeBucket, int] = field(default_factory=dict)
    holidays_worked: list[HolidayWorked] = field(default_factory=list)
    needs_review_count: int = 0

    @property
    def attendance_rate(self) -> Decimal:
        """Percentage of scheduled days attended."""
        scheduled = self.days_worked + self.absent_days
        if scheduled == 0:
            return ZERO
        return (self.days_worked / scheduled * 100).quantize(Decimal("0.01"))

    @property
    def tardiness_minutes(self) -> int:
        return self.late_minutes + self.undertime_minutes
