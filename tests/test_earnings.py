"""Tests for the earnings calculator."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ph_payroll.attendance.summary import DtrSummary, HolidayWorked
from ph_payroll.calculators.earnings import EarningsCalculator
from ph_payroll.calculators.types import (
    CompensationSnapshot,
    CycleType,
    EarningType,
    HolidayType,
    LedgerLine,
    OvertimeBucket,
    PayType,
)

MONTHLY_30K = CompensationSnapshot(basic_pay=Decimal("30000"), pay_type=PayType.MONTHLY)


@pytest.fixture
def calculator() -> EarningsCalculator:
    return EarningsCalculator()


def _adjustment(code: str, amount: str, adjustment_type: str, is_taxable: bool = True) -> LedgerLine:
    return LedgerLine(
        source="adjustment",
        source_id=uuid4(),
        category="earning",
        code=code,
        description=code.title(),
        amount=Decimal(amount),
        adjustment_type=adjustment_type,
        is_taxable=is_taxable,
    )


class TestBasicPay:
    """Basic pay per pay type and cycle."""

    def test_monthly_on_monthly_cycle(self, calculator: EarningsCalculator):
        result = calculator.calculate(MONTHLY_30K, DtrSummary(), CycleType.MONTHLY)

        assert result.basic_pay == Decimal("30000.00")
        assert result.gross_pay == Decimal("30000.00")
        assert result.daily_rate == Decimal("1363.6364")
        assert [line.code for line in result.lines] == ["BASIC"]

    def test_monthly_on_semi_monthly_cycle_is_halved(self, calculator: EarningsCalculator):
        result = calculator.calculate(MONTHLY_30K, DtrSummary(), CycleType.SEMI_MONTHLY)
        assert result.basic_pay == Decimal("15000.00")

    def test_absences_reduce_basic(self, calculator: EarningsCalculator):
        summary = DtrSummary(absent_days=Decimal("2"))
        result = calculator.calculate(MONTHLY_30K, summary, "monthly")

        absent = next(line for line in result.lines if line.code == "ABSENT")
        assert absent.amount == Decimal("-2727.27")
        assert absent.earning_type == EarningType.BASIC
        assert result.basic_pay == Decimal("27272.73")

    def test_late_and_undertime_reduce_basic(self, calculator: EarningsCalculator):
        summary = DtrSummary(late_minutes=20, undertime_minutes=10)
        result = calculator.calculate(MONTHLY_30K, summary, CycleType.MONTHLY)

        tardiness = next(line for line in result.lines if line.code == "TARDINESS")
        assert tardiness.quantity == Decimal("30")
        assert tardiness.amount == Decimal("-85.23")
        assert result.basic_pay == Decimal("29914.77")

    def test_daily_paid_by_days_worked(self, calculator: EarningsCalculator):
        compensation = CompensationSnapshot(basic_pay=Decimal("645"), pay_type=PayType.DAILY)
        summary = DtrSummary(days_worked=Decimal("10"), absent_days=Decimal("1"))
        result = calculator.calculate(compensation, summary, CycleType.SEMI_MONTHLY)

        assert result.basic_pay == Decimal("6450.00")
        assert result.lines[0].unit == "days"
        # Absent days are unpaid, not deducted, for daily-paid employees
        assert all(line.code != "ABSENT" for line in result.lines)

    def test_weekly_paid_by_weeks_worked(self, calculator: EarningsCalculator):
        compensation = CompensationSnapshot(basic_pay=Decimal("5000"), pay_type=PayType.WEEKLY)
        result = calculator.calculate(
            compensation, DtrSummary(days_worked=Decimal("7")), CycleType.SEMI_MONTHLY
        )
        assert result.basic_pay == Decimal("10000.00")


class TestPremiums:
    """Overtime, night differential, and holiday pay."""

    def test_approved_overtime(self, calculator: EarningsCalculator):
        summary = DtrSummary(overtime_breakdown={OvertimeBucket.REGULAR: 120})
        result = calculator.calculate(MONTHLY_30K, summary, CycleType.MONTHLY)

        overtime = next(line for line in result.lines if line.earning_type == EarningType.OVERTIME)
        assert overtime.code == "OT_REG"
        assert overtime.multiplier == Decimal("1.25")
        assert overtime.amount == Decimal("426.14")
        assert result.overtime_pay == Decimal("426.14")

    def test_night_differential(self, calculator: EarningsCalculator):
        result = calculator.calculate(
            MONTHLY_30K, DtrSummary(night_diff_minutes=60), CycleType.MONTHLY
        )
        assert result.night_diff_pay == Decimal("17.05")

    def test_regular_holiday_worked(self, calculator: EarningsCalculator):
        summary = DtrSummary(
            holidays_worked=[HolidayWorked(date(2025, 1, 1), HolidayType.REGULAR, "New Year's Day")]
        )
        result = calculator.calculate(MONTHLY_30K, summary, CycleType.MONTHLY)

        holiday = next(line for line in result.lines if line.earning_type == EarningType.HOLIDAY)
        assert holiday.code == "HOLIDAY_REGULAR"
        assert result.holiday_pay == Decimal("2727.27")
        assert result.gross_pay == Decimal("32727.27")


class TestAdjustments:
    """Earning adjustments become allowance or bonus lines."""

    def test_non_taxable_allowance(self, calculator: EarningsCalculator):
        rice = _adjustment("RICE", "2000", "allowance_rice", is_taxable=False)
        result = calculator.calculate(MONTHLY_30K, DtrSummary(), CycleType.MONTHLY, [rice])

        line = result.lines[-1]
        assert line.earning_type == EarningType.ALLOWANCE
        assert line.adjustment_id == rice.source_id
        assert result.allowances_total == Decimal("2000.00")
        assert result.gross_pay == Decimal("32000.00")
        assert result.taxable_gross == Decimal("30000.00")

    def test_bonus(self, calculator: EarningsCalculator):
        bonus = _adjustment("PERF", "5000", "performance_bonus")
        result = calculator.calculate(MONTHLY_30K, DtrSummary(), CycleType.MONTHLY, [bonus])

        assert result.bonuses_total == Decimal("5000.00")
        assert result.taxable_gross == Decimal("35000.00")

    def test_deduction_adjustments_ignored(self, calculator: EarningsCalculator):
        uniform = _adjustment("UNIFORM", "500", "uniform")
        uniform.category = "deduction"
        result = calculator.calculate(MONTHLY_30K, DtrSummary(), CycleType.MONTHLY, [uniform])
        assert result.gross_pay == Decimal("30000.00")

    def test_attendance_excluded_for_corrections(self, calculator: EarningsCalculator):
        bonus = _adjustment("BACKPAY", "1500", "salary_differential")
        result = calculator.calculate(
            MONTHLY_30K, DtrSummary(), CycleType.MONTHLY, [bonus], include_attendance=False
        )

        assert [line.code for line in result.lines] == ["BACKPAY"]
        assert result.basic_pay == Decimal("0")
        assert result.gross_pay == Decimal("1500.00")
