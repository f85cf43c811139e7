"""Daily/hourly/minute rate derivation and premium pay formulas."""

from __future__ import annotations

from decimal import Decimal

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import HolidayType, OvertimeBucket, PayType


class PayrollRateCalculator:
    """Converts basic pay into rates and prices premium minutes.

    Multipliers follow the Labor Code premium schedule:
    - Overtime: regular day 125%, rest day / special holiday 130%,
      regular holiday 200%, double holiday 390%
    - Holiday work: special 130%, regular 200%, double 300%
    - Night differential: +10% of the hourly rate
    """

    NIGHT_DIFF_RATE = Decimal("0.10")

    OVERTIME_MULTIPLIERS: dict[OvertimeBucket, Decimal] = {
        OvertimeBucket.REGULAR: Decimal("1.25"),
        OvertimeBucket.REST_DAY: Decimal("1.30"),
        OvertimeBucket.SPECIAL_HOLIDAY: Decimal("1.30"),
        OvertimeBucket.REGULAR_HOLIDAY: Decimal("2.00"),
        OvertimeBucket.DOUBLE_HOLIDAY: Decimal("3.90"),
    }

    HOLIDAY_MULTIPLIERS: dict[HolidayType, Decimal] = {
        HolidayType.SPECIAL_NON_WORKING: Decimal("1.30"),
        HolidayType.REGULAR: Decimal("2.00"),
        HolidayType.DOUBLE: Decimal("3.00"),
    }

    OVERTIME_CODES: dict[OvertimeBucket, str] = {
        OvertimeBucket.REGULAR: "OT_REG",
        OvertimeBucket.REST_DAY: "OT_RD",
        OvertimeBucket.SPECIAL_HOLIDAY: "OT_SH",
        OvertimeBucket.REGULAR_HOLIDAY: "OT_RH",
        OvertimeBucket.DOUBLE_HOLIDAY: "OT_DH",
    }

    def __init__(self, working_days_per_month: int = 22, working_hours_per_day: int = 8):
        self.working_days_per_month = Decimal(working_days_per_month)
        self.working_hours_per_day = Decimal(working_hours_per_day)

    def daily_rate(self, basic_pay: Decimal, pay_type: PayType | str) -> Decimal:
        pay_type = PayType(pay_type)
        if pay_type == PayType.MONTHLY:
            rate = basic_pay / self.working_days_per_month
        elif pay_type == PayType.SEMI_MONTHLY:
            rate = basic_pay * 2 / self.working_days_per_month
        elif pay_type == PayType.WEEKLY:
            rate = basic_pay / 5
        else:
            rate = basic_pay
        return LineItemBuilder.round_rate(rate)

    def hourly_rate(self, daily_rate: Decimal) -> Decimal:
        return LineItemBuilder.round_rate(daily_rate / self.working_hours_per_day)

    def minute_rate(self, daily_rate: Decimal) -> Decimal:
        return LineItemBuilder.round_minute_rate(daily_rate / (self.working_hours_per_day * 60))

    def overtime_pay(self, minutes: int, hourly_rate: Decimal, multiplier: Decimal) -> Decimal:
        return LineItemBuilder.round_to_cents(Decimal(minutes) / 60 * hourly_rate * multiplier)

    def night_diff_pay(self, minutes: int, hourly_rate: Decimal) -> Decimal:
        return LineItemBuilder.round_to_cents(
            Decimal(minutes) / 60 * hourly_rate * self.NIGHT_DIFF_RATE
        )

    def holiday_pay(self, daily_rate: Decimal, multiplier: Decimal, days: Decimal | int) -> Decimal:
        return LineItemBuilder.round_to_cents(daily_rate * multiplier * Decimal(days))

    def absence_deduction(self, daily_rate: Decimal, days: Decimal | int) -> Decimal:
        return LineItemBuilder.round_to_cents(daily_rate * Decimal(days))

    def tardiness_deduction(self, minute_rate: Decimal, minutes: int) -> Decimal:
        return LineItemBuilder.round_to_cents(minute_rate * minutes)
