"""Earnings: basic pay, premiums, and earning adjustments."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from ph_payroll.attendance.summary import DtrSummary
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import PayrollRateCalculator
from ph_payroll.calculators.types import (
    ZERO,
    CompensationSnapshot,
    CycleType,
    EarningLine,
    EarningType,
    LedgerLine,
    OvertimeBucket,
    PayType,
)

# Adjustment types that count as allowances; other earning adjustments count as bonuses
ALLOWANCE_PREFIX = "allowance_"


@dataclass
class EarningsResult:
    daily_rate: Decimal = ZERO
    hourly_rate: Decimal = ZERO
    basic_pay: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    night_diff_pay: Decimal = ZERO
    holiday_pay: Decimal = ZERO
    allowances_total: Decimal = ZERO
    bonuses_total: Decimal = ZERO
    non_taxable_total: Decimal = ZERO
    lines: list[EarningLine] = field(default_factory=list)

    @property
    def gross_pay(self) -> Decimal:
        return (
            self.basic_pay
            + self.overtime_pay
            + self.night_diff_pay
            + self.holiday_pay
            + self.allowances_total
            + self.bonuses_total
        )

    @property
    def taxable_gross(self) -> Decimal:
        return self.gross_pay - self.non_taxable_total


class EarningsCalculator:
    """Builds earning lines for one employee and cutoff."""

    def __init__(self, rates: PayrollRateCalculator | None = None):
        self.rates = rates or PayrollRateCalculator()

    def calculate(
        self,
        compensation: CompensationSnapshot,
        summary: DtrSummary,
        cycle_type: CycleType | str,
        adjustments: list[LedgerLine] | None = None,
        include_attendance: bool = True,
    ) -> EarningsResult:
        """Compute earnings.

        With include_attendance False (correction periods) only the
        earning adjustments are emitted.
        """
        cycle_type = CycleType(cycle_type)
        result = EarningsResult()
        result.daily_rate = self.rates.daily_rate(compensation.basic_pay, compensation.pay_type)
        result.hourly_rate = self.rates.hourly_rate(result.daily_rate)

        if include_attendance:
            self._add_basic_pay(result, compensation, summary, cycle_type)
            self._add_overtime(result, summary)
            self._add_night_diff(result, summary)
            self._add_holiday_pay(result, summary)

        for line in adjustments or []:
            if line.category == "earning":
                self._add_adjustment(result, line)

        return result

    def _add_basic_pay(
        self,
        result: EarningsResult,
        compensation: CompensationSnapshot,
        summary: DtrSummary,
        cycle_type: CycleType,
    ) -> None:
        pay_type = PayType(compensation.pay_type)
        basic = compensation.basic_pay
        quantity: Decimal | None = None
        unit = "period"

        if pay_type == PayType.MONTHLY:
            gross_basic = basic / 2 if cycle_type == CycleType.SEMI_MONTHLY else basic
        elif pay_type == PayType.SEMI_MONTHLY:
            gross_basic = basic
        elif pay_type == PayType.DAILY:
            gross_basic = result.daily_rate * summary.days_worked
            quantity, unit = summary.days_worked, "days"
        else:
            weeks = math.ceil(summary.days_worked / 5) if summary.days_worked else 0
            gross_basic = basic * weeks
            quantity, unit = Decimal(weeks), "weeks"

        gross_basic = LineItemBuilder.round_to_cents(gross_basic)
        result.lines.append(
            LineItemBuilder.create_earning_line(
                EarningType.BASIC,
                "BASIC",
                "Basic Pay",
                gross_basic,
                quantity=quantity,
                unit=unit,
                rate=result.daily_rate if pay_type == PayType.DAILY else None,
            )
        )

        absence = ZERO
        if pay_type in (PayType.MONTHLY, PayType.SEMI_MONTHLY) and summary.absent_days > 0:
            absence = self.rates.absence_deduction(result.daily_rate, summary.absent_days)
            result.lines.append(
                LineItemBuilder.create_earning_line(
                    EarningType.BASIC,
                    "ABSENT",
                    f"Absences ({summary.absent_days} day(s))",
                    -absence,
                    quantity=summary.absent_days,
                    unit="days",
                    rate=result.daily_rate,
                    multiplier=Decimal("-1"),
                )
            )

        tardiness = ZERO
        if summary.tardiness_minutes > 0:
            minute_rate = self.rates.minute_rate(result.daily_rate)
            tardiness = self.rates.tardiness_deduction(minute_rate, summary.tardiness_minutes)
            result.lines.append(
                LineItemBuilder.create_earning_line(
                    EarningType.BASIC,
                    "TARDINESS",
                    f"Late/Undertime ({summary.tardiness_minutes} min)",
                    -tardiness,
                    quantity=Decimal(summary.tardiness_minutes),
                    unit="minutes",
                    rate=minute_rate,
                    multiplier=Decimal("-1"),
                )
            )

        result.basic_pay = max(gross_basic - absence - tardiness, ZERO)

    def _add_overtime(self, result: EarningsResult, summary: DtrSummary) -> None:
        for bucket in OvertimeBucket:
            minutes = summary.overtime_breakdown.get(bucket, 0)
            if minutes <= 0:
                continue
            multiplier = self.rates.OVERTIME_MULTIPLIERS[bucket]
            amount = self.rates.overtime_pay(minutes, result.hourly_rate, multiplier)
            result.overtime_pay += amount
            result.lines.append(
                LineItemBuilder.create_earning_line(
                    EarningType.OVERTIME,
                    self.rates.OVERTIME_CODES[bucket],
                    f"Overtime - {bucket.value.replace('_', ' ').title()}",
                    amount,
                    quantity=_hours(minutes),
                    unit="hours",
                    rate=result.hourly_rate,
                    multiplier=multiplier,
                )
            )

    def _add_night_diff(self, result: EarningsResult, summary: DtrSummary) -> None:
        if summary.night_diff_minutes <= 0:
            return
        amount = self.rates.night_diff_pay(summary.night_diff_minutes, result.hourly_rate)
        result.night_diff_pay = amount
        result.lines.append(
            LineItemBuilder.create_earning_line(
                EarningType.NIGHT_DIFF,
                "ND",
                "Night Differential",
                amount,
                quantity=_hours(summary.night_diff_minutes),
                unit="hours",
                rate=LineItemBuilder.round_rate(result.hourly_rate * self.rates.NIGHT_DIFF_RATE),
            )
        )

    def _add_holiday_pay(self, result: EarningsResult, summary: DtrSummary) -> None:
        days_by_type = Counter(h.holiday_type for h in summary.holidays_worked)
        for holiday_type, days in sorted(days_by_type.items(), key=lambda item: item[0].value):
            multiplier = self.rates.HOLIDAY_MULTIPLIERS.get(holiday_type)
            if multiplier is None:
                continue
            amount = self.rates.holiday_pay(result.daily_rate, multiplier, days)
            result.holiday_pay += amount
            result.lines.append(
                LineItemBuilder.create_earning_line(
                    EarningType.HOLIDAY,
                    f"HOLIDAY_{holiday_type.value.upper()}",
                    f"Holiday Pay - {holiday_type.value.replace('_', ' ').title()}",
                    amount,
                    quantity=Decimal(days),
                    unit="days",
                    rate=result.daily_rate,
                    multiplier=multiplier,
                )
            )

    def _add_adjustment(self, result: EarningsResult, line: LedgerLine) -> None:
        is_allowance = (line.adjustment_type or "").startswith(ALLOWANCE_PREFIX)
        earning_type = EarningType.ALLOWANCE if is_allowance else EarningType.BONUS
        amount = LineItemBuilder.round_to_cents(line.amount)
        if is_allowance:
            result.allowances_total += amount
        else:
            result.bonuses_total += amount
        if not line.is_taxable:
            result.non_taxable_total += amount
        result.lines.append(
            LineItemBuilder.create_earning_line(
                earning_type,
                line.code,
                line.description,
                amount,
                quantity=Decimal("1"),
                unit="adjustment",
                rate=amount,
                is_taxable=line.is_taxable,
                adjustment_id=line.source_id,
            )
        )


def _hours(minutes: int) -> Decimal:
    return LineItemBuilder.round_to_cents(Decimal(minutes) / 60)
