"""Payroll entry calculator - combines earnings and deductions."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from ph_payroll.attendance.summary import DtrSummary
from ph_payroll.calculators.contributions import ContributionService
from ph_payroll.calculators.deductions import DeductionsCalculator, DeductionsResult
from ph_payroll.calculators.earnings import EarningsCalculator, EarningsResult
from ph_payroll.calculators.rates import PayrollRateCalculator
from ph_payroll.calculators.types import CompensationSnapshot, CycleType, LedgerLine, PayType
from ph_payroll.models import PayrollEntry


@dataclass
class EntryComputation:
    """Result of computing one payroll entry (nothing persisted yet)."""

    employee_id: UUID
    compensation: CompensationSnapshot
    summary: DtrSummary
    earnings: EarningsResult
    deductions: DeductionsResult
    ledger_lines: list[LedgerLine] = field(default_factory=list)
    inputs_fingerprint: str = ""

    @property
    def gross_pay(self) -> Decimal:
        return self.earnings.gross_pay

    @property
    def total_deductions(self) -> Decimal:
        return self.deductions.total_deductions

    @property
    def net_pay(self) -> Decimal:
        return self.gross_pay - self.total_deductions

    @property
    def total_employer_contributions(self) -> Decimal:
        return self.deductions.total_employer_contributions

    def apply_to(self, entry: PayrollEntry) -> None:
        """Copy computed totals onto an entry row."""
        summary = self.summary
        entry.basic_salary_snapshot = self.compensation.basic_pay
        entry.pay_type_snapshot = PayType(self.compensation.pay_type).value
        entry.daily_rate = self.earnings.daily_rate
        entry.hourly_rate = self.earnings.hourly_rate

        entry.days_worked = summary.days_worked
        entry.absent_days = summary.absent_days
        entry.leave_days = summary.leave_days
        entry.holiday_days = summary.holiday_days
        entry.total_regular_minutes = summary.regular_minutes
        entry.total_late_minutes = summary.late_minutes
        entry.total_undertime_minutes = summary.undertime_minutes
        entry.total_overtime_minutes = summary.approved_overtime_minutes
        entry.total_night_diff_minutes = summary.night_diff_minutes

        entry.basic_pay = self.earnings.basic_pay
        entry.overtime_pay = self.earnings.overtime_pay
        entry.night_diff_pay = self.earnings.night_diff_pay
        entry.holiday_pay = self.earnings.holiday_pay
        entry.allowances_total = self.earnings.allowances_total
        entry.bonuses_total = self.earnings.bonuses_total
        entry.gross_pay = self.gross_pay

        deductions = self.deductions
        entry.sss_employee = deductions.sss_employee
        entry.sss_employer = deductions.sss_employer
        entry.philhealth_employee = deductions.philhealth_employee
        entry.philhealth_employer = deductions.philhealth_employer
        entry.pagibig_employee = deductions.pagibig_employee
        entry.pagibig_employer = deductions.pagibig_employer
        entry.taxable_income = deductions.taxable_income
        entry.withholding_tax = deductions.withholding_tax
        entry.loan_deductions_total = deductions.loan_deductions_total
        entry.other_deductions_total = deductions.other_deductions_total
        entry.total_deductions = self.total_deductions
        entry.total_employer_contributions = self.total_employer_contributions
        entry.net_pay = self.net_pay
        entry.inputs_fingerprint = self.inputs_fingerprint


class PayrollEntryCalculator:
    """Entry calculation pipeline.

    Stable order per employee:
    1) Earnings from compensation, DTR summary, and earning adjustments
    2) Statutory contributions on the monthly basis
    3) Withholding tax on taxable earnings less employee contributions
    4) Loan and deduction adjustments
    5) Net = gross - total deductions
    """

    def __init__(
        self,
        contributions: ContributionService,
        rates: PayrollRateCalculator | None = None,
        engine_version: str = "1.0.0",
    ):
        self.rates = rates or PayrollRateCalculator()
        self.earnings = EarningsCalculator(self.rates)
        self.deductions = DeductionsCalculator(
            contributions, working_days_per_month=int(self.rates.working_days_per_month)
        )
        self.engine_version = engine_version

    async def compute(
        self,
        employee_id: UUID,
        compensation: CompensationSnapshot,
        summary: DtrSummary,
        cycle_type: CycleType | str,
        period_number: int,
        as_of: date,
        ledger_lines: list[LedgerLine] | None = None,
        is_correction: bool = False,
    ) -> EntryComputation:
        """Compute an entry.

        Correction periods carry only their targeted adjustments: no basic
        pay, attendance premiums, or statutory contributions.
        """
        ledger_lines = list(ledger_lines or [])
        earnings = self.earnings.calculate(
            compensation,
            summary,
            cycle_type,
            ledger_lines,
            include_attendance=not is_correction,
        )
        deductions = await self.deductions.calculate(
            compensation,
            cycle_type,
            period_number,
            earnings.taxable_gross,
            as_of,
            ledger_lines,
            include_statutory=not is_correction,
        )
        return EntryComputation(
            employee_id=employee_id,
            compensation=compensation,
            summary=summary,
            earnings=earnings,
            deductions=deductions,
            ledger_lines=ledger_lines,
            inputs_fingerprint=self._compute_inputs_fingerprint(
                compensation, summary, ledger_lines, deductions, as_of
            ),
        )

    def _compute_inputs_fingerprint(
        self,
        compensation: CompensationSnapshot,
        summary: DtrSummary,
        ledger_lines: list[LedgerLine],
        deductions: DeductionsResult,
        as_of: date,
    ) -> str:
        """Fingerprint of every input that affects the amounts."""
        data: dict[str, Any] = {
            "engine_version": self.engine_version,
            "as_of": str(as_of),
            "basic_pay": str(compensation.basic_pay),
            "pay_type": PayType(compensation.pay_type).value,
            "days_worked": str(summary.days_worked),
            "absent_days": str(summary.absent_days),
            "late": summary.late_minutes,
            "undertime": summary.undertime_minutes,
            "overtime": {k.value: v for k, v in summary.overtime_breakdown.items()},
            "night_diff": summary.night_diff_minutes,
            "holidays": [(str(h.work_date), h.holiday_type.value) for h in summary.holidays_worked],
            "ledger": [
                (line.source, str(line.source_id), str(line.amount)) for line in ledger_lines
            ],
            "tables": {k: str(v) for k, v in deductions.table_ids.items()},
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()
