"""Statutory contributions, withholding tax, and ledger deductions for an entry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from ph_payroll.calculators.contributions import (
    ContributionService,
    ContributionTableNotFoundError,
)
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import (
    ZERO,
    CompensationSnapshot,
    ContributionResult,
    ContributionType,
    CycleType,
    DeductionLine,
    DeductionType,
    LedgerLine,
    PayType,
    TaxPayPeriod,
)


@dataclass
class DeductionsResult:
    monthly_basis: Decimal = ZERO
    sss_employee: Decimal = ZERO
    sss_employer: Decimal = ZERO
    sss_ec: Decimal = ZERO
    philhealth_employee: Decimal = ZERO
    philhealth_employer: Decimal = ZERO
    pagibig_employee: Decimal = ZERO
    pagibig_employer: Decimal = ZERO
    taxable_income: Decimal = ZERO
    withholding_tax: Decimal = ZERO
    loan_deductions_total: Decimal = ZERO
    other_deductions_total: Decimal = ZERO
    table_ids: dict[str, UUID | None] = field(default_factory=dict)
    lines: list[DeductionLine] = field(default_factory=list)

    @property
    def total_employee_contributions(self) -> Decimal:
        return self.sss_employee + self.philhealth_employee + self.pagibig_employee

    @property
    def total_employer_contributions(self) -> Decimal:
        return self.sss_employer + self.sss_ec + self.philhealth_employer + self.pagibig_employer

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.total_employee_contributions
            + self.withholding_tax
            + self.loan_deductions_total
            + self.other_deductions_total
        )


class DeductionsCalculator:
    """Applies the statutory schedule to one entry.

    Contributions are looked up on the monthly equivalent of basic pay.
    On semi-monthly cycles SSS and Pag-IBIG are taken in full on the
    second cutoff while PhilHealth is split across both cutoffs.
    Withholding tax uses the table matching the cycle frequency.
    """

    MONTHLY_FACTORS: dict[PayType, Decimal] = {
        PayType.MONTHLY: Decimal("1"),
        PayType.SEMI_MONTHLY: Decimal("2"),
        PayType.WEEKLY: Decimal("4.33"),
    }

    TAX_PAY_PERIODS: dict[CycleType, TaxPayPeriod] = {
        CycleType.SEMI_MONTHLY: TaxPayPeriod.SEMI_MONTHLY,
        CycleType.MONTHLY: TaxPayPeriod.MONTHLY,
    }

    def __init__(self, contributions: ContributionService, working_days_per_month: int = 22):
        self.contributions = contributions
        self.working_days_per_month = Decimal(working_days_per_month)

    def monthly_basis(self, compensation: CompensationSnapshot) -> Decimal:
        pay_type = PayType(compensation.pay_type)
        factor = self.MONTHLY_FACTORS.get(pay_type, self.working_days_per_month)
        return LineItemBuilder.round_to_cents(compensation.basic_pay * factor)

    async def calculate(
        self,
        compensation: CompensationSnapshot,
        cycle_type: CycleType | str,
        period_number: int,
        taxable_gross: Decimal,
        as_of: date,
        ledger_lines: list[LedgerLine] | None = None,
        include_statutory: bool = True,
    ) -> DeductionsResult:
        """Compute deductions.

        Raises:
            ContributionTableNotFoundError: A statutory table is missing for as_of
        """
        cycle_type = CycleType(cycle_type)
        result = DeductionsResult()

        if include_statutory:
            await self._add_contributions(result, compensation, cycle_type, period_number, as_of)
            await self._add_withholding_tax(result, cycle_type, taxable_gross, as_of)

        for line in ledger_lines or []:
            if line.category == "deduction":
                self._add_ledger_deduction(result, line)

        return result

    async def _add_contributions(
        self,
        result: DeductionsResult,
        compensation: CompensationSnapshot,
        cycle_type: CycleType,
        period_number: int,
        as_of: date,
    ) -> None:
        basis = self.monthly_basis(compensation)
        result.monthly_basis = basis
        semi_monthly = cycle_type == CycleType.SEMI_MONTHLY
        second_cutoff = period_number % 2 == 0

        sss = self._require(
            await self.contributions.calculate_contribution(ContributionType.SSS, basis, as_of),
            as_of,
        )
        philhealth = self._require(
            await self.contributions.calculate_contribution(
                ContributionType.PHILHEALTH, basis, as_of
            ),
            as_of,
        )
        pagibig = self._require(
            await self.contributions.calculate_contribution(ContributionType.PAGIBIG, basis, as_of),
            as_of,
        )
        result.table_ids.update(
            {
                ContributionType.SSS.value: sss.table_id,
                ContributionType.PHILHEALTH.value: philhealth.table_id,
                ContributionType.PAGIBIG.value: pagibig.table_id,
            }
        )

        if not semi_monthly or second_cutoff:
            result.sss_employee = sss.employee_share
            result.sss_employer = sss.employer_share
            result.sss_ec = sss.ec_contribution
            result.pagibig_employee = pagibig.employee_share
            result.pagibig_employer = pagibig.employer_share

        if semi_monthly:
            result.philhealth_employee = LineItemBuilder.round_to_cents(philhealth.employee_share / 2)
            result.philhealth_employer = LineItemBuilder.round_to_cents(philhealth.employer_share / 2)
        else:
            result.philhealth_employee = philhealth.employee_share
            result.philhealth_employer = philhealth.employer_share

        statutory = (
            (DeductionType.SSS, "SSS", "SSS Contribution", sss, result.sss_employee, result.sss_employer),
            (
                DeductionType.PHILHEALTH,
                "PHIC",
                "PhilHealth Contribution",
                philhealth,
                result.philhealth_employee,
                result.philhealth_employer,
            ),
            (
                DeductionType.PAGIBIG,
                "HDMF",
                "Pag-IBIG Contribution",
                pagibig,
                result.pagibig_employee,
                result.pagibig_employer,
            ),
        )
        for deduction_type, code, label, contribution, employee, employer in statutory:
            if employee > 0:
                result.lines.append(
                    LineItemBuilder.create_deduction_line(
                        deduction_type,
                        f"{code}_EE",
                        f"{label} (Employee)",
                        employee,
                        basis_amount=contribution.basis_amount,
                        contribution_table_id=contribution.table_id,
                    )
                )
            if employer > 0:
                result.lines.append(
                    LineItemBuilder.create_deduction_line(
                        deduction_type,
                        f"{code}_ER",
                        f"{label} (Employer)",
                        employer,
                        basis_amount=contribution.basis_amount,
                        is_employer_share=True,
                        contribution_table_id=contribution.table_id,
                    )
                )

        if result.sss_ec > 0:
            result.lines.append(
                LineItemBuilder.create_deduction_line(
                    DeductionType.SSS,
                    "SSS_EC",
                    "SSS Employees' Compensation (Employer)",
                    result.sss_ec,
                    basis_amount=sss.basis_amount,
                    is_employer_share=True,
                    contribution_table_id=sss.table_id,
                )
            )

    async def _add_withholding_tax(
        self,
        result: DeductionsResult,
        cycle_type: CycleType,
        taxable_gross: Decimal,
        as_of: date,
    ) -> None:
        pay_period = self.TAX_PAY_PERIODS[cycle_type]
        result.taxable_income = max(taxable_gross - result.total_employee_contributions, ZERO)
        tax = await self.contributions.calculate_contribution(
            ContributionType.WITHHOLDING_TAX, result.taxable_income, as_of, pay_period
        )
        if tax.error:
            raise ContributionTableNotFoundError(
                ContributionType.WITHHOLDING_TAX, as_of, pay_period, reason=tax.error
            )

        result.table_ids[ContributionType.WITHHOLDING_TAX.value] = tax.table_id
        result.withholding_tax = tax.employee_share
        if tax.employee_share > 0:
            result.lines.append(
                LineItemBuilder.create_deduction_line(
                    DeductionType.WITHHOLDING_TAX,
                    "TAX",
                    "Withholding Tax",
                    tax.employee_share,
                    basis_amount=result.taxable_income,
                    contribution_table_id=tax.table_id,
                )
            )

    def _add_ledger_deduction(self, result: DeductionsResult, line: LedgerLine) -> None:
        amount = LineItemBuilder.round_to_cents(line.amount)
        if line.source == "loan":
            result.loan_deductions_total += amount
            result.lines.append(
                LineItemBuilder.create_deduction_line(
                    DeductionType.LOAN,
                    line.code,
                    line.description,
                    amount,
                    loan_id=line.source_id,
                )
            )
        else:
            result.other_deductions_total += amount
            result.lines.append(
                LineItemBuilder.create_deduction_line(
                    DeductionType.OTHER,
                    line.code,
                    line.description,
                    amount,
                    adjustment_id=line.source_id,
                )
            )

    @staticmethod
    def _require(contribution: ContributionResult, as_of: date) -> ContributionResult:
        if contribution.error:
            raise ContributionTableNotFoundError(
                contribution.contribution_type, as_of, reason=contribution.error
            )
        return contribution
