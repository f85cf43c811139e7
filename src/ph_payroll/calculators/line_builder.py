"""Line item builder and rounding rules."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ph_payroll.calculators.types import DeductionLine, DeductionType, EarningLine, EarningType
from ph_payroll.models import PayrollDeduction, PayrollEarning


class LineItemBuilder:
    """Builds payroll line items with consistent rounding.

    Sign conventions:
    - EARNING: positive, except absence/tardiness reductions on basic pay
    - DEDUCTION: positive amount; employer shares are flagged, never netted

    Rounding:
    - Currency to 2 decimals, ROUND_HALF_UP, at the point each share is computed
    - Rates to 4 decimals; per-minute rates to 6 decimals
    """

    PRECISION = Decimal("0.0001")  # 4 decimal places for rates
    MINUTE_PRECISION = Decimal("0.000001")
    OUTPUT_PRECISION = Decimal("0.01")  # 2 decimal places for persistence

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (centavos)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_rate(amount: Decimal) -> Decimal:
        """Round a rate to 4 decimal places."""
        return amount.quantize(LineItemBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_minute_rate(amount: Decimal) -> Decimal:
        return amount.quantize(LineItemBuilder.MINUTE_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning_line(
        earning_type: EarningType,
        code: str,
        description: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        unit: str | None = None,
        rate: Decimal | None = None,
        multiplier: Decimal | None = None,
        is_taxable: bool = True,
        adjustment_id: UUID | None = None,
    ) -> EarningLine:
        """Create an earning line with the amount rounded to centavos."""
        return EarningLine(
            earning_type=earning_type,
            code=code,
            description=description,
            amount=LineItemBuilder.round_to_cents(amount),
            quantity=quantity,
            unit=unit,
            rate=rate,
            multiplier=multiplier,
            is_taxable=is_taxable,
            adjustment_id=adjustment_id,
        )

    @staticmethod
    def create_deduction_line(
        deduction_type: DeductionType,
        code: str,
        description: str,
        amount: Decimal,
        basis_amount: Decimal | None = None,
        is_employer_share: bool = False,
        contribution_table_id: UUID | None = None,
        adjustment_id: UUID | None = None,
        loan_id: UUID | None = None,
    ) -> DeductionLine:
        """Create a deduction line (always a positive amount)."""
        statutory = deduction_type in (
            DeductionType.SSS,
            DeductionType.PHILHEALTH,
            DeductionType.PAGIBIG,
            DeductionType.WITHHOLDING_TAX,
        )
        return DeductionLine(
            deduction_type=deduction_type,
            code=code,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            basis_amount=basis_amount,
            is_employee_share=not is_employer_share,
            is_employer_share=is_employer_share,
            contribution_table_type=deduction_type.value if statutory else None,
            contribution_table_id=contribution_table_id,
            adjustment_id=adjustment_id,
            loan_id=loan_id,
        )

    @staticmethod
    def to_earning_rows(entry_id: UUID, lines: list[EarningLine]) -> list[PayrollEarning]:
        """Convert earning candidates into ORM rows for an entry."""
        return [
            PayrollEarning(
                payroll_entry_id=entry_id,
                earning_type=line.earning_type.value,
                code=line.code,
                description=line.description,
                quantity=line.quantity,
                unit=line.unit,
                rate=line.rate,
                multiplier=line.multiplier,
                amount=line.amount,
                is_taxable=line.is_taxable,
                adjustment_id=line.adjustment_id,
                sort_order=index,
            )
            for index, line in enumerate(lines)
        ]

    @staticmethod
    def to_deduction_rows(entry_id: UUID, lines: list[DeductionLine]) -> list[PayrollDeduction]:
        """Convert deduction candidates into ORM rows for an entry."""
        return [
            PayrollDeduction(
                payroll_entry_id=entry_id,
                deduction_type=line.deduction_type.value,
                code=line.code,
                description=line.description,
                amount=line.amount,
                basis_amount=line.basis_amount,
                is_employee_share=line.is_employee_share,
                is_employer_share=line.is_employer_share,
                contribution_table_type=line.contribution_table_type,
                contribution_table_id=line.contribution_table_id,
                adjustment_id=line.adjustment_id,
                loan_id=line.loan_id,
                sort_order=index,
            )
            for index, line in enumerate(lines)
        ]
