"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

ZERO = Decimal("0")


class PayType(str, Enum):
    """How an employee's basic pay is quoted."""

    MONTHLY = "monthly"
    SEMI_MONTHLY = "semi_monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


class CycleType(str, Enum):
    """Payroll cycle frequency."""

    SEMI_MONTHLY = "semi_monthly"
    MONTHLY = "monthly"


class TaxPayPeriod(str, Enum):
    """Withholding tax table frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    SEMI_MONTHLY = "semi_monthly"
    MONTHLY = "monthly"


class ContributionType(str, Enum):
    """Statutory contribution kinds."""

    SSS = "sss"
    PHILHEALTH = "philhealth"
    PAGIBIG = "pagibig"
    WITHHOLDING_TAX = "withholding_tax"


class HolidayType(str, Enum):
    """Proclaimed holiday kinds."""

    REGULAR = "regular"
    SPECIAL_NON_WORKING = "special_non_working"
    SPECIAL_WORKING = "special_working"
    DOUBLE = "double"


class OvertimeBucket(str, Enum):
    """Overtime premium classes."""

    REGULAR = "regular"
    REST_DAY = "rest_day"
    SPECIAL_HOLIDAY = "special_holiday"
    REGULAR_HOLIDAY = "regular_holiday"
    DOUBLE_HOLIDAY = "double_holiday"


class EarningType(str, Enum):
    """Payroll earning line types."""

    BASIC = "basic"
    OVERTIME = "overtime"
    NIGHT_DIFF = "night_diff"
    HOLIDAY = "holiday"
    ALLOWANCE = "allowance"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"


class DeductionType(str, Enum):
    """Payroll deduction line types."""

    SSS = "sss"
    PHILHEALTH = "philhealth"
    PAGIBIG = "pagibig"
    WITHHOLDING_TAX = "withholding_tax"
    LOAN = "loan"
    OTHER = "other"


# ===== Bracket tables =====


@dataclass(frozen=True)
class Bracket:
    """Salary range with an inclusive upper bound; max None is open-ended."""

    min_amount: Decimal
    max_amount: Decimal | None

    def contains(self, amount: Decimal) -> bool:
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount <= self.max_amount


@dataclass(frozen=True)
class SssBracket(Bracket):
    monthly_salary_credit: Decimal
    ec_contribution: Decimal = ZERO


@dataclass(frozen=True)
class PagibigTier(Bracket):
    employee_rate: Decimal
    employer_rate: Decimal


@dataclass(frozen=True)
class TaxBracket(Bracket):
    base_tax: Decimal
    excess_rate: Decimal


@dataclass
class ContributionResult:
    """Outcome of one statutory calculation.

    A missing table yields an all-zero result with ``error`` set; callers
    decide whether that is fatal.
    """

    contribution_type: ContributionType
    total: Decimal
    employee_share: Decimal
    employer_share: Decimal
    basis_amount: Decimal
    ec_contribution: Decimal = ZERO
    table_id: UUID | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.error is None

    @classmethod
    def zero(
        cls,
        contribution_type: ContributionType,
        error: str | None = None,
        table_id: UUID | None = None,
    ) -> ContributionResult:
        return cls(
            contribution_type=contribution_type,
            total=ZERO,
            employee_share=ZERO,
            employer_share=ZERO,
            basis_amount=ZERO,
            table_id=table_id,
            error=error,
        )


# ===== Line candidates =====


@dataclass
class EarningLine:
    """Earning line candidate before persistence."""

    earning_type: EarningType
    code: str
    description: str
    amount: Decimal
    quantity: Decimal | None = None
    unit: str | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    is_taxable: bool = True
    adjustment_id: UUID | None = None


@dataclass
class DeductionLine:
    """Deduction line candidate before persistence."""

    deduction_type: DeductionType
    code: str
    description: str
    amount: Decimal
    basis_amount: Decimal | None = None
    is_employee_share: bool = True
    is_employer_share: bool = False
    contribution_table_type: str | None = None
    contribution_table_id: UUID | None = None
    adjustment_id: UUID | None = None
    loan_id: UUID | None = None


@dataclass(frozen=True)
class CompensationSnapshot:
    """Basic pay effective for a computation."""

    basic_pay: Decimal
    pay_type: PayType
    effective_from: date | None = None


@dataclass
class LedgerLine:
    """An adjustment or loan amount due (or already applied) for a period."""

    source: str  # "adjustment" or "loan"
    source_id: UUID
    category: str  # "earning" or "deduction"
    code: str
    description: str
    amount: Decimal
    adjustment_type: str | None = None
    is_taxable: bool = True
    already_applied: bool = False
