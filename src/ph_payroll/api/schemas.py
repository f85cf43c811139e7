"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ph_payroll.calculators.types import ContributionType, TaxPayPeriod
from ph_payroll.services.state_machine import EntryStatus, PeriodStatus


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str | None = None


# ============================================================================
# Contribution schemas
# ============================================================================


class ContributionCalculateRequest(BaseModel):
    """Schema for a single contribution lookup."""

    type: ContributionType
    compensation: Decimal = Field(ge=0)
    as_of: date
    pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY


class ContributionResultResponse(BaseModel):
    """Schema for one contribution result."""

    model_config = ConfigDict(from_attributes=True)

    contribution_type: ContributionType
    total: Decimal
    employee_share: Decimal
    employer_share: Decimal
    basis_amount: Decimal
    ec_contribution: Decimal
    table_id: UUID | None = None
    error: str | None = None


class ContributionSummaryRequest(BaseModel):
    """Schema for computing all contributions on a monthly salary."""

    salary: Decimal = Field(ge=0)
    as_of: date


class ContributionSummaryResponse(BaseModel):
    """Schema for all contributions on a monthly salary."""

    salary: Decimal
    sss: ContributionResultResponse
    philhealth: ContributionResultResponse
    pagibig: ContributionResultResponse
    withholding_tax: ContributionResultResponse
    taxable_income: Decimal
    total_employee_contributions: Decimal
    total_employer_contributions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    errors: list[str] = Field(default_factory=list)


# ============================================================================
# Payroll period schemas
# ============================================================================


class PeriodTransitionRequest(BaseModel):
    """Schema for a period status transition."""

    status: PeriodStatus
    reason: str | None = None


class PeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    payroll_cycle_id: UUID
    name: str
    period_type: str
    year: int
    period_number: int
    cutoff_start: date
    cutoff_end: date
    pay_date: date
    status: str
    original_period_id: UUID | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    closed_by: UUID | None = None
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_contributions: Decimal


class CorrectionPeriodCreate(BaseModel):
    """Schema for creating a correction period for a closed period."""

    pay_date: date
    cutoff_start: date | None = None
    cutoff_end: date | None = None


class ComputeRequest(BaseModel):
    """Schema for computing a period."""

    force_recompute: bool = False


class ComputationFailure(BaseModel):
    """One employee that could not be computed."""

    employee_id: UUID
    reason: str


class PeriodComputationResponse(BaseModel):
    """Schema for a period computation result."""

    model_config = ConfigDict(from_attributes=True)

    period_id: UUID
    success_count: int
    skipped_count: int
    failures: list[ComputationFailure]


# ============================================================================
# Payroll entry schemas
# ============================================================================


class EarningLineResponse(BaseModel):
    """Schema for an earning line."""

    model_config = ConfigDict(from_attributes=True)

    earning_type: str
    code: str
    description: str
    quantity: Decimal | None = None
    unit: str | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    amount: Decimal
    is_taxable: bool
    adjustment_id: UUID | None = None


class DeductionLineResponse(BaseModel):
    """Schema for a deduction line."""

    model_config = ConfigDict(from_attributes=True)

    deduction_type: str
    code: str
    description: str
    amount: Decimal
    basis_amount: Decimal | None = None
    is_employee_share: bool
    is_employer_share: bool
    contribution_table_id: UUID | None = None
    adjustment_id: UUID | None = None
    loan_id: UUID | None = None


class EntrySummaryResponse(BaseModel):
    """Schema for payroll entry totals."""

    model_config = ConfigDict(from_attributes=True)

    payroll_entry_id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    employee_number: str | None = None
    employee_name: str | None = None
    status: str
    computation_error: str | None = None

    days_worked: Decimal
    absent_days: Decimal
    total_late_minutes: int
    total_undertime_minutes: int
    total_overtime_minutes: int
    total_night_diff_minutes: int

    basic_pay: Decimal
    overtime_pay: Decimal
    night_diff_pay: Decimal
    holiday_pay: Decimal
    allowances_total: Decimal
    bonuses_total: Decimal
    gross_pay: Decimal

    sss_employee: Decimal
    philhealth_employee: Decimal
    pagibig_employee: Decimal
    withholding_tax: Decimal
    loan_deductions_total: Decimal
    other_deductions_total: Decimal
    total_deductions: Decimal
    total_employer_contributions: Decimal
    net_pay: Decimal

    inputs_fingerprint: str | None = None
    engine_version: str | None = None
    computed_at: datetime | None = None
    reviewed_at: datetime | None = None
    approved_at: datetime | None = None


class EntryResponse(EntrySummaryResponse):
    """Schema for payroll entry response (payslip)."""

    earnings: list[EarningLineResponse] = Field(default_factory=list)
    deductions: list[DeductionLineResponse] = Field(default_factory=list)


class EntryTransitionRequest(BaseModel):
    """Schema for an entry status transition."""

    status: EntryStatus
    remarks: str | None = None


# ============================================================================
# Adjustment schemas
# ============================================================================


class AdjustmentApplyRequest(BaseModel):
    """Schema for manually applying an adjustment."""

    period_id: UUID


class AdjustmentStatusRequest(BaseModel):
    """Schema for hold/cancel with an optional reason."""

    reason: str | None = None


class AdjustmentApplicationResponse(BaseModel):
    """Schema for a ledger row."""

    model_config = ConfigDict(from_attributes=True)

    adjustment_application_id: UUID
    adjustment_id: UUID
    payroll_period_id: UUID
    payroll_entry_id: UUID | None = None
    amount: Decimal
    balance_before: Decimal | None = None
    balance_after: Decimal | None = None
    applied_at: datetime


class AdjustmentResponse(BaseModel):
    """Schema for adjustment response."""

    model_config = ConfigDict(from_attributes=True)

    adjustment_id: UUID
    employee_id: UUID
    category: str
    adjustment_type: str
    code: str
    name: str
    amount: Decimal
    frequency: str
    has_balance_tracking: bool
    total_amount: Decimal | None = None
    total_applied: Decimal
    remaining_balance: Decimal | None = None
    remaining_occurrences: int | None = None
    status: str
    metadata_json: dict[str, Any] | None = None
