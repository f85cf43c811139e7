"""Payroll cycle, period, entry, and line item models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, JsonType, TimestampMixin


def _money(default: bool = True) -> Any:
    if default:
        return mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    return mapped_column(Numeric(12, 2), nullable=True)


# ===== Pay Cycles & Periods =====


class PayrollCycle(Base, TimestampMixin):
    """Cutoff template (semi-monthly or monthly) used to generate periods."""

    __tablename__ = "payroll_cycle"

    payroll_cycle_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    cycle_type: Mapped[str] = mapped_column(String(20), nullable=False)
    cutoff_rules: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "cycle_type IN ('semi_monthly', 'monthly')",
            name="payroll_cycle_type_check",
        ),
    )

    # Relationships
    periods: Mapped[list[PayrollPeriod]] = relationship(back_populates="cycle")


class PayrollPeriod(Base, TimestampMixin):
    """Concrete cutoff with its lifecycle status and aggregate totals."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_cycle_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_cycle.payroll_cycle_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), nullable=False, default="regular")
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    cutoff_start: Mapped[date] = mapped_column(Date, nullable=False)
    cutoff_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    original_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="RESTRICT"),
        nullable=True,
    )

    opened_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by: Mapped[UUID | None] = mapped_column(nullable=True)

    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()
    total_net: Mapped[Decimal] = _money()
    total_employer_contributions: Mapped[Decimal] = _money()

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'open', 'processing', 'closed')",
            name="payroll_period_status_check",
        ),
        CheckConstraint(
            "period_type IN ('regular', 'correction')",
            name="payroll_period_type_check",
        ),
        CheckConstraint(
            "period_type = 'regular' OR original_period_id IS NOT NULL",
            name="payroll_period_correction_origin_check",
        ),
        CheckConstraint("cutoff_end >= cutoff_start", name="payroll_period_dates_check"),
    )

    # Relationships
    cycle: Mapped[PayrollCycle] = relationship(back_populates="periods")

    @property
    def is_correction(self) -> bool:
        return self.period_type == "correction"


# ===== Payroll Entries =====


class PayrollEntry(Base, TimestampMixin):
    """Per-employee payroll result for one period (payslip snapshot)."""

    __tablename__ = "payroll_entry"

    payroll_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Snapshot of identity/compensation at computation time
    employee_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    employee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    position_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    basic_salary_snapshot: Mapped[Decimal | None] = _money(default=False)
    pay_type_snapshot: Mapped[str | None] = mapped_column(String(20), nullable=True)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)

    # DTR summary
    days_worked: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    absent_days: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    leave_days: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    holiday_days: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    total_regular_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_night_diff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Earnings
    basic_pay: Mapped[Decimal] = _money()
    overtime_pay: Mapped[Decimal] = _money()
    night_diff_pay: Mapped[Decimal] = _money()
    holiday_pay: Mapped[Decimal] = _money()
    allowances_total: Mapped[Decimal] = _money()
    bonuses_total: Mapped[Decimal] = _money()
    gross_pay: Mapped[Decimal] = _money()

    # Deductions
    sss_employee: Mapped[Decimal] = _money()
    sss_employer: Mapped[Decimal] = _money()
    philhealth_employee: Mapped[Decimal] = _money()
    philhealth_employer: Mapped[Decimal] = _money()
    pagibig_employee: Mapped[Decimal] = _money()
    pagibig_employer: Mapped[Decimal] = _money()
    taxable_income: Mapped[Decimal] = _money()
    withholding_tax: Mapped[Decimal] = _money()
    loan_deductions_total: Mapped[Decimal] = _money()
    other_deductions_total: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()
    total_employer_contributions: Mapped[Decimal] = _money()
    net_pay: Mapped[Decimal] = _money()

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    computation_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    computed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    inputs_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    engine_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id", "employee_id", name="payroll_entry_period_employee_unique"
        ),
        CheckConstraint(
            "status IN ('draft', 'computed', 'reviewed', 'approved')",
            name="payroll_entry_status_check",
        ),
    )

    # Relationships
    earnings: Mapped[list[PayrollEarning]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PayrollEarning.sort_order",
    )
    deductions: Mapped[list[PayrollDeduction]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PayrollDeduction.sort_order",
    )


class PayrollEarning(Base):
    """Earning line on a payroll entry."""

    __tablename__ = "payroll_earning"

    payroll_earning_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    earning_type: Mapped[str] = mapped_column(String(30), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    adjustment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("adjustment.adjustment_id", ondelete="SET NULL"),
        nullable=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped[PayrollEntry] = relationship(back_populates="earnings")


class PayrollDeduction(Base):
    """Deduction line on a payroll entry (employee or employer share)."""

    __tablename__ = "payroll_deduction"

    payroll_deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deduction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    basis_amount: Mapped[Decimal | None] = _money(default=False)
    is_employee_share: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_employer_share: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    contribution_table_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    contribution_table_id: Mapped[UUID | None] = mapped_column(nullable=True)
    adjustment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("adjustment.adjustment_id", ondelete="SET NULL"),
        nullable=True,
    )
    loan_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("loan.loan_id", ondelete="SET NULL"),
        nullable=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped[PayrollEntry] = relationship(back_populates="deductions")


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    before_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    after_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
