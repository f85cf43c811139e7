"""Adjustment and loan models with their append-only ledgers."""

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


# ===== Adjustments =====


class Adjustment(Base, TimestampMixin):
    """Recurring or one-time earning/deduction, optionally balance-tracked."""

    __tablename__ = "adjustment"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="one_time")
    target_payroll_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="SET NULL"),
        nullable=True,
    )
    recurring_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recurring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recurring_interval: Mapped[str] = mapped_column(
        String(20), nullable=False, default="every_period"
    )
    remaining_occurrences: Mapped[int | None] = mapped_column(Integer, nullable=True)

    has_balance_tracking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    total_applied: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    remaining_balance: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("category IN ('earning', 'deduction')", name="adjustment_category_check"),
        CheckConstraint(
            "frequency IN ('one_time', 'recurring')", name="adjustment_frequency_check"
        ),
        CheckConstraint(
            "recurring_interval IN ('every_period', 'first_cutoff', 'second_cutoff')",
            name="adjustment_interval_check",
        ),
        CheckConstraint(
            "status IN ('active', 'on_hold', 'completed', 'cancelled')",
            name="adjustment_status_check",
        ),
        CheckConstraint("amount >= 0", name="adjustment_amount_check"),
        CheckConstraint(
            "remaining_balance IS NULL OR remaining_balance >= 0",
            name="adjustment_balance_check",
        ),
    )

    # Relationships
    applications: Mapped[list[AdjustmentApplication]] = relationship(
        back_populates="adjustment",
        order_by="AdjustmentApplication.applied_at",
    )

    @property
    def is_recurring(self) -> bool:
        return self.frequency == "recurring"

    @property
    def progress_percentage(self) -> Decimal:
        """Share of the tracked total already applied (0-100)."""
        if not self.has_balance_tracking or not self.total_amount:
            return Decimal("0")
        pct = self.total_applied / self.total_amount * 100
        return pct.quantize(Decimal("0.01"))


class AdjustmentApplication(Base, TimestampMixin):
    """Ledger row: one application of an adjustment to a payroll period."""

    __tablename__ = "adjustment_application"

    adjustment_application_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    adjustment_id: Mapped[UUID] = mapped_column(
        ForeignKey("adjustment.adjustment_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="RESTRICT"),
        nullable=False,
    )
    payroll_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_before: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    balance_after: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    applied_at: Mapped[datetime] = mapped_column(nullable=False)
    applied_by: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="applied")

    __table_args__ = (
        UniqueConstraint(
            "adjustment_id", "payroll_period_id", name="adjustment_application_period_unique"
        ),
        CheckConstraint("amount >= 0", name="adjustment_application_amount_check"),
    )

    adjustment: Mapped[Adjustment] = relationship(back_populates="applications")


# ===== Loans =====


class Loan(Base, TimestampMixin):
    """Government or company loan amortized through payroll."""

    __tablename__ = "loan"

    loan_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    loan_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    principal_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )
    monthly_deduction: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    term_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    remaining_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'on_hold', 'completed', 'cancelled')",
            name="loan_status_check",
        ),
        CheckConstraint("remaining_balance >= 0", name="loan_balance_check"),
        CheckConstraint("monthly_deduction >= 0", name="loan_monthly_deduction_check"),
    )

    # Relationships
    payments: Mapped[list[LoanPayment]] = relationship(
        back_populates="loan",
        order_by="LoanPayment.payment_date",
    )

    @property
    def progress_percentage(self) -> Decimal:
        if not self.total_amount:
            return Decimal("0")
        pct = self.total_paid / self.total_amount * 100
        return pct.quantize(Decimal("0.01"))


class LoanPayment(Base, TimestampMixin):
    """Ledger row: one loan amortization (payroll or manual)."""

    __tablename__ = "loan_payment"

    loan_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("loan.loan_id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL for manual payments made outside payroll
    payroll_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="RESTRICT"),
        nullable=True,
    )
    payroll_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_source: Mapped[str] = mapped_column(String(20), nullable=False, default="payroll")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("loan_id", "payroll_period_id", name="loan_payment_period_unique"),
        CheckConstraint(
            "payment_source IN ('payroll', 'manual')", name="loan_payment_source_check"
        ),
        CheckConstraint("amount > 0", name="loan_payment_amount_check"),
    )

    loan: Mapped[Loan] = relationship(back_populates="payments")
