"""Versioned statutory contribution and withholding tax tables."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin


# ===== SSS =====


class SssContributionTable(Base, TimestampMixin):
    """SSS schedule: rates applied to the Monthly Salary Credit of a bracket."""

    __tablename__ = "sss_contribution_table"

    sss_contribution_table_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    employee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    employer_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    # Relationships
    brackets: Mapped[list[SssContributionBracket]] = relationship(
        back_populates="table",
        cascade="all, delete-orphan",
        order_by="SssContributionBracket.min_salary",
    )


class SssContributionBracket(Base):
    """Salary range mapped to a Monthly Salary Credit."""

    __tablename__ = "sss_contribution_bracket"

    sss_contribution_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    sss_contribution_table_id: Mapped[UUID] = mapped_column(
        ForeignKey("sss_contribution_table.sss_contribution_table_id", ondelete="CASCADE"),
        nullable=False,
    )
    min_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    monthly_salary_credit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    ec_contribution: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint(
            "max_salary IS NULL OR max_salary >= min_salary",
            name="sss_bracket_range_check",
        ),
    )

    table: Mapped[SssContributionTable] = relationship(back_populates="brackets")


# ===== PhilHealth =====


class PhilhealthContributionTable(Base, TimestampMixin):
    """PhilHealth premium: percentage of a clamped basis with min/max premium."""

    __tablename__ = "philhealth_contribution_table"

    philhealth_contribution_table_id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    premium_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    employee_share_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0.5")
    )
    employer_share_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0.5")
    )
    salary_floor: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    salary_ceiling: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_contribution: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_contribution: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "salary_ceiling >= salary_floor",
            name="philhealth_salary_range_check",
        ),
        CheckConstraint(
            "max_contribution >= min_contribution",
            name="philhealth_contribution_range_check",
        ),
    )


# ===== Pag-IBIG =====


class PagibigContributionTable(Base, TimestampMixin):
    """Pag-IBIG (HDMF) schedule with a compensation cap."""

    __tablename__ = "pagibig_contribution_table"

    pagibig_contribution_table_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_monthly_compensation: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Relationships
    tiers: Mapped[list[PagibigContributionTier]] = relationship(
        back_populates="table",
        cascade="all, delete-orphan",
        order_by="PagibigContributionTier.min_salary",
    )


class PagibigContributionTier(Base):
    """Rate tier chosen by actual monthly salary."""

    __tablename__ = "pagibig_contribution_tier"

    pagibig_contribution_tier_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pagibig_contribution_table_id: Mapped[UUID] = mapped_column(
        ForeignKey(
            "pagibig_contribution_table.pagibig_contribution_table_id", ondelete="CASCADE"
        ),
        nullable=False,
    )
    min_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    employee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    employer_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    table: Mapped[PagibigContributionTable] = relationship(back_populates="tiers")


# ===== Withholding Tax =====


class WithholdingTaxTable(Base, TimestampMixin):
    """BIR withholding tax table for one pay-period frequency."""

    __tablename__ = "withholding_tax_table"

    withholding_tax_table_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    pay_period: Mapped[str] = mapped_column(String(20), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "pay_period IN ('daily', 'weekly', 'semi_monthly', 'monthly')",
            name="withholding_tax_pay_period_check",
        ),
    )

    # Relationships
    brackets: Mapped[list[WithholdingTaxBracket]] = relationship(
        back_populates="table",
        cascade="all, delete-orphan",
        order_by="WithholdingTaxBracket.min_compensation",
    )


class WithholdingTaxBracket(Base):
    """Progressive bracket: base_tax + excess_rate * (compensation - min)."""

    __tablename__ = "withholding_tax_bracket"

    withholding_tax_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    withholding_tax_table_id: Mapped[UUID] = mapped_column(
        ForeignKey("withholding_tax_table.withholding_tax_table_id", ondelete="CASCADE"),
        nullable=False,
    )
    min_compensation: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_compensation: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    base_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    excess_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    table: Mapped[WithholdingTaxTable] = relationship(back_populates="brackets")
