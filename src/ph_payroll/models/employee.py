"""Employee and compensation models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.attendance import WorkSchedule
    from ph_payroll.models.payroll import PayrollCycle


class Employee(Base, TimestampMixin):
    """Employee master record (identity and assignments)."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    department_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    position_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    work_schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_schedule.work_schedule_id", ondelete="SET NULL"),
        nullable=True,
    )
    payroll_cycle_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_cycle.payroll_cycle_id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("employee_number", name="employee_number_unique"),
        CheckConstraint(
            "status IN ('active', 'on_leave', 'suspended', 'terminated')",
            name="employee_status_check",
        ),
    )

    # Relationships
    work_schedule: Mapped[WorkSchedule | None] = relationship()
    payroll_cycle: Mapped[PayrollCycle | None] = relationship()

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)


class EmployeeCompensation(Base, TimestampMixin):
    """Effective-dated basic pay for an employee."""

    __tablename__ = "employee_compensation"

    employee_compensation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    basic_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    pay_type: Mapped[str] = mapped_column(String(20), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "pay_type IN ('monthly', 'semi_monthly', 'weekly', 'daily')",
            name="employee_compensation_pay_type_check",
        ),
        CheckConstraint("basic_pay >= 0", name="employee_compensation_basic_pay_check"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="employee_compensation_dates_check",
        ),
    )
