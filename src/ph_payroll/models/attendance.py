"""Attendance models: schedules, punches, daily time records, calendar overlays."""

from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ph_payroll.models.base import Base, JsonType, TimestampMixin


# ===== Work Schedules =====


class WorkSchedule(Base, TimestampMixin):
    """Shift definition used to derive late/undertime/overtime minutes."""

    __tablename__ = "work_schedule"

    work_schedule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    break_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    grace_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Python weekday numbers (Monday=0)
    rest_days: Mapped[list[int]] = mapped_column(JsonType, nullable=False, default=lambda: [5, 6])
    night_diff_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    night_diff_start: Mapped[time] = mapped_column(Time, nullable=False, default=time(22, 0))
    night_diff_end: Mapped[time] = mapped_column(Time, nullable=False, default=time(6, 0))
    overtime_requires_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    __table_args__ = (
        CheckConstraint("break_minutes >= 0", name="work_schedule_break_check"),
        CheckConstraint("grace_minutes >= 0", name="work_schedule_grace_check"),
    )


# ===== Punches & Daily Time Records =====


class AttendancePunch(Base, TimestampMixin):
    """Raw biometric/manual punch. Wall-clock local time, no timezone."""

    __tablename__ = "attendance_punch"

    attendance_punch_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    punched_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="biometric")
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    daily_time_record_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("daily_time_record.daily_time_record_id", ondelete="SET NULL"),
        nullable=True,
    )


class DailyTimeRecord(Base, TimestampMixin):
    """Derived attendance totals for one employee on one date."""

    __tablename__ = "daily_time_record"

    daily_time_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    work_schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_schedule.work_schedule_id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="absent")
    first_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    total_work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    approved_overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    night_diff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_rest_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    holiday_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("holiday.holiday_id", ondelete="SET NULL"),
        nullable=True,
    )
    overtime_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    overtime_denied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_by_entry_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="dtr_employee_date_unique"),
        CheckConstraint(
            "status IN ('present', 'absent', 'leave', 'holiday', 'rest_day', "
            "'no_schedule', 'pending')",
            name="dtr_status_check",
        ),
    )

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None


# ===== Calendar Overlays =====


class Holiday(Base, TimestampMixin):
    """Proclaimed holiday."""

    __tablename__ = "holiday"

    holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    holiday_type: Mapped[str] = mapped_column(String(30), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "holiday_type IN ('regular', 'special_non_working', 'special_working', 'double')",
            name="holiday_type_check",
        ),
    )


class LeaveApplication(Base, TimestampMixin):
    """Leave filed by an employee. Only approved leaves overlay DTRs."""

    __tablename__ = "leave_application"

    leave_application_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[str] = mapped_column(String(50), nullable=False, default="vacation")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="leave_application_dates_check"),
    )


class OvertimeRequest(Base, TimestampMixin):
    """Overtime pre-approval for a work date."""

    __tablename__ = "overtime_request"

    overtime_request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="overtime_request_status_check",
        ),
    )
