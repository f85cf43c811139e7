"""Daily Time Record computation service."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.attendance.punch_pairing import (
    PunchDirection,
    PunchEvent,
    PunchPairingResult,
    PunchPairProcessor,
    normalize_direction,
)
from ph_payroll.attendance.time_calculator import ScheduleSnapshot, TimeCalculator
from ph_payroll.calculators.types import HolidayType
from ph_payroll.config import Settings, get_settings
from ph_payroll.models import (
    AttendancePunch,
    DailyTimeRecord,
    Employee,
    Holiday,
    LeaveApplication,
    OvertimeRequest,
    WorkSchedule,
)

logger = logging.getLogger(__name__)


class DtrCalculationService:
    """Computes and stores one DTR per (employee, work_date).

    Data-quality problems (missing time-out, orphan time-out, unapproved
    overtime, no schedule) set needs_review and never raise. A DTR locked
    by an approved payroll entry is returned unchanged.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.pairing = PunchPairProcessor(self.settings.duplicate_scan_minutes)
        self.calculator = TimeCalculator()

    async def record_punch(
        self,
        employee_id: UUID,
        punched_at: datetime,
        direction: str | int | PunchDirection,
        source: str = "biometric",
    ) -> AttendancePunch:
        """Store a raw punch, normalizing its direction and work date.

        Unrecognized directions are stored as invalid punches.
        """
        normalized = normalize_direction(direction)
        schedule = await self._get_schedule(employee_id)
        work_date = schedule.work_date_for(punched_at) if schedule else punched_at.date()

        punch = AttendancePunch(
            employee_id=employee_id,
            work_date=work_date,
            punched_at=punched_at,
            direction=normalized.value if normalized else str(direction),
            source=source,
            is_valid=normalized is not None,
        )
        self.session.add(punch)
        await self.session.flush()
        return punch

    async def calculate_for_range(
        self, employee_id: UUID, start_date: date, end_date: date
    ) -> list[DailyTimeRecord]:
        records = []
        current = start_date
        while current <= end_date:
            records.append(await self.calculate_for_date(employee_id, current))
            current += timedelta(days=1)
        return records

    async def calculate_for_date(self, employee_id: UUID, work_date: date) -> DailyTimeRecord:
        """Compute (or recompute) the DTR for one date."""
        dtr = await self._get_dtr(employee_id, work_date)
        if dtr is not None and dtr.is_locked:
            return dtr
        if dtr is None:
            dtr = DailyTimeRecord(employee_id=employee_id, work_date=work_date)
            self.session.add(dtr)

        self._reset(dtr)
        punches = await self._get_punches(employee_id, work_date)
        events = []
        for punch in punches:
            direction = normalize_direction(punch.direction)
            events.append(
                PunchEvent(
                    punched_at=punch.punched_at,
                    direction=direction or PunchDirection.IN,
                    punch_id=punch.attendance_punch_id,
                    is_valid=punch.is_valid and direction is not None,
                )
            )
        pairing = self.pairing.process(events)
        dtr.first_in = pairing.first_in
        dtr.last_out = pairing.last_out
        reasons = list(pairing.review_reasons)

        employee = await self.session.get(Employee, employee_id)
        schedule_row = None
        if employee is not None and employee.work_schedule_id is not None:
            schedule_row = await self.session.get(WorkSchedule, employee.work_schedule_id)

        if schedule_row is None:
            dtr.work_schedule_id = None
            dtr.status = "no_schedule"
            reasons.insert(0, "No schedule assigned")
        else:
            dtr.work_schedule_id = schedule_row.work_schedule_id
            schedule = ScheduleSnapshot.from_model(schedule_row)
            await self._apply_schedule(dtr, schedule, pairing, reasons)

        dtr.needs_review = bool(reasons)
        dtr.review_reason = "; ".join(reasons) if reasons else None
        dtr.computed_at = datetime.now(timezone.utc)
        await self.session.flush()

        if punches:
            await self.session.execute(
                update(AttendancePunch)
                .where(
                    AttendancePunch.attendance_punch_id.in_(
                        [p.attendance_punch_id for p in punches]
                    )
                )
                .values(daily_time_record_id=dtr.daily_time_record_id)
            )

        if dtr.needs_review:
            logger.warning(
                "DTR for employee %s on %s needs review: %s",
                employee_id,
                work_date,
                dtr.review_reason,
            )
        return dtr

    async def lock_records(
        self, employee_id: UUID, start_date: date, end_date: date, entry_id: UUID
    ) -> int:
        """Lock an employee's DTRs in a cutoff against recomputation."""
        result = await self.session.execute(
            select(DailyTimeRecord)
            .where(DailyTimeRecord.employee_id == employee_id)
            .where(DailyTimeRecord.work_date >= start_date)
            .where(DailyTimeRecord.work_date <= end_date)
            .where(DailyTimeRecord.locked_at.is_(None))
        )
        records = result.scalars().all()
        locked_at = datetime.now(timezone.utc)
        for dtr in records:
            dtr.locked_at = locked_at
            dtr.locked_by_entry_id = entry_id
        await self.session.flush()
        return len(records)

    async def _apply_schedule(
        self,
        dtr: DailyTimeRecord,
        schedule: ScheduleSnapshot,
        pairing: PunchPairingResult,
        reasons: list[str],
    ) -> None:
        work_date = dtr.work_date
        holiday = await self._get_holiday(work_date)
        if holiday is not None:
            dtr.holiday_id = holiday.holiday_id
        # Special working days are paid as ordinary days
        is_holiday = holiday is not None and holiday.holiday_type != HolidayType.SPECIAL_WORKING.value
        is_rest_day = schedule.is_rest_day(work_date)
        dtr.is_rest_day = is_rest_day

        if await self._has_approved_leave(dtr.employee_id, work_date):
            dtr.status = "leave"
            return

        if not pairing.has_punches:
            if is_holiday:
                dtr.status = "holiday"
            elif is_rest_day:
                dtr.status = "rest_day"
            else:
                dtr.status = "absent"
            return

        times = self.calculator.compute(work_date, pairing, schedule, is_rest_day, is_holiday)
        dtr.total_work_minutes = times.total_work_minutes
        dtr.total_break_minutes = times.total_break_minutes
        dtr.late_minutes = times.late_minutes
        dtr.undertime_minutes = times.undertime_minutes
        dtr.overtime_minutes = times.overtime_minutes
        dtr.night_diff_minutes = times.night_diff_minutes

        if pairing.unpaired_in is not None:
            dtr.status = "pending"
        elif is_holiday:
            dtr.status = "holiday"
        elif is_rest_day:
            dtr.status = "rest_day"
        else:
            dtr.status = "present"

        if dtr.overtime_minutes > 0:
            await self._apply_overtime_approval(dtr, schedule, reasons)

    async def _apply_overtime_approval(
        self, dtr: DailyTimeRecord, schedule: ScheduleSnapshot, reasons: list[str]
    ) -> None:
        result = await self.session.execute(
            select(OvertimeRequest)
            .where(OvertimeRequest.employee_id == dtr.employee_id)
            .where(OvertimeRequest.work_date == dtr.work_date)
            .order_by(OvertimeRequest.created_at.desc())
        )
        request = result.scalars().first()

        if request is not None and request.status == "approved":
            dtr.overtime_approved = True
            dtr.approved_overtime_minutes = min(dtr.overtime_minutes, request.expected_minutes)
        elif request is not None and request.status == "rejected":
            dtr.overtime_denied = True
        elif schedule.overtime_requires_approval:
            reasons.append("Overtime pending approval")
        else:
            dtr.overtime_approved = True
            dtr.approved_overtime_minutes = dtr.overtime_minutes

    @staticmethod
    def _reset(dtr: DailyTimeRecord) -> None:
        dtr.status = "absent"
        dtr.first_in = None
        dtr.last_out = None
        dtr.total_work_minutes = 0
        dtr.total_break_minutes = 0
        dtr.late_minutes = 0
        dtr.undertime_minutes = 0
        dtr.overtime_minutes = 0
        dtr.approved_overtime_minutes = 0
        dtr.night_diff_minutes = 0
        dtr.is_rest_day = False
        dtr.holiday_id = None
        dtr.overtime_approved = False
        dtr.overtime_denied = False

    async def _get_schedule(self, employee_id: UUID) -> ScheduleSnapshot | None:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.work_schedule_id is None:
            return None
        schedule = await self.session.get(WorkSchedule, employee.work_schedule_id)
        return ScheduleSnapshot.from_model(schedule) if schedule else None

    async def _get_dtr(self, employee_id: UUID, work_date: date) -> DailyTimeRecord | None:
        result = await self.session.execute(
            select(DailyTimeRecord)
            .where(DailyTimeRecord.employee_id == employee_id)
            .where(DailyTimeRecord.work_date == work_date)
        )
        return result.scalar_one_or_none()

    async def _get_punches(self, employee_id: UUID, work_date: date) -> list[AttendancePunch]:
        result = await self.session.execute(
            select(AttendancePunch)
            .where(AttendancePunch.employee_id == employee_id)
            .where(AttendancePunch.work_date == work_date)
            .order_by(AttendancePunch.punched_at)
        )
        return list(result.scalars().all())

    async def _get_holiday(self, work_date: date) -> Holiday | None:
        result = await self.session.execute(
            select(Holiday).where(Holiday.holiday_date == work_date).order_by(Holiday.name)
        )
        return result.scalars().first()

    async def _has_approved_leave(self, employee_id: UUID, work_date: date) -> bool:
        result = await self.session.execute(
            select(LeaveApplication.leave_application_id)
            .where(LeaveApplication.employee_id == employee_id)
            .where(LeaveApplication.status == "approved")
            .where(LeaveApplication.start_date <= work_date)
            .where(LeaveApplication.end_date >= work_date)
        )
        return result.first() is not None
