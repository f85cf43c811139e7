"""Cutoff-level aggregation of Daily Time Records."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.attendance.summary import DtrSummary, HolidayWorked
from ph_payroll.calculators.types import HolidayType, OvertimeBucket
from ph_payroll.models import DailyTimeRecord, Holiday

HOLIDAY_OVERTIME_BUCKETS: dict[HolidayType, OvertimeBucket] = {
    HolidayType.REGULAR: OvertimeBucket.REGULAR_HOLIDAY,
    HolidayType.SPECIAL_NON_WORKING: OvertimeBucket.SPECIAL_HOLIDAY,
    HolidayType.DOUBLE: OvertimeBucket.DOUBLE_HOLIDAY,
}

ONE = Decimal("1")


class DtrAggregationService:
    """Summarizes an employee's DTRs over a cutoff for payroll."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def summarize(self, employee_id: UUID, start_date: date, end_date: date) -> DtrSummary:
        result = await self.session.execute(
            select(DailyTimeRecord)
            .where(DailyTimeRecord.employee_id == employee_id)
            .where(DailyTimeRecord.work_date >= start_date)
            .where(DailyTimeRecord.work_date <= end_date)
            .order_by(DailyTimeRecord.work_date)
        )
        records = list(result.scalars().all())
        holidays = await self._load_holidays(records)
        return self.aggregate(employee_id, start_date, end_date, records, holidays)

    @staticmethod
    def aggregate(
        employee_id: UUID | None,
        start_date: date,
        end_date: date,
        records: list[DailyTimeRecord],
        holidays: dict[UUID, Holiday],
    ) -> DtrSummary:
        summary = DtrSummary(
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            record_count=len(records),
        )

        for dtr in records:
            holiday = holidays.get(dtr.holiday_id) if dtr.holiday_id else None
            holiday_type = HolidayType(holiday.holiday_type) if holiday else None
            if holiday_type == HolidayType.SPECIAL_WORKING:
                holiday_type = None
            worked = dtr.total_work_minutes > 0

            if dtr.status == "present":
                summary.days_worked += ONE
            elif dtr.status == "absent":
                summary.absent_days += ONE
            elif dtr.status == "leave":
                summary.leave_days += ONE
            elif dtr.status == "holiday":
                summary.holiday_days += ONE
                if worked and holiday is not None and holiday_type is not None:
                    summary.days_worked += ONE
                    summary.holidays_worked.append(
                        HolidayWorked(dtr.work_date, holiday_type, holiday.name)
                    )
            elif dtr.status == "rest_day" and worked:
                summary.rest_days_worked += ONE

            summary.regular_minutes += max(dtr.total_work_minutes - dtr.overtime_minutes, 0)
            summary.late_minutes += dtr.late_minutes
            summary.undertime_minutes += dtr.undertime_minutes
            summary.overtime_minutes += dtr.overtime_minutes
            summary.approved_overtime_minutes += dtr.approved_overtime_minutes
            summary.night_diff_minutes += dtr.night_diff_minutes
            if dtr.needs_review:
                summary.needs_review_count += 1

            if dtr.approved_overtime_minutes > 0:
                if holiday_type is not None:
                    bucket = HOLIDAY_OVERTIME_BUCKETS[holiday_type]
                elif dtr.is_rest_day:
                    bucket = OvertimeBucket.REST_DAY
                else:
                    bucket = OvertimeBucket.REGULAR
                summary.overtime_breakdown[bucket] = (
                    summary.overtime_breakdown.get(bucket, 0) + dtr.approved_overtime_minutes
                )

        return summary

    async def _load_holidays(self, records: list[DailyTimeRecord]) -> dict[UUID, Holiday]:
        ids = {dtr.holiday_id for dtr in records if dtr.holiday_id}
        if not ids:
            return {}
        result = await self.session.execute(select(Holiday).where(Holiday.holiday_id.in_(ids)))
        return {h.holiday_id: h for h in result.scalars().all()}
