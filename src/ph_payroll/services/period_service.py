"""Payroll period lifecycle, generation, and totals."""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.calculators.types import CycleType
from ph_payroll.models import AuditEvent, PayrollCycle, PayrollEntry, PayrollPeriod
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.state_machine import (
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)

# Defaults when a cycle's cutoff_rules does not override them
DEFAULT_CUTOFF_RULES: dict[str, Any] = {
    "first_pay_day": 25,
    "second_pay_day": 10,
    "monthly_pay_day": 30,
    "pay_date_adjustment": "before",
}


class PeriodOverlapError(Exception):
    """Raised when a regular period would overlap another in the same cycle."""

    def __init__(self, cutoff_start: date, cutoff_end: date, existing: PayrollPeriod):
        self.cutoff_start = cutoff_start
        self.cutoff_end = cutoff_end
        self.existing_period_id = existing.payroll_period_id
        super().__init__(
            f"Period {cutoff_start} to {cutoff_end} overlaps '{existing.name}' "
            f"({existing.cutoff_start} to {existing.cutoff_end})"
        )


def adjust_for_weekend(pay_date: date, adjustment: str = "before") -> date:
    """Move a Saturday/Sunday pay date to the previous Friday or next Monday."""
    weekday = pay_date.weekday()
    if weekday < 5:
        return pay_date
    if adjustment == "after":
        return pay_date + timedelta(days=7 - weekday)
    return pay_date - timedelta(days=weekday - 4)


def _clamp_day(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


class PayrollPeriodService:
    """Service for payroll period lifecycle.

    Operations:
    - transition_status: Draft → Open → Processing ⇄ Open, Processing → Closed
    - generate_periods_for_year: 24 semi-monthly or 12 monthly cutoffs
    - create_correction_period: New Draft period referencing a closed original
    - update_period_totals: Refresh aggregates from the entries
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_period(self, period_id: UUID, load_cycle: bool = True) -> PayrollPeriod | None:
        """Load a period with optional cycle."""
        options = []
        if load_cycle:
            options.append(selectinload(PayrollPeriod.cycle))

        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_period_id == period_id)
            .options(*options)
        )
        return result.scalar_one_or_none()

    async def require_period(self, period_id: UUID) -> PayrollPeriod:
        period = await self.get_period(period_id)
        if period is None:
            raise EntityNotFoundError("Payroll period", period_id)
        return period

    async def transition_period(
        self,
        period_id: UUID,
        to_status: PeriodStatus | str,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
    ) -> PayrollPeriod:
        period = await self.require_period(period_id)
        return await self.transition_status(period, to_status, actor_user_id, reason)

    async def transition_status(
        self,
        period: PayrollPeriod,
        to_status: PeriodStatus | str,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
    ) -> PayrollPeriod:
        """Transition a period to a new status.

        Side effects:
        - open: opened_at stamped on the first visit only
        - closed: closed_at/closed_by stamped; every entry must be approved

        The status change is a conditional UPDATE on the expected status, so
        a concurrent transition makes this one fail instead of overwriting it.

        Raises InvalidTransitionError if transition is not allowed.
        """
        to_status = PeriodStatus(to_status)
        from_status = period.status

        entries: list[PayrollEntry] = []
        if to_status == PeriodStatus.CLOSED:
            result = await self.session.execute(
                select(PayrollEntry).where(
                    PayrollEntry.payroll_period_id == period.payroll_period_id
                )
            )
            entries = list(result.scalars().all())

        errors = PeriodStateMachine.validate_period_for_transition(period, to_status, entries)
        if errors:
            raise InvalidTransitionError(from_status, to_status, "; ".join(errors))

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {"status": to_status.value}
        if to_status == PeriodStatus.OPEN and period.opened_at is None:
            values["opened_at"] = now
        elif to_status == PeriodStatus.CLOSED:
            values["closed_at"] = now
            values["closed_by"] = actor_user_id

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == period.payroll_period_id,
                PayrollPeriod.status == from_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(from_status, to_status, "Status changed concurrently")

        for key, value in values.items():
            setattr(period, key, value)

        await self._record_audit(
            period.payroll_period_id,
            action=f"status_change:{from_status}:{to_status.value}",
            actor_user_id=actor_user_id,
            details={"reason": reason} if reason else None,
        )
        await self.session.flush()
        logger.info(
            "Payroll period %s transitioned %s -> %s",
            period.payroll_period_id,
            from_status,
            to_status.value,
        )
        return period

    async def create_period(
        self,
        cycle: PayrollCycle,
        year: int,
        period_number: int,
        cutoff_start: date,
        cutoff_end: date,
        pay_date: date,
        name: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> PayrollPeriod:
        """Create a regular Draft period.

        Raises:
            PeriodOverlapError: The cutoff overlaps another regular period in the cycle
        """
        existing = await self._find_overlap(cycle.payroll_cycle_id, cutoff_start, cutoff_end)
        if existing is not None:
            raise PeriodOverlapError(cutoff_start, cutoff_end, existing)

        period = PayrollPeriod(
            payroll_cycle_id=cycle.payroll_cycle_id,
            name=name or f"{cutoff_start:%B %Y} #{period_number}",
            period_type="regular",
            year=year,
            period_number=period_number,
            cutoff_start=cutoff_start,
            cutoff_end=cutoff_end,
            pay_date=pay_date,
            status=PeriodStatus.DRAFT.value,
        )
        self.session.add(period)
        await self.session.flush()
        await self._record_audit(
            period.payroll_period_id, action="created", actor_user_id=actor_user_id
        )
        return period

    async def generate_periods_for_year(
        self,
        cycle: PayrollCycle,
        year: int,
        actor_user_id: UUID | None = None,
    ) -> list[PayrollPeriod]:
        """Generate the year's periods for a cycle, skipping existing period numbers."""
        result = await self.session.execute(
            select(PayrollPeriod.period_number)
            .where(PayrollPeriod.payroll_cycle_id == cycle.payroll_cycle_id)
            .where(PayrollPeriod.year == year)
            .where(PayrollPeriod.period_type == "regular")
        )
        existing_numbers = set(result.scalars().all())

        created = []
        for number, start, end, pay_date, name in self.plan_periods(cycle, year):
            if number in existing_numbers:
                continue
            created.append(
                await self.create_period(
                    cycle, year, number, start, end, pay_date, name, actor_user_id
                )
            )
        logger.info(
            "Generated %d payroll period(s) for cycle %s, %d",
            len(created),
            cycle.payroll_cycle_id,
            year,
        )
        return created

    @staticmethod
    def plan_periods(cycle: PayrollCycle, year: int) -> list[tuple[int, date, date, date, str]]:
        """(period_number, cutoff_start, cutoff_end, pay_date, name) for a year."""
        rules = {**DEFAULT_CUTOFF_RULES, **(cycle.cutoff_rules or {})}
        adjustment = rules["pay_date_adjustment"]
        plan = []

        for month in range(1, 13):
            last_day = calendar.monthrange(year, month)[1]
            label = f"{calendar.month_name[month]} {year}"

            if CycleType(cycle.cycle_type) == CycleType.SEMI_MONTHLY:
                first_pay = _clamp_day(year, month, rules["first_pay_day"])
                next_year, next_month = _next_month(year, month)
                second_pay = _clamp_day(next_year, next_month, rules["second_pay_day"])
                plan.append(
                    (
                        month * 2 - 1,
                        date(year, month, 1),
                        date(year, month, 15),
                        adjust_for_weekend(first_pay, adjustment),
                        f"{label} - 1st Half",
                    )
                )
                plan.append(
                    (
                        month * 2,
                        date(year, month, 16),
                        date(year, month, last_day),
                        adjust_for_weekend(second_pay, adjustment),
                        f"{label} - 2nd Half",
                    )
                )
            else:
                pay_date = _clamp_day(year, month, rules["monthly_pay_day"])
                plan.append(
                    (
                        month,
                        date(year, month, 1),
                        date(year, month, last_day),
                        adjust_for_weekend(pay_date, adjustment),
                        label,
                    )
                )
        return plan

    async def create_correction_period(
        self,
        original_period_id: UUID,
        pay_date: date,
        cutoff_start: date | None = None,
        cutoff_end: date | None = None,
        actor_user_id: UUID | None = None,
    ) -> PayrollPeriod:
        """Create a Draft correction period for a closed period.

        Closed periods are never reopened; adjustments targeted at the
        correction period carry the corrections.
        """
        original = await self.require_period(original_period_id)
        if original.status != PeriodStatus.CLOSED.value:
            raise InvalidTransitionError(
                original.status,
                PeriodStatus.CLOSED,
                "Corrections require a closed original period",
            )

        period = PayrollPeriod(
            payroll_cycle_id=original.payroll_cycle_id,
            name=f"{original.name} - Correction",
            period_type="correction",
            year=original.year,
            period_number=original.period_number,
            cutoff_start=cutoff_start or original.cutoff_start,
            cutoff_end=cutoff_end or original.cutoff_end,
            pay_date=pay_date,
            status=PeriodStatus.DRAFT.value,
            original_period_id=original.payroll_period_id,
        )
        self.session.add(period)
        await self.session.flush()
        await self._record_audit(
            period.payroll_period_id,
            action="correction_created",
            actor_user_id=actor_user_id,
            details={"original_period_id": str(original.payroll_period_id)},
        )
        logger.info(
            "Created correction period %s for %s", period.payroll_period_id, original_period_id
        )
        return period

    async def update_period_totals(self, period: PayrollPeriod) -> PayrollPeriod:
        """Refresh employee count and money totals from successfully computed entries."""
        result = await self.session.execute(
            select(
                func.count(PayrollEntry.payroll_entry_id),
                func.coalesce(func.sum(PayrollEntry.gross_pay), 0),
                func.coalesce(func.sum(PayrollEntry.total_deductions), 0),
                func.coalesce(func.sum(PayrollEntry.net_pay), 0),
                func.coalesce(func.sum(PayrollEntry.total_employer_contributions), 0),
            )
            .where(PayrollEntry.payroll_period_id == period.payroll_period_id)
            .where(PayrollEntry.computation_error.is_(None))
        )
        count, gross, deductions, net, employer = result.one()
        period.employee_count = count
        period.total_gross = _to_money(gross)
        period.total_deductions = _to_money(deductions)
        period.total_net = _to_money(net)
        period.total_employer_contributions = _to_money(employer)
        await self.session.flush()
        return period

    async def get_current_open_period(self, cycle_id: UUID) -> PayrollPeriod | None:
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_cycle_id == cycle_id)
            .where(
                PayrollPeriod.status.in_(
                    [PeriodStatus.OPEN.value, PeriodStatus.PROCESSING.value]
                )
            )
            .order_by(PayrollPeriod.cutoff_start)
        )
        return result.scalars().first()

    async def find_period_for_date(self, cycle_id: UUID, on: date) -> PayrollPeriod | None:
        """Regular period whose cutoff contains a date."""
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_cycle_id == cycle_id)
            .where(PayrollPeriod.period_type == "regular")
            .where(PayrollPeriod.cutoff_start <= on)
            .where(PayrollPeriod.cutoff_end >= on)
        )
        return result.scalars().first()

    async def get_year_summary(self, cycle_id: UUID, year: int) -> dict[str, Any]:
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_cycle_id == cycle_id)
            .where(PayrollPeriod.year == year)
            .order_by(PayrollPeriod.cutoff_start, PayrollPeriod.period_type)
        )
        periods = list(result.scalars().all())
        by_status: dict[str, int] = {status.value: 0 for status in PeriodStatus}
        for period in periods:
            by_status[period.status] = by_status.get(period.status, 0) + 1
        return {
            "year": year,
            "period_count": len(periods),
            "by_status": by_status,
            "total_gross": sum((p.total_gross for p in periods), Decimal("0")),
            "total_net": sum((p.total_net for p in periods), Decimal("0")),
        }

    async def _find_overlap(
        self, cycle_id: UUID, cutoff_start: date, cutoff_end: date
    ) -> PayrollPeriod | None:
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_cycle_id == cycle_id)
            .where(PayrollPeriod.period_type == "regular")
            .where(PayrollPeriod.cutoff_start <= cutoff_end)
            .where(PayrollPeriod.cutoff_end >= cutoff_start)
        )
        return result.scalars().first()

    async def _record_audit(
        self,
        period_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict | None = None,
    ) -> None:
        """Record an audit event for a period action."""
        event = AuditEvent(
            actor_user_id=actor_user_id,
            entity_type="payroll_period",
            entity_id=period_id,
            action=action,
            after_json=details,
        )
        self.session.add(event)


def _to_money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
