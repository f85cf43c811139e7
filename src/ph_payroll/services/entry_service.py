"""Payroll entry review workflow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.attendance.dtr_service import DtrCalculationService
from ph_payroll.models import AuditEvent, PayrollEntry, PayrollPeriod
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    PeriodStatus,
)

logger = logging.getLogger(__name__)


class PayrollEntryService:
    """Service for payroll entry status transitions.

    Approving an entry locks the employee's DTRs in the period cutoff so
    attendance can no longer change under an approved payslip.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_entry(self, entry_id: UUID, load_lines: bool = False) -> PayrollEntry | None:
        options = []
        if load_lines:
            options.extend(
                [selectinload(PayrollEntry.earnings), selectinload(PayrollEntry.deductions)]
            )
        result = await self.session.execute(
            select(PayrollEntry).where(PayrollEntry.payroll_entry_id == entry_id).options(*options)
        )
        return result.scalar_one_or_none()

    async def require_entry(self, entry_id: UUID, load_lines: bool = False) -> PayrollEntry:
        entry = await self.get_entry(entry_id, load_lines)
        if entry is None:
            raise EntityNotFoundError("Payroll entry", entry_id)
        return entry

    async def list_entries(self, period_id: UUID) -> list[PayrollEntry]:
        result = await self.session.execute(
            select(PayrollEntry)
            .where(PayrollEntry.payroll_period_id == period_id)
            .order_by(PayrollEntry.employee_number)
        )
        return list(result.scalars().all())

    async def transition_entry(
        self,
        entry_id: UUID,
        to_status: EntryStatus | str,
        actor_user_id: UUID | None = None,
        remarks: str | None = None,
    ) -> PayrollEntry:
        entry = await self.require_entry(entry_id)
        return await self.transition_status(entry, to_status, actor_user_id, remarks)

    async def transition_status(
        self,
        entry: PayrollEntry,
        to_status: EntryStatus | str,
        actor_user_id: UUID | None = None,
        remarks: str | None = None,
    ) -> PayrollEntry:
        """Transition an entry to a new status.

        Raises InvalidTransitionError if the transition is not allowed or
        the period is closed.
        """
        to_status = EntryStatus(to_status)
        from_status = entry.status

        period = await self.session.get(PayrollPeriod, entry.payroll_period_id)
        if period is None:
            raise EntityNotFoundError("Payroll period", entry.payroll_period_id)
        if period.status == PeriodStatus.CLOSED.value:
            raise InvalidTransitionError(from_status, to_status, "Payroll period is closed")

        errors = EntryStateMachine.validate_entry_for_transition(entry, to_status)
        if errors:
            raise InvalidTransitionError(from_status, to_status, "; ".join(errors))

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {"status": to_status.value}
        if to_status == EntryStatus.REVIEWED:
            values["reviewed_at"] = now
            values["reviewed_by"] = actor_user_id
        elif to_status == EntryStatus.APPROVED:
            values["approved_at"] = now
            values["approved_by"] = actor_user_id
        elif to_status == EntryStatus.COMPUTED and from_status == EntryStatus.REVIEWED.value:
            values["reviewed_at"] = None
            values["reviewed_by"] = None
        if remarks is not None:
            values["remarks"] = remarks

        result = await self.session.execute(
            update(PayrollEntry)
            .where(
                PayrollEntry.payroll_entry_id == entry.payroll_entry_id,
                PayrollEntry.status == from_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(from_status, to_status, "Status changed concurrently")

        for key, value in values.items():
            setattr(entry, key, value)

        locked = 0
        if to_status == EntryStatus.APPROVED:
            locked = await DtrCalculationService(self.session).lock_records(
                entry.employee_id,
                period.cutoff_start,
                period.cutoff_end,
                entry.payroll_entry_id,
            )

        await self._record_audit(
            entry.payroll_entry_id,
            action=f"status_change:{from_status}:{to_status.value}",
            actor_user_id=actor_user_id,
            details={"remarks": remarks, "locked_dtr_count": locked} if locked or remarks else None,
        )
        await self.session.flush()
        logger.info(
            "Payroll entry %s transitioned %s -> %s",
            entry.payroll_entry_id,
            from_status,
            to_status.value,
        )
        return entry

    async def _record_audit(
        self,
        entry_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict | None = None,
    ) -> None:
        event = AuditEvent(
            actor_user_id=actor_user_id,
            entity_type="payroll_entry",
            entity_id=entry_id,
            action=action,
            after_json=details,
        )
        self.session.add(event)
