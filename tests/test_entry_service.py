"""Tests for the payroll entry review workflow."""

from datetime import date, datetime
from uuid import uuid4

import pytest
from sqlalchemy import select

from ph_payroll.attendance.dtr_service import DtrCalculationService
from ph_payroll.models import DailyTimeRecord, PayrollEntry
from ph_payroll.services.entry_service import PayrollEntryService
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.state_machine import InvalidTransitionError


@pytest.fixture
def service(session) -> PayrollEntryService:
    return PayrollEntryService(session)


@pytest.fixture
async def computed_entry(session, open_period, employee) -> PayrollEntry:
    entry = PayrollEntry(
        payroll_period_id=open_period.payroll_period_id,
        employee_id=employee.employee_id,
        employee_number=employee.employee_number,
        employee_name=employee.full_name,
        status="computed",
    )
    session.add(entry)
    await session.commit()
    return entry


class TestEntryWorkflow:
    """Review and approval."""

    async def test_review_then_approve(self, service, computed_entry):
        reviewer = uuid4()
        approver = uuid4()

        await service.transition_status(computed_entry, "reviewed", actor_user_id=reviewer)
        assert computed_entry.reviewed_by == reviewer
        assert computed_entry.reviewed_at is not None

        await service.transition_status(computed_entry, "approved", actor_user_id=approver)
        assert computed_entry.status == "approved"
        assert computed_entry.approved_by == approver

    async def test_cannot_skip_review(self, service, computed_entry):
        with pytest.raises(InvalidTransitionError):
            await service.transition_status(computed_entry, "approved")
        assert computed_entry.status == "computed"

    async def test_send_back_clears_review(self, service, computed_entry):
        await service.transition_status(computed_entry, "reviewed", actor_user_id=uuid4())
        await service.transition_status(computed_entry, "computed", remarks="Check overtime")

        assert computed_entry.status == "computed"
        assert computed_entry.reviewed_at is None
        assert computed_entry.reviewed_by is None
        assert computed_entry.remarks == "Check overtime"

    async def test_computation_error_blocks_review(self, service, session, computed_entry):
        computed_entry.computation_error = "No compensation effective on 2025-01-31"
        await session.flush()

        with pytest.raises(InvalidTransitionError, match="computation error"):
            await service.transition_status(computed_entry, "reviewed")

    async def test_closed_period_blocks_transitions(self, service, session, open_period, computed_entry):
        open_period.status = "closed"
        await session.flush()

        with pytest.raises(InvalidTransitionError, match="Payroll period is closed"):
            await service.transition_status(computed_entry, "reviewed")

    async def test_approval_locks_attendance(self, service, session, settings, employee, computed_entry):
        dtr_service = DtrCalculationService(session, settings)
        await dtr_service.record_punch(employee.employee_id, datetime(2025, 1, 6, 9), "in")
        await dtr_service.record_punch(employee.employee_id, datetime(2025, 1, 6, 18), "out")
        dtr = await dtr_service.calculate_for_date(employee.employee_id, date(2025, 1, 6))

        await service.transition_entry(computed_entry.payroll_entry_id, "reviewed")
        await service.transition_entry(computed_entry.payroll_entry_id, "approved")

        assert dtr.is_locked
        assert dtr.locked_by_entry_id == computed_entry.payroll_entry_id

        stored = await session.execute(
            select(DailyTimeRecord.locked_by_entry_id).where(
                DailyTimeRecord.daily_time_record_id == dtr.daily_time_record_id
            )
        )
        assert stored.scalar_one() == computed_entry.payroll_entry_id

        recomputed = await dtr_service.calculate_for_date(employee.employee_id, date(2025, 1, 6))
        assert recomputed.locked_at == dtr.locked_at


class TestEntryLookup:
    """Loading entries."""

    async def test_require_missing_entry(self, service):
        with pytest.raises(EntityNotFoundError):
            await service.require_entry(uuid4())

    async def test_list_entries(self, service, open_period, computed_entry):
        entries = await service.list_entries(open_period.payroll_period_id)
        assert [e.payroll_entry_id for e in entries] == [computed_entry.payroll_entry_id]
