"""Payroll entry computation and batch period computation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ph_payroll.attendance.aggregation import DtrAggregationService
from ph_payroll.attendance.summary import DtrSummary
from ph_payroll.calculators.brackets import BracketTableError
from ph_payroll.calculators.contributions import (
    ContributionService,
    ContributionTableNotFoundError,
)
from ph_payroll.calculators.engine import EntryComputation, PayrollEntryCalculator
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import PayrollRateCalculator
from ph_payroll.calculators.types import CompensationSnapshot, CycleType, LedgerLine, PayType
from ph_payroll.config import Settings, get_settings
from ph_payroll.database import acquire_advisory_lock, release_advisory_lock
from ph_payroll.models import (
    Adjustment,
    AuditEvent,
    Employee,
    EmployeeCompensation,
    Loan,
    PayrollCycle,
    PayrollDeduction,
    PayrollEarning,
    PayrollEntry,
    PayrollPeriod,
)
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.ledger_service import AdjustmentService, LoanService
from ph_payroll.services.period_service import PayrollPeriodService
from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)


class ComputationError(Exception):
    """Raised when an entry cannot be computed because of configuration."""

    def __init__(self, employee_id: UUID, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Cannot compute payroll for employee {employee_id}: {reason}")


class PeriodLockedError(Exception):
    """Raised when another computation run holds the period lock."""

    def __init__(self, period_id: UUID):
        self.period_id = period_id
        super().__init__(f"Payroll period {period_id} is being computed by another run")


@dataclass
class PeriodComputationResult:
    """Outcome of computing every employee in a period."""

    period_id: UUID
    success_count: int = 0
    skipped_count: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures


class PayrollComputationService:
    """Computes one employee's entry for a period.

    Ledger applications are recorded in the caller's transaction; a failed
    computation rolls them back together with the entry.
    """

    def __init__(
        self,
        session: AsyncSession,
        contributions: ContributionService | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.contributions = contributions or ContributionService(session)
        self.calculator = PayrollEntryCalculator(
            self.contributions,
            PayrollRateCalculator(
                self.settings.working_days_per_month, self.settings.working_hours_per_day
            ),
            engine_version=self.settings.engine_version,
        )
        self.adjustments = AdjustmentService(session)
        self.loans = LoanService(session)
        self.aggregation = DtrAggregationService(session)

    async def get_effective_compensation(
        self, employee_id: UUID, as_of: date
    ) -> EmployeeCompensation | None:
        result = await self.session.execute(
            select(EmployeeCompensation)
            .where(EmployeeCompensation.employee_id == employee_id)
            .where(EmployeeCompensation.effective_from <= as_of)
            .where(
                or_(
                    EmployeeCompensation.effective_to.is_(None),
                    EmployeeCompensation.effective_to >= as_of,
                )
            )
            .order_by(EmployeeCompensation.effective_from.desc())
        )
        return result.scalars().first()

    async def compute_for_employee(
        self,
        period: PayrollPeriod,
        employee: Employee,
        actor_user_id: UUID | None = None,
    ) -> PayrollEntry:
        """Compute (or recompute) and persist an employee's entry.

        Raises:
            InvalidTransitionError: Period not computable or entry approved
            ComputationError: Missing compensation or contribution tables
        """
        if not PeriodStateMachine.can_compute(period.status):
            raise InvalidTransitionError(
                period.status, PeriodStatus.PROCESSING, "Period is not open for computation"
            )

        entry = await self._get_entry(period.payroll_period_id, employee.employee_id)
        if entry is not None and not EntryStateMachine.can_recompute(entry.status):
            raise InvalidTransitionError(
                entry.status, EntryStatus.COMPUTED, "Approved entries cannot be recomputed"
            )
        if entry is None:
            entry = PayrollEntry(
                payroll_period_id=period.payroll_period_id,
                employee_id=employee.employee_id,
                status=EntryStatus.DRAFT.value,
            )
            self.session.add(entry)

        entry.employee_number = employee.employee_number
        entry.employee_name = employee.full_name
        entry.department_name = employee.department_name
        entry.position_name = employee.position_name
        await self.session.flush()

        cycle_type = await self._get_cycle_type(period)
        compensation = await self._load_compensation(employee.employee_id, period.cutoff_end)
        summary = await self.aggregation.summarize(
            employee.employee_id, period.cutoff_start, period.cutoff_end
        )
        ledger_lines = await self.collect_ledger_lines(
            period, cycle_type, employee.employee_id, entry=entry, actor_user_id=actor_user_id
        )
        computation = await self._compute(
            employee.employee_id, compensation, summary, period, cycle_type, ledger_lines
        )

        await self.session.execute(
            delete(PayrollEarning).where(PayrollEarning.payroll_entry_id == entry.payroll_entry_id)
        )
        await self.session.execute(
            delete(PayrollDeduction).where(
                PayrollDeduction.payroll_entry_id == entry.payroll_entry_id
            )
        )
        self.session.add_all(
            LineItemBuilder.to_earning_rows(entry.payroll_entry_id, computation.earnings.lines)
        )
        self.session.add_all(
            LineItemBuilder.to_deduction_rows(entry.payroll_entry_id, computation.deductions.lines)
        )

        from_status = entry.status
        computation.apply_to(entry)
        entry.status = EntryStatus.COMPUTED.value
        entry.computation_error = None
        entry.computed_at = datetime.now(timezone.utc)
        entry.computed_by = actor_user_id
        entry.engine_version = self.calculator.engine_version
        if from_status == EntryStatus.REVIEWED.value:
            entry.reviewed_at = None
            entry.reviewed_by = None

        self.session.add(
            AuditEvent(
                actor_user_id=actor_user_id,
                entity_type="payroll_entry",
                entity_id=entry.payroll_entry_id,
                action=f"computed:{from_status}",
                after_json={
                    "gross_pay": str(entry.gross_pay),
                    "net_pay": str(entry.net_pay),
                    "inputs_fingerprint": entry.inputs_fingerprint,
                },
            )
        )
        await self.session.flush()
        logger.info(
            "Computed payroll entry %s for employee %s: gross %s, net %s",
            entry.payroll_entry_id,
            employee.employee_id,
            entry.gross_pay,
            entry.net_pay,
        )
        return entry

    async def recompute_entry(
        self, entry_id: UUID, actor_user_id: UUID | None = None
    ) -> PayrollEntry:
        entry = await self.session.get(PayrollEntry, entry_id)
        if entry is None:
            raise EntityNotFoundError("Payroll entry", entry_id)
        period = await self.session.get(PayrollPeriod, entry.payroll_period_id)
        employee = await self.session.get(Employee, entry.employee_id)
        if period is None or employee is None:
            raise EntityNotFoundError("Payroll entry", entry_id)
        return await self.compute_for_employee(period, employee, actor_user_id)

    async def preview(self, period: PayrollPeriod, employee: Employee) -> EntryComputation:
        """Run the computation without persisting anything or touching the ledgers."""
        cycle_type = await self._get_cycle_type(period)
        compensation = await self._load_compensation(employee.employee_id, period.cutoff_end)
        summary = await self.aggregation.summarize(
            employee.employee_id, period.cutoff_start, period.cutoff_end
        )
        ledger_lines = await self.collect_ledger_lines(
            period, cycle_type, employee.employee_id, record=False
        )
        return await self._compute(
            employee.employee_id, compensation, summary, period, cycle_type, ledger_lines
        )

    async def collect_ledger_lines(
        self,
        period: PayrollPeriod,
        cycle_type: CycleType,
        employee_id: UUID,
        entry: PayrollEntry | None = None,
        record: bool = True,
        actor_user_id: UUID | None = None,
    ) -> list[LedgerLine]:
        """Adjustment and loan lines for the period.

        Items already applied to this period are re-emitted from their
        ledger rows. Items newly due are applied once (when record is set)
        and emitted with the recorded amount. Correction periods only take
        adjustments targeted at them.
        """
        lines: list[LedgerLine] = []

        for adjustment, application in await self.adjustments.get_applied_for_period(
            employee_id, period.payroll_period_id
        ):
            lines.append(_adjustment_line(adjustment, application.amount, already_applied=True))

        for adjustment in await self.adjustments.get_applicable_adjustments(
            employee_id, period, cycle_type
        ):
            if period.is_correction and adjustment.is_recurring:
                continue
            if record:
                application = await self.adjustments.record_application(
                    adjustment, period, entry, actor_user_id=actor_user_id
                )
                amount = application.amount
            else:
                amount = self.adjustments.get_amount_for_period(adjustment)
            lines.append(_adjustment_line(adjustment, amount, already_applied=record))

        if period.is_correction:
            return lines

        for loan, payment in await self.loans.get_paid_for_period(
            employee_id, period.payroll_period_id
        ):
            lines.append(_loan_line(loan, payment.amount, already_applied=True))

        for loan in await self.loans.get_deductible_loans(employee_id, period, cycle_type):
            if record:
                payment = await self.loans.record_payment(
                    loan, period, entry, actor_user_id=actor_user_id
                )
                amount = payment.amount
            else:
                amount = self.loans.get_amount_for_period(loan)
            lines.append(_loan_line(loan, amount, already_applied=record))

        return lines

    async def _compute(
        self,
        employee_id: UUID,
        compensation: CompensationSnapshot,
        summary: DtrSummary,
        period: PayrollPeriod,
        cycle_type: CycleType,
        ledger_lines: list[LedgerLine],
    ) -> EntryComputation:
        try:
            return await self.calculator.compute(
                employee_id,
                compensation,
                summary,
                cycle_type,
                period.period_number,
                period.cutoff_end,
                ledger_lines,
                is_correction=period.is_correction,
            )
        except (ContributionTableNotFoundError, BracketTableError) as e:
            raise ComputationError(employee_id, str(e)) from e

    async def _load_compensation(self, employee_id: UUID, as_of: date) -> CompensationSnapshot:
        row = await self.get_effective_compensation(employee_id, as_of)
        if row is None:
            raise ComputationError(employee_id, f"No compensation effective on {as_of}")
        return CompensationSnapshot(
            basic_pay=row.basic_pay,
            pay_type=PayType(row.pay_type),
            effective_from=row.effective_from,
        )

    async def _get_cycle_type(self, period: PayrollPeriod) -> CycleType:
        cycle = await self.session.get(PayrollCycle, period.payroll_cycle_id)
        if cycle is None:
            raise EntityNotFoundError("Payroll cycle", period.payroll_cycle_id)
        return CycleType(cycle.cycle_type)

    async def _get_entry(self, period_id: UUID, employee_id: UUID) -> PayrollEntry | None:
        result = await self.session.execute(
            select(PayrollEntry)
            .where(PayrollEntry.payroll_period_id == period_id)
            .where(PayrollEntry.employee_id == employee_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


def _adjustment_line(adjustment: Adjustment, amount: Decimal, already_applied: bool) -> LedgerLine:
    return LedgerLine(
        source="adjustment",
        source_id=adjustment.adjustment_id,
        category=adjustment.category,
        code=adjustment.code,
        description=adjustment.name,
        amount=amount,
        adjustment_type=adjustment.adjustment_type,
        is_taxable=adjustment.is_taxable,
        already_applied=already_applied,
    )


def _loan_line(loan: Loan, amount: Decimal, already_applied: bool) -> LedgerLine:
    return LedgerLine(
        source="loan",
        source_id=loan.loan_id,
        category="deduction",
        code=loan.loan_type.upper(),
        description=LoanService.describe(loan),
        amount=amount,
        adjustment_type=loan.loan_type,
        is_taxable=False,
        already_applied=already_applied,
    )


class PayrollBatchService:
    """Computes every employee in a period.

    Each employee runs in its own session and transaction, bounded by
    settings.max_concurrency. A failure is recorded on a Draft entry and
    never aborts the run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def compute_period(
        self,
        period_id: UUID,
        actor_user_id: UUID | None = None,
        force_recompute: bool = False,
    ) -> PeriodComputationResult:
        """Compute all employees in a period.

        The period moves Open → Processing and is left there; closing is a
        separate, explicit transition.
        """
        result = PeriodComputationResult(period_id=period_id)
        lock_key = f"payroll_period:{period_id}"

        async with self.session_factory() as session:
            if not await acquire_advisory_lock(session, lock_key):
                raise PeriodLockedError(period_id)
            try:
                periods = PayrollPeriodService(session)
                period = await periods.require_period(period_id)
                if not PeriodStateMachine.can_compute(period.status):
                    raise InvalidTransitionError(
                        period.status,
                        PeriodStatus.PROCESSING,
                        "Period is not open for computation",
                    )
                if period.status == PeriodStatus.OPEN.value:
                    await periods.transition_status(
                        period, PeriodStatus.PROCESSING, actor_user_id
                    )

                employee_ids = await self._get_employee_ids(session, period)
                existing = await self._get_existing_statuses(session, period_id)
                contributions = await ContributionService(session).preload()
                await session.commit()

                to_compute = []
                for employee_id in employee_ids:
                    status = existing.get(employee_id)
                    computed = status is not None and status != EntryStatus.DRAFT.value
                    if computed and not (
                        force_recompute and EntryStateMachine.can_recompute(status)
                    ):
                        result.skipped_count += 1
                        continue
                    to_compute.append(employee_id)

                logger.info(
                    "Computing payroll period %s: %d employee(s), %d skipped",
                    period_id,
                    len(to_compute),
                    result.skipped_count,
                )

                semaphore = asyncio.Semaphore(self.settings.max_concurrency)

                async def worker(employee_id: UUID) -> None:
                    async with semaphore:
                        error = await self._compute_one(
                            period_id, employee_id, contributions, actor_user_id
                        )
                    if error is None:
                        result.success_count += 1
                    else:
                        result.failures.append({"employee_id": employee_id, "reason": error})

                await asyncio.gather(*(worker(employee_id) for employee_id in to_compute))

                period = await periods.require_period(period_id)
                await periods.update_period_totals(period)
                await session.commit()
            finally:
                await release_advisory_lock(session, lock_key)

        logger.info(
            "Computed payroll period %s: %d succeeded, %d skipped, %d failed",
            period_id,
            result.success_count,
            result.skipped_count,
            result.failure_count,
        )
        return result

    async def _compute_one(
        self,
        period_id: UUID,
        employee_id: UUID,
        contributions: ContributionService,
        actor_user_id: UUID | None,
    ) -> str | None:
        """Compute one employee in its own transaction; returns the failure reason."""
        async with self.session_factory() as session:
            try:
                period = await session.get(PayrollPeriod, period_id)
                employee = await session.get(Employee, employee_id)
                if period is None or employee is None:
                    raise EntityNotFoundError("Employee", employee_id)
                service = PayrollComputationService(session, contributions, self.settings)
                await service.compute_for_employee(period, employee, actor_user_id)
                await session.commit()
                return None
            except (ComputationError, InvalidTransitionError, EntityNotFoundError) as e:
                await session.rollback()
                reason = str(e)
                logger.warning("Payroll computation failed for employee %s: %s", employee_id, e)
            except Exception as e:
                await session.rollback()
                reason = f"Unexpected error: {e}"
                logger.exception("Unexpected payroll computation error for employee %s", employee_id)

        async with self.session_factory() as session:
            await self._record_failure(session, period_id, employee_id, reason)
            await session.commit()
        return reason

    @staticmethod
    async def _record_failure(
        session: AsyncSession, period_id: UUID, employee_id: UUID, reason: str
    ) -> None:
        """Store the failure on a Draft entry with no line items."""
        result = await session.execute(
            select(PayrollEntry)
            .where(PayrollEntry.payroll_period_id == period_id)
            .where(PayrollEntry.employee_id == employee_id)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            employee = await session.get(Employee, employee_id)
            entry = PayrollEntry(
                payroll_period_id=period_id,
                employee_id=employee_id,
                employee_number=employee.employee_number if employee else None,
                employee_name=employee.full_name if employee else None,
            )
            session.add(entry)
        elif entry.status == EntryStatus.APPROVED.value:
            return
        else:
            await session.execute(
                delete(PayrollEarning).where(
                    PayrollEarning.payroll_entry_id == entry.payroll_entry_id
                )
            )
            await session.execute(
                delete(PayrollDeduction).where(
                    PayrollDeduction.payroll_entry_id == entry.payroll_entry_id
                )
            )
        entry.status = EntryStatus.DRAFT.value
        entry.computation_error = reason
        await session.flush()

    @staticmethod
    async def _get_employee_ids(session: AsyncSession, period: PayrollPeriod) -> list[UUID]:
        """Active employees on the period's cycle; a correction covers the original's employees."""
        if period.is_correction:
            result = await session.execute(
                select(PayrollEntry.employee_id)
                .where(PayrollEntry.payroll_period_id == period.original_period_id)
                .order_by(PayrollEntry.employee_number)
            )
        else:
            result = await session.execute(
                select(Employee.employee_id)
                .where(Employee.payroll_cycle_id == period.payroll_cycle_id)
                .where(Employee.status == "active")
                .order_by(Employee.employee_number)
            )
        return list(result.scalars().all())

    @staticmethod
    async def _get_existing_statuses(session: AsyncSession, period_id: UUID) -> dict[UUID, str]:
        result = await session.execute(
            select(PayrollEntry.employee_id, PayrollEntry.status).where(
                PayrollEntry.payroll_period_id == period_id
            )
        )
        return {row[0]: row[1] for row in result.all()}
