"""Adjustment and loan ledgers with exactly-once application per period."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators.types import ZERO, CycleType
from ph_payroll.models import (
    Adjustment,
    AdjustmentApplication,
    AuditEvent,
    Loan,
    LoanPayment,
    PayrollEntry,
    PayrollPeriod,
)
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.state_machine import (
    EntryStateMachine,
    LedgerStateMachine,
    LedgerStatus,
    PeriodStateMachine,
)

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when a ledger operation violates an invariant."""


class DuplicateApplicationError(LedgerError):
    """Raised when an item is applied twice to the same payroll period."""

    def __init__(self, item_id: UUID, period_id: UUID):
        self.item_id = item_id
        self.period_id = period_id
        super().__init__(f"Ledger item {item_id} already applied to payroll period {period_id}")


@dataclass
class ReconciliationResult:
    """Ledger vs. parent row totals for one adjustment or loan."""

    item_id: UUID
    ledger_total: Decimal
    total_applied: Decimal
    remaining_balance: Decimal | None
    total_amount: Decimal | None
    errors: list[str] = field(default_factory=list)

    @property
    def is_balanced(self) -> bool:
        return not self.errors


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _interval_matches(interval: str, period: PayrollPeriod, cycle_type: CycleType | str) -> bool:
    if CycleType(cycle_type) == CycleType.MONTHLY or interval == "every_period":
        return True
    if interval == "first_cutoff":
        return period.period_number % 2 == 1
    if interval == "second_cutoff":
        return period.period_number % 2 == 0
    return False


class _LedgerService:
    """Shared status transitions and audit for ledger items."""

    entity_type = ""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_period(self, period_id: UUID) -> PayrollPeriod:
        period = await self.session.get(PayrollPeriod, period_id)
        if period is None:
            raise EntityNotFoundError("Payroll period", period_id)
        return period

    async def _get_entry_id(self, period_id: UUID, employee_id: UUID) -> UUID | None:
        result = await self.session.execute(
            select(PayrollEntry.payroll_entry_id)
            .where(PayrollEntry.payroll_period_id == period_id)
            .where(PayrollEntry.employee_id == employee_id)
        )
        return result.scalar_one_or_none()

    async def _change_status(
        self,
        item: Adjustment | Loan,
        item_id: UUID,
        to_status: LedgerStatus,
        actor_user_id: UUID | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        from_status = item.status
        LedgerStateMachine.validate_transition(from_status, to_status)
        if metadata:
            item.metadata_json = {**(item.metadata_json or {}), **metadata}
        item.status = to_status.value
        await self._record_audit(
            item_id,
            action=f"status_change:{from_status}:{to_status.value}",
            actor_user_id=actor_user_id,
            details=metadata,
        )
        await self.session.flush()
        logger.info("%s %s: %s -> %s", self.entity_type, item_id, from_status, to_status.value)

    async def _record_audit(
        self,
        entity_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict | None = None,
    ) -> None:
        """Record an audit event for a ledger action."""
        event = AuditEvent(
            actor_user_id=actor_user_id,
            entity_type=self.entity_type,
            entity_id=entity_id,
            action=action,
            after_json=details,
        )
        self.session.add(event)


class AdjustmentService(_LedgerService):
    """Adjustment ledger.

    Every application is one AdjustmentApplication row; UNIQUE
    (adjustment_id, payroll_period_id) plus a pre-check inside the row lock
    give at-most-once application per period.
    """

    entity_type = "adjustment"

    async def get_adjustment(self, adjustment_id: UUID, for_update: bool = False) -> Adjustment:
        query = select(Adjustment).where(Adjustment.adjustment_id == adjustment_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        adjustment = result.scalar_one_or_none()
        if adjustment is None:
            raise EntityNotFoundError("Adjustment", adjustment_id)
        return adjustment

    @staticmethod
    def is_applicable_for_period(
        adjustment: Adjustment,
        period: PayrollPeriod,
        cycle_type: CycleType | str = CycleType.SEMI_MONTHLY,
        already_applied: bool = False,
    ) -> bool:
        """Whether the adjustment is due in this period.

        already_applied is the idempotency guard: a (item, period) pair with a
        ledger row is never due again.
        """
        if already_applied or adjustment.status != LedgerStatus.ACTIVE.value:
            return False
        if adjustment.has_balance_tracking and (adjustment.remaining_balance or ZERO) <= 0:
            return False

        if not adjustment.is_recurring:
            return adjustment.target_payroll_period_id == period.payroll_period_id

        if adjustment.recurring_start_date and adjustment.recurring_start_date > period.cutoff_end:
            return False
        if adjustment.recurring_end_date and adjustment.recurring_end_date < period.cutoff_start:
            return False
        if adjustment.remaining_occurrences is not None and adjustment.remaining_occurrences <= 0:
            return False
        return _interval_matches(adjustment.recurring_interval, period, cycle_type)

    @staticmethod
    def get_amount_for_period(adjustment: Adjustment) -> Decimal:
        if adjustment.has_balance_tracking and adjustment.remaining_balance is not None:
            return min(adjustment.amount, adjustment.remaining_balance)
        return adjustment.amount

    async def get_application(
        self, adjustment_id: UUID, period_id: UUID
    ) -> AdjustmentApplication | None:
        result = await self.session.execute(
            select(AdjustmentApplication)
            .where(AdjustmentApplication.adjustment_id == adjustment_id)
            .where(AdjustmentApplication.payroll_period_id == period_id)
        )
        return result.scalar_one_or_none()

    async def get_applied_for_period(
        self, employee_id: UUID, period_id: UUID
    ) -> list[tuple[Adjustment, AdjustmentApplication]]:
        """Adjustments of an employee already applied to a period, with their ledger rows."""
        result = await self.session.execute(
            select(Adjustment, AdjustmentApplication)
            .join(
                AdjustmentApplication,
                AdjustmentApplication.adjustment_id == Adjustment.adjustment_id,
            )
            .where(Adjustment.employee_id == employee_id)
            .where(AdjustmentApplication.payroll_period_id == period_id)
            .order_by(Adjustment.created_at, Adjustment.code)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_applicable_adjustments(
        self,
        employee_id: UUID,
        period: PayrollPeriod,
        cycle_type: CycleType | str,
    ) -> list[Adjustment]:
        """Active adjustments of an employee due in the period and not yet applied."""
        applied = select(AdjustmentApplication.adjustment_id).where(
            AdjustmentApplication.payroll_period_id == period.payroll_period_id
        )
        result = await self.session.execute(
            select(Adjustment)
            .where(Adjustment.employee_id == employee_id)
            .where(Adjustment.status == LedgerStatus.ACTIVE.value)
            .where(Adjustment.adjustment_id.not_in(applied))
            .order_by(Adjustment.created_at, Adjustment.code)
        )
        return [
            a
            for a in result.scalars().all()
            if self.is_applicable_for_period(a, period, cycle_type)
        ]

    async def record_application(
        self,
        adjustment: Adjustment,
        period: PayrollPeriod,
        entry: PayrollEntry | None = None,
        amount: Decimal | None = None,
        actor_user_id: UUID | None = None,
    ) -> AdjustmentApplication:
        """Append a ledger row and update the adjustment's balances.

        Raises:
            DuplicateApplicationError: Already applied to this period
            LedgerError: The adjustment is not active or has nothing left
        """
        adjustment_id = adjustment.adjustment_id
        period_id = period.payroll_period_id
        adjustment = await self.get_adjustment(adjustment_id, for_update=True)

        if await self.get_application(adjustment_id, period_id) is not None:
            raise DuplicateApplicationError(adjustment_id, period_id)
        if adjustment.status != LedgerStatus.ACTIVE.value:
            raise LedgerError(f"Adjustment {adjustment_id} is {adjustment.status}")

        due = self.get_amount_for_period(adjustment) if amount is None else amount
        balance_before: Decimal | None = None
        balance_after: Decimal | None = None
        if adjustment.has_balance_tracking:
            balance_before = adjustment.remaining_balance or ZERO
            due = min(due, balance_before)
            if due <= 0:
                raise LedgerError(f"Adjustment {adjustment_id} has no remaining balance")
            balance_after = max(balance_before - due, ZERO)

        application = AdjustmentApplication(
            adjustment_id=adjustment_id,
            payroll_period_id=period_id,
            payroll_entry_id=entry.payroll_entry_id if entry is not None else None,
            amount=due,
            balance_before=balance_before,
            balance_after=balance_after,
            applied_at=_now(),
            applied_by=actor_user_id,
        )
        self.session.add(application)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateApplicationError(adjustment_id, period_id) from e

        adjustment.total_applied = (adjustment.total_applied or ZERO) + due
        completed = False
        if adjustment.has_balance_tracking:
            adjustment.remaining_balance = balance_after
            completed = balance_after == 0
        if adjustment.remaining_occurrences is not None:
            adjustment.remaining_occurrences -= 1
            completed = completed or adjustment.remaining_occurrences <= 0

        if completed:
            adjustment.status = LedgerStatus.COMPLETED.value
            adjustment.metadata_json = {
                **(adjustment.metadata_json or {}),
                "completed_at": _now().isoformat(),
            }

        await self._record_audit(
            adjustment_id,
            action="applied",
            actor_user_id=actor_user_id,
            details={
                "payroll_period_id": str(period_id),
                "amount": str(due),
                "balance_after": str(balance_after) if balance_after is not None else None,
            },
        )
        await self.session.flush()
        logger.info(
            "Applied adjustment %s to period %s: %s%s",
            adjustment_id,
            period_id,
            due,
            " (completed)" if completed else "",
        )
        return application

    async def apply_adjustment(
        self,
        adjustment_id: UUID,
        period_id: UUID,
        actor_user_id: UUID | None = None,
    ) -> AdjustmentApplication:
        """Manually apply an adjustment to a period."""
        period = await self._get_period(period_id)
        adjustment = await self.get_adjustment(adjustment_id)
        if not PeriodStateMachine.is_editable(period.status):
            raise LedgerError(f"Payroll period {period_id} is closed")

        entry_id = await self._get_entry_id(period_id, adjustment.employee_id)
        entry = await self.session.get(PayrollEntry, entry_id) if entry_id else None
        if entry is not None and not EntryStateMachine.can_recompute(entry.status):
            raise LedgerError(
                f"Payroll entry {entry.payroll_entry_id} is {entry.status}; "
                "its totals can no longer change"
            )
        return await self.record_application(adjustment, period, entry, actor_user_id=actor_user_id)

    async def put_on_hold(
        self, adjustment_id: UUID, reason: str | None = None, actor_user_id: UUID | None = None
    ) -> Adjustment:
        adjustment = await self.get_adjustment(adjustment_id, for_update=True)
        await self._change_status(
            adjustment,
            adjustment_id,
            LedgerStatus.ON_HOLD,
            actor_user_id,
            {"held_at": _now().isoformat(), "hold_reason": reason},
        )
        return adjustment

    async def resume(self, adjustment_id: UUID, actor_user_id: UUID | None = None) -> Adjustment:
        adjustment = await self.get_adjustment(adjustment_id, for_update=True)
        await self._change_status(
            adjustment,
            adjustment_id,
            LedgerStatus.ACTIVE,
            actor_user_id,
            {"resumed_at": _now().isoformat()},
        )
        return adjustment

    async def cancel(
        self, adjustment_id: UUID, reason: str | None = None, actor_user_id: UUID | None = None
    ) -> Adjustment:
        adjustment = await self.get_adjustment(adjustment_id, for_update=True)
        await self._change_status(
            adjustment,
            adjustment_id,
            LedgerStatus.CANCELLED,
            actor_user_id,
            {"cancelled_at": _now().isoformat(), "cancel_reason": reason},
        )
        return adjustment

    async def mark_completed(
        self, adjustment_id: UUID, actor_user_id: UUID | None = None
    ) -> Adjustment:
        adjustment = await self.get_adjustment(adjustment_id, for_update=True)
        await self._change_status(
            adjustment,
            adjustment_id,
            LedgerStatus.COMPLETED,
            actor_user_id,
            {"completed_at": _now().isoformat()},
        )
        return adjustment

    async def reconcile(self, adjustment: Adjustment) -> ReconciliationResult:
        """Compare the ledger sum with the adjustment's running totals."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(AdjustmentApplication.amount), 0)).where(
                AdjustmentApplication.adjustment_id == adjustment.adjustment_id
            )
        )
        ledger_total = Decimal(str(result.scalar_one())).quantize(Decimal("0.01"))
        reconciliation = ReconciliationResult(
            item_id=adjustment.adjustment_id,
            ledger_total=ledger_total,
            total_applied=adjustment.total_applied,
            remaining_balance=adjustment.remaining_balance,
            total_amount=adjustment.total_amount,
        )
        if ledger_total != adjustment.total_applied:
            reconciliation.errors.append(
                f"Ledger total {ledger_total} != total_applied {adjustment.total_applied}"
            )
        if adjustment.has_balance_tracking and adjustment.total_amount is not None:
            accounted = adjustment.total_applied + (adjustment.remaining_balance or ZERO)
            if accounted != adjustment.total_amount:
                reconciliation.errors.append(
                    f"total_applied + remaining_balance {accounted} != "
                    f"total_amount {adjustment.total_amount}"
                )
        return reconciliation


class LoanService(_LedgerService):
    """Loan amortization ledger.

    Loans deduct min(monthly_deduction, remaining_balance) once per month:
    every period on monthly cycles, the second cutoff on semi-monthly ones.
    """

    entity_type = "loan"

    LOAN_TYPE_LABELS: dict[str, str] = {
        "sss_salary": "SSS Salary Loan",
        "sss_calamity": "SSS Calamity Loan",
        "pagibig_multi_purpose": "Pag-IBIG Multi-Purpose Loan",
        "pagibig_calamity": "Pag-IBIG Calamity Loan",
        "company": "Company Loan",
        "salary_advance": "Salary Advance",
    }

    async def get_loan(self, loan_id: UUID, for_update: bool = False) -> Loan:
        query = select(Loan).where(Loan.loan_id == loan_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        loan = result.scalar_one_or_none()
        if loan is None:
            raise EntityNotFoundError("Loan", loan_id)
        return loan

    @staticmethod
    def is_deductible_for_period(
        loan: Loan,
        period: PayrollPeriod,
        cycle_type: CycleType | str = CycleType.SEMI_MONTHLY,
        already_paid: bool = False,
    ) -> bool:
        if already_paid or loan.status != LedgerStatus.ACTIVE.value:
            return False
        if loan.remaining_balance <= 0 or loan.start_date > period.cutoff_end:
            return False
        if CycleType(cycle_type) == CycleType.SEMI_MONTHLY:
            return period.period_number % 2 == 0
        return True

    @staticmethod
    def get_amount_for_period(loan: Loan) -> Decimal:
        return min(loan.monthly_deduction, loan.remaining_balance)

    @classmethod
    def describe(cls, loan: Loan) -> str:
        label = cls.LOAN_TYPE_LABELS.get(loan.loan_type, loan.loan_type.replace("_", " ").title())
        if loan.reference_number:
            return f"{label} ({loan.reference_number})"
        return label

    async def get_payment(self, loan_id: UUID, period_id: UUID) -> LoanPayment | None:
        result = await self.session.execute(
            select(LoanPayment)
            .where(LoanPayment.loan_id == loan_id)
            .where(LoanPayment.payroll_period_id == period_id)
        )
        return result.scalar_one_or_none()

    async def get_paid_for_period(
        self, employee_id: UUID, period_id: UUID
    ) -> list[tuple[Loan, LoanPayment]]:
        result = await self.session.execute(
            select(Loan, LoanPayment)
            .join(LoanPayment, LoanPayment.loan_id == Loan.loan_id)
            .where(Loan.employee_id == employee_id)
            .where(LoanPayment.payroll_period_id == period_id)
            .order_by(Loan.start_date, Loan.loan_type)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_deductible_loans(
        self,
        employee_id: UUID,
        period: PayrollPeriod,
        cycle_type: CycleType | str,
    ) -> list[Loan]:
        paid = select(LoanPayment.loan_id).where(
            LoanPayment.payroll_period_id == period.payroll_period_id
        )
        result = await self.session.execute(
            select(Loan)
            .where(Loan.employee_id == employee_id)
            .where(Loan.status == LedgerStatus.ACTIVE.value)
            .where(Loan.loan_id.not_in(paid))
            .order_by(Loan.start_date, Loan.loan_type)
        )
        return [
            loan
            for loan in result.scalars().all()
            if self.is_deductible_for_period(loan, period, cycle_type)
        ]

    async def record_payment(
        self,
        loan: Loan,
        period: PayrollPeriod,
        entry: PayrollEntry | None = None,
        amount: Decimal | None = None,
        actor_user_id: UUID | None = None,
    ) -> LoanPayment:
        """Record a payroll amortization for the period.

        Raises:
            DuplicateApplicationError: Already deducted in this period
            LedgerError: The loan is not active or fully paid
        """
        loan_id = loan.loan_id
        period_id = period.payroll_period_id
        loan = await self.get_loan(loan_id, for_update=True)

        if await self.get_payment(loan_id, period_id) is not None:
            raise DuplicateApplicationError(loan_id, period_id)
        if loan.status != LedgerStatus.ACTIVE.value:
            raise LedgerError(f"Loan {loan_id} is {loan.status}")

        due = self.get_amount_for_period(loan)
        if amount is not None:
            due = min(amount, loan.remaining_balance)
        return await self._post_payment(
            loan,
            due,
            payment_date=period.pay_date,
            source="payroll",
            period_id=period_id,
            entry_id=entry.payroll_entry_id if entry is not None else None,
            actor_user_id=actor_user_id,
        )

    async def record_manual_payment(
        self,
        loan_id: UUID,
        amount: Decimal,
        payment_date: date,
        notes: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> LoanPayment:
        """Record a payment made outside payroll (over-the-counter, offset)."""
        loan = await self.get_loan(loan_id, for_update=True)
        if LedgerStateMachine.is_terminal(loan.status):
            raise LedgerError(f"Loan {loan_id} is {loan.status}")
        return await self._post_payment(
            loan,
            min(amount, loan.remaining_balance),
            payment_date=payment_date,
            source="manual",
            notes=notes,
            actor_user_id=actor_user_id,
        )

    async def _post_payment(
        self,
        loan: Loan,
        amount: Decimal,
        payment_date: date,
        source: str,
        period_id: UUID | None = None,
        entry_id: UUID | None = None,
        notes: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> LoanPayment:
        if amount <= 0:
            raise LedgerError(f"Loan {loan.loan_id} has no remaining balance")

        balance_before = loan.remaining_balance
        balance_after = max(balance_before - amount, ZERO)
        payment = LoanPayment(
            loan_id=loan.loan_id,
            payroll_period_id=period_id,
            payroll_entry_id=entry_id,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            payment_date=payment_date,
            payment_source=source,
            notes=notes,
            recorded_by=actor_user_id,
        )
        self.session.add(payment)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateApplicationError(loan.loan_id, period_id) from e

        loan.total_paid = (loan.total_paid or ZERO) + amount
        loan.remaining_balance = balance_after
        if balance_after == 0:
            loan.status = LedgerStatus.COMPLETED.value
            loan.actual_end_date = payment_date

        await self._record_audit(
            loan.loan_id,
            action=f"payment:{source}",
            actor_user_id=actor_user_id,
            details={
                "payroll_period_id": str(period_id) if period_id else None,
                "amount": str(amount),
                "balance_after": str(balance_after),
            },
        )
        await self.session.flush()
        logger.info(
            "Recorded %s payment of %s on loan %s (balance %s)",
            source,
            amount,
            loan.loan_id,
            balance_after,
        )
        return payment

    async def put_on_hold(
        self, loan_id: UUID, reason: str | None = None, actor_user_id: UUID | None = None
    ) -> Loan:
        loan = await self.get_loan(loan_id, for_update=True)
        await self._change_status(
            loan,
            loan_id,
            LedgerStatus.ON_HOLD,
            actor_user_id,
            {"held_at": _now().isoformat(), "hold_reason": reason},
        )
        return loan

    async def resume(self, loan_id: UUID, actor_user_id: UUID | None = None) -> Loan:
        loan = await self.get_loan(loan_id, for_update=True)
        await self._change_status(
            loan, loan_id, LedgerStatus.ACTIVE, actor_user_id, {"resumed_at": _now().isoformat()}
        )
        return loan

    async def cancel(
        self, loan_id: UUID, reason: str | None = None, actor_user_id: UUID | None = None
    ) -> Loan:
        loan = await self.get_loan(loan_id, for_update=True)
        await self._change_status(
            loan,
            loan_id,
            LedgerStatus.CANCELLED,
            actor_user_id,
            {"cancelled_at": _now().isoformat(), "cancel_reason": reason},
        )
        return loan

    async def reconcile(self, loan: Loan) -> ReconciliationResult:
        result = await self.session.execute(
            select(func.coalesce(func.sum(LoanPayment.amount), 0)).where(
                LoanPayment.loan_id == loan.loan_id
            )
        )
        ledger_total = Decimal(str(result.scalar_one())).quantize(Decimal("0.01"))
        reconciliation = ReconciliationResult(
            item_id=loan.loan_id,
            ledger_total=ledger_total,
            total_applied=loan.total_paid,
            remaining_balance=loan.remaining_balance,
            total_amount=loan.total_amount,
        )
        if ledger_total != loan.total_paid:
            reconciliation.errors.append(
                f"Ledger total {ledger_total} != total_paid {loan.total_paid}"
            )
        if loan.total_paid + loan.remaining_balance != loan.total_amount:
            reconciliation.errors.append(
                f"total_paid + remaining_balance {loan.total_paid + loan.remaining_balance} != "
                f"total_amount {loan.total_amount}"
            )
        return reconciliation
