"""Tests for the adjustment and loan ledgers."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from ph_payroll.models import (
    Adjustment,
    AdjustmentApplication,
    AuditEvent,
    Loan,
    LoanPayment,
    PayrollEntry,
    PayrollPeriod,
)
from ph_payroll.services.ledger_service import (
    AdjustmentService,
    DuplicateApplicationError,
    LedgerError,
    LoanService,
)
from ph_payroll.services.state_machine import InvalidTransitionError


def _period(number: int, start: date, end: date) -> SimpleNamespace:
    return SimpleNamespace(
        payroll_period_id=None,
        period_number=number,
        cutoff_start=start,
        cutoff_end=end,
        pay_date=end,
    )


FIRST_CUTOFF = _period(1, date(2025, 1, 1), date(2025, 1, 15))
SECOND_CUTOFF = _period(2, date(2025, 1, 16), date(2025, 1, 31))


@pytest.fixture
async def uniform(session, employee) -> Adjustment:
    """Recurring 1,000 uniform deduction with 500 left of 1,000."""
    adjustment = Adjustment(
        employee_id=employee.employee_id,
        category="deduction",
        adjustment_type="uniform",
        code="UNIFORM",
        name="Uniform",
        amount=Decimal("1000.00"),
        frequency="recurring",
        recurring_start_date=date(2024, 12, 1),
        recurring_interval="every_period",
        has_balance_tracking=True,
        total_amount=Decimal("1000.00"),
        total_applied=Decimal("500.00"),
        remaining_balance=Decimal("500.00"),
    )
    session.add(adjustment)
    await session.commit()
    return adjustment


@pytest.fixture
async def sss_loan(session, employee) -> Loan:
    loan = Loan(
        employee_id=employee.employee_id,
        loan_type="sss_salary",
        reference_number="SL-2024-001",
        principal_amount=Decimal("2400.00"),
        monthly_deduction=Decimal("1000.00"),
        total_amount=Decimal("2400.00"),
        remaining_balance=Decimal("2400.00"),
        start_date=date(2025, 1, 1),
    )
    session.add(loan)
    await session.commit()
    return loan


def _adjustment(**overrides) -> SimpleNamespace:
    values = dict(
        status="active",
        frequency="recurring",
        target_payroll_period_id=None,
        recurring_start_date=None,
        recurring_end_date=None,
        recurring_interval="every_period",
        remaining_occurrences=None,
        has_balance_tracking=False,
        remaining_balance=None,
        amount=Decimal("500"),
    )
    values.update(overrides)
    item = SimpleNamespace(**values)
    item.is_recurring = item.frequency == "recurring"
    return item


class TestApplicability:
    """When an adjustment is due in a period."""

    def test_recurring_interval(self):
        first_only = _adjustment(recurring_interval="first_cutoff")

        assert AdjustmentService.is_applicable_for_period(first_only, FIRST_CUTOFF, "semi_monthly")
        assert not AdjustmentService.is_applicable_for_period(
            first_only, SECOND_CUTOFF, "semi_monthly"
        )
        # Monthly cycles always match
        assert AdjustmentService.is_applicable_for_period(first_only, SECOND_CUTOFF, "monthly")

    def test_recurring_date_window(self):
        later = _adjustment(recurring_start_date=date(2025, 1, 20))
        ended = _adjustment(recurring_end_date=date(2025, 1, 10))

        assert not AdjustmentService.is_applicable_for_period(later, FIRST_CUTOFF, "semi_monthly")
        assert AdjustmentService.is_applicable_for_period(later, SECOND_CUTOFF, "semi_monthly")
        assert not AdjustmentService.is_applicable_for_period(ended, SECOND_CUTOFF, "semi_monthly")

    def test_exhausted_items_never_apply(self):
        no_balance = _adjustment(has_balance_tracking=True, remaining_balance=Decimal("0"))
        no_occurrences = _adjustment(remaining_occurrences=0)

        assert not AdjustmentService.is_applicable_for_period(no_balance, FIRST_CUTOFF)
        assert not AdjustmentService.is_applicable_for_period(no_occurrences, FIRST_CUTOFF)

    def test_already_applied_and_inactive(self):
        item = _adjustment()

        assert not AdjustmentService.is_applicable_for_period(
            item, FIRST_CUTOFF, already_applied=True
        )
        item.status = "on_hold"
        assert not AdjustmentService.is_applicable_for_period(item, FIRST_CUTOFF)

    def test_one_time_targets_a_period(self, open_period):
        item = _adjustment(
            frequency="one_time", target_payroll_period_id=open_period.payroll_period_id
        )

        assert AdjustmentService.is_applicable_for_period(item, open_period)
        assert not AdjustmentService.is_applicable_for_period(item, FIRST_CUTOFF)

    def test_amount_capped_by_balance(self):
        tracked = _adjustment(has_balance_tracking=True, remaining_balance=Decimal("300"))
        assert AdjustmentService.get_amount_for_period(tracked) == Decimal("300")
        assert AdjustmentService.get_amount_for_period(_adjustment()) == Decimal("500")


class TestAdjustmentApplication:
    """Recording adjustment ledger rows."""

    async def test_apply_completes_tracked_item(self, session, uniform, open_period):
        service = AdjustmentService(session)

        application = await service.apply_adjustment(
            uniform.adjustment_id, open_period.payroll_period_id
        )

        assert application.amount == Decimal("500.00")
        assert application.balance_before == Decimal("500.00")
        assert application.balance_after == Decimal("0.00")
        assert uniform.status == "completed"
        assert uniform.total_applied == Decimal("1000.00")
        assert uniform.remaining_balance == Decimal("0.00")
        assert uniform.progress_percentage == Decimal("100.00")

        reconciliation = await service.reconcile(uniform)
        # Prior 500 was applied before the ledger existed
        assert reconciliation.ledger_total == Decimal("500.00")
        assert reconciliation.errors == ["Ledger total 500.00 != total_applied 1000.00"]

    async def test_double_apply_leaves_one_row(self, session, employee, open_period):
        adjustment = Adjustment(
            employee_id=employee.employee_id,
            category="earning",
            adjustment_type="allowance_rice",
            code="RICE",
            name="Rice Subsidy",
            amount=Decimal("2000.00"),
            is_taxable=False,
            frequency="recurring",
            recurring_interval="every_period",
        )
        session.add(adjustment)
        await session.flush()
        service = AdjustmentService(session)

        await service.record_application(adjustment, open_period)
        with pytest.raises(DuplicateApplicationError):
            await service.record_application(adjustment, open_period)

        rows = await session.execute(
            select(func.count()).select_from(AdjustmentApplication).where(
                AdjustmentApplication.adjustment_id == adjustment.adjustment_id
            )
        )
        assert rows.scalar_one() == 1
        assert adjustment.total_applied == Decimal("2000.00")
        assert adjustment.status == "active"
        assert (await service.reconcile(adjustment)).is_balanced

    async def test_occurrences_count_down(self, session, employee, open_period):
        adjustment = Adjustment(
            employee_id=employee.employee_id,
            category="deduction",
            adjustment_type="other",
            code="CA",
            name="Cash Advance",
            amount=Decimal("250.00"),
            frequency="recurring",
            remaining_occurrences=1,
        )
        session.add(adjustment)
        await session.flush()

        await AdjustmentService(session).record_application(adjustment, open_period)

        assert adjustment.remaining_occurrences == 0
        assert adjustment.status == "completed"
        assert adjustment.metadata_json["completed_at"]

    async def test_applicable_list_skips_applied(self, session, uniform, open_period):
        service = AdjustmentService(session)

        due = await service.get_applicable_adjustments(uniform.employee_id, open_period, "monthly")
        assert [a.adjustment_id for a in due] == [uniform.adjustment_id]

        await service.record_application(uniform, open_period)
        assert await service.get_applicable_adjustments(
            uniform.employee_id, open_period, "monthly"
        ) == []
        applied = await service.get_applied_for_period(
            uniform.employee_id, open_period.payroll_period_id
        )
        assert [a.adjustment_id for a, _ in applied] == [uniform.adjustment_id]

    async def test_closed_period_rejects_manual_apply(self, session, uniform, open_period):
        open_period.status = "closed"
        await session.flush()

        with pytest.raises(LedgerError):
            await AdjustmentService(session).apply_adjustment(
                uniform.adjustment_id, open_period.payroll_period_id
            )

    async def test_approved_entry_rejects_manual_apply(
        self, session, employee, uniform, open_period
    ):
        entry = PayrollEntry(
            payroll_period_id=open_period.payroll_period_id,
            employee_id=employee.employee_id,
            employee_number=employee.employee_number,
            status="approved",
        )
        session.add(entry)
        await session.commit()

        with pytest.raises(LedgerError, match="approved"):
            await AdjustmentService(session).apply_adjustment(
                uniform.adjustment_id, open_period.payroll_period_id
            )

        assert uniform.remaining_balance == Decimal("500.00")
        count = await session.execute(select(func.count()).select_from(AdjustmentApplication))
        assert count.scalar_one() == 0

    async def test_manual_apply_links_open_entry(self, session, employee, uniform, open_period):
        entry = PayrollEntry(
            payroll_period_id=open_period.payroll_period_id,
            employee_id=employee.employee_id,
            employee_number=employee.employee_number,
            status="computed",
        )
        session.add(entry)
        await session.commit()

        application = await AdjustmentService(session).apply_adjustment(
            uniform.adjustment_id, open_period.payroll_period_id
        )

        assert application.payroll_entry_id == entry.payroll_entry_id


class TestAdjustmentStatus:
    """Hold, resume, and cancel."""

    async def test_hold_and_resume(self, session, uniform):
        service = AdjustmentService(session)

        held = await service.put_on_hold(uniform.adjustment_id, reason="Disputed")
        assert held.status == "on_hold"
        assert held.metadata_json["hold_reason"] == "Disputed"

        resumed = await service.resume(uniform.adjustment_id)
        assert resumed.status == "active"
        assert "resumed_at" in resumed.metadata_json

        events = await session.execute(
            select(AuditEvent.action)
            .where(AuditEvent.entity_id == uniform.adjustment_id)
            .order_by(AuditEvent.action)
        )
        assert list(events.scalars()) == [
            "status_change:active:on_hold",
            "status_change:on_hold:active",
        ]

    async def test_cancelled_is_terminal(self, session, uniform):
        service = AdjustmentService(session)
        await service.cancel(uniform.adjustment_id, reason="Resigned")

        with pytest.raises(InvalidTransitionError):
            await service.resume(uniform.adjustment_id)

    async def test_manual_completion_from_hold(self, session, uniform):
        service = AdjustmentService(session)
        await service.put_on_hold(uniform.adjustment_id)

        completed = await service.mark_completed(uniform.adjustment_id)

        assert completed.status == "completed"
        assert "completed_at" in completed.metadata_json
        with pytest.raises(InvalidTransitionError):
            await service.resume(uniform.adjustment_id)


class TestLoans:
    """Loan amortization."""

    def test_semi_monthly_deducts_on_second_cutoff(self):
        loan = SimpleNamespace(
            status="active", remaining_balance=Decimal("1000"), start_date=date(2025, 1, 1)
        )

        assert not LoanService.is_deductible_for_period(loan, FIRST_CUTOFF, "semi_monthly")
        assert LoanService.is_deductible_for_period(loan, SECOND_CUTOFF, "semi_monthly")
        assert LoanService.is_deductible_for_period(loan, FIRST_CUTOFF, "monthly")
        assert not LoanService.is_deductible_for_period(
            loan, SECOND_CUTOFF, "semi_monthly", already_paid=True
        )

    def test_describe(self):
        loan = SimpleNamespace(loan_type="pagibig_calamity", reference_number=None)
        assert LoanService.describe(loan) == "Pag-IBIG Calamity Loan"

        loan = SimpleNamespace(loan_type="car_loan", reference_number="CL-1")
        assert LoanService.describe(loan) == "Car Loan (CL-1)"

    async def test_payments_until_completion(self, session, sss_loan, monthly_cycle):
        service = LoanService(session)
        periods = []
        for number, (start, end) in enumerate(
            [
                (date(2025, 1, 1), date(2025, 1, 31)),
                (date(2025, 2, 1), date(2025, 2, 28)),
                (date(2025, 3, 1), date(2025, 3, 31)),
            ],
            start=1,
        ):
            period = PayrollPeriod(
                payroll_cycle_id=monthly_cycle.payroll_cycle_id,
                name=f"Period {number}",
                year=2025,
                period_number=number,
                cutoff_start=start,
                cutoff_end=end,
                pay_date=end,
                status="open",
            )
            session.add(period)
            periods.append(period)
        await session.flush()

        amounts = []
        for period in periods:
            payment = await service.record_payment(sss_loan, period)
            amounts.append(payment.amount)

        assert amounts == [Decimal("1000.00"), Decimal("1000.00"), Decimal("400.00")]
        assert sss_loan.status == "completed"
        assert sss_loan.actual_end_date == date(2025, 3, 31)
        assert sss_loan.remaining_balance == Decimal("0.00")
        assert (await service.reconcile(sss_loan)).is_balanced

    async def test_duplicate_payment_rejected(self, session, sss_loan, open_period):
        service = LoanService(session)
        await service.record_payment(sss_loan, open_period)

        with pytest.raises(DuplicateApplicationError):
            await service.record_payment(sss_loan, open_period)

        count = await session.execute(select(func.count()).select_from(LoanPayment))
        assert count.scalar_one() == 1

    async def test_manual_payment(self, session, sss_loan):
        service = LoanService(session)

        payment = await service.record_manual_payment(
            sss_loan.loan_id, Decimal("5000"), date(2025, 2, 10), notes="Final pay offset"
        )

        assert payment.payment_source == "manual"
        assert payment.amount == Decimal("2400.00")
        assert payment.payroll_period_id is None
        assert sss_loan.status == "completed"

    async def test_on_hold_loan_not_deducted(self, session, sss_loan, open_period):
        service = LoanService(session)
        await service.put_on_hold(sss_loan.loan_id, reason="Leave without pay")

        assert await service.get_deductible_loans(
            sss_loan.employee_id, open_period, "monthly"
        ) == []
        with pytest.raises(LedgerError):
            await service.record_payment(sss_loan, open_period)
