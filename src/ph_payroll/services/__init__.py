"""Payroll engine services."""

from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    LedgerStateMachine,
    LedgerStatus,
    PeriodStateMachine,
    PeriodStatus,
)
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.ledger_service import (
    AdjustmentService,
    DuplicateApplicationError,
    LedgerError,
    LoanService,
)
from ph_payroll.services.period_service import PayrollPeriodService, PeriodOverlapError
from ph_payroll.services.entry_service import PayrollEntryService
from ph_payroll.services.computation_service import (
    ComputationError,
    PayrollBatchService,
    PayrollComputationService,
    PeriodComputationResult,
    PeriodLockedError,
)

__all__ = [
    "EntryStateMachine",
    "EntryStatus",
    "InvalidTransitionError",
    "LedgerStateMachine",
    "LedgerStatus",
    "PeriodStateMachine",
    "PeriodStatus",
    "EntityNotFoundError",
    "AdjustmentService",
    "DuplicateApplicationError",
    "LedgerError",
    "LoanService",
    "PayrollPeriodService",
    "PeriodOverlapError",
    "PayrollEntryService",
    "ComputationError",
    "PayrollBatchService",
    "PayrollComputationService",
    "PeriodComputationResult",
    "PeriodLockedError",
]
