"""Payroll period, payroll entry, and ledger item state machines."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ph_payroll.models import PayrollEntry, PayrollPeriod


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    OPEN = "open"
    PROCESSING = "processing"
    CLOSED = "closed"


class EntryStatus(str, Enum):
    """Payroll entry status values."""

    DRAFT = "draft"
    COMPUTED = "computed"
    REVIEWED = "reviewed"
    APPROVED = "approved"


class LedgerStatus(str, Enum):
    """Adjustment and loan status values."""

    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → open
    - open → processing
    - processing → open (revert)
    - processing → closed

    Closed is terminal; corrections go to a new correction period.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.OPEN],
        PeriodStatus.OPEN: [PeriodStatus.PROCESSING],
        PeriodStatus.PROCESSING: [PeriodStatus.OPEN, PeriodStatus.CLOSED],
        PeriodStatus.CLOSED: [],  # Terminal state
    }

    # Statuses where entries may be computed
    COMPUTE_ALLOWED = {
        PeriodStatus.OPEN,
        PeriodStatus.PROCESSING,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_compute(cls, status: str) -> bool:
        return status in cls.COMPUTE_ALLOWED

    @classmethod
    def is_editable(cls, status: str) -> bool:
        return status != PeriodStatus.CLOSED

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_period_for_transition(
        cls,
        period: PayrollPeriod,
        to_status: str,
        entries: list[PayrollEntry],
    ) -> list[str]:
        """Validate a period for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = period.status
        to_status = getattr(to_status, "value", to_status)

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status == PeriodStatus.CLOSED:
            pending = [e for e in entries if e.status != EntryStatus.APPROVED]
            if pending:
                errors.append(f"{len(pending)} entr(y/ies) not approved")

        return errors


class EntryStateMachine:
    """State machine for payroll entry status transitions.

    Allowed transitions:
    - draft → computed
    - computed → reviewed
    - computed → draft (reset)
    - reviewed → approved
    - reviewed → computed (send back)

    Approved is immutable.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        EntryStatus.DRAFT: [EntryStatus.COMPUTED],
        EntryStatus.COMPUTED: [EntryStatus.REVIEWED, EntryStatus.DRAFT],
        EntryStatus.REVIEWED: [EntryStatus.APPROVED, EntryStatus.COMPUTED],
        EntryStatus.APPROVED: [],  # Terminal state
    }

    RECOMPUTE_ALLOWED = {
        EntryStatus.DRAFT,
        EntryStatus.COMPUTED,
        EntryStatus.REVIEWED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_recompute(cls, status: str) -> bool:
        return status in cls.RECOMPUTE_ALLOWED

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_entry_for_transition(cls, entry: PayrollEntry, to_status: str) -> list[str]:
        errors: list[str] = []
        from_status = entry.status
        to_status = getattr(to_status, "value", to_status)

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status in (EntryStatus.REVIEWED, EntryStatus.APPROVED) and entry.computation_error:
            errors.append(f"Entry has a computation error: {entry.computation_error}")

        return errors


class LedgerStateMachine:
    """State machine for adjustment and loan status transitions.

    Allowed transitions:
    - active ⇄ on_hold
    - active/on_hold → cancelled
    - active/on_hold → completed

    Cancelled and completed are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        LedgerStatus.ACTIVE: [
            LedgerStatus.ON_HOLD,
            LedgerStatus.CANCELLED,
            LedgerStatus.COMPLETED,
        ],
        LedgerStatus.ON_HOLD: [
            LedgerStatus.ACTIVE,
            LedgerStatus.CANCELLED,
            LedgerStatus.COMPLETED,
        ],
        LedgerStatus.COMPLETED: [],
        LedgerStatus.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])
