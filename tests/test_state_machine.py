"""Tests for period, entry, and ledger state machines."""

from types import SimpleNamespace

import pytest

from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    LedgerStateMachine,
    PeriodStateMachine,
    PeriodStatus,
)


class TestPeriodStateMachine:
    """Test payroll period transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert PeriodStateMachine.can_transition("draft", "open") is True
        assert PeriodStateMachine.can_transition("open", "processing") is True

        # processing → open (revert)
        assert PeriodStateMachine.can_transition("processing", "open") is True
        assert PeriodStateMachine.can_transition("processing", "closed") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip processing
        assert PeriodStateMachine.can_transition("draft", "closed") is False
        assert PeriodStateMachine.can_transition("open", "closed") is False
        assert PeriodStateMachine.can_transition("open", "draft") is False

        # Closed is terminal
        assert PeriodStateMachine.can_transition("closed", "open") is False
        assert PeriodStateMachine.can_transition("closed", "processing") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition(PeriodStatus.DRAFT, PeriodStatus.CLOSED)

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "closed"
        assert "draft" in str(exc_info.value)

    def test_can_compute(self):
        assert PeriodStateMachine.can_compute("draft") is False
        assert PeriodStateMachine.can_compute("open") is True
        assert PeriodStateMachine.can_compute("processing") is True
        assert PeriodStateMachine.can_compute("closed") is False

    def test_get_next_statuses(self):
        assert set(PeriodStateMachine.get_next_statuses("processing")) == {"open", "closed"}
        assert PeriodStateMachine.get_next_statuses("closed") == []

    def test_close_requires_approved_entries(self):
        period = SimpleNamespace(status="processing")
        entries = [
            SimpleNamespace(status="approved"),
            SimpleNamespace(status="reviewed"),
            SimpleNamespace(status="computed"),
        ]

        errors = PeriodStateMachine.validate_period_for_transition(period, "closed", entries)
        assert errors == ["2 entr(y/ies) not approved"]

        approved = [SimpleNamespace(status="approved")]
        assert PeriodStateMachine.validate_period_for_transition(period, "closed", approved) == []

    def test_invalid_transition_reported_first(self):
        period = SimpleNamespace(status="draft")

        errors = PeriodStateMachine.validate_period_for_transition(period, "closed", [])
        assert errors == ["Cannot transition from 'draft' to 'closed'"]


class TestEntryStateMachine:
    """Test payroll entry transitions."""

    def test_workflow(self):
        assert EntryStateMachine.can_transition("draft", "computed") is True
        assert EntryStateMachine.can_transition("computed", "reviewed") is True
        assert EntryStateMachine.can_transition("reviewed", "approved") is True

        # Send back
        assert EntryStateMachine.can_transition("reviewed", "computed") is True
        assert EntryStateMachine.can_transition("computed", "draft") is True

    def test_approved_is_terminal(self):
        assert EntryStateMachine.can_transition("approved", "reviewed") is False
        assert EntryStateMachine.can_transition("approved", "draft") is False
        assert EntryStateMachine.can_recompute(EntryStatus.APPROVED) is False

    def test_cannot_skip_review(self):
        assert EntryStateMachine.can_transition("computed", "approved") is False
        assert EntryStateMachine.can_transition("draft", "reviewed") is False

    def test_recompute_allowed_before_approval(self):
        assert EntryStateMachine.can_recompute("draft") is True
        assert EntryStateMachine.can_recompute("computed") is True
        assert EntryStateMachine.can_recompute("reviewed") is True

    def test_computation_error_blocks_review(self):
        entry = SimpleNamespace(status="computed", computation_error="No active compensation")

        errors = EntryStateMachine.validate_entry_for_transition(entry, "reviewed")
        assert errors == ["Entry has a computation error: No active compensation"]

        entry.computation_error = None
        assert EntryStateMachine.validate_entry_for_transition(entry, "reviewed") == []


class TestLedgerStateMachine:
    """Test adjustment and loan transitions."""

    def test_hold_and_resume(self):
        assert LedgerStateMachine.can_transition("active", "on_hold") is True
        assert LedgerStateMachine.can_transition("on_hold", "active") is True

    def test_terminal_statuses(self):
        assert LedgerStateMachine.is_terminal("completed") is True
        assert LedgerStateMachine.is_terminal("cancelled") is True
        assert LedgerStateMachine.is_terminal("active") is False

        with pytest.raises(InvalidTransitionError):
            LedgerStateMachine.validate_transition("cancelled", "active")

    def test_cancel_from_hold(self):
        assert LedgerStateMachine.can_transition("on_hold", "cancelled") is True
        assert LedgerStateMachine.can_transition("completed", "cancelled") is False
