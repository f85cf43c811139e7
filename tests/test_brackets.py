"""Tests for bracket table validation and lookup."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from ph_payroll.calculators.brackets import (
    BracketTableError,
    find_bracket,
    select_table,
    validate_brackets,
)
from ph_payroll.calculators.types import Bracket, TaxBracket


def _bracket(low: str, high: str | None) -> Bracket:
    return Bracket(Decimal(low), Decimal(high) if high is not None else None)


@dataclass
class _Table:
    name: str
    effective_from: date
    is_active: bool = True


class TestValidateBrackets:
    """Contiguity checks run when a table is loaded."""

    def test_sorts_by_lower_bound(self):
        ordered = validate_brackets(
            "test",
            [_bracket("1000", None), _bracket("0", "500"), _bracket("500", "1000")],
        )
        assert [b.min_amount for b in ordered] == [Decimal("0"), Decimal("500"), Decimal("1000")]

    def test_shared_boundary_is_accepted(self):
        """Tax tables share boundaries (0-20,833 then 20,833-33,333)."""
        validate_brackets("tax", [_bracket("0", "20833"), _bracket("20833", "33333")])

    def test_one_centavo_gap_is_accepted(self):
        """Salary tables step by a centavo (4,249.99 then 4,250.00)."""
        validate_brackets("sss", [_bracket("0", "4249.99"), _bracket("4250.00", None)])

    def test_gap_rejected(self):
        with pytest.raises(BracketTableError) as exc_info:
            validate_brackets("gappy", [_bracket("0", "1000"), _bracket("1500", None)])

        assert exc_info.value.table == "gappy"
        assert "gap" in exc_info.value.reason

    def test_overlap_rejected(self):
        with pytest.raises(BracketTableError) as exc_info:
            validate_brackets("overlap", [_bracket("0", "1000"), _bracket("900", None)])

        assert "overlaps" in exc_info.value.reason

    def test_open_bracket_must_be_last(self):
        with pytest.raises(BracketTableError, match="is not the last"):
            validate_brackets("open", [_bracket("0", None), _bracket("0.01", "1000")])

    def test_inverted_bracket_rejected(self):
        with pytest.raises(BracketTableError):
            validate_brackets("inverted", [_bracket("1000", "500")])

    def test_empty_table_rejected(self):
        with pytest.raises(BracketTableError):
            validate_brackets("empty", [])


class TestFindBracket:
    """Inclusive upper bound lookup."""

    def test_boundary_resolves_to_lower_bracket(self):
        brackets = validate_brackets(
            "tax",
            [
                TaxBracket(Decimal("0"), Decimal("20833"), Decimal("0"), Decimal("0")),
                TaxBracket(Decimal("20833"), Decimal("33333"), Decimal("0"), Decimal("0.15")),
            ],
        )
        assert find_bracket(brackets, Decimal("20833")) is brackets[0]
        assert find_bracket(brackets, Decimal("20833.01")) is brackets[1]

    def test_open_ended_bracket_covers_large_amounts(self):
        brackets = validate_brackets("open", [_bracket("0", "1000"), _bracket("1000", None)])
        assert find_bracket(brackets, Decimal("99999999")) is brackets[1]

    def test_below_table_returns_none(self):
        brackets = validate_brackets("floor", [_bracket("100", None)])
        assert find_bracket(brackets, Decimal("50")) is None


class TestSelectTable:
    """Effective-dated table selection."""

    def test_latest_effective_table_wins(self):
        old = _Table("2024", date(2024, 1, 1))
        new = _Table("2025", date(2025, 1, 1))

        assert select_table([old, new], date(2025, 6, 1)) is new
        assert select_table([old, new], date(2024, 12, 31)) is old

    def test_inactive_tables_ignored(self):
        retired = _Table("2025 draft", date(2025, 1, 1), is_active=False)
        current = _Table("2024", date(2024, 1, 1))

        assert select_table([retired, current], date(2025, 6, 1)) is current

    def test_no_table_before_first_effective_date(self):
        assert select_table([_Table("2025", date(2025, 1, 1))], date(2024, 6, 1)) is None
