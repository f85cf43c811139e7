"""Bracket table validation and lookup."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol, TypeVar

from ph_payroll.calculators.types import Bracket

B = TypeVar("B", bound=Bracket)

# Adjacent brackets may leave at most one centavo uncovered (e.g. 4,249.99 -> 4,250.00)
GAP_TOLERANCE = Decimal("0.01")


class BracketTableError(Exception):
    """Raised when a bracket table has gaps, overlaps, or a misplaced open bracket."""

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Invalid bracket table '{table}': {reason}")


class DatedTable(Protocol):
    effective_from: date
    is_active: bool


T = TypeVar("T", bound=DatedTable)


def order_brackets(brackets: Iterable[B]) -> tuple[B, ...]:
    return tuple(sorted(brackets, key=lambda b: b.min_amount))


def validate_brackets(table: str, brackets: Iterable[B]) -> tuple[B, ...]:
    """Sort brackets by lower bound and reject non-contiguous tables."""
    ordered = order_brackets(brackets)
    if not ordered:
        raise BracketTableError(table, "table has no brackets")

    for index, bracket in enumerate(ordered):
        if bracket.max_amount is not None and bracket.max_amount < bracket.min_amount:
            raise BracketTableError(
                table, f"bracket {bracket.min_amount} has max below min ({bracket.max_amount})"
            )
        if index == 0:
            continue

        previous = ordered[index - 1]
        if previous.max_amount is None:
            raise BracketTableError(
                table, f"open-ended bracket starting at {previous.min_amount} is not the last"
            )
        if bracket.min_amount < previous.max_amount:
            raise BracketTableError(
                table,
                f"bracket {bracket.min_amount} overlaps previous bracket "
                f"ending at {previous.max_amount}",
            )
        if bracket.min_amount - previous.max_amount > GAP_TOLERANCE:
            raise BracketTableError(
                table,
                f"gap between {previous.max_amount} and {bracket.min_amount}",
            )

    return ordered


def find_bracket(brackets: Sequence[B], amount: Decimal) -> B | None:
    """Return the first bracket containing amount.

    Brackets are ordered by min, so a salary equal to a shared boundary
    resolves to the lower bracket (inclusive upper bound).
    """
    for bracket in brackets:
        if bracket.contains(amount):
            return bracket
    return None


def select_table(tables: Iterable[T], as_of: date) -> T | None:
    """Pick the active table with the latest effective_from on or before as_of."""
    eligible = [t for t in tables if t.is_active and t.effective_from <= as_of]
    if not eligible:
        return None
    return max(eligible, key=lambda t: t.effective_from)
