"""Tests for line item builder."""

from decimal import Decimal
from uuid import uuid4

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import DeductionType, EarningType


class TestLineItemBuilder:
    """Test line item builder functionality."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert LineItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")

        # Half-up rounding
        assert LineItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert LineItemBuilder.round_to_cents(Decimal("687.445")) == Decimal("687.45")

    def test_round_rate(self):
        assert LineItemBuilder.round_rate(Decimal("1363.63636")) == Decimal("1363.6364")
        assert LineItemBuilder.round_minute_rate(Decimal("2.0833333")) == Decimal("2.083333")

    def test_create_earning_line(self):
        line = LineItemBuilder.create_earning_line(
            EarningType.OVERTIME,
            "OT_REG",
            "Overtime - Regular",
            Decimal("312.499"),
            quantity=Decimal("2"),
            unit="hours",
        )

        assert line.amount == Decimal("312.50")
        assert line.is_taxable is True
        assert line.adjustment_id is None

    def test_negative_earning_for_absence(self):
        line = LineItemBuilder.create_earning_line(
            EarningType.BASIC, "ABSENT", "Absences", Decimal("-1363.6364")
        )
        assert line.amount == Decimal("-1363.64")

    def test_deduction_amount_always_positive(self):
        line = LineItemBuilder.create_deduction_line(
            DeductionType.OTHER, "UNIFORM", "Uniform", Decimal("-500")
        )
        assert line.amount == Decimal("500.00")

    def test_statutory_deduction_carries_table_type(self):
        table_id = uuid4()
        line = LineItemBuilder.create_deduction_line(
            DeductionType.SSS,
            "SSS_ER",
            "SSS Contribution (Employer)",
            Decimal("2850"),
            basis_amount=Decimal("30000"),
            is_employer_share=True,
            contribution_table_id=table_id,
        )

        assert line.is_employer_share is True
        assert line.is_employee_share is False
        assert line.contribution_table_type == "sss"
        assert line.contribution_table_id == table_id

    def test_loan_deduction_has_no_table_type(self):
        loan_id = uuid4()
        line = LineItemBuilder.create_deduction_line(
            DeductionType.LOAN, "SSS_SALARY", "SSS Salary Loan", Decimal("1000"), loan_id=loan_id
        )

        assert line.contribution_table_type is None
        assert line.loan_id == loan_id

    def test_rows_keep_line_order(self):
        entry_id = uuid4()
        lines = [
            LineItemBuilder.create_earning_line(EarningType.BASIC, "BASIC", "Basic Pay", Decimal("1")),
            LineItemBuilder.create_earning_line(EarningType.BONUS, "BONUS", "Bonus", Decimal("2")),
        ]
        rows = LineItemBuilder.to_earning_rows(entry_id, lines)

        assert [row.code for row in rows] == ["BASIC", "BONUS"]
        assert [row.sort_order for row in rows] == [0, 1]
        assert all(row.payroll_entry_id == entry_id for row in rows)
        assert rows[0].earning_type == "basic"
