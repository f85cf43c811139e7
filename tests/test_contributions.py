"""Tests for statutory contribution and withholding tax calculators."""

from datetime import date
from decimal import Decimal

import pytest

from ph_payroll.calculators.brackets import BracketTableError
from ph_payroll.calculators.contributions import (
    ContributionService,
    ContributionTableNotFoundError,
    PagibigCalculator,
    PhilhealthCalculator,
    SssCalculator,
    SssTableSnapshot,
    WithholdingTaxCalculator,
    pagibig_snapshot,
    philhealth_snapshot,
    sss_snapshot,
    tax_snapshot,
)
from ph_payroll.calculators.types import ContributionType, SssBracket, TaxPayPeriod
from ph_payroll.seeds import (
    build_pagibig_table,
    build_philhealth_table,
    build_sss_table,
    build_tax_tables,
)

AS_OF = date(2025, 3, 31)


def _gapped_sss_table(effective_from: date) -> SssTableSnapshot:
    return SssTableSnapshot(
        table_id=None,
        name="broken",
        effective_from=effective_from,
        employee_rate=Decimal("0.045"),
        employer_rate=Decimal("0.095"),
        brackets=(
            SssBracket(Decimal("0"), Decimal("4249.99"), Decimal("4000")),
            SssBracket(Decimal("4750"), None, Decimal("5000")),
        ),
    )


@pytest.fixture
def sss() -> SssCalculator:
    return SssCalculator([sss_snapshot(build_sss_table())])


@pytest.fixture
def philhealth() -> PhilhealthCalculator:
    return PhilhealthCalculator([philhealth_snapshot(build_philhealth_table())])


@pytest.fixture
def pagibig() -> PagibigCalculator:
    return PagibigCalculator([pagibig_snapshot(build_pagibig_table())])


@pytest.fixture
def tax() -> WithholdingTaxCalculator:
    return WithholdingTaxCalculator([tax_snapshot(t) for t in build_tax_tables()])


class TestSssCalculator:
    """SSS shares are taken on the Monthly Salary Credit."""

    def test_top_bracket(self, sss: SssCalculator):
        result = sss.calculate(Decimal("30000"), AS_OF)

        assert result.found
        assert result.basis_amount == Decimal("30000")
        assert result.employee_share == Decimal("1350.00")
        assert result.employer_share == Decimal("2850.00")
        assert result.total == Decimal("4200.00")
        assert result.ec_contribution == Decimal("30")

    def test_salary_above_ceiling_uses_maximum_credit(self, sss: SssCalculator):
        result = sss.calculate(Decimal("85000"), AS_OF)
        assert result.basis_amount == Decimal("30000")

    def test_bracket_edges(self, sss: SssCalculator):
        assert sss.calculate(Decimal("4249.99"), AS_OF).basis_amount == Decimal("4000")
        assert sss.calculate(Decimal("4250.00"), AS_OF).basis_amount == Decimal("4500")

    def test_low_salary_employer_compensation(self, sss: SssCalculator):
        result = sss.calculate(Decimal("4500"), AS_OF)

        assert result.employee_share == Decimal("202.50")
        assert result.ec_contribution == Decimal("10")

    def test_missing_table_returns_zero_with_error(self, sss: SssCalculator):
        result = sss.calculate(Decimal("30000"), date(2024, 12, 31))

        assert not result.found
        assert result.total == Decimal("0")
        assert result.employee_share == Decimal("0")

    def test_gapped_table_rejected_when_selected(self):
        sss = SssCalculator([_gapped_sss_table(AS_OF)])

        with pytest.raises(BracketTableError, match="gap between 4249.99 and 4750"):
            sss.calculate(Decimal("30000"), AS_OF)

    def test_superseded_gapped_table_ignored(self):
        sss = SssCalculator([_gapped_sss_table(date(2024, 1, 1)), sss_snapshot(build_sss_table())])

        assert sss.calculate(Decimal("30000"), AS_OF).employee_share == Decimal("1350.00")


class TestPhilhealthCalculator:
    """PhilHealth premium on a clamped basis."""

    def test_below_floor_uses_floor(self, philhealth: PhilhealthCalculator):
        result = philhealth.calculate(Decimal("1000"), AS_OF)

        assert result.basis_amount == Decimal("10000.00")
        assert result.total == Decimal("500.00")
        assert result.employee_share == Decimal("250.00")

    def test_mid_range(self, philhealth: PhilhealthCalculator):
        result = philhealth.calculate(Decimal("30000"), AS_OF)

        assert result.total == Decimal("1500.00")
        assert result.employee_share == Decimal("750.00")
        assert result.employer_share == Decimal("750.00")

    def test_above_ceiling_uses_ceiling(self, philhealth: PhilhealthCalculator):
        result = philhealth.calculate(Decimal("150000"), AS_OF)

        assert result.basis_amount == Decimal("100000.00")
        assert result.total == Decimal("5000.00")


class TestPagibigCalculator:
    """Pag-IBIG tier by salary, rate on the capped basis."""

    def test_lower_tier(self, pagibig: PagibigCalculator):
        result = pagibig.calculate(Decimal("1500"), AS_OF)

        assert result.employee_share == Decimal("15.00")
        assert result.employer_share == Decimal("30.00")

    def test_upper_tier_capped(self, pagibig: PagibigCalculator):
        result = pagibig.calculate(Decimal("30000"), AS_OF)

        assert result.basis_amount == Decimal("5000.00")
        assert result.employee_share == Decimal("100.00")
        assert result.employer_share == Decimal("100.00")


class TestWithholdingTaxCalculator:
    """Progressive withholding tax."""

    def test_exempt_bracket(self, tax: WithholdingTaxCalculator):
        assert tax.calculate(Decimal("20833"), AS_OF).employee_share == Decimal("0")

    @pytest.mark.parametrize(
        "income,pay_period,expected",
        [
            ("27800", TaxPayPeriod.MONTHLY, "1045.05"),
            ("30000", TaxPayPeriod.MONTHLY, "1375.05"),
            ("33333", TaxPayPeriod.MONTHLY, "1875.00"),
            ("50000", TaxPayPeriod.MONTHLY, "5208.40"),
            ("15000", TaxPayPeriod.SEMI_MONTHLY, "687.45"),
        ],
    )
    def test_known_amounts(self, tax, income, pay_period, expected):
        result = tax.calculate(Decimal(income), AS_OF, pay_period)
        assert result.employee_share == Decimal(expected)
        assert result.employer_share == Decimal("0")

    def test_tax_at_bracket_minimum_is_base_tax(self):
        for table in build_tax_tables():
            snapshot = tax_snapshot(table)
            for bracket in snapshot.brackets:
                assert WithholdingTaxCalculator.bracket_tax(bracket, bracket.min_amount) == (
                    bracket.base_tax
                ), f"{snapshot.name} bracket {bracket.min_amount}"

    def test_tax_is_continuous_across_boundaries(self):
        for table in build_tax_tables():
            snapshot = tax_snapshot(table)
            for lower, upper in zip(snapshot.brackets, snapshot.brackets[1:]):
                assert WithholdingTaxCalculator.bracket_tax(lower, upper.min_amount) == (
                    upper.base_tax
                ), f"{snapshot.name} boundary {upper.min_amount}"

    def test_zero_income(self, tax: WithholdingTaxCalculator):
        result = tax.calculate(Decimal("0"), AS_OF)
        assert result.found
        assert result.total == Decimal("0")

    def test_missing_pay_period_table(self):
        calculator = WithholdingTaxCalculator(
            [tax_snapshot(t) for t in build_tax_tables() if t.pay_period == "monthly"]
        )
        result = calculator.calculate(Decimal("15000"), AS_OF, TaxPayPeriod.SEMI_MONTHLY)
        assert not result.found


class TestContributionService:
    """Database-backed lookups."""

    async def test_calculate_all(self, session, contribution_tables):
        summary = await ContributionService(session).calculate_all(Decimal("30000"), AS_OF)

        assert summary.errors == []
        assert summary.total_employee_contributions == Decimal("2200.00")
        assert summary.taxable_income == Decimal("27800.00")
        assert summary.withholding_tax.employee_share == Decimal("1045.05")
        assert summary.net_pay == Decimal("26754.95")

    async def test_missing_tables_reported_not_raised(self, session):
        service = ContributionService(session)
        result = await service.calculate_contribution(ContributionType.SSS, Decimal("30000"), AS_OF)

        assert result.error is not None
        assert result.total == Decimal("0")

    async def test_require_table_raises(self, session):
        with pytest.raises(ContributionTableNotFoundError):
            await ContributionService(session).require_table(ContributionType.PHILHEALTH, AS_OF)

    async def test_preload_caches_tables(self, session, contribution_tables):
        service = await ContributionService(session).preload()

        assert await service.has_all_tables(AS_OF, include_tax=True)
        tables = await service.get_active_tables(AS_OF, TaxPayPeriod.SEMI_MONTHLY)
        assert all(table_id is not None for table_id in tables.values())
