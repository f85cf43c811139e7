"""Statutory contribution and withholding tax calculators.

Pure calculators operate on immutable table snapshots so results depend only
on (compensation, as_of, tables). ContributionService loads the snapshots
from the database and caches them for the duration of a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.calculators.brackets import (
    find_bracket,
    order_brackets,
    select_table,
    validate_brackets,
)
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import (
    ZERO,
    ContributionResult,
    ContributionType,
    PagibigTier,
    SssBracket,
    TaxBracket,
    TaxPayPeriod,
)
from ph_payroll.models import (
    PagibigContributionTable,
    PhilhealthContributionTable,
    SssContributionTable,
    WithholdingTaxTable,
)

logger = logging.getLogger(__name__)

round_to_cents = LineItemBuilder.round_to_cents


class ContributionTableNotFoundError(Exception):
    """Raised when a required contribution table is not found."""

    def __init__(
        self,
        contribution_type: ContributionType | str,
        as_of: date,
        pay_period: TaxPayPeriod | str | None = None,
        reason: str | None = None,
    ):
        self.contribution_type = getattr(contribution_type, "value", contribution_type)
        self.as_of = as_of
        self.pay_period = getattr(pay_period, "value", pay_period)
        msg = reason or f"No active {self.contribution_type} table effective {as_of}"
        if self.pay_period and not reason:
            msg += f" for {self.pay_period} pay period"
        super().__init__(msg)


# ===== Table snapshots =====


@dataclass(frozen=True)
class SssTableSnapshot:
    table_id: UUID | None
    name: str
    effective_from: date
    employee_rate: Decimal
    employer_rate: Decimal
    brackets: tuple[SssBracket, ...]
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "brackets", order_brackets(self.brackets))


@dataclass(frozen=True)
class PhilhealthTableSnapshot:
    table_id: UUID | None
    name: str
    effective_from: date
    premium_rate: Decimal
    employee_share_rate: Decimal
    employer_share_rate: Decimal
    salary_floor: Decimal
    salary_ceiling: Decimal
    min_contribution: Decimal
    max_contribution: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class PagibigTableSnapshot:
    table_id: UUID | None
    name: str
    effective_from: date
    max_monthly_compensation: Decimal
    tiers: tuple[PagibigTier, ...]
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "tiers", order_brackets(self.tiers))


@dataclass(frozen=True)
class TaxTableSnapshot:
    table_id: UUID | None
    name: str
    pay_period: TaxPayPeriod
    effective_from: date
    brackets: tuple[TaxBracket, ...]
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "brackets", order_brackets(self.brackets))


def sss_snapshot(table: SssContributionTable) -> SssTableSnapshot:
    return SssTableSnapshot(
        table_id=table.sss_contribution_table_id,
        name=table.name,
        effective_from=table.effective_from,
        is_active=table.is_active,
        employee_rate=table.employee_rate,
        employer_rate=table.employer_rate,
        brackets=tuple(
            SssBracket(
                min_amount=b.min_salary,
                max_amount=b.max_salary,
                monthly_salary_credit=b.monthly_salary_credit,
                ec_contribution=b.ec_contribution,
            )
            for b in table.brackets
        ),
    )


def philhealth_snapshot(table: PhilhealthContributionTable) -> PhilhealthTableSnapshot:
    return PhilhealthTableSnapshot(
        table_id=table.philhealth_contribution_table_id,
        name=table.name,
        effective_from=table.effective_from,
        is_active=table.is_active,
        premium_rate=table.premium_rate,
        employee_share_rate=table.employee_share_rate,
        employer_share_rate=table.employer_share_rate,
        salary_floor=table.salary_floor,
        salary_ceiling=table.salary_ceiling,
        min_contribution=table.min_contribution,
        max_contribution=table.max_contribution,
    )


def pagibig_snapshot(table: PagibigContributionTable) -> PagibigTableSnapshot:
    return PagibigTableSnapshot(
        table_id=table.pagibig_contribution_table_id,
        name=table.name,
        effective_from=table.effective_from,
        is_active=table.is_active,
        max_monthly_compensation=table.max_monthly_compensation,
        tiers=tuple(
            PagibigTier(
                min_amount=t.min_salary,
                max_amount=t.max_salary,
                employee_rate=t.employee_rate,
                employer_rate=t.employer_rate,
            )
            for t in table.tiers
        ),
    )


def tax_snapshot(table: WithholdingTaxTable) -> TaxTableSnapshot:
    return TaxTableSnapshot(
        table_id=table.withholding_tax_table_id,
        name=table.name,
        pay_period=TaxPayPeriod(table.pay_period),
        effective_from=table.effective_from,
        is_active=table.is_active,
        brackets=tuple(
            TaxBracket(
                min_amount=b.min_compensation,
                max_amount=b.max_compensation,
                base_tax=b.base_tax,
                excess_rate=b.excess_rate,
            )
            for b in table.brackets
        ),
    )


# ===== Pure calculators =====


class SssCalculator:
    """SSS: employee/employer rates applied to the bracket's Monthly Salary Credit."""

    def __init__(self, tables: tuple[SssTableSnapshot, ...] | list[SssTableSnapshot]):
        self.tables = tuple(tables)

    def calculate(self, compensation: Decimal, as_of: date) -> ContributionResult:
        table = select_table(self.tables, as_of)
        if table is None:
            return ContributionResult.zero(
                ContributionType.SSS, error=f"No active SSS contribution table effective {as_of}"
            )

        salary = round_to_cents(max(compensation, ZERO))
        bracket = find_bracket(validate_brackets(table.name, table.brackets), salary)
        if bracket is None:
            return ContributionResult.zero(
                ContributionType.SSS,
                error=f"No SSS bracket covers salary {salary} in '{table.name}'",
                table_id=table.table_id,
            )

        msc = bracket.monthly_salary_credit
        employee_share = round_to_cents(msc * table.employee_rate)
        employer_share = round_to_cents(msc * table.employer_rate)
        return ContributionResult(
            contribution_type=ContributionType.SSS,
            total=employee_share + employer_share,
            employee_share=employee_share,
            employer_share=employer_share,
            basis_amount=msc,
            ec_contribution=bracket.ec_contribution,
            table_id=table.table_id,
        )


class PhilhealthCalculator:
    """PhilHealth: premium on the salary clamped to [floor, ceiling]."""

    def __init__(
        self, tables: tuple[PhilhealthTableSnapshot, ...] | list[PhilhealthTableSnapshot]
    ):
        self.tables = tuple(tables)

    def calculate(self, compensation: Decimal, as_of: date) -> ContributionResult:
        table = select_table(self.tables, as_of)
        if table is None:
            return ContributionResult.zero(
                ContributionType.PHILHEALTH,
                error=f"No active PhilHealth contribution table effective {as_of}",
            )

        basis = min(max(compensation, table.salary_floor), table.salary_ceiling)
        total = round_to_cents(basis * table.premium_rate)
        total = min(max(total, table.min_contribution), table.max_contribution)

        return ContributionResult(
            contribution_type=ContributionType.PHILHEALTH,
            total=total,
            employee_share=round_to_cents(total * table.employee_share_rate),
            employer_share=round_to_cents(total * table.employer_share_rate),
            basis_amount=round_to_cents(basis),
            table_id=table.table_id,
        )


class PagibigCalculator:
    """Pag-IBIG: tier chosen by actual salary, rate applied to the capped basis."""

    def __init__(self, tables: tuple[PagibigTableSnapshot, ...] | list[PagibigTableSnapshot]):
        self.tables = tuple(tables)

    def calculate(self, compensation: Decimal, as_of: date) -> ContributionResult:
        table = select_table(self.tables, as_of)
        if table is None:
            return ContributionResult.zero(
                ContributionType.PAGIBIG,
                error=f"No active Pag-IBIG contribution table effective {as_of}",
            )

        salary = round_to_cents(max(compensation, ZERO))
        tier = find_bracket(validate_brackets(table.name, table.tiers), salary)
        if tier is None:
            return ContributionResult.zero(
                ContributionType.PAGIBIG,
                error=f"No Pag-IBIG tier covers salary {salary} in '{table.name}'",
                table_id=table.table_id,
            )

        basis = min(salary, table.max_monthly_compensation)
        employee_share = round_to_cents(basis * tier.employee_rate)
        employer_share = round_to_cents(basis * tier.employer_rate)
        return ContributionResult(
            contribution_type=ContributionType.PAGIBIG,
            total=employee_share + employer_share,
            employee_share=employee_share,
            employer_share=employer_share,
            basis_amount=basis,
            table_id=table.table_id,
        )


class WithholdingTaxCalculator:
    """Progressive withholding: base_tax + excess_rate * (income - bracket.min)."""

    def __init__(self, tables: tuple[TaxTableSnapshot, ...] | list[TaxTableSnapshot]):
        self.tables = tuple(tables)

    @staticmethod
    def bracket_tax(bracket: TaxBracket, income: Decimal) -> Decimal:
        return round_to_cents(bracket.base_tax + bracket.excess_rate * (income - bracket.min_amount))

    def calculate(
        self,
        compensation: Decimal,
        as_of: date,
        pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY,
    ) -> ContributionResult:
        pay_period = TaxPayPeriod(pay_period)
        table = select_table((t for t in self.tables if t.pay_period == pay_period), as_of)
        if table is None:
            return ContributionResult.zero(
                ContributionType.WITHHOLDING_TAX,
                error=(
                    f"No active {pay_period.value} withholding tax table effective {as_of}"
                ),
            )

        income = round_to_cents(compensation)
        if income <= ZERO:
            return ContributionResult.zero(ContributionType.WITHHOLDING_TAX, table_id=table.table_id)

        bracket = find_bracket(validate_brackets(table.name, table.brackets), income)
        if bracket is None:
            return ContributionResult.zero(
                ContributionType.WITHHOLDING_TAX,
                error=f"No withholding tax bracket covers {income} in '{table.name}'",
                table_id=table.table_id,
            )

        tax = self.bracket_tax(bracket, income)
        return ContributionResult(
            contribution_type=ContributionType.WITHHOLDING_TAX,
            total=tax,
            employee_share=tax,
            employer_share=ZERO,
            basis_amount=income,
            table_id=table.table_id,
        )


# ===== Database-backed service =====


@dataclass
class ContributionSummary:
    """All statutory amounts for a monthly salary."""

    salary: Decimal
    sss: ContributionResult
    philhealth: ContributionResult
    pagibig: ContributionResult
    withholding_tax: ContributionResult
    taxable_income: Decimal
    errors: list[str] = field(default_factory=list)

    @property
    def total_employee_contributions(self) -> Decimal:
        return (
            self.sss.employee_share + self.philhealth.employee_share + self.pagibig.employee_share
        )

    @property
    def total_employer_contributions(self) -> Decimal:
        return (
            self.sss.employer_share + self.philhealth.employer_share + self.pagibig.employer_share
        )

    @property
    def total_deductions(self) -> Decimal:
        return self.total_employee_contributions + self.withholding_tax.employee_share

    @property
    def net_pay(self) -> Decimal:
        return self.salary - self.total_deductions


class ContributionService:
    """Loads contribution tables and dispatches to the pure calculators.

    Tables are read once per service instance. Call ``preload()`` before
    sharing an instance across concurrent workers so no further queries
    are issued on the loading session.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._cache: dict[str, Any] = {}

    async def preload(self) -> ContributionService:
        await self.get_sss_calculator()
        await self.get_philhealth_calculator()
        await self.get_pagibig_calculator()
        await self.get_tax_calculator()
        return self

    async def get_sss_calculator(self) -> SssCalculator:
        if "sss" not in self._cache:
            result = await self.session.execute(
                select(SssContributionTable)
                .where(SssContributionTable.is_active.is_(True))
                .options(selectinload(SssContributionTable.brackets))
            )
            tables = [sss_snapshot(t) for t in result.scalars().all()]
            self._cache["sss"] = SssCalculator(tables)
        return self._cache["sss"]

    async def get_philhealth_calculator(self) -> PhilhealthCalculator:
        if "philhealth" not in self._cache:
            result = await self.session.execute(
                select(PhilhealthContributionTable).where(
                    PhilhealthContributionTable.is_active.is_(True)
                )
            )
            tables = [philhealth_snapshot(t) for t in result.scalars().all()]
            self._cache["philhealth"] = PhilhealthCalculator(tables)
        return self._cache["philhealth"]

    async def get_pagibig_calculator(self) -> PagibigCalculator:
        if "pagibig" not in self._cache:
            result = await self.session.execute(
                select(PagibigContributionTable)
                .where(PagibigContributionTable.is_active.is_(True))
                .options(selectinload(PagibigContributionTable.tiers))
            )
            tables = [pagibig_snapshot(t) for t in result.scalars().all()]
            self._cache["pagibig"] = PagibigCalculator(tables)
        return self._cache["pagibig"]

    async def get_tax_calculator(self) -> WithholdingTaxCalculator:
        if "withholding_tax" not in self._cache:
            result = await self.session.execute(
                select(WithholdingTaxTable)
                .where(WithholdingTaxTable.is_active.is_(True))
                .options(selectinload(WithholdingTaxTable.brackets))
            )
            tables = [tax_snapshot(t) for t in result.scalars().all()]
            self._cache["withholding_tax"] = WithholdingTaxCalculator(tables)
        return self._cache["withholding_tax"]

    async def calculate_sss(self, compensation: Decimal, as_of: date) -> ContributionResult:
        return (await self.get_sss_calculator()).calculate(compensation, as_of)

    async def calculate_philhealth(self, compensation: Decimal, as_of: date) -> ContributionResult:
        return (await self.get_philhealth_calculator()).calculate(compensation, as_of)

    async def calculate_pagibig(self, compensation: Decimal, as_of: date) -> ContributionResult:
        return (await self.get_pagibig_calculator()).calculate(compensation, as_of)

    async def calculate_withholding_tax(
        self,
        taxable_income: Decimal,
        as_of: date,
        pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY,
    ) -> ContributionResult:
        return (await self.get_tax_calculator()).calculate(taxable_income, as_of, pay_period)

    async def calculate_contribution(
        self,
        contribution_type: ContributionType | str,
        compensation: Decimal,
        as_of: date,
        pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY,
    ) -> ContributionResult:
        """Calculate one contribution type. Never raises for a missing table."""
        contribution_type = ContributionType(contribution_type)
        if contribution_type == ContributionType.SSS:
            result = await self.calculate_sss(compensation, as_of)
        elif contribution_type == ContributionType.PHILHEALTH:
            result = await self.calculate_philhealth(compensation, as_of)
        elif contribution_type == ContributionType.PAGIBIG:
            result = await self.calculate_pagibig(compensation, as_of)
        else:
            result = await self.calculate_withholding_tax(compensation, as_of, pay_period)

        if result.error:
            logger.warning("Contribution lookup failed: %s", result.error)
        return result

    async def calculate_all(self, salary: Decimal, as_of: date) -> ContributionSummary:
        """Monthly contributions and withholding tax for a monthly salary."""
        sss = await self.calculate_sss(salary, as_of)
        philhealth = await self.calculate_philhealth(salary, as_of)
        pagibig = await self.calculate_pagibig(salary, as_of)

        employee_total = sss.employee_share + philhealth.employee_share + pagibig.employee_share
        taxable_income = max(salary - employee_total, ZERO)
        tax = await self.calculate_withholding_tax(taxable_income, as_of, TaxPayPeriod.MONTHLY)

        results = (sss, philhealth, pagibig, tax)
        return ContributionSummary(
            salary=salary,
            sss=sss,
            philhealth=philhealth,
            pagibig=pagibig,
            withholding_tax=tax,
            taxable_income=taxable_income,
            errors=[r.error for r in results if r.error],
        )

    async def get_active_tables(
        self, as_of: date, pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY
    ) -> dict[str, UUID | None]:
        """Table ids that would be used on as_of (None when missing)."""
        sss = select_table((await self.get_sss_calculator()).tables, as_of)
        philhealth = select_table((await self.get_philhealth_calculator()).tables, as_of)
        pagibig = select_table((await self.get_pagibig_calculator()).tables, as_of)
        tax = select_table(
            (t for t in (await self.get_tax_calculator()).tables if t.pay_period == pay_period),
            as_of,
        )
        return {
            ContributionType.SSS.value: sss.table_id if sss else None,
            ContributionType.PHILHEALTH.value: philhealth.table_id if philhealth else None,
            ContributionType.PAGIBIG.value: pagibig.table_id if pagibig else None,
            ContributionType.WITHHOLDING_TAX.value: tax.table_id if tax else None,
        }

    async def has_all_tables(
        self,
        as_of: date,
        include_tax: bool = False,
        pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY,
    ) -> bool:
        tables = await self.get_active_tables(as_of, pay_period)
        if not include_tax:
            tables.pop(ContributionType.WITHHOLDING_TAX.value)
        return all(table_id is not None for table_id in tables.values())

    async def require_table(
        self,
        contribution_type: ContributionType | str,
        as_of: date,
        pay_period: TaxPayPeriod = TaxPayPeriod.MONTHLY,
    ) -> UUID | None:
        """Return the table id for as_of, raising ContributionTableNotFoundError if absent."""
        contribution_type = ContributionType(contribution_type)
        tables = await self.get_active_tables(as_of, pay_period)
        if tables[contribution_type.value] is None:
            raise ContributionTableNotFoundError(
                contribution_type,
                as_of,
                pay_period if contribution_type == ContributionType.WITHHOLDING_TAX else None,
            )
        return tables[contribution_type.value]
