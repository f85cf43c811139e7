"""Statutory contribution and withholding tax tables in force for 2025."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.models import (
    PagibigContributionTable,
    PagibigContributionTier,
    PhilhealthContributionTable,
    SssContributionBracket,
    SssContributionTable,
    WithholdingTaxBracket,
    WithholdingTaxTable,
)

logger = logging.getLogger(__name__)

EFFECTIVE_2025 = date(2025, 1, 1)
TRAIN_EFFECTIVE = date(2023, 1, 1)

# (min, max, base_tax, excess_rate) per pay period, TRAIN law schedule from 2023
TAX_BRACKETS: dict[str, list[tuple[str, str | None, str, str]]] = {
    "daily": [
        ("0", "685", "0", "0"),
        ("685", "1096", "0", "0.15"),
        ("1096", "2192", "61.65", "0.20"),
        ("2192", "5479", "280.85", "0.25"),
        ("5479", "21918", "1102.60", "0.30"),
        ("21918", None, "6034.30", "0.35"),
    ],
    "weekly": [
        ("0", "4808", "0", "0"),
        ("4808", "7692", "0", "0.15"),
        ("7692", "15385", "432.60", "0.20"),
        ("15385", "38462", "1971.20", "0.25"),
        ("38462", "153846", "7740.45", "0.30"),
        ("153846", None, "42355.65", "0.35"),
    ],
    "semi_monthly": [
        ("0", "10417", "0", "0"),
        ("10417", "16667", "0", "0.15"),
        ("16667", "33333", "937.50", "0.20"),
        ("33333", "83333", "4270.70", "0.25"),
        ("83333", "333333", "16770.70", "0.30"),
        ("333333", None, "91770.70", "0.35"),
    ],
    "monthly": [
        ("0", "20833", "0", "0"),
        ("20833", "33333", "0", "0.15"),
        ("33333", "66667", "1875.00", "0.20"),
        ("66667", "166667", "8541.80", "0.25"),
        ("166667", "666667", "33541.80", "0.30"),
        ("666667", None, "183541.80", "0.35"),
    ],
}


def build_sss_table() -> SssContributionTable:
    """53 brackets, MSC 4,000 to 30,000 in 500 steps; EC is 10 up to MSC 15,000 and 30 above."""
    table = SssContributionTable(
        name="2025 SSS Contribution Table",
        effective_from=EFFECTIVE_2025,
        is_active=True,
        employee_rate=Decimal("0.0450"),
        employer_rate=Decimal("0.0950"),
    )
    for msc in range(4000, 30001, 500):
        min_salary = Decimal("0") if msc == 4000 else Decimal(msc - 250)
        max_salary = None if msc == 30000 else Decimal(msc) + Decimal("249.99")
        table.brackets.append(
            SssContributionBracket(
                min_salary=min_salary,
                max_salary=max_salary,
                monthly_salary_credit=Decimal(msc),
                ec_contribution=Decimal("10") if msc <= 15000 else Decimal("30"),
            )
        )
    return table


def build_philhealth_table() -> PhilhealthContributionTable:
    return PhilhealthContributionTable(
        name="2025 PhilHealth Contribution Table (5% premium)",
        effective_from=EFFECTIVE_2025,
        is_active=True,
        premium_rate=Decimal("0.0500"),
        employee_share_rate=Decimal("0.5000"),
        employer_share_rate=Decimal("0.5000"),
        salary_floor=Decimal("10000.00"),
        salary_ceiling=Decimal("100000.00"),
        min_contribution=Decimal("500.00"),
        max_contribution=Decimal("5000.00"),
    )


def build_pagibig_table() -> PagibigContributionTable:
    table = PagibigContributionTable(
        name="2025 Pag-IBIG Contribution Table",
        effective_from=EFFECTIVE_2025,
        is_active=True,
        max_monthly_compensation=Decimal("5000.00"),
    )
    table.tiers.append(
        PagibigContributionTier(
            min_salary=Decimal("0"),
            max_salary=Decimal("1500.00"),
            employee_rate=Decimal("0.0100"),
            employer_rate=Decimal("0.0200"),
        )
    )
    table.tiers.append(
        PagibigContributionTier(
            min_salary=Decimal("1500.01"),
            max_salary=None,
            employee_rate=Decimal("0.0200"),
            employer_rate=Decimal("0.0200"),
        )
    )
    return table


def build_tax_tables() -> list[WithholdingTaxTable]:
    tables = []
    for pay_period, brackets in TAX_BRACKETS.items():
        table = WithholdingTaxTable(
            name=f"BIR Withholding Tax Table - {pay_period.replace('_', '-').title()}",
            pay_period=pay_period,
            effective_from=TRAIN_EFFECTIVE,
            is_active=True,
        )
        for min_comp, max_comp, base_tax, excess_rate in brackets:
            table.brackets.append(
                WithholdingTaxBracket(
                    min_compensation=Decimal(min_comp),
                    max_compensation=Decimal(max_comp) if max_comp is not None else None,
                    base_tax=Decimal(base_tax),
                    excess_rate=Decimal(excess_rate),
                )
            )
        tables.append(table)
    return tables


async def _is_empty(session: AsyncSession, model: type) -> bool:
    count = await session.scalar(select(func.count()).select_from(model))
    return not count


async def seed_contribution_tables(session: AsyncSession) -> list[str]:
    """Insert each kind of table only if none exists yet; returns the kinds seeded."""
    seeded = []
    if await _is_empty(session, SssContributionTable):
        session.add(build_sss_table())
        seeded.append("sss")
    if await _is_empty(session, PhilhealthContributionTable):
        session.add(build_philhealth_table())
        seeded.append("philhealth")
    if await _is_empty(session, PagibigContributionTable):
        session.add(build_pagibig_table())
        seeded.append("pagibig")
    if await _is_empty(session, WithholdingTaxTable):
        session.add_all(build_tax_tables())
        seeded.append("withholding_tax")
    await session.flush()
    logger.info("Seeded contribution tables: %s", ", ".join(seeded) or "none")
    return seeded
