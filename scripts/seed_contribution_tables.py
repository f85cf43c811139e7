"""Seed script for statutory contribution tables.

Run with:
    python scripts/seed_contribution_tables.py

Creates missing tables, then the 2025 SSS, PhilHealth and Pag-IBIG tables
and the TRAIN law withholding tax tables. Kinds that already have a table are left alone.
"""

from __future__ import annotations

import asyncio

from ph_payroll.database import close_db, create_tables, get_session
from ph_payroll.seeds import seed_contribution_tables


async def main() -> None:
    """Run all seed functions."""
    await create_tables()
    async with get_session() as session:
        seeded = await seed_contribution_tables(session)

    await close_db()
    if seeded:
        print(f"Seeded: {', '.join(seeded)}")
    else:
        print("All contribution tables already exist, skipping...")


if __name__ == "__main__":
    asyncio.run(main())
