"""Seed script for the Panama income tax table and CSS/SE rates.

Run with:
    python scripts/seed_tax_config.py --company-id <uuid>

Creates the 2025 ISR brackets for the company and the contribution rates
shared by every company. Existing rows for the same effective date are left
untouched.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planilla_engine.calculators.income_tax import cumulative_brackets
from planilla_engine.database import get_session
from planilla_engine.models import (
    ContributionRateConfiguration,
    TaxBracketRow,
    TaxConfiguration,
)

EFFECTIVE_FROM = date(2025, 1, 1)

# (lower, upper, rate) on annual net taxable income
ISR_BRACKETS = [
    (Decimal("0"), Decimal("11000"), Decimal("0")),
    (Decimal("11000"), Decimal("50000"), Decimal("0.15")),
    (Decimal("50000"), None, Decimal("0.25")),
]

DEPENDENT_DEDUCTION = Decimal("800")
MAX_DEPENDENTS = 3

CSS_CAP_TIERS = [
    {"salary_threshold": "0", "cap": "1500"},
    {"salary_threshold": "2000", "cap": "2000"},
    {"salary_threshold": "2500", "cap": "2500"},
]


async def seed_income_tax(session: AsyncSession, company_id: UUID) -> None:
    """Create the ISR table for a company."""
    result = await session.execute(
        select(TaxConfiguration).where(
            TaxConfiguration.company_id == company_id,
            TaxConfiguration.effective_from == EFFECTIVE_FROM,
        )
    )
    if result.scalar_one_or_none():
        print("Income tax configuration already exists, skipping...")
        return

    session.add(
        TaxConfiguration(
            company_id=company_id,
            effective_from=EFFECTIVE_FROM,
            dependent_deduction=DEPENDENT_DEDUCTION,
            max_dependents=MAX_DEPENDENTS,
            brackets=[
                TaxBracketRow(
                    lower_bound=b.lower_bound,
                    upper_bound=b.upper_bound,
                    rate=b.rate,
                    fixed_amount_below=b.fixed_amount_below,
                )
                for b in cumulative_brackets(ISR_BRACKETS)
            ],
        )
    )
    print(f"Created ISR table effective {EFFECTIVE_FROM} for company {company_id}")


async def seed_contribution_rates(session: AsyncSession) -> None:
    """Create CSS/SE rates, cap tiers and risk premiums."""
    result = await session.execute(
        select(ContributionRateConfiguration).where(
            ContributionRateConfiguration.effective_from == EFFECTIVE_FROM
        )
    )
    if result.scalar_one_or_none():
        print("Contribution rates already exist, skipping...")
        return

    session.add(
        ContributionRateConfiguration(
            effective_from=EFFECTIVE_FROM,
            css_employee_rate=Decimal("0.0975"),
            css_employer_rate=Decimal("0.1325"),
            se_employee_rate=Decimal("0.0125"),
            se_employer_rate=Decimal("0.0150"),
            risk_rate_low=Decimal("0.0056"),
            risk_rate_medium=Decimal("0.0250"),
            risk_rate_high=Decimal("0.0539"),
            css_cap_tiers=CSS_CAP_TIERS,
        )
    )
    print(f"Created contribution rates effective {EFFECTIVE_FROM}")


async def main(company_id: UUID) -> None:
    """Run all seed functions."""
    async with get_session() as session:
        await seed_income_tax(session, company_id)
        await seed_contribution_rates(session)
    print("Seed complete!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed Panama tax configuration")
    parser.add_argument("--company-id", type=UUID, required=True)
    args = parser.parse_args()
    asyncio.run(main(args.company_id))
