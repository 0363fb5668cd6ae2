"""Pytest fixtures for planilla engine tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planilla_engine.calculators.income_tax import cumulative_brackets
from planilla_engine.calculators.types import (
    AbsenceDeduction,
    ApprovedAdvance,
    ApprovedOvertime,
    ContributionRates,
    CssCapTier,
    Deduction,
    EmployeeSnapshot,
    LoanInstallment,
    PayPeriod,
    RiskLevel,
    TaxConfig,
)
from planilla_engine.database import get_engine, make_session_factory
from planilla_engine.models import (
    Base,
    ContributionRateConfiguration,
    Employee,
    TaxBracketRow,
    TaxConfiguration,
)

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

EFFECTIVE_FROM = date(2025, 1, 1)
JANUARY = PayPeriod(date(2025, 1, 1), date(2025, 1, 31))

PANAMA_BRACKET_ROWS = [
    (Decimal("0"), Decimal("11000"), Decimal("0")),
    (Decimal("11000"), Decimal("50000"), Decimal("0.15")),
    (Decimal("50000"), None, Decimal("0.25")),
]

CSS_CAP_TIERS = (
    CssCapTier(salary_threshold=Decimal("0"), cap=Decimal("1500")),
    CssCapTier(salary_threshold=Decimal("2000"), cap=Decimal("2000")),
    CssCapTier(salary_threshold=Decimal("2500"), cap=Decimal("2500")),
)


def make_tax_config(company_id: UUID, **overrides) -> TaxConfig:
    values = dict(
        company_id=company_id,
        effective_from=EFFECTIVE_FROM,
        brackets=cumulative_brackets(PANAMA_BRACKET_ROWS),
        dependent_deduction=Decimal("800"),
        max_dependents=3,
    )
    values.update(overrides)
    return TaxConfig(**values)


def make_contribution_rates(**overrides) -> ContributionRates:
    values = dict(
        effective_from=EFFECTIVE_FROM,
        css_employee_rate=Decimal("0.0975"),
        css_employer_rate=Decimal("0.1325"),
        css_cap_tiers=CSS_CAP_TIERS,
        se_employee_rate=Decimal("0.0125"),
        se_employer_rate=Decimal("0.0150"),
        risk_rate_by_level={
            RiskLevel.LOW: Decimal("0.0056"),
            RiskLevel.MEDIUM: Decimal("0.0250"),
            RiskLevel.HIGH: Decimal("0.0539"),
        },
    )
    values.update(overrides)
    return ContributionRates(**values)


def make_snapshot(**overrides) -> EmployeeSnapshot:
    values = dict(
        employee_id=uuid4(),
        gross_base_pay=Decimal("1000.00"),
        pay_frequency="monthly",
        dependent_count=0,
        is_subject_to_income_tax=True,
        risk_level="low",
    )
    values.update(overrides)
    return EmployeeSnapshot(**values)


# ===== In-memory collaborators =====


class InMemoryTaxTableProvider:
    """Tax tables held in memory; counts lookups so caching can be checked."""

    def __init__(
        self,
        tax_configs: list[TaxConfig] | None = None,
        contribution_rates: list[ContributionRates] | None = None,
    ):
        self.tax_configs = list(tax_configs or [])
        self.contribution_rates = list(contribution_rates or [])
        self.tax_config_lookups = 0
        self.rate_lookups = 0

    async def get_tax_config(self, company_id: UUID, as_of_date: date) -> TaxConfig | None:
        self.tax_config_lookups += 1
        candidates = [
            c
            for c in self.tax_configs
            if c.company_id == company_id and c.effective_from <= as_of_date
        ]
        return max(candidates, key=lambda c: c.effective_from, default=None)

    async def get_contribution_rates(self, as_of_date: date) -> ContributionRates | None:
        self.rate_lookups += 1
        candidates = [r for r in self.contribution_rates if r.effective_from <= as_of_date]
        return max(candidates, key=lambda r: r.effective_from, default=None)


@dataclass
class InMemoryEmployeeSource:
    employees: list[EmployeeSnapshot] = field(default_factory=list)

    async def get_active_employees(
        self, company_id: UUID, as_of_date: date
    ) -> list[EmployeeSnapshot]:
        return list(self.employees)


@dataclass
class InMemoryDeductionSource:
    deductions: list[Deduction] = field(default_factory=list)
    loan_installments: list[LoanInstallment] = field(default_factory=list)
    advances: list[ApprovedAdvance] = field(default_factory=list)
    absences: list[AbsenceDeduction] = field(default_factory=list)

    async def get_deductions(self, employee_id: UUID, period: PayPeriod) -> list[Deduction]:
        return [d for d in self.deductions if d.employee_id == employee_id]

    async def get_loan_installments(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[LoanInstallment]:
        return [i for i in self.loan_installments if i.employee_id == employee_id]

    async def get_approved_advances(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[ApprovedAdvance]:
        return [a for a in self.advances if a.employee_id == employee_id]

    async def get_absence_deductions(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[AbsenceDeduction]:
        return [a for a in self.absences if a.employee_id == employee_id]


@dataclass
class InMemoryOvertimeSource:
    entries: list[ApprovedOvertime] = field(default_factory=list)

    async def get_approved_overtime(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[ApprovedOvertime]:
        return [o for o in self.entries if o.employee_id == employee_id]


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def tax_provider(company_id) -> InMemoryTaxTableProvider:
    return InMemoryTaxTableProvider(
        tax_configs=[make_tax_config(company_id)],
        contribution_rates=[make_contribution_rates()],
    )


# ===== Database =====


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = get_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def seed_tax_tables(session: AsyncSession, company_id: UUID) -> None:
    """Store the Panama ISR table and contribution rates."""
    session.add(
        TaxConfiguration(
            company_id=company_id,
            effective_from=EFFECTIVE_FROM,
            dependent_deduction=Decimal("800"),
            max_dependents=3,
            brackets=[
                TaxBracketRow(
                    lower_bound=b.lower_bound,
                    upper_bound=b.upper_bound,
                    rate=b.rate,
                    fixed_amount_below=b.fixed_amount_below,
                )
                for b in cumulative_brackets(PANAMA_BRACKET_ROWS)
            ],
        )
    )
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
            css_cap_tiers=[
                {"salary_threshold": str(t.salary_threshold), "cap": str(t.cap)}
                for t in CSS_CAP_TIERS
            ],
        )
    )
    await session.commit()


async def add_employee(session: AsyncSession, company_id: UUID, **overrides) -> Employee:
    values = dict(
        company_id=company_id,
        employee_code=f"E-{uuid4().hex[:6]}",
        first_name="Ana",
        last_name="Pérez",
        base_salary=Decimal("3000.00"),
        pay_frequency="monthly",
        dependent_count=0,
        risk_level="low",
        hire_date=date(2020, 1, 1),
    )
    values.update(overrides)
    employee = Employee(**values)
    session.add(employee)
    await session.commit()
    return employee
