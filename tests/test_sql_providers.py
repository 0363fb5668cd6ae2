"""Tests for the SQLAlchemy-backed calculation sources."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from planilla_engine.calculators.types import RiskLevel
from planilla_engine.exceptions import InvalidInputError
from planilla_engine.models import (
    Absence,
    ContributionRateConfiguration,
    Loan,
    OvertimeEntry,
    RecurringDeduction,
)
from planilla_engine.providers.sql import (
    SqlDeductionSource,
    SqlEmployeeSource,
    SqlOvertimeSource,
    SqlTaxTableProvider,
)

from .conftest import JANUARY, add_employee, seed_tax_tables


class TestSqlTaxTableProvider:
    @pytest.mark.asyncio
    async def test_reads_brackets_in_order(self, session, company_id):
        await seed_tax_tables(session, company_id)

        config = await SqlTaxTableProvider(session).get_tax_config(company_id, JANUARY.end)

        assert [b.rate for b in config.brackets] == [
            Decimal("0"),
            Decimal("0.15"),
            Decimal("0.25"),
        ]
        assert config.brackets[-1].upper_bound is None
        assert config.max_dependents == 3

    @pytest.mark.asyncio
    async def test_nothing_effective_yet(self, session, company_id):
        await seed_tax_tables(session, company_id)
        provider = SqlTaxTableProvider(session)

        assert await provider.get_tax_config(company_id, date(2024, 12, 31)) is None
        assert await provider.get_contribution_rates(date(2024, 12, 31)) is None

    @pytest.mark.asyncio
    async def test_reads_contribution_rates(self, session, company_id):
        await seed_tax_tables(session, company_id)

        rates = await SqlTaxTableProvider(session).get_contribution_rates(JANUARY.end)

        assert rates.css_employee_rate == Decimal("0.0975")
        assert rates.risk_rate_by_level[RiskLevel.HIGH] == Decimal("0.0539")
        assert [t.cap for t in rates.css_cap_tiers] == [
            Decimal("1500"),
            Decimal("2000"),
            Decimal("2500"),
        ]

    @pytest.mark.asyncio
    async def test_rates_updated_in_bulk_are_reread(self, session, company_id):
        await seed_tax_tables(session, company_id)
        provider = SqlTaxTableProvider(session)
        await provider.get_contribution_rates(JANUARY.end)

        # Leaves the already loaded row untouched in the identity map
        await session.execute(
            update(ContributionRateConfiguration)
            .values(css_employee_rate=Decimal("0.20"))
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        rates = await provider.get_contribution_rates(JANUARY.end)
        assert rates.css_employee_rate == Decimal("0.20")


class TestSqlEmployeeSource:
    @pytest.mark.asyncio
    async def test_active_at_period_end(self, session, company_id):
        kept = await add_employee(session, company_id, termination_date=date(2025, 1, 31))
        kept_id = kept.employee_id
        await add_employee(session, company_id, termination_date=date(2025, 1, 30))

        employees = await SqlEmployeeSource(session).get_active_employees(
            company_id, JANUARY.end
        )

        assert [e.employee_id for e in employees] == [kept_id]
        assert employees[0].full_name == "Ana Pérez"


class TestSqlDeductionSource:
    @pytest.mark.asyncio
    async def test_last_loan_installment_collects_remainder(self, session, company_id):
        employee = await add_employee(session, company_id)
        session.add(
            Loan(
                employee_id=employee.employee_id,
                principal=Decimal("1000.00"),
                installment_amount=Decimal("300.00"),
                installments_total=4,
                installments_paid=3,
                start_date=date(2024, 10, 1),
            )
        )
        await session.commit()

        [installment] = await SqlDeductionSource(session).get_loan_installments(
            employee.employee_id, JANUARY
        )

        assert installment.amount == Decimal("100.00")
        assert installment.installment_number == 4
        assert installment.priority == 50

    @pytest.mark.asyncio
    async def test_paid_off_loans_are_ignored(self, session, company_id):
        employee = await add_employee(session, company_id)
        session.add(
            Loan(
                employee_id=employee.employee_id,
                principal=Decimal("600.00"),
                installment_amount=Decimal("300.00"),
                installments_total=2,
                installments_paid=2,
                start_date=date(2024, 10, 1),
            )
        )
        await session.commit()

        source = SqlDeductionSource(session)
        assert await source.get_loan_installments(employee.employee_id, JANUARY) == []

    @pytest.mark.asyncio
    async def test_fully_repaid_principal_is_ignored(self, session, company_id):
        employee = await add_employee(session, company_id)
        session.add(
            Loan(
                employee_id=employee.employee_id,
                principal=Decimal("500.00"),
                installment_amount=Decimal("250.00"),
                installments_total=3,
                installments_paid=2,
                start_date=date(2024, 10, 1),
            )
        )
        await session.commit()

        source = SqlDeductionSource(session)
        assert await source.get_loan_installments(employee.employee_id, JANUARY) == []

    @pytest.mark.asyncio
    async def test_only_unjustified_absences_in_period(self, session, company_id):
        employee = await add_employee(session, company_id)
        employee_id = employee.employee_id

        def absence(start: date, **overrides) -> Absence:
            values = dict(
                employee_id=employee_id,
                start_date=start,
                end_date=start,
                days=Decimal("1"),
                deduction_amount=Decimal("100.00"),
            )
            values.update(overrides)
            return Absence(**values)

        session.add_all(
            [
                absence(date(2025, 1, 10), reason="No show"),
                absence(date(2025, 1, 11), is_justified=True),
                absence(date(2025, 1, 12), affects_salary=False),
                absence(date(2025, 2, 3)),
            ]
        )
        await session.commit()

        absences = await SqlDeductionSource(session).get_absence_deductions(
            employee_id, JANUARY
        )

        assert [(a.amount, a.description, a.priority) for a in absences] == [
            (Decimal("100.00"), "No show", 70)
        ]

    @pytest.mark.asyncio
    async def test_unknown_deduction_type(self, session, company_id):
        employee = await add_employee(session, company_id)
        employee_id = employee.employee_id
        session.add(
            RecurringDeduction(
                employee_id=employee_id,
                deduction_type="lottery",
                amount=Decimal("5.00"),
                valid_from=date(2024, 1, 1),
            )
        )
        await session.commit()

        with pytest.raises(InvalidInputError) as exc_info:
            await SqlDeductionSource(session).get_deductions(employee_id, JANUARY)

        assert exc_info.value.employee_id == employee_id
        assert exc_info.value.field == "deduction_type"


class TestSqlOvertimeSource:
    @pytest.mark.asyncio
    async def test_only_approved_unpaid_overtime_in_period(self, session, company_id):
        employee = await add_employee(session, company_id)
        employee_id = employee.employee_id

        def overtime(work_date: date, **overrides) -> OvertimeEntry:
            values = dict(
                employee_id=employee_id,
                work_date=work_date,
                overtime_type="night",
                hours=Decimal("3"),
                is_approved=True,
            )
            values.update(overrides)
            return OvertimeEntry(**values)

        session.add_all(
            [
                overtime(date(2025, 1, 20), description="Inventory"),
                overtime(date(2025, 1, 21), is_approved=False),
                overtime(date(2025, 2, 1)),
            ]
        )
        await session.commit()

        entries = await SqlOvertimeSource(session).get_approved_overtime(employee_id, JANUARY)

        assert [(e.work_date, e.hours, e.overtime_type, e.description) for e in entries] == [
            (date(2025, 1, 20), Decimal("3.00"), "night", "Inventory")
        ]
