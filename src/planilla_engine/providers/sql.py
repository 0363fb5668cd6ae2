"""SQLAlchemy-backed implementations of the calculation read interfaces."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from planilla_engine.calculators.types import (
    ABSENCE_PRIORITY,
    ADVANCE_PRIORITY,
    LOAN_INSTALLMENT_PRIORITY,
    AbsenceDeduction,
    ApprovedAdvance,
    ApprovedOvertime,
    ContributionRates,
    CssCapTier,
    Deduction,
    DeductionType,
    EmployeeSnapshot,
    LoanInstallment,
    PayPeriod,
    RiskLevel,
    TaxBracket,
    TaxConfig,
)
from planilla_engine.exceptions import InvalidInputError
from planilla_engine.models import (
    Absence,
    Advance,
    ContributionRateConfiguration,
    Employee,
    Loan,
    OvertimeEntry,
    RecurringDeduction,
    TaxConfiguration,
)


class SqlTaxTableProvider:
    """Reads tax tables and contribution rates by effective date."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_tax_config(self, company_id: UUID, as_of_date: date) -> TaxConfig | None:
        result = await self.session.execute(
            select(TaxConfiguration)
            .where(
                TaxConfiguration.company_id == company_id,
                TaxConfiguration.effective_from <= as_of_date,
            )
            .order_by(TaxConfiguration.effective_from.desc())
            .limit(1)
            .options(selectinload(TaxConfiguration.brackets))
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        return TaxConfig(
            company_id=row.company_id,
            effective_from=row.effective_from,
            brackets=tuple(
                TaxBracket(
                    lower_bound=b.lower_bound,
                    upper_bound=b.upper_bound,
                    rate=b.rate,
                    fixed_amount_below=b.fixed_amount_below,
                )
                for b in row.brackets
            ),
            dependent_deduction=row.dependent_deduction,
            max_dependents=row.max_dependents,
        )

    async def get_contribution_rates(self, as_of_date: date) -> ContributionRates | None:
        result = await self.session.execute(
            select(ContributionRateConfiguration)
            .where(ContributionRateConfiguration.effective_from <= as_of_date)
            .order_by(ContributionRateConfiguration.effective_from.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        return ContributionRates(
            effective_from=row.effective_from,
            css_employee_rate=row.css_employee_rate,
            css_employer_rate=row.css_employer_rate,
            css_cap_tiers=tuple(
                CssCapTier(
                    salary_threshold=Decimal(str(tier["salary_threshold"])),
                    cap=Decimal(str(tier["cap"])),
                )
                for tier in row.css_cap_tiers or []
            ),
            se_employee_rate=row.se_employee_rate,
            se_employer_rate=row.se_employer_rate,
            risk_rate_by_level={
                RiskLevel.LOW: row.risk_rate_low,
                RiskLevel.MEDIUM: row.risk_rate_medium,
                RiskLevel.HIGH: row.risk_rate_high,
            },
        )


class SqlEmployeeSource:
    """Reads employee snapshots."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_employees(
        self, company_id: UUID, as_of_date: date
    ) -> list[EmployeeSnapshot]:
        result = await self.session.execute(
            select(Employee)
            .where(
                Employee.company_id == company_id,
                Employee.is_active.is_(True),
                Employee.hire_date <= as_of_date,
                (
                    Employee.termination_date.is_(None)
                    | (Employee.termination_date >= as_of_date)
                ),
            )
            .order_by(Employee.employee_id)
            .execution_options(populate_existing=True)
        )
        return [
            EmployeeSnapshot(
                employee_id=e.employee_id,
                gross_base_pay=e.base_salary,
                pay_frequency=e.pay_frequency,
                dependent_count=e.dependent_count,
                is_subject_to_income_tax=e.is_subject_to_income_tax,
                risk_level=e.risk_level,
                is_subject_to_css=e.is_subject_to_css,
                is_subject_to_educational_insurance=e.is_subject_to_educational_insurance,
                full_name=e.full_name,
            )
            for e in result.scalars().all()
        ]


class SqlDeductionSource:
    """Reads deduction, loan, advance and absence records for a period."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_deductions(self, employee_id: UUID, period: PayPeriod) -> list[Deduction]:
        result = await self.session.execute(
            select(RecurringDeduction)
            .where(
                RecurringDeduction.employee_id == employee_id,
                RecurringDeduction.active.is_(True),
                RecurringDeduction.valid_from <= period.end,
                (
                    RecurringDeduction.valid_to.is_(None)
                    | (RecurringDeduction.valid_to >= period.start)
                ),
            )
            .order_by(RecurringDeduction.priority, RecurringDeduction.deduction_id)
            .execution_options(populate_existing=True)
        )
        return [
            Deduction(
                deduction_id=d.deduction_id,
                employee_id=d.employee_id,
                deduction_type=_deduction_type(d),
                is_percentage=d.is_percentage,
                priority=d.priority,
                valid_from=d.valid_from,
                valid_to=d.valid_to,
                amount=d.amount,
                percentage=d.percentage,
                active=d.active,
                description=d.description,
            )
            for d in result.scalars().all()
        ]

    async def get_loan_installments(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[LoanInstallment]:
        result = await self.session.execute(
            select(Loan)
            .where(
                Loan.employee_id == employee_id,
                Loan.status == "active",
                Loan.start_date <= period.end,
                Loan.installments_paid < Loan.installments_total,
            )
            .order_by(Loan.loan_id)
            .execution_options(populate_existing=True)
        )
        installments = []
        for loan in result.scalars().all():
            # The last installment only collects what is left of the principal
            amount = min(loan.installment_amount, loan.outstanding_balance)
            if amount <= 0:
                continue
            installments.append(
                LoanInstallment(
                    loan_id=loan.loan_id,
                    employee_id=loan.employee_id,
                    amount=amount,
                    installment_number=loan.next_installment_number,
                    priority=_priority(loan.priority, LOAN_INSTALLMENT_PRIORITY),
                    description=loan.description,
                )
            )
        return installments

    async def get_approved_advances(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[ApprovedAdvance]:
        result = await self.session.execute(
            select(Advance)
            .where(
                Advance.employee_id == employee_id,
                Advance.status == "approved",
                Advance.deduction_date >= period.start,
                Advance.deduction_date <= period.end,
            )
            .order_by(Advance.advance_id)
            .execution_options(populate_existing=True)
        )
        return [
            ApprovedAdvance(
                advance_id=a.advance_id,
                employee_id=a.employee_id,
                amount=a.amount,
                deduction_date=a.deduction_date,
                priority=_priority(a.priority, ADVANCE_PRIORITY),
                description=a.description,
            )
            for a in result.scalars().all()
        ]

    async def get_absence_deductions(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[AbsenceDeduction]:
        result = await self.session.execute(
            select(Absence)
            .where(
                Absence.employee_id == employee_id,
                Absence.is_justified.is_(False),
                Absence.affects_salary.is_(True),
                Absence.start_date >= period.start,
                Absence.start_date <= period.end,
            )
            .order_by(Absence.absence_id)
            .execution_options(populate_existing=True)
        )
        return [
            AbsenceDeduction(
                absence_id=a.absence_id,
                employee_id=a.employee_id,
                days=a.days,
                amount=a.deduction_amount,
                priority=_priority(a.priority, ABSENCE_PRIORITY),
                description=a.reason,
            )
            for a in result.scalars().all()
        ]


class SqlOvertimeSource:
    """Reads approved overtime that no approved payroll has paid yet."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_approved_overtime(
        self, employee_id: UUID, period: PayPeriod
    ) -> list[ApprovedOvertime]:
        result = await self.session.execute(
            unpaid_overtime_query(employee_id, period).execution_options(
                populate_existing=True
            )
        )
        return [
            ApprovedOvertime(
                overtime_id=o.overtime_id,
                employee_id=o.employee_id,
                work_date=o.work_date,
                hours=o.hours,
                overtime_type=o.overtime_type,
                description=o.description,
            )
            for o in result.scalars().all()
        ]


def unpaid_overtime_query(employee_id: UUID, period: PayPeriod) -> Select[tuple[OvertimeEntry]]:
    """Approved, still unpaid overtime entries worked inside ``period``."""
    return (
        select(OvertimeEntry)
        .where(
            OvertimeEntry.employee_id == employee_id,
            OvertimeEntry.is_approved.is_(True),
            OvertimeEntry.payroll_detail_id.is_(None),
            OvertimeEntry.work_date >= period.start,
            OvertimeEntry.work_date <= period.end,
        )
        .order_by(OvertimeEntry.work_date, OvertimeEntry.overtime_id)
    )


def _priority(value: int | None, default: int) -> int:
    return default if value is None else value


def _deduction_type(row: RecurringDeduction) -> DeductionType:
    try:
        return DeductionType(row.deduction_type)
    except ValueError:
        raise InvalidInputError(
            f"Deduction {row.deduction_id} has unknown type '{row.deduction_type}'",
            employee_id=row.employee_id,
            field="deduction_type",
        ) from None
