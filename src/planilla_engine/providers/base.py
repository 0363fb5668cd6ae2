"""Read interfaces the calculation core depends on.

Storage lives behind these protocols. Calculators and the orchestrator never
query the database directly. Returning ``None`` from a configuration lookup
means "nothing effective on that date" and is treated as fatal by the core.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence
from uuid import UUID

from planilla_engine.calculators.types import (
    AbsenceDeduction,
    ApprovedAdvance,
    ApprovedOvertime,
    ContributionRates,
    Deduction,
    EmployeeSnapshot,
    LoanInstallment,
    PayPeriod,
    TaxConfig,
)


class TaxTableProvider(Protocol):
    """Supplies income tax tables and CSS/SE rates by effective date."""

    async def get_tax_config(self, company_id: UUID, as_of_date: date) -> TaxConfig | None:
        """Latest config with ``effective_from <= as_of_date``, or None."""
        ...

    async def get_contribution_rates(self, as_of_date: date) -> ContributionRates | None:
        """Latest CSS/SE rates effective on ``as_of_date``, or None."""
        ...


class EmployeeSource(Protocol):
    """Supplies employee snapshots."""

    async def get_active_employees(
        self, company_id: UUID, as_of_date: date
    ) -> Sequence[EmployeeSnapshot]:
        """Employees active on ``as_of_date``."""
        ...


class DeductionSource(Protocol):
    """Supplies deduction, loan, advance and absence records for a period."""

    async def get_deductions(
        self, employee_id: UUID, period: PayPeriod
    ) -> Sequence[Deduction]:
        ...

    async def get_loan_installments(
        self, employee_id: UUID, period: PayPeriod
    ) -> Sequence[LoanInstallment]:
        ...

    async def get_approved_advances(
        self, employee_id: UUID, period: PayPeriod
    ) -> Sequence[ApprovedAdvance]:
        ...

    async def get_absence_deductions(
        self, employee_id: UUID, period: PayPeriod
    ) -> Sequence[AbsenceDeduction]:
        ...


class OvertimeSource(Protocol):
    """Supplies approved overtime that no payroll has paid yet."""

    async def get_approved_overtime(
        self, employee_id: UUID, period: PayPeriod
    ) -> Sequence[ApprovedOvertime]:
        ...
