"""Payroll calculation engine - main orchestrator."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from planilla_engine.calculators.contributions import ContributionCalculator
from planilla_engine.calculators.deductions import DeductionAggregator
from planilla_engine.calculators.income_tax import IncomeTaxCalculator
from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.overtime import OvertimeCalculator
from planilla_engine.calculators.types import (
    ZERO,
    DeductionLine,
    EmployeeCalculationContext,
    EmployeeSnapshot,
    PayPeriod,
)
from planilla_engine.config import get_settings
from planilla_engine.exceptions import InvalidInputError, PayrollError
from planilla_engine.providers.base import (
    DeductionSource,
    EmployeeSource,
    OvertimeSource,
    TaxTableProvider,
)

logger = logging.getLogger(__name__)


class RunHeader(Protocol):
    """The header fields a calculation needs."""

    payroll_header_id: UUID
    company_id: UUID
    period_start: date
    period_end: date


@dataclass(frozen=True)
class EmployeeCalculationResult:
    """Result of calculating pay for one employee."""

    payroll_detail_id: UUID
    payroll_header_id: UUID
    employee_id: UUID
    base_pay: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal
    gross_pay: Decimal
    income_tax: Decimal
    css_employee: Decimal
    css_employer: Decimal
    se_employee: Decimal
    se_employer: Decimal
    risk_premium: Decimal
    deduction_lines: tuple[DeductionLine, ...]
    other_deductions_total: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employer_cost: Decimal
    inputs_fingerprint: str


@dataclass(frozen=True)
class RunTotals:
    """Header totals derived from the details."""

    total_gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net_pay: Decimal = ZERO
    total_employer_cost: Decimal = ZERO
    employee_count: int = 0


@dataclass(frozen=True)
class RunCalculation:
    """Result of calculating an entire payroll run."""

    payroll_header_id: UUID
    details: tuple[EmployeeCalculationResult, ...]
    totals: RunTotals


class PayrollCalculationOrchestrator:
    """Computes every detail of a payroll run.

    Calculation pipeline (stable order per employee):
    1) Gross pay: base pay plus approved, unpaid overtime
    2) Income tax (ISR) on the annualized gross
    3) CSS/SE contributions and employer risk premium
    4) Recurring and one-off deductions, ordered by priority
    5) Totals: deductions, net pay and employer cost

    The run is all-or-nothing: the first employee that fails aborts it and
    the error propagates with the employee id attached. Nothing is written
    here; persisting the result is the caller's job.
    """

    def __init__(
        self,
        tax_provider: TaxTableProvider,
        employee_source: EmployeeSource,
        deduction_source: DeductionSource,
        engine_version: str | None = None,
        overtime_source: OvertimeSource | None = None,
    ):
        self.employee_source = employee_source
        self.deduction_source = deduction_source
        self.overtime_source = overtime_source
        self.overtime_calculator = OvertimeCalculator()
        self.income_tax_calculator = IncomeTaxCalculator(tax_provider)
        self.contribution_calculator = ContributionCalculator(tax_provider)
        self.deduction_aggregator = DeductionAggregator()
        self.engine_version = engine_version or get_settings().engine_version

    async def calculate_run(self, header: RunHeader) -> RunCalculation:
        """Calculate pay for every employee active at the period end."""
        period = PayPeriod(header.period_start, header.period_end)
        # Tax tables and rates are read fresh for every run
        self.income_tax_calculator.clear_cache()
        self.contribution_calculator.clear_cache()

        employees = await self.employee_source.get_active_employees(
            header.company_id, period.end
        )
        logger.info(
            "Calculating payroll %s for %d employees (%s to %s)",
            header.payroll_header_id,
            len(employees),
            period.start,
            period.end,
        )

        details: list[EmployeeCalculationResult] = []
        for employee in sorted(employees, key=lambda e: e.employee_id):
            ctx = EmployeeCalculationContext(
                employee=employee,
                payroll_header_id=header.payroll_header_id,
                company_id=header.company_id,
                period=period,
            )
            try:
                details.append(await self.calculate_employee(ctx))
            except PayrollError as e:
                if isinstance(e, InvalidInputError):
                    e.for_employee(employee.employee_id)
                logger.warning(
                    "Payroll %s aborted at employee %s: %s",
                    header.payroll_header_id,
                    employee.employee_id,
                    e,
                )
                raise

        return RunCalculation(
            payroll_header_id=header.payroll_header_id,
            details=tuple(details),
            totals=self.summarize(details),
        )

    async def calculate_employee(
        self, ctx: EmployeeCalculationContext
    ) -> EmployeeCalculationResult:
        """Calculate pay for a single employee."""
        employee = ctx.employee
        base_pay = LineItemBuilder.round_to_cents(employee.gross_base_pay)
        if self.overtime_source is not None:
            ctx.overtime = self.overtime_calculator.calculate(
                employee.employee_id,
                ctx.period,
                employee.gross_base_pay,
                employee.pay_frequency,
                await self.overtime_source.get_approved_overtime(
                    employee.employee_id, ctx.period
                ),
            )
        gross = base_pay + ctx.overtime.amount

        ctx.income_tax = await self.income_tax_calculator.calculate(
            ctx.company_id,
            gross,
            employee.pay_frequency,
            employee.dependent_count,
            employee.is_subject_to_income_tax,
            ctx.as_of_date,
        )

        ctx.contributions = await self.contribution_calculator.calculate(
            gross,
            employee.risk_level,
            ctx.as_of_date,
            is_subject_to_css=employee.is_subject_to_css,
            is_subject_to_educational_insurance=employee.is_subject_to_educational_insurance,
        )

        ctx.deductions = self.deduction_aggregator.aggregate(
            employee.employee_id,
            ctx.period,
            gross,
            deductions=await self.deduction_source.get_deductions(
                employee.employee_id, ctx.period
            ),
            loan_installments=await self.deduction_source.get_loan_installments(
                employee.employee_id, ctx.period
            ),
            approved_advances=await self.deduction_source.get_approved_advances(
                employee.employee_id, ctx.period
            ),
            absence_deductions=await self.deduction_source.get_absence_deductions(
                employee.employee_id, ctx.period
            ),
        )

        contributions = ctx.contributions
        total_deductions = (
            ctx.income_tax.tax_amount
            + contributions.css_employee
            + contributions.se_employee
            + ctx.deductions.total
        )
        employer_cost = (
            gross
            + contributions.css_employer
            + contributions.se_employer
            + contributions.risk_premium
        )

        inputs_fingerprint = self._compute_inputs_fingerprint(ctx, gross)
        detail_id = self._generate_detail_id(
            ctx.payroll_header_id,
            employee.employee_id,
            ctx.period,
            inputs_fingerprint,
        )

        return EmployeeCalculationResult(
            payroll_detail_id=detail_id,
            payroll_header_id=ctx.payroll_header_id,
            employee_id=employee.employee_id,
            base_pay=base_pay,
            overtime_hours=ctx.overtime.hours,
            overtime_pay=ctx.overtime.amount,
            gross_pay=gross,
            income_tax=ctx.income_tax.tax_amount,
            css_employee=contributions.css_employee,
            css_employer=contributions.css_employer,
            se_employee=contributions.se_employee,
            se_employer=contributions.se_employer,
            risk_premium=contributions.risk_premium,
            deduction_lines=ctx.deductions.lines,
            other_deductions_total=ctx.deductions.total,
            total_deductions=total_deductions,
            net_pay=gross - total_deductions,
            employer_cost=employer_cost,
            inputs_fingerprint=inputs_fingerprint,
        )

    @staticmethod
    def summarize(details: list[EmployeeCalculationResult]) -> RunTotals:
        """Sum detail amounts into header totals."""
        return RunTotals(
            total_gross_pay=sum((d.gross_pay for d in details), ZERO),
            total_deductions=sum((d.total_deductions for d in details), ZERO),
            total_net_pay=sum((d.net_pay for d in details), ZERO),
            total_employer_cost=sum((d.employer_cost for d in details), ZERO),
            employee_count=len(details),
        )

    def _generate_detail_id(
        self,
        payroll_header_id: UUID,
        employee_id: UUID,
        period: PayPeriod,
        inputs_fingerprint: str,
    ) -> UUID:
        """Generate deterministic detail ID."""
        data = {
            "payroll_header_id": str(payroll_header_id),
            "employee_id": str(employee_id),
            "period_start": str(period.start),
            "period_end": str(period.end),
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    @staticmethod
    def _compute_inputs_fingerprint(
        ctx: EmployeeCalculationContext, gross: Decimal
    ) -> str:
        """Compute fingerprint of the snapshot and every resolved amount."""
        inputs_data: dict[str, Any] = {
            "employee": _snapshot_canonical_dict(ctx.employee),
            "overtime": {
                "hourly_rate": str(ctx.overtime.hourly_rate),
                "hours": str(ctx.overtime.hours),
                "amount": str(ctx.overtime.amount),
            },
            "gross": str(gross),
            "income_tax": str(ctx.income_tax.tax_amount) if ctx.income_tax else None,
            "contributions": (
                {
                    "css_base": str(ctx.contributions.css_base),
                    "css_employee": str(ctx.contributions.css_employee),
                    "css_employer": str(ctx.contributions.css_employer),
                    "se_employee": str(ctx.contributions.se_employee),
                    "se_employer": str(ctx.contributions.se_employer),
                    "risk_premium": str(ctx.contributions.risk_premium),
                }
                if ctx.contributions
                else None
            ),
            "deductions": [
                LineItemBuilder.compute_line_hash(line) for line in ctx.deductions.lines
            ],
        }
        json_str = json.dumps(inputs_data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def _snapshot_canonical_dict(employee: EmployeeSnapshot) -> dict[str, Any]:
    return {
        "employee_id": str(employee.employee_id),
        "gross_base_pay": str(employee.gross_base_pay),
        "pay_frequency": _enum_value(employee.pay_frequency),
        "dependent_count": employee.dependent_count,
        "is_subject_to_income_tax": employee.is_subject_to_income_tax,
        "is_subject_to_css": employee.is_subject_to_css,
        "is_subject_to_educational_insurance": employee.is_subject_to_educational_insurance,
        "risk_level": _enum_value(employee.risk_level),
    }


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))
