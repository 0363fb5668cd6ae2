"""Payroll calculation engine."""

from planilla_engine.calculators.contributions import ContributionCalculator
from planilla_engine.calculators.deductions import DeductionAggregator
from planilla_engine.calculators.engine import (
    EmployeeCalculationResult,
    PayrollCalculationOrchestrator,
    RunCalculation,
    RunTotals,
)
from planilla_engine.calculators.income_tax import IncomeTaxCalculator
from planilla_engine.calculators.line_builder import LineItemBuilder

__all__ = [
    "ContributionCalculator",
    "DeductionAggregator",
    "EmployeeCalculationResult",
    "IncomeTaxCalculator",
    "LineItemBuilder",
    "PayrollCalculationOrchestrator",
    "RunCalculation",
    "RunTotals",
]
