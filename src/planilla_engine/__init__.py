"""Panamanian payroll engine: ISR, CSS/SE contributions, deductions and run workflow."""

__version__ = "1.0.0"
