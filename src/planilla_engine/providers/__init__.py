"""Data sources for the calculation core."""

from planilla_engine.providers.base import DeductionSource, EmployeeSource, TaxTableProvider
from planilla_engine.providers.sql import (
    SqlDeductionSource,
    SqlEmployeeSource,
    SqlTaxTableProvider,
)

__all__ = [
    "DeductionSource",
    "EmployeeSource",
    "SqlDeductionSource",
    "SqlEmployeeSource",
    "SqlTaxTableProvider",
    "TaxTableProvider",
]
