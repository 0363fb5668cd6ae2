"""SQLAlchemy ORM models."""

from planilla_engine.models.attendance import OvertimeEntry
from planilla_engine.models.base import Base
from planilla_engine.models.deductions import (
    Absence,
    Advance,
    Loan,
    LoanPayment,
    RecurringDeduction,
)
from planilla_engine.models.employee import Employee
from planilla_engine.models.payroll import (
    AuditEvent,
    PayrollDetail,
    PayrollDetailDeduction,
    PayrollHeader,
)
from planilla_engine.models.tax import (
    ContributionRateConfiguration,
    TaxBracketRow,
    TaxConfiguration,
)

__all__ = [
    "Absence",
    "Advance",
    "AuditEvent",
    "Base",
    "ContributionRateConfiguration",
    "Employee",
    "Loan",
    "LoanPayment",
    "OvertimeEntry",
    "PayrollDetail",
    "PayrollDetailDeduction",
    "PayrollHeader",
    "RecurringDeduction",
    "TaxBracketRow",
    "TaxConfiguration",
]
