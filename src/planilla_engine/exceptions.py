"""Error taxonomy for the payroll calculation core.

Calculators raise these exceptions; the run service converts them into the
tagged outcomes in ``planilla_engine.results`` so callers must handle each
failure class explicitly.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID


class PayrollError(Exception):
    """Base class for deterministic payroll failures."""


class ConfigurationMissingError(PayrollError):
    """Raised when no tax or contribution configuration applies to a date."""

    def __init__(
        self,
        config_kind: str,
        as_of_date: date,
        company_id: UUID | None = None,
    ):
        self.config_kind = config_kind
        self.as_of_date = as_of_date
        self.company_id = company_id
        scope = f" for company {company_id}" if company_id else ""
        super().__init__(
            f"No {config_kind} configuration effective {as_of_date}{scope}"
        )


class InvalidInputError(PayrollError):
    """Raised for malformed amounts, frequencies, risk levels or records."""

    def __init__(
        self,
        message: str,
        employee_id: UUID | None = None,
        field: str | None = None,
    ):
        self.employee_id = employee_id
        self.field = field
        super().__init__(message)

    def for_employee(self, employee_id: UUID) -> InvalidInputError:
        """Attach the employee the failure belongs to, keeping the subclass."""
        if self.employee_id is None:
            self.employee_id = employee_id
        return self


class InvalidTaxTableError(InvalidInputError):
    """Raised when a tax configuration exists but its brackets are unusable."""


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollHeaderNotFoundError(LookupError):
    """Raised when a payroll header id does not exist."""

    def __init__(self, payroll_header_id: UUID):
        self.payroll_header_id = payroll_header_id
        super().__init__(f"Payroll header {payroll_header_id} not found")


class ConcurrentModificationError(RuntimeError):
    """Raised when another writer changed the header during a run."""

    def __init__(self, payroll_header_id: UUID):
        self.payroll_header_id = payroll_header_id
        super().__init__(
            f"Payroll header {payroll_header_id} was modified by another writer"
        )
