"""Tagged outcomes returned by the payroll run service.

Every state-changing operation returns exactly one of:

- ``Ok(value)``
- ``ConfigurationMissing``
- ``InvalidInput``
- ``InvalidStateTransition``

Callers branch on the type (``isinstance``) instead of catching exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Generic, TypeVar, Union
from uuid import UUID

from planilla_engine.exceptions import (
    ConfigurationMissingError,
    InvalidInputError,
    InvalidTransitionError,
    PayrollError,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T


@dataclass(frozen=True)
class ConfigurationMissing:
    """No applicable tax/contribution configuration; the run was aborted."""

    message: str
    config_kind: str
    as_of_date: date
    company_id: UUID | None = None


@dataclass(frozen=True)
class InvalidInput:
    """Bad employee, deduction or tax-table data; the run was aborted."""

    message: str
    employee_id: UUID | None = None
    field: str | None = None


@dataclass(frozen=True)
class InvalidStateTransition:
    """Operation not legal in the header's current status; nothing changed."""

    message: str
    from_status: str
    to_status: str


Failure = Union[ConfigurationMissing, InvalidInput, InvalidStateTransition]
Outcome = Union[Ok[T], ConfigurationMissing, InvalidInput, InvalidStateTransition]


def failure_from_error(error: PayrollError) -> Failure:
    """Map a core exception onto its tagged outcome."""
    if isinstance(error, ConfigurationMissingError):
        return ConfigurationMissing(
            message=str(error),
            config_kind=error.config_kind,
            as_of_date=error.as_of_date,
            company_id=error.company_id,
        )
    if isinstance(error, InvalidInputError):
        return InvalidInput(
            message=str(error),
            employee_id=error.employee_id,
            field=error.field,
        )
    if isinstance(error, InvalidTransitionError):
        return InvalidStateTransition(
            message=str(error),
            from_status=error.from_status,
            to_status=error.to_status,
        )
    raise TypeError(f"Unmapped payroll error: {type(error).__name__}")
