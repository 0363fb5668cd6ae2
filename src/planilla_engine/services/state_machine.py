"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from planilla_engine.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from planilla_engine.models import PayrollHeader


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → calculated
    - draft → cancelled
    - calculated → calculated (recalculation)
    - calculated → approved (needs at least one detail)
    - calculated → cancelled
    - approved → paid
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.CALCULATED, PayrollRunStatus.CANCELLED],
        PayrollRunStatus.CALCULATED: [
            PayrollRunStatus.CALCULATED,
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.CANCELLED,
        ],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.PAID],
        PayrollRunStatus.PAID: [],  # Terminal state
        PayrollRunStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses where (re)calculation is allowed
    CALCULATION_ALLOWED = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.CALCULATED,
    }

    # Statuses where details are frozen
    DETAILS_IMMUTABLE = {
        PayrollRunStatus.APPROVED,
        PayrollRunStatus.PAID,
        PayrollRunStatus.CANCELLED,
    }

    TERMINAL = {
        PayrollRunStatus.PAID,
        PayrollRunStatus.CANCELLED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if calculation is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def are_details_immutable(cls, status: str) -> bool:
        """Check if details (per-employee results) are frozen."""
        return status in cls.DETAILS_IMMUTABLE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_header_for_transition(
        cls, header: PayrollHeader, to_status: str, detail_count: int
    ) -> list[str]:
        """Validate a payroll header for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = header.status

        # Basic transition check
        if not cls.can_transition(from_status, to_status):
            errors.append(
                f"Cannot transition from '{_value(from_status)}' to '{_value(to_status)}'"
            )
            return errors

        # Transition-specific validations
        if to_status == PayrollRunStatus.APPROVED:
            if detail_count == 0:
                errors.append("Payroll run has no calculated details")

        return errors

    @classmethod
    def require_transition(
        cls, header: PayrollHeader, to_status: str, detail_count: int = 0
    ) -> None:
        """Raise InvalidTransitionError if the header cannot move to ``to_status``."""
        errors = cls.validate_header_for_transition(header, to_status, detail_count)
        if errors:
            raise InvalidTransitionError(
                _value(header.status), _value(to_status), "; ".join(errors)
            )


def _value(status: str) -> str:
    return status.value if isinstance(status, PayrollRunStatus) else status
