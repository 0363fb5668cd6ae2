"""Aggregation of recurring and one-off deductions for a pay period."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.types import (
    AbsenceDeduction,
    ApprovedAdvance,
    Deduction,
    DeductionLine,
    DeductionSummary,
    LoanInstallment,
    PayPeriod,
)
from planilla_engine.exceptions import InvalidInputError


class DeductionAggregator:
    """Produces the ordered deduction list for one employee and period.

    Participation:
    - Recurring deductions: active and validity window overlapping the period
    - Advances: deduction date inside the period
    - Loan installments and absence deductions: as supplied

    Lines are ordered by priority, then source id. The total is a plain sum;
    caps on advances and loans are enforced by whoever creates those records.
    """

    def aggregate(
        self,
        employee_id: UUID,
        period: PayPeriod,
        gross_pay: Decimal,
        deductions: Sequence[Deduction] = (),
        loan_installments: Sequence[LoanInstallment] = (),
        approved_advances: Sequence[ApprovedAdvance] = (),
        absence_deductions: Sequence[AbsenceDeduction] = (),
    ) -> DeductionSummary:
        lines: list[DeductionLine] = []

        for deduction in deductions:
            self._check_owner(employee_id, deduction.employee_id, deduction.deduction_id)
            self._validate_deduction(deduction)
            if not self.participates(deduction, period):
                continue
            lines.append(LineItemBuilder.create_recurring_line(deduction, gross_pay))

        for installment in loan_installments:
            self._check_owner(employee_id, installment.employee_id, installment.loan_id)
            self._check_amount(installment.amount, installment.loan_id)
            lines.append(LineItemBuilder.create_loan_line(installment))

        for advance in approved_advances:
            self._check_owner(employee_id, advance.employee_id, advance.advance_id)
            self._check_amount(advance.amount, advance.advance_id)
            if not period.contains(advance.deduction_date):
                continue
            lines.append(LineItemBuilder.create_advance_line(advance))

        for absence in absence_deductions:
            self._check_owner(employee_id, absence.employee_id, absence.absence_id)
            self._check_amount(absence.amount, absence.absence_id)
            if absence.days < 0:
                raise InvalidInputError(
                    f"Absence {absence.absence_id} has negative days",
                    employee_id=employee_id,
                    field="days",
                )
            lines.append(LineItemBuilder.create_absence_line(absence))

        ordered = tuple(sorted(lines, key=lambda line: line.sort_key))
        return DeductionSummary(lines=ordered, total=LineItemBuilder.sum_lines(ordered))

    @staticmethod
    def participates(deduction: Deduction, period: PayPeriod) -> bool:
        """Check if a recurring deduction applies to the period."""
        return deduction.active and period.overlaps(deduction.valid_from, deduction.valid_to)

    @staticmethod
    def _validate_deduction(deduction: Deduction) -> None:
        """A record carries exactly the amount representation its flag names."""
        ref = deduction.deduction_id
        if deduction.valid_to is not None and deduction.valid_to < deduction.valid_from:
            raise InvalidInputError(
                f"Deduction {ref} ends before it starts",
                employee_id=deduction.employee_id,
                field="valid_to",
            )

        if deduction.is_percentage:
            if deduction.percentage is None or deduction.amount is not None:
                raise InvalidInputError(
                    f"Percentage deduction {ref} must set only a percentage",
                    employee_id=deduction.employee_id,
                    field="percentage",
                )
            if not (0 <= deduction.percentage <= 100):
                raise InvalidInputError(
                    f"Deduction {ref} percentage {deduction.percentage} is outside 0-100",
                    employee_id=deduction.employee_id,
                    field="percentage",
                )
        else:
            if deduction.amount is None or deduction.percentage is not None:
                raise InvalidInputError(
                    f"Fixed deduction {ref} must set only an amount",
                    employee_id=deduction.employee_id,
                    field="amount",
                )
            if deduction.amount < 0:
                raise InvalidInputError(
                    f"Deduction {ref} has negative amount {deduction.amount}",
                    employee_id=deduction.employee_id,
                    field="amount",
                )

    @staticmethod
    def _check_amount(amount: Decimal, ref: UUID) -> None:
        if amount < 0:
            raise InvalidInputError(
                f"Deduction item {ref} has negative amount {amount}", field="amount"
            )

    @staticmethod
    def _check_owner(employee_id: UUID, owner_id: UUID, ref: UUID) -> None:
        if owner_id != employee_id:
            raise InvalidInputError(
                f"Deduction item {ref} belongs to employee {owner_id}, not {employee_id}",
                employee_id=employee_id,
                field="employee_id",
            )
