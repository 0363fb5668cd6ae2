"""Deduction line builder with rounding rules and deterministic hashing."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from planilla_engine.calculators.types import (
    AbsenceDeduction,
    ApprovedAdvance,
    Deduction,
    DeductionLine,
    DeductionSourceKind,
    LoanInstallment,
)


class LineItemBuilder:
    """Builds deduction lines and holds the engine's money rules.

    Conventions:
    - Deduction lines carry positive amounts (money withheld)
    - Amounts are rounded half-up to cents when a line is created
    - Rates are fractions (0.0975); deduction percentages are 0-100
    """

    OUTPUT_PRECISION = Decimal("0.01")  # 2 decimal places (balboas)

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def apply_rate(base: Decimal, rate: Decimal) -> Decimal:
        """Multiply by a fractional rate and round to cents."""
        return LineItemBuilder.round_to_cents(base * rate)

    @staticmethod
    def apply_percentage(base: Decimal, percentage: Decimal) -> Decimal:
        """Take a 0-100 percentage of ``base`` and round to cents."""
        return LineItemBuilder.round_to_cents(base * percentage / 100)

    @staticmethod
    def create_recurring_line(deduction: Deduction, gross_pay: Decimal) -> DeductionLine:
        """Resolve a recurring deduction against the period gross pay."""
        if deduction.is_percentage:
            amount = LineItemBuilder.apply_percentage(gross_pay, deduction.percentage)
        else:
            amount = LineItemBuilder.round_to_cents(deduction.amount)

        return DeductionLine(
            source_kind=DeductionSourceKind.RECURRING,
            source_id=deduction.deduction_id,
            priority=deduction.priority,
            amount=amount,
            deduction_type=deduction.deduction_type.value,
            description=deduction.description,
        )

    @staticmethod
    def create_loan_line(installment: LoanInstallment) -> DeductionLine:
        return DeductionLine(
            source_kind=DeductionSourceKind.LOAN_INSTALLMENT,
            source_id=installment.loan_id,
            priority=installment.priority,
            amount=LineItemBuilder.round_to_cents(installment.amount),
            deduction_type=DeductionSourceKind.LOAN_INSTALLMENT.value,
            description=installment.description
            or f"Loan installment #{installment.installment_number}",
        )

    @staticmethod
    def create_advance_line(advance: ApprovedAdvance) -> DeductionLine:
        return DeductionLine(
            source_kind=DeductionSourceKind.ADVANCE,
            source_id=advance.advance_id,
            priority=advance.priority,
            amount=LineItemBuilder.round_to_cents(advance.amount),
            deduction_type=DeductionSourceKind.ADVANCE.value,
            description=advance.description or f"Salary advance {advance.deduction_date}",
        )

    @staticmethod
    def create_absence_line(absence: AbsenceDeduction) -> DeductionLine:
        return DeductionLine(
            source_kind=DeductionSourceKind.ABSENCE,
            source_id=absence.absence_id,
            priority=absence.priority,
            amount=LineItemBuilder.round_to_cents(absence.amount),
            deduction_type=DeductionSourceKind.ABSENCE.value,
            description=absence.description
            or f"Unjustified absence ({absence.days} days)",
        )

    @staticmethod
    def sum_lines(lines: Iterable[DeductionLine]) -> Decimal:
        return sum((line.amount for line in lines), Decimal("0"))

    @staticmethod
    def compute_line_hash(line: DeductionLine) -> str:
        """Compute deterministic hash for a deduction line.

        The hash is based on the canonical representation of defining fields,
        ensuring identical inputs produce identical hashes.
        """
        canonical = line.to_canonical_dict()
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
