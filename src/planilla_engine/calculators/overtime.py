"""Overtime earnings added to the base pay of a period."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.types import (
    ZERO,
    STANDARD_WEEKLY_HOURS,
    WEEKS_PER_MONTH,
    ApprovedOvertime,
    OvertimeResult,
    OvertimeType,
    PayFrequency,
    PayPeriod,
)
from planilla_engine.exceptions import InvalidInputError


class OvertimeCalculator:
    """Prices approved overtime hours.

    The hourly rate is the monthly equivalent of the base pay divided by
    48 hours x 4.33 weeks, rounded to cents. Each entry pays
    ``hourly_rate * hours * factor`` rounded to cents, where the factor
    comes from the overtime type (1.25 daytime, 1.50 night, 1.50 rest day,
    1.75 night on a rest day). Entries dated outside the period are ignored.
    """

    @staticmethod
    def hourly_rate(gross_base_pay: Decimal, pay_frequency: str | PayFrequency) -> Decimal:
        periods = PayFrequency.parse(pay_frequency).periods_per_year
        monthly = gross_base_pay * periods / 12
        return LineItemBuilder.round_to_cents(
            monthly / (STANDARD_WEEKLY_HOURS * WEEKS_PER_MONTH)
        )

    def calculate(
        self,
        employee_id: UUID,
        period: PayPeriod,
        gross_base_pay: Decimal,
        pay_frequency: str | PayFrequency,
        entries: Sequence[ApprovedOvertime],
    ) -> OvertimeResult:
        """Total overtime pay for the entries worked inside ``period``.

        Raises:
            InvalidInputError: foreign entry, non-positive hours or unknown type
        """
        if not entries:
            return OvertimeResult.zero()

        rate = self.hourly_rate(gross_base_pay, pay_frequency)
        hours = ZERO
        amount = ZERO
        for entry in sorted(entries, key=lambda e: (e.work_date, e.overtime_id)):
            if entry.employee_id != employee_id:
                raise InvalidInputError(
                    f"Overtime {entry.overtime_id} belongs to employee "
                    f"{entry.employee_id}, not {employee_id}",
                    employee_id=employee_id,
                    field="employee_id",
                )
            if entry.hours <= 0:
                raise InvalidInputError(
                    f"Overtime {entry.overtime_id} has non-positive hours {entry.hours}",
                    employee_id=employee_id,
                    field="hours",
                )
            factor = OvertimeType.parse(entry.overtime_type).factor
            if not period.contains(entry.work_date):
                continue
            hours += entry.hours
            amount += LineItemBuilder.round_to_cents(rate * entry.hours * factor)

        return OvertimeResult(hourly_rate=rate, hours=hours, amount=amount)
