"""Unit tests for DeductionAggregator."""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from planilla_engine.calculators.deductions import DeductionAggregator
from planilla_engine.calculators.types import (
    AbsenceDeduction,
    ApprovedAdvance,
    Deduction,
    DeductionSourceKind,
    DeductionType,
    LoanInstallment,
)
from planilla_engine.exceptions import InvalidInputError

from .conftest import JANUARY

EMPLOYEE = uuid4()
GROSS = Decimal("1000.00")


def fixed(amount: str, /, priority: int = 100, **overrides) -> Deduction:
    values = dict(
        deduction_id=uuid4(),
        employee_id=EMPLOYEE,
        deduction_type=DeductionType.OTHER,
        is_percentage=False,
        priority=priority,
        valid_from=date(2024, 1, 1),
        amount=Decimal(amount),
    )
    values.update(overrides)
    return Deduction(**values)


def percent(pct: str, priority: int = 100, **overrides) -> Deduction:
    values = dict(
        deduction_id=uuid4(),
        employee_id=EMPLOYEE,
        deduction_type=DeductionType.VOLUNTARY_SAVINGS,
        is_percentage=True,
        priority=priority,
        valid_from=date(2024, 1, 1),
        percentage=Decimal(pct),
    )
    values.update(overrides)
    return Deduction(**values)


@pytest.fixture
def aggregator():
    return DeductionAggregator()


class TestResolution:
    """Test how individual deductions resolve to amounts."""

    def test_fixed_amount_passes_through(self, aggregator):
        summary = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [fixed("45.00")])
        assert summary.lines[0].amount == Decimal("45.00")
        assert summary.total == Decimal("45.00")

    def test_percentage_of_gross(self, aggregator):
        summary = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [percent("10.5")])
        assert summary.lines[0].amount == Decimal("105.00")

    def test_percentage_rounds_half_up(self, aggregator):
        summary = aggregator.aggregate(
            EMPLOYEE, JANUARY, Decimal("1234.56"), [percent("3.333")]
        )
        # 1234.56 * 3.333% = 41.1478848
        assert summary.lines[0].amount == Decimal("41.15")

    def test_empty_input(self, aggregator):
        summary = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS)
        assert summary.lines == ()
        assert summary.total == 0

    def test_total_is_not_capped(self, aggregator):
        summary = aggregator.aggregate(
            EMPLOYEE, JANUARY, GROSS, [fixed("800.00"), fixed("700.00")]
        )
        assert summary.total == Decimal("1500.00")


class TestParticipation:
    """Test validity windows and activity flags."""

    def test_window_overlapping_period(self, aggregator):
        deductions = [
            fixed("1.00", valid_from=date(2024, 6, 1), valid_to=date(2025, 1, 1)),
            fixed("2.00", valid_from=date(2025, 1, 31)),
            fixed("4.00", valid_from=date(2025, 1, 10), valid_to=date(2025, 1, 20)),
        ]
        summary = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, deductions)
        assert summary.total == Decimal("7.00")

    def test_window_outside_period(self, aggregator):
        deductions = [
            fixed("1.00", valid_from=date(2024, 6, 1), valid_to=date(2024, 12, 31)),
            fixed("2.00", valid_from=date(2025, 2, 1)),
        ]
        summary = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, deductions)
        assert summary.lines == ()

    def test_inactive_deduction_is_skipped(self, aggregator):
        summary = aggregator.aggregate(
            EMPLOYEE, JANUARY, GROSS, [fixed("10.00", active=False)]
        )
        assert summary.total == 0

    def test_advance_only_in_its_period(self, aggregator):
        advances = [
            ApprovedAdvance(uuid4(), EMPLOYEE, Decimal("100.00"), date(2025, 1, 15)),
            ApprovedAdvance(uuid4(), EMPLOYEE, Decimal("200.00"), date(2025, 2, 15)),
        ]
        summary = aggregator.aggregate(
            EMPLOYEE, JANUARY, GROSS, approved_advances=advances
        )
        assert [line.amount for line in summary.lines] == [Decimal("100.00")]
        assert summary.lines[0].source_kind == DeductionSourceKind.ADVANCE


class TestOrdering:
    """Test priority ordering with source id tie-break."""

    def test_priority_then_source_id(self, aggregator):
        low_id = UUID(int=1)
        high_id = UUID(int=2)
        deductions = [
            fixed("3.00", priority=20, deduction_id=high_id),
            fixed("2.00", priority=20, deduction_id=low_id),
            fixed("1.00", priority=5),
        ]
        summary = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, deductions)

        assert [line.amount for line in summary.lines] == [
            Decimal("1.00"),
            Decimal("2.00"),
            Decimal("3.00"),
        ]

    def test_input_order_does_not_matter(self, aggregator):
        deductions = [fixed("1.00", priority=p) for p in (30, 10, 20)]
        forward = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, deductions)
        backward = aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, list(reversed(deductions)))
        assert forward == backward

    def test_one_off_items_use_default_priorities(self, aggregator):
        summary = aggregator.aggregate(
            EMPLOYEE,
            JANUARY,
            GROSS,
            deductions=[fixed("10.00", priority=100), fixed("5.00", priority=10)],
            loan_installments=[LoanInstallment(uuid4(), EMPLOYEE, Decimal("50.00"))],
            approved_advances=[
                ApprovedAdvance(uuid4(), EMPLOYEE, Decimal("60.00"), date(2025, 1, 5))
            ],
            absence_deductions=[
                AbsenceDeduction(uuid4(), EMPLOYEE, Decimal("1"), Decimal("33.33"))
            ],
        )

        assert [line.source_kind for line in summary.lines] == [
            DeductionSourceKind.RECURRING,
            DeductionSourceKind.LOAN_INSTALLMENT,
            DeductionSourceKind.ADVANCE,
            DeductionSourceKind.ABSENCE,
            DeductionSourceKind.RECURRING,
        ]
        assert summary.total == Decimal("158.33")


class TestMalformedRecords:
    """Test that malformed records are rejected."""

    def test_percentage_flag_with_amount(self, aggregator):
        bad = percent("5", amount=Decimal("10"))
        with pytest.raises(InvalidInputError):
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [bad])

    def test_fixed_flag_without_amount(self, aggregator):
        bad = fixed("0", amount=None)
        with pytest.raises(InvalidInputError):
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [bad])

    def test_percentage_above_100(self, aggregator):
        with pytest.raises(InvalidInputError) as exc_info:
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [percent("100.01")])
        assert exc_info.value.field == "percentage"

    def test_negative_amount(self, aggregator):
        with pytest.raises(InvalidInputError):
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [fixed("-1.00")])

    def test_negative_loan_installment(self, aggregator):
        with pytest.raises(InvalidInputError):
            aggregator.aggregate(
                EMPLOYEE,
                JANUARY,
                GROSS,
                loan_installments=[LoanInstallment(uuid4(), EMPLOYEE, Decimal("-5"))],
            )

    def test_window_ending_before_start(self, aggregator):
        bad = fixed("1.00", valid_from=date(2025, 1, 10), valid_to=date(2025, 1, 5))
        with pytest.raises(InvalidInputError):
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [bad])

    def test_record_of_another_employee(self, aggregator):
        with pytest.raises(InvalidInputError) as exc_info:
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [fixed("1.00", employee_id=uuid4())])
        assert exc_info.value.field == "employee_id"

    def test_malformed_inactive_record_is_still_rejected(self, aggregator):
        bad = fixed("-1.00", active=False)
        with pytest.raises(InvalidInputError):
            aggregator.aggregate(EMPLOYEE, JANUARY, GROSS, [bad])
