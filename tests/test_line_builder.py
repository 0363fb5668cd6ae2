"""Tests for deduction line builder."""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.types import (
    AbsenceDeduction,
    ApprovedAdvance,
    Deduction,
    DeductionLine,
    DeductionSourceKind,
    DeductionType,
    LoanInstallment,
)


class TestRounding:
    """Test money rounding rules."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert LineItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")

        # Half-up rounding
        assert LineItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert LineItemBuilder.round_to_cents(Decimal("10.135")) == Decimal("10.14")
        assert LineItemBuilder.round_to_cents(Decimal("0.005")) == Decimal("0.01")

    def test_apply_rate(self):
        assert LineItemBuilder.apply_rate(Decimal("1000"), Decimal("0.0975")) == Decimal("97.50")
        assert LineItemBuilder.apply_rate(Decimal("1234.56"), Decimal("0.0056")) == Decimal(
            "6.91"
        )

    def test_apply_percentage(self):
        assert LineItemBuilder.apply_percentage(Decimal("3000"), Decimal("2.5")) == Decimal(
            "75.00"
        )
        assert LineItemBuilder.apply_percentage(Decimal("1000"), Decimal("33.3333")) == Decimal(
            "333.33"
        )


class TestLineCreation:
    """Test each source kind turns into a positive deduction line."""

    def test_fixed_recurring_line(self):
        deduction = Deduction(
            deduction_id=uuid4(),
            employee_id=uuid4(),
            deduction_type=DeductionType.UNION_DUES,
            is_percentage=False,
            priority=10,
            valid_from=date(2025, 1, 1),
            amount=Decimal("12.345"),
            description="Union",
        )
        line = LineItemBuilder.create_recurring_line(deduction, Decimal("3000"))

        assert line.source_kind == DeductionSourceKind.RECURRING
        assert line.source_id == deduction.deduction_id
        assert line.amount == Decimal("12.35")
        assert line.deduction_type == DeductionType.UNION_DUES.value
        assert line.description == "Union"

    def test_percentage_recurring_line(self):
        deduction = Deduction(
            deduction_id=uuid4(),
            employee_id=uuid4(),
            deduction_type=DeductionType.VOLUNTARY_SAVINGS,
            is_percentage=True,
            priority=20,
            valid_from=date(2025, 1, 1),
            percentage=Decimal("5"),
        )
        line = LineItemBuilder.create_recurring_line(deduction, Decimal("1234.50"))
        assert line.amount == Decimal("61.73")

    def test_loan_line_default_description(self):
        installment = LoanInstallment(
            loan_id=uuid4(),
            employee_id=uuid4(),
            amount=Decimal("150"),
            installment_number=4,
        )
        line = LineItemBuilder.create_loan_line(installment)

        assert line.source_kind == DeductionSourceKind.LOAN_INSTALLMENT
        assert line.priority == installment.priority
        assert line.amount == Decimal("150.00")
        assert line.description == "Loan installment #4"

    def test_advance_line(self):
        advance = ApprovedAdvance(
            advance_id=uuid4(),
            employee_id=uuid4(),
            amount=Decimal("200"),
            deduction_date=date(2025, 1, 15),
        )
        line = LineItemBuilder.create_advance_line(advance)

        assert line.source_kind == DeductionSourceKind.ADVANCE
        assert line.description == "Salary advance 2025-01-15"

    def test_absence_line(self):
        absence = AbsenceDeduction(
            absence_id=uuid4(),
            employee_id=uuid4(),
            days=Decimal("1.5"),
            amount=Decimal("150.004"),
        )
        line = LineItemBuilder.create_absence_line(absence)

        assert line.source_kind == DeductionSourceKind.ABSENCE
        assert line.amount == Decimal("150.00")
        assert "1.5 days" in line.description

    def test_sum_lines(self):
        lines = [
            DeductionLine(DeductionSourceKind.RECURRING, uuid4(), 10, Decimal("1.10"), "other"),
            DeductionLine(DeductionSourceKind.ADVANCE, uuid4(), 60, Decimal("2.25"), "advance"),
        ]
        assert LineItemBuilder.sum_lines(lines) == Decimal("3.35")
        assert LineItemBuilder.sum_lines([]) == Decimal("0")


class TestLineHash:
    """Test deterministic line hashing."""

    def _line(self, **overrides) -> DeductionLine:
        values = dict(
            source_kind=DeductionSourceKind.RECURRING,
            source_id=UUID(int=7),
            priority=10,
            amount=Decimal("25.00"),
            deduction_type="union_dues",
            description="Union",
        )
        values.update(overrides)
        return DeductionLine(**values)

    def test_same_inputs_same_hash(self):
        assert LineItemBuilder.compute_line_hash(self._line()) == LineItemBuilder.compute_line_hash(
            self._line()
        )

    def test_hash_is_32_hex_chars(self):
        line_hash = LineItemBuilder.compute_line_hash(self._line())
        assert len(line_hash) == 32
        int(line_hash, 16)

    def test_amount_changes_hash(self):
        assert LineItemBuilder.compute_line_hash(
            self._line()
        ) != LineItemBuilder.compute_line_hash(self._line(amount=Decimal("25.01")))

    def test_description_is_not_hashed(self):
        assert LineItemBuilder.compute_line_hash(
            self._line()
        ) == LineItemBuilder.compute_line_hash(self._line(description="Renamed"))
