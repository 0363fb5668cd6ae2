"""Recurring deductions, loans, salary advances and absences."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from planilla_engine.models.base import Base, TimestampMixin


class RecurringDeduction(Base, TimestampMixin):
    """Fixed-amount or percentage deduction applied every period it is valid."""

    __tablename__ = "recurring_deduction"

    deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deduction_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    is_percentage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "valid_to IS NULL OR valid_to >= valid_from",
            name="recurring_deduction_dates_check",
        ),
    )


class Loan(Base, TimestampMixin):
    """Employee loan repaid through monthly installments."""

    __tablename__ = "loan"

    loan_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    principal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    installments_total: Mapped[int] = mapped_column(Integer, nullable=False)
    installments_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'paid_off', 'cancelled')",
            name="loan_status_check",
        ),
        CheckConstraint(
            "installments_paid >= 0 AND installments_paid <= installments_total",
            name="loan_installments_check",
        ),
    )

    @property
    def next_installment_number(self) -> int:
        return self.installments_paid + 1

    @property
    def outstanding_balance(self) -> Decimal:
        """Principal not yet covered by paid installments."""
        paid = self.installment_amount * self.installments_paid
        return max(self.principal - paid, Decimal("0"))


class LoanPayment(Base, TimestampMixin):
    """Installment collected from a loan by an approved payroll."""

    __tablename__ = "loan_payment"

    loan_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("loan.loan_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payroll_header_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_header.payroll_header_id"), nullable=False, index=True
    )
    payroll_detail_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_detail.payroll_detail_id"), nullable=False
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_on: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("loan_id", "installment_number", name="loan_payment_installment_unique"),
    )


class Advance(Base, TimestampMixin):
    """Salary advance discounted on a scheduled date once approved."""

    __tablename__ = "advance"

    advance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    deduction_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    # Payroll that discounted the advance
    payroll_header_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_header.payroll_header_id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'discounted')",
            name="advance_status_check",
        ),
    )


class Absence(Base, TimestampMixin):
    """Absence record; unjustified absences that affect salary are deducted."""

    __tablename__ = "absence"

    absence_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    deduction_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    is_justified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    affects_salary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str] = mapped_column(String, nullable=False, default="")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="absence_dates_check"),
    )
