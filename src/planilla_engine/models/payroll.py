"""Payroll header, detail and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planilla_engine.models.base import Base, TimestampMixin, TimestampUpdateMixin

MONEY = Numeric(14, 2)


class PayrollHeader(Base, TimestampUpdateMixin):
    """Payroll run for one company and period."""

    __tablename__ = "payroll_header"

    payroll_header_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    payroll_number: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    # Derived from the details; never edited directly
    total_gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_employer_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    row_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("company_id", "payroll_number", name="payroll_header_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'calculated', 'approved', 'paid', 'cancelled')",
            name="payroll_header_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_header_dates_check"),
    )

    details: Mapped[list[PayrollDetail]] = relationship(
        back_populates="header",
        cascade="all, delete-orphan",
        order_by="PayrollDetail.employee_id",
    )


class PayrollDetail(Base):
    """Per-employee result of a payroll run.

    The id is derived from the calculation inputs, so recalculating an
    unchanged run rewrites identical rows.
    """

    __tablename__ = "payroll_detail"

    payroll_detail_id: Mapped[UUID] = mapped_column(primary_key=True)
    payroll_header_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_header.payroll_header_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    base_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=0)
    overtime_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    css_employee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    css_employer: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    se_employee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    se_employer: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    risk_premium: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    other_deductions_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    employer_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    inputs_fingerprint: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "payroll_header_id", "employee_id", name="payroll_detail_header_employee_unique"
        ),
    )

    header: Mapped[PayrollHeader] = relationship(back_populates="details")
    deduction_lines: Mapped[list[PayrollDetailDeduction]] = relationship(
        back_populates="detail",
        cascade="all, delete-orphan",
        order_by="PayrollDetailDeduction.line_number",
    )


class PayrollDetailDeduction(Base):
    """One ordered deduction line of a payroll detail."""

    __tablename__ = "payroll_detail_deduction"

    payroll_detail_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_detail.payroll_detail_id", ondelete="CASCADE"),
        primary_key=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_kind: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[UUID] = mapped_column(nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    deduction_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    line_hash: Mapped[str] = mapped_column(String, nullable=False)

    detail: Mapped[PayrollDetail] = relationship(back_populates="deduction_lines")


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    before_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    after_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
