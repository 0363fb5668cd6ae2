"""Overtime worked by employees and paid through payroll."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from planilla_engine.models.base import Base, TimestampMixin


class OvertimeEntry(Base, TimestampMixin):
    """Overtime hours of one day.

    Only approved entries are paid. An entry is paid once; ``payroll_detail_id``
    points at the approved payroll detail that included it.
    """

    __tablename__ = "overtime_entry"

    overtime_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    overtime_type: Mapped[str] = mapped_column(String, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    payroll_detail_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_detail.payroll_detail_id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("hours > 0", name="overtime_entry_hours_check"),
        CheckConstraint(
            "overtime_type IN ('daytime', 'night', 'rest_day', 'night_rest_day')",
            name="overtime_entry_type_check",
        ),
    )
