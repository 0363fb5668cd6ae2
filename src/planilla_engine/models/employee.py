"""Employee model read by the payroll engine."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from planilla_engine.models.base import Base, TimestampUpdateMixin


class Employee(Base, TimestampUpdateMixin):
    """Employee record with the fields the calculation snapshot needs."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    employee_code: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    base_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    dependent_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_subject_to_income_tax: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_subject_to_css: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_subject_to_educational_insurance: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    risk_level: Mapped[str] = mapped_column(String, nullable=False, default="low")
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("company_id", "employee_code", name="employee_company_code_unique"),
        CheckConstraint("dependent_count >= 0", name="employee_dependents_check"),
        CheckConstraint("base_salary >= 0", name="employee_salary_check"),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"
