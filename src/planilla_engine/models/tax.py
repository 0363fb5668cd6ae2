"""Income tax tables and CSS/SE contribution rates."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planilla_engine.models.base import Base, TimestampMixin


class TaxConfiguration(Base, TimestampMixin):
    """Company income tax (ISR) configuration effective from a date."""

    __tablename__ = "tax_configuration"

    tax_configuration_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    dependent_deduction: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_dependents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "company_id", "effective_from", name="tax_configuration_company_date_unique"
        ),
    )

    brackets: Mapped[list[TaxBracketRow]] = relationship(
        back_populates="configuration",
        cascade="all, delete-orphan",
        order_by="TaxBracketRow.lower_bound",
    )


class TaxBracketRow(Base):
    """One progressive bracket of a tax configuration."""

    __tablename__ = "tax_bracket"

    tax_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tax_configuration_id: Mapped[UUID] = mapped_column(
        ForeignKey("tax_configuration.tax_configuration_id", ondelete="CASCADE"),
        nullable=False,
    )
    lower_bound: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    upper_bound: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    fixed_amount_below: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("rate >= 0 AND rate <= 1", name="tax_bracket_rate_check"),
    )

    configuration: Mapped[TaxConfiguration] = relationship(back_populates="brackets")


class ContributionRateConfiguration(Base, TimestampMixin):
    """CSS/SE rates, CSS cap tiers and risk premiums effective from a date.

    ``css_cap_tiers`` is a JSON list of ``{"salary_threshold": "...", "cap": "..."}``
    with amounts stored as strings.
    """

    __tablename__ = "contribution_rate_configuration"

    contribution_rate_configuration_id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    css_employee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    css_employer_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    se_employee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    se_employer_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    risk_rate_low: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    risk_rate_medium: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    risk_rate_high: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    css_cap_tiers: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
