"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from planilla_engine.exceptions import InvalidInputError

ZERO = Decimal("0")


class PayFrequency(str, Enum):
    """Pay frequencies and the periods per year they imply."""

    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @classmethod
    def parse(cls, value: str | PayFrequency) -> PayFrequency:
        """Resolve a frequency from its value or a local alias.

        Raises InvalidInputError for anything unrecognized.
        """
        if isinstance(value, PayFrequency):
            return value
        key = str(value).strip().lower()
        key = _FREQUENCY_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise InvalidInputError(
                f"Unrecognized pay frequency '{value}' (allowed: {allowed})",
                field="pay_frequency",
            ) from None


_PERIODS_PER_YEAR = {
    PayFrequency.MONTHLY: 12,
    PayFrequency.BIWEEKLY: 24,
    PayFrequency.WEEKLY: 52,
}

# Labels used by Panamanian payroll clerks
_FREQUENCY_ALIASES = {
    "mensual": "monthly",
    "quincenal": "biweekly",
    "semanal": "weekly",
}


class RiskLevel(str, Enum):
    """Occupational risk classification driving the employer premium."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: str | RiskLevel) -> RiskLevel:
        if isinstance(value, RiskLevel):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInputError(
                f"Unknown risk level '{value}'", field="risk_level"
            ) from None


class OvertimeType(str, Enum):
    """Overtime categories and the pay multiplier of each."""

    DAYTIME = "daytime"
    NIGHT = "night"
    REST_DAY = "rest_day"  # Sundays and national holidays
    NIGHT_REST_DAY = "night_rest_day"

    @property
    def factor(self) -> Decimal:
        return _OVERTIME_FACTORS[self]

    @classmethod
    def parse(cls, value: str | OvertimeType) -> OvertimeType:
        if isinstance(value, OvertimeType):
            return value
        key = str(value).strip().lower()
        key = _OVERTIME_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise InvalidInputError(
                f"Unknown overtime type '{value}'", field="overtime_type"
            ) from None


_OVERTIME_FACTORS = {
    OvertimeType.DAYTIME: Decimal("1.25"),
    OvertimeType.NIGHT: Decimal("1.50"),
    OvertimeType.REST_DAY: Decimal("1.50"),
    OvertimeType.NIGHT_REST_DAY: Decimal("1.75"),
}

_OVERTIME_ALIASES = {
    "diurna": "daytime",
    "nocturna": "night",
    "domingo_feriado": "rest_day",
    "nocturna_domingo_feriado": "night_rest_day",
}

# Hourly rate basis: 48-hour week, 4.33 weeks per month
STANDARD_WEEKLY_HOURS = Decimal("48")
WEEKS_PER_MONTH = Decimal("4.33")


class DeductionType(str, Enum):
    """Recurring deduction categories."""

    INTERNAL_LOAN = "internal_loan"
    BANK_LOAN = "bank_loan"
    CHILD_SUPPORT = "child_support"
    GARNISHMENT = "garnishment"
    HEALTH_INSURANCE = "health_insurance"
    VOLUNTARY_SAVINGS = "voluntary_savings"
    UNION_DUES = "union_dues"
    OTHER = "other"


class DeductionSourceKind(str, Enum):
    """Where an aggregated deduction line came from."""

    RECURRING = "recurring"
    LOAN_INSTALLMENT = "loan_installment"
    ADVANCE = "advance"
    ABSENCE = "absence"


# Default priorities for one-off items (recurring deductions carry their own)
LOAN_INSTALLMENT_PRIORITY = 50
ADVANCE_PRIORITY = 60
ABSENCE_PRIORITY = 70


@dataclass(frozen=True)
class PayPeriod:
    """Inclusive payroll period."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidInputError(
                f"Period end {self.end} is before period start {self.start}",
                field="period_end",
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, valid_from: date, valid_to: date | None) -> bool:
        """Check if a validity window intersects the period."""
        return valid_from <= self.end and (valid_to is None or valid_to >= self.start)


# ===== Tax tables =====


@dataclass(frozen=True)
class TaxBracket:
    """Income tax bracket for progressive taxation."""

    lower_bound: Decimal
    upper_bound: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.15 for 15%
    fixed_amount_below: Decimal = ZERO  # Cumulative tax of all lower brackets

    def contains(self, amount: Decimal) -> bool:
        """Boundary values belong to the lower bracket."""
        if amount <= self.lower_bound:
            return False
        return self.upper_bound is None or amount <= self.upper_bound


@dataclass(frozen=True)
class TaxConfig:
    """Income tax configuration effective from a date for one company."""

    company_id: UUID
    effective_from: date
    brackets: tuple[TaxBracket, ...]
    dependent_deduction: Decimal
    max_dependents: int


@dataclass(frozen=True)
class CssCapTier:
    """CSS ceiling applied once gross pay reaches ``salary_threshold``."""

    salary_threshold: Decimal
    cap: Decimal


@dataclass(frozen=True)
class ContributionRates:
    """CSS/SE rates and caps effective from a date."""

    effective_from: date
    css_employee_rate: Decimal
    css_employer_rate: Decimal
    css_cap_tiers: tuple[CssCapTier, ...]
    se_employee_rate: Decimal
    se_employer_rate: Decimal
    risk_rate_by_level: dict[RiskLevel, Decimal]


# ===== Employee and deduction inputs =====


@dataclass(frozen=True)
class EmployeeSnapshot:
    """Read-only employee data as of the period end."""

    employee_id: UUID
    gross_base_pay: Decimal
    pay_frequency: str
    dependent_count: int
    is_subject_to_income_tax: bool
    risk_level: str
    is_subject_to_css: bool = True
    is_subject_to_educational_insurance: bool = True
    full_name: str | None = None


@dataclass(frozen=True)
class Deduction:
    """Recurring deduction (fixed amount or percentage of gross)."""

    deduction_id: UUID
    employee_id: UUID
    deduction_type: DeductionType
    is_percentage: bool
    priority: int
    valid_from: date
    valid_to: date | None = None
    amount: Decimal | None = None
    percentage: Decimal | None = None  # 0-100
    active: bool = True
    description: str = ""


@dataclass(frozen=True)
class LoanInstallment:
    """Installment of an employee loan due in the period."""

    loan_id: UUID
    employee_id: UUID
    amount: Decimal
    installment_number: int = 1
    priority: int = LOAN_INSTALLMENT_PRIORITY
    description: str = ""


@dataclass(frozen=True)
class ApprovedAdvance:
    """Salary advance approved for discount on ``deduction_date``."""

    advance_id: UUID
    employee_id: UUID
    amount: Decimal
    deduction_date: date
    priority: int = ADVANCE_PRIORITY
    description: str = ""


@dataclass(frozen=True)
class AbsenceDeduction:
    """Pay withheld for unjustified absence days."""

    absence_id: UUID
    employee_id: UUID
    days: Decimal
    amount: Decimal
    priority: int = ABSENCE_PRIORITY
    description: str = ""


@dataclass(frozen=True)
class ApprovedOvertime:
    """Approved overtime hours worked on ``work_date``, not yet paid."""

    overtime_id: UUID
    employee_id: UUID
    work_date: date
    hours: Decimal
    overtime_type: str
    description: str = ""


@dataclass(frozen=True)
class DeductionLine:
    """A resolved deduction line (positive amount withheld)."""

    source_kind: DeductionSourceKind
    source_id: UUID
    priority: int
    amount: Decimal
    deduction_type: str
    description: str = ""

    @property
    def sort_key(self) -> tuple[int, UUID]:
        return (self.priority, self.source_id)

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "source_kind": self.source_kind.value,
            "source_id": str(self.source_id),
            "priority": self.priority,
            "deduction_type": self.deduction_type,
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class DeductionSummary:
    """Ordered deduction lines for one employee and period."""

    lines: tuple[DeductionLine, ...] = ()
    total: Decimal = ZERO


# ===== Calculator results =====


@dataclass(frozen=True)
class IncomeTaxResult:
    """Income tax (ISR) withholding for one period."""

    taxable_income: Decimal  # Annualized gross
    dependent_deduction: Decimal
    net_taxable_income: Decimal
    annual_tax: Decimal
    tax_amount: Decimal  # Period withholding
    effective_rate: Decimal  # Percent of annualized gross

    @classmethod
    def zero(cls) -> IncomeTaxResult:
        return cls(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)


@dataclass(frozen=True)
class OvertimeResult:
    """Overtime earnings for one period."""

    hourly_rate: Decimal
    hours: Decimal
    amount: Decimal

    @classmethod
    def zero(cls) -> OvertimeResult:
        return cls(ZERO, ZERO, ZERO)


@dataclass(frozen=True)
class ContributionResult:
    """CSS, SE and occupational risk contributions for one period."""

    css_base: Decimal
    css_cap: Decimal | None
    css_employee: Decimal
    css_employer: Decimal
    se_employee: Decimal
    se_employer: Decimal
    risk_rate: Decimal
    risk_premium: Decimal


@dataclass
class EmployeeCalculationContext:
    """Context for calculating a single employee's pay."""

    employee: EmployeeSnapshot
    payroll_header_id: UUID
    company_id: UUID
    period: PayPeriod

    # Populated during calculation
    overtime: OvertimeResult = field(default_factory=OvertimeResult.zero)
    income_tax: IncomeTaxResult | None = None
    contributions: ContributionResult | None = None
    deductions: DeductionSummary = field(default_factory=DeductionSummary)

    @property
    def employee_id(self) -> UUID:
        return self.employee.employee_id

    @property
    def as_of_date(self) -> date:
        return self.period.end
