"""Social security (CSS), educational insurance (SE) and risk premium."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable

from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.types import (
    ZERO,
    ContributionRates,
    ContributionResult,
    CssCapTier,
    RiskLevel,
)
from planilla_engine.exceptions import ConfigurationMissingError, InvalidInputError
from planilla_engine.providers.base import TaxTableProvider


class ContributionCalculator:
    """Calculates employee/employer contributions for one period.

    - CSS is charged on gross pay up to a tiered ceiling
    - SE is charged on the full gross pay (no ceiling)
    - The employer risk premium depends on the job's risk level
    """

    def __init__(self, provider: TaxTableProvider):
        self.provider = provider
        self._rates_cache: dict[date, ContributionRates] = {}

    async def calculate(
        self,
        gross_pay: Decimal,
        risk_level: str | RiskLevel,
        as_of_date: date,
        is_subject_to_css: bool = True,
        is_subject_to_educational_insurance: bool = True,
    ) -> ContributionResult:
        """Calculate contributions for one period's gross pay.

        Raises:
            ConfigurationMissingError: no rates effective on ``as_of_date``
            InvalidInputError: negative gross pay or unknown risk level
        """
        if gross_pay < 0:
            raise InvalidInputError(
                f"Gross pay cannot be negative: {gross_pay}", field="gross_pay"
            )
        level = RiskLevel.parse(risk_level)
        rates = await self._get_rates(as_of_date)

        risk_rate = rates.risk_rate_by_level.get(level)
        if risk_rate is None:
            raise InvalidInputError(
                f"No risk rate configured for level '{level.value}'", field="risk_level"
            )

        if is_subject_to_css:
            cap = self.select_cap(gross_pay, rates.css_cap_tiers)
            css_base = gross_pay if cap is None else min(gross_pay, cap)
            css_employee = LineItemBuilder.apply_rate(css_base, rates.css_employee_rate)
            css_employer = LineItemBuilder.apply_rate(css_base, rates.css_employer_rate)
            risk_premium = LineItemBuilder.apply_rate(gross_pay, risk_rate)
        else:
            cap = None
            css_base = css_employee = css_employer = risk_premium = ZERO

        if is_subject_to_educational_insurance:
            se_employee = LineItemBuilder.apply_rate(gross_pay, rates.se_employee_rate)
            se_employer = LineItemBuilder.apply_rate(gross_pay, rates.se_employer_rate)
        else:
            se_employee = se_employer = ZERO

        return ContributionResult(
            css_base=css_base,
            css_cap=cap,
            css_employee=css_employee,
            css_employer=css_employer,
            se_employee=se_employee,
            se_employer=se_employer,
            risk_rate=risk_rate,
            risk_premium=risk_premium,
        )

    def clear_cache(self) -> None:
        self._rates_cache.clear()

    @staticmethod
    def select_cap(gross_pay: Decimal, tiers: Iterable[CssCapTier]) -> Decimal | None:
        """Cap of the highest tier whose threshold is <= gross pay.

        Returns None (uncapped) when no tier applies.
        """
        cap: Decimal | None = None
        for tier in sorted(tiers, key=lambda t: t.salary_threshold):
            if tier.salary_threshold > gross_pay:
                break
            cap = tier.cap
        return cap

    async def _get_rates(self, as_of_date: date) -> ContributionRates:
        if as_of_date in self._rates_cache:
            return self._rates_cache[as_of_date]

        rates = await self.provider.get_contribution_rates(as_of_date)
        if rates is None:
            raise ConfigurationMissingError("CSS/SE contribution", as_of_date)

        self._rates_cache[as_of_date] = rates
        return rates
