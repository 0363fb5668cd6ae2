"""Income tax (ISR) calculation using progressive bracket tables."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from planilla_engine.calculators.line_builder import LineItemBuilder
from planilla_engine.calculators.types import (
    ZERO,
    IncomeTaxResult,
    PayFrequency,
    TaxBracket,
    TaxConfig,
)
from planilla_engine.exceptions import (
    ConfigurationMissingError,
    InvalidInputError,
    InvalidTaxTableError,
)
from planilla_engine.providers.base import TaxTableProvider

logger = logging.getLogger(__name__)


def cumulative_brackets(
    rows: Iterable[tuple[Decimal, Decimal | None, Decimal]],
) -> tuple[TaxBracket, ...]:
    """Build brackets from ``(lower, upper, rate)`` rows, filling in
    ``fixed_amount_below`` with the tax owed on all lower brackets."""
    brackets: list[TaxBracket] = []
    fixed = ZERO
    for lower, upper, rate in sorted(rows, key=lambda r: r[0]):
        brackets.append(
            TaxBracket(
                lower_bound=lower,
                upper_bound=upper,
                rate=rate,
                fixed_amount_below=fixed,
            )
        )
        if upper is not None:
            fixed += (upper - lower) * rate
    return tuple(brackets)


class IncomeTaxCalculator:
    """Calculates ISR withholding for one pay period.

    Annual projection: ``gross_pay`` is multiplied by the periods per year of
    the pay frequency, reduced by the dependent deduction, run through the
    bracket table, and the annual tax is divided back into a per-period
    withholding.

    Brackets are validated before use and must partition ``[0, ∞)``:
    [
        {lower: 0,     upper: 11000, rate: 0.00, fixed: 0},
        {lower: 11000, upper: 50000, rate: 0.15, fixed: 0},
        {lower: 50000, upper: None,  rate: 0.25, fixed: 5850},
    ]
    """

    def __init__(self, provider: TaxTableProvider):
        self.provider = provider
        self._config_cache: dict[tuple[UUID, date], TaxConfig] = {}

    async def calculate(
        self,
        company_id: UUID,
        gross_pay: Decimal,
        pay_frequency: str | PayFrequency,
        dependents: int,
        is_subject: bool,
        as_of_date: date,
    ) -> IncomeTaxResult:
        """Calculate the income tax withholding for one period.

        Raises:
            ConfigurationMissingError: no tax config effective on ``as_of_date``
            InvalidInputError: bad gross pay, frequency, dependents or table
        """
        if not is_subject:
            return IncomeTaxResult.zero()

        if gross_pay < 0:
            raise InvalidInputError(
                f"Gross pay cannot be negative: {gross_pay}", field="gross_pay"
            )
        if dependents < 0:
            raise InvalidInputError(
                f"Dependents cannot be negative: {dependents}", field="dependents"
            )

        periods = PayFrequency.parse(pay_frequency).periods_per_year
        config = await self._get_tax_config(company_id, as_of_date)

        taxable_income = gross_pay * periods
        dependent_deduction = min(dependents, config.max_dependents) * config.dependent_deduction
        net_taxable_income = max(ZERO, taxable_income - dependent_deduction)

        annual_tax = self.calculate_annual_tax(net_taxable_income, config.brackets)
        tax_amount = LineItemBuilder.round_to_cents(annual_tax / periods)

        if taxable_income > 0:
            effective_rate = LineItemBuilder.round_to_cents(annual_tax / taxable_income * 100)
        else:
            effective_rate = ZERO

        return IncomeTaxResult(
            taxable_income=taxable_income,
            dependent_deduction=dependent_deduction,
            net_taxable_income=net_taxable_income,
            annual_tax=annual_tax,
            tax_amount=tax_amount,
            effective_rate=effective_rate,
        )

    def clear_cache(self) -> None:
        """Forget configs loaded so far; the next lookup goes to the provider."""
        self._config_cache.clear()

    @staticmethod
    def calculate_annual_tax(
        net_taxable_income: Decimal, brackets: Iterable[TaxBracket]
    ) -> Decimal:
        """Locate the bracket holding the income and apply its marginal rate.

        ``lower < amount <= upper``: an amount exactly at an upper bound is
        taxed in the lower bracket, so the result is continuous.
        """
        if net_taxable_income <= 0:
            return ZERO

        for bracket in brackets:
            if bracket.contains(net_taxable_income):
                tax = bracket.fixed_amount_below + bracket.rate * (
                    net_taxable_income - bracket.lower_bound
                )
                return LineItemBuilder.round_to_cents(tax)

        raise InvalidTaxTableError(
            f"No bracket covers taxable income {net_taxable_income}",
            field="brackets",
        )

    @staticmethod
    def validate_brackets(config: TaxConfig) -> tuple[TaxBracket, ...]:
        """Return the brackets ordered by lower bound, or raise if unusable."""
        if not config.brackets:
            raise InvalidTaxTableError(
                f"Tax configuration for company {config.company_id} effective "
                f"{config.effective_from} has no brackets",
                field="brackets",
            )
        if config.dependent_deduction < 0 or config.max_dependents < 0:
            raise InvalidTaxTableError(
                "Dependent deduction and max dependents must be non-negative",
                field="dependent_deduction",
            )

        ordered = tuple(sorted(config.brackets, key=lambda b: b.lower_bound))
        if ordered[0].lower_bound != 0:
            raise InvalidTaxTableError(
                f"First bracket must start at 0, not {ordered[0].lower_bound}",
                field="brackets",
            )

        cumulative = ZERO
        last_index = len(ordered) - 1
        for index, bracket in enumerate(ordered):
            if not (0 <= bracket.rate <= 1):
                raise InvalidTaxTableError(
                    f"Bracket rate {bracket.rate} is outside [0, 1]", field="brackets"
                )
            if LineItemBuilder.round_to_cents(bracket.fixed_amount_below) != (
                LineItemBuilder.round_to_cents(cumulative)
            ):
                raise InvalidTaxTableError(
                    f"Bracket starting at {bracket.lower_bound} has fixed amount "
                    f"{bracket.fixed_amount_below}, expected {cumulative}",
                    field="brackets",
                )

            if bracket.upper_bound is None:
                if index != last_index:
                    raise InvalidTaxTableError(
                        "Only the topmost bracket may be unbounded", field="brackets"
                    )
                break

            if index == last_index:
                raise InvalidTaxTableError(
                    "Topmost bracket must be unbounded", field="brackets"
                )
            if bracket.upper_bound <= bracket.lower_bound:
                raise InvalidTaxTableError(
                    f"Bracket {bracket.lower_bound}-{bracket.upper_bound} is empty",
                    field="brackets",
                )
            following = ordered[index + 1]
            if following.lower_bound != bracket.upper_bound:
                raise InvalidTaxTableError(
                    f"Brackets leave a gap or overlap at {bracket.upper_bound}",
                    field="brackets",
                )
            cumulative += bracket.rate * (bracket.upper_bound - bracket.lower_bound)

        return ordered

    async def _get_tax_config(self, company_id: UUID, as_of_date: date) -> TaxConfig:
        """Get the validated tax config effective on a date."""
        cache_key = (company_id, as_of_date)
        if cache_key in self._config_cache:
            return self._config_cache[cache_key]

        config = await self.provider.get_tax_config(company_id, as_of_date)
        if config is None:
            raise ConfigurationMissingError("income tax", as_of_date, company_id)

        brackets = self.validate_brackets(config)
        validated = TaxConfig(
            company_id=config.company_id,
            effective_from=config.effective_from,
            brackets=brackets,
            dependent_deduction=config.dependent_deduction,
            max_dependents=config.max_dependents,
        )
        logger.debug(
            "Loaded tax config for company %s effective %s (%d brackets)",
            company_id,
            config.effective_from,
            len(brackets),
        )
        self._config_cache[cache_key] = validated
        return validated
