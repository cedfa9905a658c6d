"""
Tax math - splits prices into per-rate tax amounts.

Amounts are keyed by rate id and keep the order of the rates passed in,
so downstream breakdowns have a deterministic order.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Union

ZERO = Decimal('0')
HUNDRED = Decimal('100')

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without float representation noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_amount(value: Decimal, places: int) -> Decimal:
    """Round half away from zero to a number of decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxRate:
    """A single tax rate as returned by a rate lookup."""
    rate_id: str
    rate: Decimal  # percent, e.g. Decimal('20')
    label: str = ''
    compound: bool = False
    shipping: bool = True
    priority: int = 1


TaxRates = Mapping[str, TaxRate]


def _calc_exclusive_tax(price: Decimal, rates: TaxRates) -> dict[str, Decimal]:
    taxes = {rate_id: ZERO for rate_id in rates}

    for rate_id, rate in rates.items():
        if not rate.compound:
            taxes[rate_id] += price * rate.rate / HUNDRED

    # Compound rates tax the price plus every tax computed before them
    pre_compound_total = sum(taxes.values(), ZERO)
    for rate_id, rate in rates.items():
        if rate.compound:
            taxes[rate_id] += (price + pre_compound_total) * rate.rate / HUNDRED
            pre_compound_total = sum(taxes.values(), ZERO)

    return taxes


def _calc_inclusive_tax(price: Decimal, rates: TaxRates) -> dict[str, Decimal]:
    taxes = {rate_id: ZERO for rate_id in rates}
    compound = [(rate_id, rate) for rate_id, rate in rates.items() if rate.compound]
    regular = [(rate_id, rate) for rate_id, rate in rates.items() if not rate.compound]

    # Strip compound taxes working backwards from the last one applied
    non_compound_price = price
    for rate_id, rate in reversed(compound):
        tax_amount = non_compound_price - non_compound_price / (1 + rate.rate / HUNDRED)
        taxes[rate_id] += tax_amount
        non_compound_price -= tax_amount

    regular_tax_rate = 1 + sum((rate.rate for _, rate in regular), ZERO) / HUNDRED
    for rate_id, rate in regular:
        share = (rate.rate / HUNDRED) / regular_tax_rate
        taxes[rate_id] += share * non_compound_price

    return taxes


def calc_tax(
    price: Number,
    rates: TaxRates,
    price_includes_tax: bool = False,
    suppress_rounding: bool = False,
    precision: int = 4,
) -> dict[str, Decimal]:
    """
    Calculate the tax attributable to each rate for a price.

    Args:
        price: Line amount the tax applies to
        rates: Ordered mapping of rate id to TaxRate
        price_includes_tax: Whether price already contains the tax
        suppress_rounding: Return unrounded amounts
        precision: Decimal places each amount is rounded to

    Returns:
        Mapping of rate id to tax amount
    """
    price = to_decimal(price)
    if not rates:
        return {}

    if price_includes_tax:
        taxes = _calc_inclusive_tax(price, rates)
    else:
        taxes = _calc_exclusive_tax(price, rates)

    if not suppress_rounding:
        taxes = {rate_id: round_amount(amount, precision) for rate_id, amount in taxes.items()}

    return taxes


def get_tax_total(taxes: Mapping[str, Decimal], precision: int = 4) -> Decimal:
    """Sum a tax breakdown, rounding each amount first."""
    return sum((round_amount(amount, precision) for amount in taxes.values()), ZERO)
