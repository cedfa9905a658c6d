"""
Tax Aggregator - merges item and shipping tax breakdowns by rate id.

Rates appear in the order they are first seen, items before shipping.
"""
from typing import Iterable

from .models import CartItem, ShippingLine, TaxRateTotal


def get_merged_taxes(items: Iterable[CartItem], shipping_lines: Iterable[ShippingLine]) -> list[TaxRateTotal]:
    """Build one TaxRateTotal per rate id found on items or shipping."""
    taxes: dict[str, TaxRateTotal] = {}

    for item in items:
        for rate_id, amount in item.taxes.items():
            if rate_id not in taxes:
                taxes[rate_id] = TaxRateTotal(rate_id=rate_id)
            taxes[rate_id].tax_total += amount

    for line in shipping_lines:
        for rate_id, amount in line.taxes.items():
            if rate_id not in taxes:
                taxes[rate_id] = TaxRateTotal(rate_id=rate_id)
            taxes[rate_id].shipping_tax_total += amount

    return list(taxes.values())
