"""
Item calculators - line subtotals (before discounts) and totals (after).

Subtotal and total are always stored tax-exclusive; the tax removed from a
tax-inclusive price is held separately in subtotal_tax / total_tax.
"""
import logging

from .context import CalculationContext
from .models import ZERO, CartItem, Totals

logger = logging.getLogger(__name__)


def adjust_non_base_location_price(item: CartItem, ctx: CalculationContext) -> CartItem:
    """
    Remove the store's base tax from a tax-inclusive price.

    Only applies when the customer's rates differ from the base rates. The
    item becomes tax-exclusive so destination tax is added on top.
    """
    base_tax_rates = ctx.get_base_rates(item.product.tax_class)
    item_tax_rates = ctx.get_item_tax_rates(item)

    if item_tax_rates != base_tax_rates:
        taxes = ctx.calc_tax(item.price, base_tax_rates, price_includes_tax=True, suppress_rounding=True)
        item.price = item.price - sum(taxes.values(), ZERO)
        item.price_includes_tax = False
        logger.debug("Adjusted %s to base-exclusive price %s", item.key, item.price)

    return item


def calculate_item_subtotals(items: list[CartItem], ctx: CalculationContext, totals: Totals) -> Totals:
    """
    Calculate each item's pre-discount subtotal and tax.

    Works from the inclusive price where possible so a 9.99 inc price at 20%
    does not drift a cent once the tax is split out.
    """
    for item in items:
        item.subtotal = item.price * item.quantity
        item.subtotal_tax = ZERO
        item.subtotal_taxes = {}

        if item.price_includes_tax and ctx.settings.adjust_non_base_location_prices:
            item = adjust_non_base_location_price(item, ctx)
            item.subtotal = item.price * item.quantity

        if ctx.calculate_tax and item.product.is_taxable():
            item.subtotal_taxes = ctx.calc_tax(
                item.subtotal, ctx.get_item_tax_rates(item), item.price_includes_tax
            )
            item.subtotal_tax = sum(item.subtotal_taxes.values(), ZERO)

            if item.price_includes_tax:
                item.subtotal = item.subtotal - item.subtotal_tax

    totals = totals.evolve(
        items_subtotal=sum((item.subtotal for item in items), ZERO),
        items_subtotal_tax=sum((item.subtotal_tax for item in items), ZERO),
    )
    totals.add_trace("Item Subtotals", f"{len(items)} item(s) before discounts", f"{totals.items_subtotal}")
    return totals


def calculate_item_totals(items: list[CartItem], ctx: CalculationContext, totals: Totals) -> Totals:
    """Calculate each item's total and tax from its discounted price."""
    for item in items:
        item.total = item.discounted_price * item.quantity
        item.total_tax = ZERO
        item.taxes = {}

        if ctx.calculate_tax and item.product.is_taxable():
            item.taxes = ctx.calc_tax(item.total, ctx.get_item_tax_rates(item), item.price_includes_tax)
            item.total_tax = sum(item.taxes.values(), ZERO)

            if item.price_includes_tax:
                item.total = item.total - item.total_tax

    totals = totals.evolve(
        items_total=sum((item.total for item in items), ZERO),
        items_total_tax=sum((item.total_tax for item in items), ZERO),
        item_totals=[item.to_item_total() for item in items],
    )
    totals.add_trace("Item Totals", f"{len(items)} item(s) after discounts", f"{totals.items_total}")
    return totals
