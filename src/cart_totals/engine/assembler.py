"""
Totals Assembler - fees, shipping, per-rate taxes and the grand total.
"""
import logging
from decimal import Decimal

from .context import CalculationContext
from .fees import calculate_fee_totals
from .models import ZERO, CartItem, FeeLine, ShippingLine, TaxRateTotal, Totals
from .tax import round_amount, to_decimal
from .tax_aggregator import get_merged_taxes

logger = logging.getLogger(__name__)


def sum_rate_component(taxes: list[TaxRateTotal], component: str, ctx: CalculationContext) -> Decimal:
    """
    Total one component (tax_total or shipping_tax_total) across rates.

    With round-at-subtotal each rate is rounded before summing; otherwise the
    sum is rounded once.
    """
    decimals = ctx.settings.price_decimals
    amounts = [getattr(tax, component) for tax in taxes]

    if ctx.settings.tax_round_at_subtotal:
        return sum((round_amount(amount, decimals) for amount in amounts), ZERO)
    return round_amount(sum(amounts, ZERO), decimals)


def calculate_totals(
    items: list[CartItem],
    fees: list[FeeLine],
    shipping_lines: list[ShippingLine],
    ctx: CalculationContext,
    totals: Totals,
) -> Totals:
    """Add fees, shipping and taxes to the item totals and work out the grand total."""
    totals = calculate_fee_totals(fees, ctx, totals)

    taxes = get_merged_taxes(items, shipping_lines)
    totals = totals.evolve(
        shipping_total=sum((line.total for line in shipping_lines), ZERO),
        taxes=taxes,
    )
    totals = totals.evolve(
        tax_total=sum_rate_component(taxes, 'tax_total', ctx),
        shipping_tax_total=sum_rate_component(taxes, 'shipping_tax_total', ctx),
    )
    totals.add_trace("Taxes", f"{len(taxes)} tax rate(s)", f"{totals.tax_total}")

    if ctx.hooks.before_total is not None:
        totals = ctx.hooks.before_total(totals) or totals

    grand_total = round_amount(
        totals.items_total
        + totals.fees_total
        + totals.shipping_total
        + totals.tax_total
        + totals.shipping_tax_total,
        ctx.settings.price_decimals,
    )

    if ctx.hooks.calculated_total is not None:
        grand_total = to_decimal(ctx.hooks.calculated_total(grand_total, totals))

    if grand_total < 0:
        logger.debug("Grand total %s floored at zero", grand_total)
        totals.add_warning(f"Grand total {grand_total} was negative and has been set to 0")
        grand_total = ZERO

    totals = totals.evolve(total=grand_total)
    totals.add_trace("Grand Total", "Items + fees + shipping + taxes", f"{grand_total}")
    return totals
