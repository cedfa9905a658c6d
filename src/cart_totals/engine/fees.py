"""Fee Calculator - tax on flat fee lines."""

from .context import CalculationContext
from .models import ZERO, FeeLine, Totals


def calculate_fee_totals(fees: list[FeeLine], ctx: CalculationContext, totals: Totals) -> Totals:
    """Calculate tax for taxable fees and total all fee lines."""
    for fee in fees:
        fee.taxes = {}
        fee.total_tax = ZERO

        if ctx.calculate_tax and fee.taxable:
            fee.taxes = ctx.calc_tax(fee.total, ctx.get_rates(fee.tax_class), price_includes_tax=False)
            fee.total_tax = sum(fee.taxes.values(), ZERO)

    totals = totals.evolve(
        fees_total=sum((fee.total for fee in fees), ZERO),
        fees_total_tax=sum((fee.total_tax for fee in fees), ZERO),
    )
    if fees:
        totals.add_trace("Fees", f"{len(fees)} fee line(s)", f"{totals.fees_total}")
    return totals
