"""
Cart Totals - the calculation entry point.

Inputs are set on a CartTotals instance; every calculation pass rebuilds the
working state from those inputs and runs the stages in order:

1. Item subtotals (before discounts)
2. Discount allocation (coupons, highest subtotal first)
3. Item totals (after discounts)
4. Fees, shipping, per-rate taxes and the grand total
"""
import copy
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from ..config.settings import Settings, get_settings
from .assembler import calculate_totals
from .context import CalculationContext, NoTaxRates, TaxRateProvider, TotalsHooks
from .discounts import allocate_discounts
from .item_totals import calculate_item_subtotals, calculate_item_totals
from .models import (
    ZERO,
    CartItem,
    Coupon,
    Fee,
    FeeLine,
    ItemTotal,
    ProductLineItem,
    ShippingLine,
    ShippingRate,
    TaxRateTotal,
    Totals,
)
from .tax import to_decimal

logger = logging.getLogger(__name__)


class CartTotals:
    """
    Calculates totals for a cart.

    Any setter marks the totals stale; the next getter (or an explicit
    calculate()) runs a full pass. Nothing computed in one pass is reused by
    the next.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rate_provider: Optional[TaxRateProvider] = None,
        hooks: Optional[TotalsHooks] = None,
    ):
        self._settings = settings
        self._rate_provider = rate_provider or NoTaxRates()
        self._hooks = hooks or TotalsHooks()

        self._calculate_tax = True
        self._items: list[ProductLineItem] = []
        self._coupons: dict[str, Coupon] = {}
        self._fees: list[Fee] = []
        self._shipping: list[ShippingRate] = []

        self.totals = Totals()
        self._stale = True

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_calculate_tax(self, value: bool):
        """Turn tax calculation on or off for this cart."""
        self._calculate_tax = bool(value)
        self._stale = True

    def set_items(self, items: Iterable[Any]):
        """
        Set the cart lines. Entries that are not product lines are skipped.

        Lines are copied, so changing a line afterwards has no effect until it
        is passed to set_items again.
        """
        self._items = []
        for maybe_item in items:
            if not isinstance(maybe_item, ProductLineItem):
                logger.debug("Skipping non-product line %r", maybe_item)
                continue
            self._items.append(replace(maybe_item))
        self._stale = True

    def set_coupons(self, coupons: Mapping[str, Coupon]):
        """Set coupons keyed by code, in the order they should apply."""
        self._coupons = dict(coupons)
        self._stale = True

    def set_fees(self, fees: Iterable[Fee]):
        self._fees = list(fees)
        self._stale = True

    def set_shipping(self, lines: Iterable[ShippingRate]):
        """Replace the shipping lines."""
        self._shipping = [replace(rate, taxes=dict(rate.taxes)) for rate in lines or []]
        self._stale = True

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def _build_items(self, settings: Settings, totals: Totals) -> list[CartItem]:
        items = []
        for line in self._items:
            if line.quantity <= 0:
                totals.add_warning(f"Skipped line {line.key}: quantity {line.quantity} is not positive")
                continue
            items.append(CartItem(
                key=line.key,
                product=line.product,
                source=line,
                quantity=line.quantity,
                price=to_decimal(line.product.price),
                price_includes_tax=settings.prices_include_tax,
            ))
        return items

    def _build_fees(self) -> list[FeeLine]:
        return [
            FeeLine(
                key=str(index),
                name=fee.name,
                total=to_decimal(fee.amount),
                taxable=fee.taxable,
                tax_class=fee.tax_class,
            )
            for index, fee in enumerate(self._fees)
        ]

    def _build_shipping_lines(self) -> list[ShippingLine]:
        lines = []
        for index, rate in enumerate(self._shipping):
            taxes = {rate_id: to_decimal(amount) for rate_id, amount in rate.taxes.items()}
            lines.append(ShippingLine(
                key=str(index),
                method_id=rate.method_id,
                total=to_decimal(rate.cost),
                taxes=taxes,
                total_tax=sum(taxes.values(), ZERO),
            ))
        return lines

    def calculate(self) -> Totals:
        """Run a full calculation pass and store the result."""
        settings = self.settings
        ctx = CalculationContext(settings, self._rate_provider, self._calculate_tax, self._hooks)

        totals = Totals()
        totals.add_trace("Settings", "Tax calculation", "on" if ctx.calculate_tax else "off")

        items = self._build_items(settings, totals)
        totals = calculate_item_subtotals(items, ctx, totals)
        items, totals = allocate_discounts(items, self._coupons, ctx, totals)
        totals = calculate_item_totals(items, ctx, totals)
        totals = calculate_totals(items, self._build_fees(), self._build_shipping_lines(), ctx, totals)

        logger.debug("Calculated cart total %s for %d item(s)", totals.total, len(items))

        self.totals = totals
        self._stale = False
        return copy.deepcopy(totals)

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    def get_totals(self) -> Totals:
        """
        Get all totals, recalculating if any input changed.

        Returns a copy; mutating it does not touch the cached result.
        """
        if self._stale:
            self.calculate()
        return copy.deepcopy(self.totals)

    def get_items_subtotal(self) -> Decimal:
        return self.get_totals().items_subtotal

    def get_items_subtotal_tax(self) -> Decimal:
        return self.get_totals().items_subtotal_tax

    def get_items_total(self) -> Decimal:
        return self.get_totals().items_total

    def get_items_total_tax(self) -> Decimal:
        return self.get_totals().items_total_tax

    def get_item_totals(self) -> list[ItemTotal]:
        return self.get_totals().item_totals

    def get_coupon_counts(self) -> dict[str, int]:
        return self.get_totals().coupon_counts

    def get_coupon_totals(self) -> dict[str, Decimal]:
        return self.get_totals().coupon_totals

    def get_coupon_tax_totals(self) -> dict[str, Decimal]:
        return self.get_totals().coupon_tax_totals

    def get_fees_total(self) -> Decimal:
        return self.get_totals().fees_total

    def get_fees_total_tax(self) -> Decimal:
        return self.get_totals().fees_total_tax

    def get_shipping_total(self) -> Decimal:
        return self.get_totals().shipping_total

    def get_shipping_tax_total(self) -> Decimal:
        return self.get_totals().shipping_tax_total

    def get_taxes(self) -> list[TaxRateTotal]:
        """Per-rate item and shipping tax."""
        return self.get_totals().taxes

    def get_tax_total(self) -> Decimal:
        return self.get_totals().tax_total

    def get_total(self) -> Decimal:
        return self.get_totals().total
