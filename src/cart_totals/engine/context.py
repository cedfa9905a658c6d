"""
Calculation context - everything scoped to a single calculation pass.

Holds the settings snapshot, the effective calculate-tax flag, the injected
hooks, and the per-tax-class rate cache. A new context is built for every
pass and discarded afterwards.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional, Protocol

from ..config.settings import Settings
from .models import CartItem, Totals
from .tax import Number, TaxRates, calc_tax, get_tax_total

logger = logging.getLogger(__name__)


class TaxRateProvider(Protocol):
    """Looks up tax rates for a tax class."""

    def get_rates(self, tax_class: str) -> TaxRates:
        """Rates that apply at the customer's location."""
        ...

    def get_base_rates(self, tax_class: str) -> TaxRates:
        """Rates that apply at the store's base location."""
        ...


class NoTaxRates:
    """Provider for carts where no rates are configured."""

    def get_rates(self, tax_class: str) -> TaxRates:
        return {}

    def get_base_rates(self, tax_class: str) -> TaxRates:
        return {}


@dataclass
class TotalsHooks:
    """
    Optional callbacks to observe or override intermediate values.

    before_total: called with the aggregate totals before the grand total is
        summed; may return a replacement Totals.
    discounted_price: called with each item's discounted unit price; returns
        the price to use.
    calculated_total: called with the rounded grand total; returns the total
        to use (still floored at zero afterwards).
    """
    before_total: Optional[Callable[[Totals], Optional[Totals]]] = None
    discounted_price: Optional[Callable[[Decimal, CartItem], Decimal]] = None
    calculated_total: Optional[Callable[[Decimal, Totals], Decimal]] = None


class CalculationContext:
    """Settings, hooks and memoized rate lookups for one pass."""

    def __init__(
        self,
        settings: Settings,
        rate_provider: TaxRateProvider,
        calculate_tax: bool = True,
        hooks: Optional[TotalsHooks] = None,
    ):
        self.settings = settings
        self.rate_provider = rate_provider
        self.calculate_tax = settings.tax_enabled and calculate_tax
        self.hooks = hooks or TotalsHooks()
        self._rates: dict[str, TaxRates] = {}
        self._base_rates: dict[str, TaxRates] = {}

    def get_rates(self, tax_class: str) -> TaxRates:
        """Customer-location rates for a tax class, looked up once per pass."""
        if tax_class not in self._rates:
            self._rates[tax_class] = self.rate_provider.get_rates(tax_class)
            logger.debug("Resolved %d rate(s) for tax class %r", len(self._rates[tax_class]), tax_class)
        return self._rates[tax_class]

    def get_base_rates(self, tax_class: str) -> TaxRates:
        """Base-location rates for a tax class, looked up once per pass."""
        if tax_class not in self._base_rates:
            self._base_rates[tax_class] = self.rate_provider.get_base_rates(tax_class)
        return self._base_rates[tax_class]

    def get_item_tax_rates(self, item: CartItem) -> TaxRates:
        return self.get_rates(item.product.tax_class)

    def calc_tax(
        self,
        price: Number,
        rates: TaxRates,
        price_includes_tax: bool = False,
        suppress_rounding: bool = False,
    ) -> dict[str, Decimal]:
        return calc_tax(
            price,
            rates,
            price_includes_tax=price_includes_tax,
            suppress_rounding=suppress_rounding,
            precision=self.settings.rounding_precision,
        )

    def get_tax_total(self, taxes: dict[str, Decimal]) -> Decimal:
        return get_tax_total(taxes, precision=self.settings.rounding_precision)
