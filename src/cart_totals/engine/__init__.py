"""Engine subpackage - cart totals calculation."""
from .cart_totals import CartTotals
from .context import NoTaxRates, TaxRateProvider, TotalsHooks
from .models import Coupon, Fee, Product, ProductLineItem, ShippingRate, Totals
from .tax import TaxRate

__all__ = [
    'CartTotals', 'NoTaxRates', 'TaxRateProvider', 'TotalsHooks',
    'Coupon', 'Fee', 'Product', 'ProductLineItem', 'ShippingRate', 'Totals', 'TaxRate',
]
