import os
import sys
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from cart_totals.config.settings import Settings
from cart_totals.engine import CartTotals, Product, ProductLineItem, TaxRate


class StaticRates:
    """Rate provider returning fixed rates per tax class and counting lookups."""

    def __init__(self, rates=None, base_rates=None):
        self.rates = rates or {}
        self.base_rates = base_rates if base_rates is not None else self.rates
        self.calls = 0

    def get_rates(self, tax_class):
        self.calls += 1
        return self.rates.get(tax_class, {})

    def get_base_rates(self, tax_class):
        return self.base_rates.get(tax_class, {})


def rate(rate_id, percent, compound=False):
    return TaxRate(rate_id=rate_id, rate=Decimal(str(percent)), compound=compound)


def line(product_id, price, quantity=1, tax_class='', taxable=True):
    return ProductLineItem(
        product=Product(product_id=product_id, price=Decimal(str(price)), tax_class=tax_class, taxable=taxable),
        quantity=quantity,
    )


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def ten_percent():
    return StaticRates({'': {'r10': rate('r10', 10)}})


@pytest.fixture
def make_cart(settings):
    """Build a CartTotals with optional settings/rates overrides."""
    def _make(items=(), coupons=None, rates=None, **overrides):
        cart_settings = Settings(**{**settings.__dict__, **overrides})
        cart = CartTotals(settings=cart_settings, rate_provider=rates)
        cart.set_items(items)
        cart.set_coupons(coupons or {})
        return cart
    return _make
