"""
Discount allocation: coupon types, ordering, clamping and coupon totals.
"""
from decimal import Decimal

import pytest

from cart_totals.engine import CartTotals, Coupon, TotalsHooks
from cart_totals.engine.context import CalculationContext
from cart_totals.engine.discounts import get_cart_value, get_discounted_price, get_undiscounted_price, sort_items
from cart_totals.engine.item_totals import calculate_item_subtotals
from cart_totals.engine.models import CartItem, CouponTotals, Product, Totals

from conftest import StaticRates, line, rate


def coupon(code, discount_type, amount, **kwargs):
    return Coupon(code=code, discount_type=discount_type, amount=Decimal(str(amount)), **kwargs)


def item_by_key(totals, key):
    return next(i for i in totals.item_totals if i.key == key)


def test_fixed_product_coupon(make_cart):
    """A 30 fixed product coupon on a 100 item leaves 70."""
    cart = make_cart([line('bike', 100)], {'OFF30': coupon('OFF30', 'fixed_product', 30)})
    totals = cart.get_totals()

    assert item_by_key(totals, 'bike').discounted_price == Decimal('70')
    assert totals.coupon_totals == {'OFF30': Decimal('30')}
    assert totals.coupon_counts == {'OFF30': 1}
    assert totals.items_total == Decimal('70')


def test_fixed_cart_coupon_split_by_subtotal_share(make_cart):
    """100 and 50 items share a 30 cart coupon 2:1."""
    cart = make_cart(
        [line('a', 100), line('b', 50)],
        {'CART30': coupon('CART30', 'fixed_cart', 30)},
    )
    totals = cart.get_totals()

    assert item_by_key(totals, 'a').total == Decimal('80')
    assert item_by_key(totals, 'b').total == Decimal('40')
    assert totals.coupon_totals['CART30'] == Decimal('30')
    assert totals.coupon_counts['CART30'] == 2


def test_fixed_cart_coupon_sums_to_amount(make_cart):
    cart = make_cart(
        [line('a', 10), line('b', 20), line('c', 30, quantity=3)],
        {'TEN': coupon('TEN', 'fixed_cart', 10)},
    )
    total = cart.get_coupon_totals()['TEN']
    assert abs(total - Decimal('10')) < Decimal('0.0001')


def test_fixed_cart_coupon_skips_free_items(make_cart):
    cart = make_cart(
        [line('paid', 40), line('free', 0)],
        {'FIVE': coupon('FIVE', 'fixed_cart', 5)},
    )
    totals = cart.get_totals()
    assert item_by_key(totals, 'free').discounted_price == Decimal('0')
    assert item_by_key(totals, 'paid').discounted_price == Decimal('35')


def test_fixed_cart_coupon_on_zero_value_cart(make_cart):
    """An all-free cart gets no proportional discount rather than a division error."""
    cart = make_cart(
        [line('free', 0), line('gift', 0)],
        {'FIVE': coupon('FIVE', 'fixed_cart', 5)},
    )
    totals = cart.get_totals()
    assert totals.coupon_totals['FIVE'] == Decimal('0')
    assert totals.total == Decimal('0')
    assert any('fixed cart' in w for w in totals.warnings)


def test_percent_coupon_per_unit(make_cart):
    cart = make_cart([line('mug', 50, quantity=2)], {'TENPC': coupon('TENPC', 'percent', 10)})
    totals = cart.get_totals()
    assert item_by_key(totals, 'mug').discounted_price == Decimal('45')
    assert totals.coupon_totals['TENPC'] == Decimal('10')
    assert totals.coupon_counts['TENPC'] == 2


def test_coupons_use_original_price_by_default(make_cart):
    coupons = {'A': coupon('A', 'percent', 10), 'B': coupon('B', 'percent', 10)}
    totals = make_cart([line('x', 100)], coupons).get_totals()

    assert item_by_key(totals, 'x').discounted_price == Decimal('80')
    assert totals.coupon_totals == {'A': Decimal('10'), 'B': Decimal('10')}


def test_sequential_coupons_use_running_price(make_cart):
    coupons = {'A': coupon('A', 'percent', 10), 'B': coupon('B', 'percent', 10)}
    totals = make_cart([line('x', 100)], coupons, calc_discounts_sequentially=True).get_totals()

    assert item_by_key(totals, 'x').discounted_price == Decimal('81')
    assert totals.coupon_totals == {'A': Decimal('10'), 'B': Decimal('9')}


def test_sequential_fixed_coupons_never_exceed_price(make_cart):
    coupons = {'A': coupon('A', 'fixed_product', 30), 'B': coupon('B', 'fixed_product', 30)}
    totals = make_cart([line('x', 40)], coupons, calc_discounts_sequentially=True).get_totals()

    assert item_by_key(totals, 'x').discounted_price == Decimal('0')
    assert totals.coupon_totals == {'A': Decimal('30'), 'B': Decimal('10')}


def test_discount_clamped_and_later_coupons_skipped(make_cart):
    """Once the price reaches zero no further coupons are applied to the item."""
    coupons = {'BIG': coupon('BIG', 'fixed_product', 150), 'NEXT': coupon('NEXT', 'percent', 10)}
    totals = make_cart([line('x', 100)], coupons).get_totals()

    assert item_by_key(totals, 'x').discounted_price == Decimal('0')
    assert totals.coupon_totals['BIG'] == Decimal('100')
    assert totals.coupon_counts['NEXT'] == 0
    assert totals.coupon_totals['NEXT'] == Decimal('0')


def test_product_scoped_coupon_only_hits_listed_products(make_cart):
    coupons = {'HELMET': coupon('HELMET', 'percent_product', 50, product_ids=('helmet',))}
    totals = make_cart([line('helmet', 80), line('gloves', 20)], coupons).get_totals()

    assert item_by_key(totals, 'helmet').discounted_price == Decimal('40')
    assert item_by_key(totals, 'gloves').discounted_price == Decimal('20')
    assert totals.coupon_counts['HELMET'] == 1


def test_excluded_product_not_discounted(make_cart):
    coupons = {'ALL': coupon('ALL', 'fixed_product', 5, excluded_product_ids=('gift-card',))}
    totals = make_cart([line('gift-card', 25), line('shirt', 25)], coupons).get_totals()

    assert item_by_key(totals, 'gift-card').discounted_price == Decimal('25')
    assert item_by_key(totals, 'shirt').discounted_price == Decimal('20')


def test_coupon_counts_and_tax_totals_are_separate(make_cart, ten_percent):
    cart = make_cart([line('x', 100, quantity=3)], {'C': coupon('C', 'fixed_product', 10)}, rates=ten_percent)
    totals = cart.get_totals()

    assert totals.coupon_counts == {'C': 3}
    assert totals.coupon_totals == {'C': Decimal('30')}
    assert totals.coupon_tax_totals == {'C': Decimal('3.0000')}


def test_exclusive_coupon_tax(make_cart, ten_percent):
    cart = make_cart([line('x', 100)], {'C': coupon('C', 'fixed_product', 30)}, rates=ten_percent)
    totals = cart.get_totals()

    assert totals.coupon_totals['C'] == Decimal('30')
    assert totals.coupon_tax_totals['C'] == Decimal('3.0000')
    assert totals.items_total == Decimal('70')
    assert totals.items_total_tax == Decimal('7.0000')
    assert totals.total == Decimal('77.00')


def test_inclusive_coupon_total_excludes_tax(make_cart):
    """With tax-inclusive prices the coupon total is reported without its tax."""
    rates = StaticRates({'': {'vat': rate('vat', 20)}})
    cart = make_cart(
        [line('x', 120)],
        {'C': coupon('C', 'fixed_product', 12)},
        rates=rates,
        prices_include_tax=True,
    )
    totals = cart.get_totals()
    item = item_by_key(totals, 'x')

    assert item.subtotal == Decimal('100.0000')
    assert item.subtotal_tax == Decimal('20.0000')
    assert item.discounted_price == Decimal('108')
    assert totals.coupon_totals['C'] == Decimal('10.0000')
    assert totals.coupon_tax_totals['C'] == Decimal('2.0000')
    assert item.total == Decimal('90.0000')
    assert item.total_tax == Decimal('18.0000')
    assert totals.total == Decimal('108.00')


def test_no_coupon_tax_when_tax_off(make_cart, ten_percent):
    cart = make_cart([line('x', 100)], {'C': coupon('C', 'fixed_product', 30)}, rates=ten_percent)
    cart.set_calculate_tax(False)
    totals = cart.get_totals()
    assert totals.coupon_tax_totals['C'] == Decimal('0')
    assert totals.total == Decimal('70.00')


def test_no_coupon_tax_for_non_taxable_product(make_cart):
    """A non-taxable item puts its whole discount in the coupon total and none in its tax."""
    rates = StaticRates({'': {'vat': rate('vat', 20)}})
    cart = make_cart(
        [line('x', 120, taxable=False)],
        {'C': coupon('C', 'fixed_product', 12)},
        rates=rates,
        prices_include_tax=True,
    )
    totals = cart.get_totals()

    assert totals.coupon_totals['C'] == Decimal('12')
    assert totals.coupon_tax_totals['C'] == Decimal('0')
    assert totals.total == Decimal('108.00')


def test_coupon_totals_never_decrease(settings):
    """Coupon totals only grow as each item in turn is discounted."""
    rates = StaticRates({'': {'vat': rate('vat', 20)}, 'reduced': {'low': rate('low', 5)}})
    ctx = CalculationContext(settings, rates)
    items = [
        CartItem(key='inc', product=Product(product_id='inc', price=Decimal('60')), source=None,
                 quantity=2, price=Decimal('60'), price_includes_tax=True),
        CartItem(key='exc', product=Product(product_id='exc', price=Decimal('15'), tax_class='reduced'),
                 source=None, quantity=1, price=Decimal('15')),
        CartItem(key='small', product=Product(product_id='small', price=Decimal('5')), source=None,
                 quantity=4, price=Decimal('5'), price_includes_tax=True),
    ]
    calculate_item_subtotals(items, ctx, Totals())
    coupons = {
        'A': CouponTotals(code='A', coupon=coupon('A', 'fixed_cart', 25)),
        'B': CouponTotals(code='B', coupon=coupon('B', 'percent', 5)),
    }
    cart_value = get_cart_value(items)

    seen = {code: (Decimal('0'), Decimal('0')) for code in coupons}
    for item in sort_items(items):
        get_discounted_price(item, coupons, cart_value, ctx)
        for code, running in coupons.items():
            last_total, last_tax = seen[code]
            assert running.total >= last_total
            assert running.total_tax >= last_tax
            seen[code] = (running.total, running.total_tax)

    assert all(running.total_tax > 0 for running in coupons.values())


def test_fixed_cart_split_across_inclusive_rates(make_cart):
    """A cart coupon over 20% and 5% inc-tax items is shared by gross price and adds up to its amount."""
    rates = StaticRates({'': {'vat': rate('vat', 20)}, 'reduced': {'low': rate('low', 5)}})
    cart = make_cart(
        [line('std', 120), line('low', '52.5', tax_class='reduced')],
        {'C': coupon('C', 'fixed_cart', 30)},
        rates=rates,
        prices_include_tax=True,
    )
    totals = cart.get_totals()
    std = item_by_key(totals, 'std')
    low = item_by_key(totals, 'low')

    assert std.subtotal + std.subtotal_tax == Decimal('120')
    assert low.subtotal + low.subtotal_tax == Decimal('52.5')

    tolerance = Decimal('0.0001')
    gross = totals.coupon_totals['C'] + totals.coupon_tax_totals['C']
    assert abs(gross - Decimal('30')) < tolerance

    cart_value = Decimal('172.5')
    assert abs((Decimal('120') - std.discounted_price) - Decimal('30') * 120 / cart_value) < tolerance
    assert abs((Decimal('52.5') - low.discounted_price) - Decimal('30') * Decimal('52.5') / cart_value) < tolerance


def test_discounted_price_never_exceeds_undiscounted(make_cart):
    coupons = {'NEG': coupon('NEG', 'fixed_product', -10), 'PC': coupon('PC', 'percent', 250)}
    totals = make_cart([line('a', 30), line('b', 12, quantity=2)], coupons).get_totals()
    for item in totals.item_totals:
        assert Decimal('0') <= item.discounted_price <= item.subtotal / item.quantity


def test_discounted_price_hook_overrides(settings):
    hooks = TotalsHooks(discounted_price=lambda price, item: price / 2)
    cart = CartTotals(settings=settings, hooks=hooks)
    cart.set_items([line('x', 100)])
    cart.set_coupons({'C': coupon('C', 'fixed_product', 30)})

    assert cart.get_items_total() == Decimal('35')


def test_unknown_coupon_type_discounts_nothing(make_cart):
    class AnyCartCoupon:
        code = 'ODD'
        discount_type = 'store_credit'
        amount = Decimal('10')

        def is_type(self, types):
            return self.discount_type == types if isinstance(types, str) else self.discount_type in types

        def is_valid_for_product(self, product):
            return False

        def is_valid_for_cart(self):
            return True

    totals = make_cart([line('x', 100)], {'ODD': AnyCartCoupon()}).get_totals()
    assert totals.coupon_totals['ODD'] == Decimal('0')
    assert totals.coupon_counts['ODD'] == 1
    assert totals.items_total == Decimal('100')


def test_items_sorted_by_subtotal_descending():
    product = Product(product_id='p', price=Decimal('0'))
    items = [
        CartItem(key='small', product=product, source=None, quantity=1, price=Decimal('5'), subtotal=Decimal('5')),
        CartItem(key='big', product=product, source=None, quantity=1, price=Decimal('50'), subtotal=Decimal('50')),
        CartItem(key='tie-1', product=product, source=None, quantity=1, price=Decimal('5'), subtotal=Decimal('5')),
    ]
    assert [i.key for i in sort_items(items)] == ['big', 'small', 'tie-1']


@pytest.mark.parametrize("includes_tax, expected", [(True, Decimal('60')), (False, Decimal('50'))])
def test_undiscounted_price(includes_tax, expected):
    item = CartItem(
        key='x',
        product=Product(product_id='x', price=Decimal('60')),
        source=None,
        quantity=2,
        price=Decimal('60'),
        price_includes_tax=includes_tax,
        subtotal=Decimal('100'),
        subtotal_tax=Decimal('20'),
    )
    assert get_undiscounted_price(item) == expected
