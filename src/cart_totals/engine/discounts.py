"""
Discount Allocator - applies coupons to each item's unit price.

Items are processed highest subtotal first. For every item the coupons are
walked in the order they were added; each valid coupon takes its share off
the unit price and records how much it discounted (and the tax that
discount implies) on its running CouponTotals.
"""
import logging
from decimal import Decimal
from typing import Mapping

from .context import CalculationContext
from .models import ZERO, CartItem, Coupon, CouponTotals, Totals
from .tax import HUNDRED, to_decimal

logger = logging.getLogger(__name__)


def sort_items(items: list[CartItem]) -> list[CartItem]:
    """Sort by subtotal, highest first. Equal subtotals keep their order."""
    return sorted(items, key=lambda item: item.subtotal, reverse=True)


def get_undiscounted_price(item: CartItem) -> Decimal:
    """Unit price to discount, including tax when the price includes it."""
    if item.price_includes_tax:
        return (item.subtotal + item.subtotal_tax) / item.quantity
    return item.subtotal / item.quantity


def get_cart_value(items: list[CartItem]) -> Decimal:
    """Sum of subtotals and subtotal taxes, the base fixed cart coupons split over."""
    return sum((item.subtotal + item.subtotal_tax for item in items), ZERO)


def get_coupon_discount(
    coupon: Coupon,
    item: CartItem,
    price_to_discount: Decimal,
    cart_value: Decimal,
) -> Decimal:
    """Unclamped per-unit discount a coupon offers an item."""
    amount = to_decimal(coupon.amount)

    if coupon.is_type('fixed_product'):
        return min(amount, price_to_discount)

    if coupon.is_type(('percent_product', 'percent')):
        return amount * (price_to_discount / HUNDRED)

    if coupon.is_type('fixed_cart'):
        # Split by each row's share of the cart so rows with different tax
        # rates get a fair discount and free rows get none.
        if cart_value <= 0:
            return ZERO
        discount_percent = (item.subtotal + item.subtotal_tax) / cart_value
        return (amount * discount_percent) / item.quantity

    logger.warning("Coupon %s has unknown discount type %r", coupon.code, coupon.discount_type)
    return ZERO


def get_discounted_price(
    item: CartItem,
    coupons: Mapping[str, CouponTotals],
    cart_value: Decimal,
    ctx: CalculationContext,
) -> Decimal:
    """
    Apply every valid coupon to an item's unit price.

    Discount tax is only recorded for taxable products while tax is being
    calculated; a non-taxable item adds its full discount to the coupon total
    and nothing to its tax total, even when prices include tax.
    """
    undiscounted_price = get_undiscounted_price(item)
    price = undiscounted_price

    for coupon_totals in coupons.values():
        coupon = coupon_totals.coupon

        if coupon.is_valid_for_product(item.product) or coupon.is_valid_for_cart():
            if ctx.settings.calc_discounts_sequentially:
                price_to_discount = price
            else:
                price_to_discount = undiscounted_price

            discount = get_coupon_discount(coupon, item, price_to_discount, cart_value)

            # A coupon can never take off more than the price it discounts
            discount_amount = max(min(price_to_discount, discount), ZERO)

            # The next coupon works from what is left
            price = max(price - discount_amount, ZERO)

            coupon_totals.count += item.quantity
            coupon_totals.total += discount_amount * item.quantity

            # Record the tax that would have been paid on the discounted amount
            if ctx.calculate_tax and item.product.is_taxable():
                tax_amount = ctx.get_tax_total(
                    ctx.calc_tax(discount_amount, ctx.get_item_tax_rates(item), item.price_includes_tax)
                )
                coupon_totals.total_tax += tax_amount * item.quantity
                if item.price_includes_tax:
                    coupon_totals.total -= tax_amount * item.quantity

        # Nothing more to discount for this item
        if price <= 0:
            break

    if ctx.hooks.discounted_price is not None:
        price = to_decimal(ctx.hooks.discounted_price(price, item))

    return min(max(price, ZERO), undiscounted_price)


def allocate_discounts(
    items: list[CartItem],
    coupons: Mapping[str, Coupon],
    ctx: CalculationContext,
    totals: Totals,
) -> tuple[list[CartItem], Totals]:
    """
    Set each item's discounted price and publish per-coupon totals.

    Args:
        items: Items with subtotals already calculated
        coupons: Coupon code to coupon, in the order they were added
        ctx: Calculation context for this pass
        totals: Totals accumulated so far

    Returns:
        (items sorted by subtotal, updated totals)
    """
    coupon_totals = {code: CouponTotals(code=code, coupon=coupon) for code, coupon in coupons.items()}
    cart_value = get_cart_value(items)

    items = sort_items(items)
    for item in items:
        item.discounted_price = get_discounted_price(item, coupon_totals, cart_value, ctx)

    totals = totals.evolve(
        coupon_counts={code: c.count for code, c in coupon_totals.items()},
        coupon_totals={code: c.total for code, c in coupon_totals.items()},
        coupon_tax_totals={code: c.total_tax for code, c in coupon_totals.items()},
    )

    for code, c in coupon_totals.items():
        totals.add_trace("Coupon", f"{code} discounted {c.count} unit(s)", f"{c.total}")
    has_fixed_cart = any(c.coupon.is_type('fixed_cart') for c in coupon_totals.values())
    if has_fixed_cart and cart_value <= 0:
        totals.add_warning("Cart value is zero; fixed cart coupons discount nothing")

    return items, totals
