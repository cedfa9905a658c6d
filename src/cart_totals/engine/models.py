"""
Data models for the cart totals engine.

Uses dataclasses for structured, type-safe data representation.
Inputs (Product, ProductLineItem, Coupon, Fee, ShippingRate) are supplied by
callers; the per-pass state (CartItem, CouponTotals, FeeLine, ShippingLine,
TaxRateTotal) is rebuilt on every calculation.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

ZERO = Decimal('0')

CART_COUPON_TYPES = ('fixed_cart', 'percent')
PRODUCT_COUPON_TYPES = ('fixed_product', 'percent_product')
COUPON_TYPES = CART_COUPON_TYPES + PRODUCT_COUPON_TYPES


@dataclass
class TraceStep:
    """A single step in the calculation trace."""
    step: str
    description: str
    value: Optional[str] = None


# ============================================================================
# Inputs
# ============================================================================

@dataclass(frozen=True)
class Product:
    """Catalog data the engine needs for a product."""
    product_id: str
    price: Decimal
    tax_class: str = ''
    taxable: bool = True

    def is_taxable(self) -> bool:
        return self.taxable


@dataclass
class ProductLineItem:
    """A product line in the cart."""
    product: Product
    quantity: int
    key: str = ''

    def __post_init__(self):
        if not self.key:
            self.key = self.product.product_id


@dataclass(frozen=True)
class Coupon:
    """
    A coupon and the scope it applies to.

    Product coupons apply to the listed products (every product when none are
    listed) minus exclusions; cart coupons apply cart-wide.
    """
    code: str
    discount_type: str
    amount: Decimal
    product_ids: tuple[str, ...] = ()
    excluded_product_ids: tuple[str, ...] = ()

    def is_type(self, types: Union[str, Iterable[str]]) -> bool:
        if isinstance(types, str):
            return self.discount_type == types
        return self.discount_type in types

    def is_valid_for_product(self, product: Product) -> bool:
        if not self.is_type(PRODUCT_COUPON_TYPES):
            return False
        if product.product_id in self.excluded_product_ids:
            return False
        return not self.product_ids or product.product_id in self.product_ids

    def is_valid_for_cart(self) -> bool:
        return self.is_type(CART_COUPON_TYPES)


@dataclass(frozen=True)
class Fee:
    """A flat fee line."""
    name: str
    amount: Decimal
    taxable: bool = False
    tax_class: str = ''


@dataclass(frozen=True)
class ShippingRate:
    """A chosen shipping method with its taxes already calculated."""
    method_id: str
    cost: Decimal
    taxes: dict[str, Decimal] = field(default_factory=dict)


# ============================================================================
# Per-pass state
# ============================================================================

@dataclass
class CartItem:
    """Working state for one product line during a calculation pass."""
    key: str
    product: Product
    source: Any
    quantity: int
    price: Decimal
    price_includes_tax: bool = False
    subtotal: Decimal = ZERO
    subtotal_tax: Decimal = ZERO
    subtotal_taxes: dict[str, Decimal] = field(default_factory=dict)
    total: Decimal = ZERO
    total_tax: Decimal = ZERO
    taxes: dict[str, Decimal] = field(default_factory=dict)
    discounted_price: Decimal = ZERO

    def to_item_total(self) -> 'ItemTotal':
        """Copy without the product and source references."""
        return ItemTotal(
            key=self.key,
            product_id=self.product.product_id,
            quantity=self.quantity,
            price=self.price,
            price_includes_tax=self.price_includes_tax,
            subtotal=self.subtotal,
            subtotal_tax=self.subtotal_tax,
            subtotal_taxes=dict(self.subtotal_taxes),
            total=self.total,
            total_tax=self.total_tax,
            taxes=dict(self.taxes),
            discounted_price=self.discounted_price,
        )


@dataclass
class CouponTotals:
    """Running effect of one coupon across all items."""
    code: str
    coupon: Coupon
    count: int = 0
    total: Decimal = ZERO
    total_tax: Decimal = ZERO


@dataclass
class FeeLine:
    """Working state for one fee."""
    key: str
    name: str
    total: Decimal
    taxable: bool
    tax_class: str
    total_tax: Decimal = ZERO
    taxes: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class ShippingLine:
    """Working state for one shipping line."""
    key: str
    method_id: str
    total: Decimal
    taxes: dict[str, Decimal] = field(default_factory=dict)
    total_tax: Decimal = ZERO


@dataclass
class TaxRateTotal:
    """Item and shipping tax accumulated for one rate."""
    rate_id: str
    tax_total: Decimal = ZERO
    shipping_tax_total: Decimal = ZERO


# ============================================================================
# Output
# ============================================================================

@dataclass(frozen=True)
class ItemTotal:
    """Public per-item breakdown."""
    key: str
    product_id: str
    quantity: int
    price: Decimal
    price_includes_tax: bool
    subtotal: Decimal
    subtotal_tax: Decimal
    subtotal_taxes: dict[str, Decimal]
    total: Decimal
    total_tax: Decimal
    taxes: dict[str, Decimal]
    discounted_price: Decimal


@dataclass
class Totals:
    """Complete result of a cart totals calculation."""
    items_subtotal: Decimal = ZERO
    items_subtotal_tax: Decimal = ZERO
    items_total: Decimal = ZERO
    items_total_tax: Decimal = ZERO
    item_totals: list[ItemTotal] = field(default_factory=list)
    coupon_counts: dict[str, int] = field(default_factory=dict)
    coupon_totals: dict[str, Decimal] = field(default_factory=dict)
    coupon_tax_totals: dict[str, Decimal] = field(default_factory=dict)
    fees_total: Decimal = ZERO
    fees_total_tax: Decimal = ZERO
    shipping_total: Decimal = ZERO
    shipping_tax_total: Decimal = ZERO
    taxes: list[TaxRateTotal] = field(default_factory=list)
    tax_total: Decimal = ZERO
    total: Decimal = ZERO
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def discount_total(self) -> Decimal:
        return sum(self.coupon_totals.values(), ZERO)

    @property
    def discount_tax_total(self) -> Decimal:
        return sum(self.coupon_tax_totals.values(), ZERO)

    def evolve(self, **changes) -> "Totals":
        """Next-stage accumulator with `changes` applied. The trace and warning lists are copied."""
        changes.setdefault("trace", list(self.trace))
        changes.setdefault("warnings", list(self.warnings))
        return replace(self, **changes)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the totals trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a warning, skipping duplicates."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)
