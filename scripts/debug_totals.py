import sys
from decimal import Decimal
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from cart_totals.config.settings import Settings
from cart_totals.engine import CartTotals, Coupon, Fee, Product, ProductLineItem, ShippingRate
from cart_totals.rates import TaxRateTable

def debug():
    rates_path = Path(__file__).parent.parent / 'data' / 'tax_rates.csv'
    table = TaxRateTable(rates_path)
    
    print("Loaded Rates:")
    print(table.rates_df.head())
    
    # Test Case: GB customer, two items, cart coupon, taxable fee
    print("\n--- Testing GB cart ---")
    settings = Settings(base_country="GB")
    cart = CartTotals(settings=settings, rate_provider=table.for_location("GB", base_country="GB"))
    cart.set_items([
        ProductLineItem(product=Product("helmet", Decimal("100")), quantity=1),
        ProductLineItem(product=Product("gloves", Decimal("25"), tax_class="reduced-rate"), quantity=2),
    ])
    cart.set_coupons({"SPRING10": Coupon("SPRING10", "fixed_cart", Decimal("10"))})
    cart.set_fees([Fee("Gift wrap", Decimal("3"), taxable=True)])
    cart.set_shipping([ShippingRate("flat_rate", Decimal("5"), {"gb-vat": Decimal("1")})])
    
    totals = cart.calculate()
    print("\nTrace:")
    print(totals.get_trace_text())
    
    print("\nItems:")
    for item in totals.item_totals:
        print(f"  {item.key}: x{item.quantity} @ {item.discounted_price:.2f} -> {item.total:.2f} + tax {item.total_tax:.2f}")
    
    print("\nTaxes:")
    for tax in totals.taxes:
        print(f"  {tax.rate_id}: items {tax.tax_total:.4f}, shipping {tax.shipping_tax_total:.4f}")
    
    print(f"\nFinal Total: {totals.total}")
    if totals.warnings:
        print("Warnings:", totals.warnings)

if __name__ == "__main__":
    debug()
