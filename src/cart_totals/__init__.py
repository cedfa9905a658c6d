"""
Cart Totals Package

Calculation engine for shopping cart totals.
Resolves line subtotals, coupon discounts, fee and shipping taxes, and the grand total.
"""

__version__ = "1.0.0"
