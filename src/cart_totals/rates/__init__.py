"""Rates subpackage - tax rate lookups."""
from .rate_table import LocationTaxRates, TaxRateTable

__all__ = ["LocationTaxRates", "TaxRateTable"]
