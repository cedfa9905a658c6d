"""Shared API state: settings and the tax rate table, loaded once."""
from ..config.settings import get_settings
from ..rates.rate_table import TaxRateTable

settings = get_settings()
rate_table = TaxRateTable(settings.tax_rates_csv)
