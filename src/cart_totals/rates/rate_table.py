"""
Tax Rate Table - resolves tax rates for a tax class and location.

Rates are loaded from a CSV with one row per rate:

    rate_id,country,state,rate,label,priority,compound,shipping,tax_class

Empty country/state match any location. For each priority the first
matching row wins, so a specific state rate listed before a country-wide
rate of the same priority takes precedence.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import pandas as pd

from ..engine.tax import TaxRate
from ..errors import TaxRateError

logger = logging.getLogger(__name__)

COLUMNS = ['rate_id', 'country', 'state', 'rate', 'label', 'priority', 'compound', 'shipping', 'tax_class']
REQUIRED_COLUMNS = ['rate_id', 'rate']


def _parse_flag(value: str, default: bool) -> bool:
    if value == '':
        return default
    return value.lower() in ('yes', 'true', '1', 'on')


class TaxRateTable:
    """
    Tax rates held in a DataFrame.

    Lookup order:
    1. Filter by tax class ('' is the standard class)
    2. Filter by country and state (blank matches anything)
    3. Sort by priority, keeping file order within a priority
    4. Keep the first row for each priority
    """

    def __init__(self, rates_path: Optional[Path] = None):
        self.rates_path = rates_path
        self.rates_df = pd.DataFrame(columns=COLUMNS)
        self.loaded = False

        if self.rates_path and self.rates_path.exists():
            self.rates_df = self._normalize(pd.read_csv(self.rates_path, dtype=str))
            self.loaded = True
            logger.debug("Loaded %d tax rate(s) from %s", len(self.rates_df), self.rates_path)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> 'TaxRateTable':
        """Build a table from an in-memory DataFrame."""
        table = cls()
        table.rates_df = cls._normalize(df.fillna("").astype(str))
        table.loaded = True
        return table

    @staticmethod
    def _normalize(df: pd.DataFrame) -> pd.DataFrame:
        """Validate columns and coerce values."""
        df = df.fillna('')
        df.columns = [c.strip() for c in df.columns]

        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise TaxRateError(f"Tax rate table is missing column(s): {', '.join(missing)}")

        for col in COLUMNS:
            if col not in df.columns:
                df[col] = ''
            df[col] = df[col].astype(str).str.strip()
            df.loc[df[col] == 'nan', col] = ''

        df['country'] = df['country'].str.upper()
        df['state'] = df['state'].str.upper()

        blank_ids = df[df['rate_id'] == '']
        if not blank_ids.empty:
            raise TaxRateError(f"Tax rate table has {len(blank_ids)} row(s) without a rate_id")

        duplicates = df[df['rate_id'].duplicated()]['rate_id'].unique()
        if len(duplicates) > 0:
            raise TaxRateError(f"Duplicate rate_id(s): {', '.join(duplicates)}")

        try:
            df['rate'] = df['rate'].map(Decimal)
        except InvalidOperation:
            raise TaxRateError("Tax rate table has a non-numeric rate") from None

        try:
            df['priority'] = df['priority'].map(lambda v: int(v) if v else 1)
        except ValueError:
            raise TaxRateError("Tax rate table has a non-integer priority") from None

        df['compound'] = df['compound'].map(lambda v: _parse_flag(v, False))
        df['shipping'] = df['shipping'].map(lambda v: _parse_flag(v, True))
        return df[COLUMNS].reset_index(drop=True)

    def find_rates(self, country: str, state: str, tax_class: str = '') -> dict[str, TaxRate]:
        """Find the rates for a location and tax class, keyed by rate id."""
        if self.rates_df.empty:
            return {}

        country = (country or '').strip().upper()
        state = (state or '').strip().upper()

        match = self.rates_df[
            (self.rates_df['tax_class'] == (tax_class or '')) &
            (self.rates_df['country'].isin(['', country])) &
            (self.rates_df['state'].isin(['', state]))
        ]
        if match.empty:
            return {}

        # One rate per priority, stable within a priority
        match = match.sort_values('priority', kind='stable').drop_duplicates('priority')

        return {
            row['rate_id']: TaxRate(
                rate_id=row['rate_id'],
                rate=row['rate'],
                label=row['label'],
                compound=bool(row['compound']),
                shipping=bool(row['shipping']),
                priority=int(row['priority']),
            )
            for _, row in match.iterrows()
        }

    def for_location(
        self,
        country: str,
        state: str = '',
        base_country: str = '',
        base_state: str = '',
    ) -> 'LocationTaxRates':
        """Bind the table to a customer and base location."""
        return LocationTaxRates(self, country, state, base_country, base_state)


@dataclass
class LocationTaxRates:
    """Rate provider for one customer location."""
    table: TaxRateTable
    country: str
    state: str = ''
    base_country: str = ''
    base_state: str = ''

    def get_rates(self, tax_class: str) -> dict[str, TaxRate]:
        return self.table.find_rates(self.country, self.state, tax_class)

    def get_base_rates(self, tax_class: str) -> dict[str, TaxRate]:
        return self.table.find_rates(self.base_country, self.base_state, tax_class)
