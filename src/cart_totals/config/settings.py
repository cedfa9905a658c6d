"""
Centralized settings for the cart totals engine.

Store-wide options are read from the environment (``CART_*`` variables).
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ..errors import ConfigurationError


TRUE_VALUES = ('yes', 'true', '1', 'on')
FALSE_VALUES = ('no', 'false', '0', 'off', '')


def parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    """Parse a yes/no style option."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be yes or no, got {value!r}")


def parse_decimals(name: str, value: Optional[str], default: int) -> int:
    """Parse the currency decimal precision."""
    if value is None or value.strip() == '':
        return default
    try:
        decimals = int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if decimals < 0:
        raise ConfigurationError(f"{name} must not be negative, got {decimals}")
    return decimals


@dataclass(frozen=True)
class Settings:
    """Store options consulted on every calculation pass."""

    tax_enabled: bool = True
    prices_include_tax: bool = False
    tax_round_at_subtotal: bool = False
    calc_discounts_sequentially: bool = False
    adjust_non_base_location_prices: bool = False
    price_decimals: int = 2

    # Tax rate table (optional, used by the API)
    tax_rates_csv: Optional[Path] = None
    base_country: str = ''
    base_state: str = ''

    @property
    def rounding_precision(self) -> int:
        """Precision used for intermediate tax amounts."""
        return self.price_decimals + 2

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Load settings from environment variables."""
        env = os.environ if environ is None else environ

        rates_csv = env.get('CART_TAX_RATES_CSV')

        return cls(
            tax_enabled=parse_bool('CART_TAX_ENABLED', env.get('CART_TAX_ENABLED'), True),
            prices_include_tax=parse_bool(
                'CART_PRICES_INCLUDE_TAX', env.get('CART_PRICES_INCLUDE_TAX'), False
            ),
            tax_round_at_subtotal=parse_bool(
                'CART_TAX_ROUND_AT_SUBTOTAL', env.get('CART_TAX_ROUND_AT_SUBTOTAL'), False
            ),
            calc_discounts_sequentially=parse_bool(
                'CART_CALC_DISCOUNTS_SEQUENTIALLY', env.get('CART_CALC_DISCOUNTS_SEQUENTIALLY'), False
            ),
            adjust_non_base_location_prices=parse_bool(
                'CART_ADJUST_NON_BASE_LOCATION_PRICES',
                env.get('CART_ADJUST_NON_BASE_LOCATION_PRICES'),
                False,
            ),
            price_decimals=parse_decimals('CART_PRICE_DECIMALS', env.get('CART_PRICE_DECIMALS'), 2),
            tax_rates_csv=Path(rates_csv) if rates_csv else None,
            base_country=env.get('CART_BASE_COUNTRY', '').strip().upper(),
            base_state=env.get('CART_BASE_STATE', '').strip().upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
