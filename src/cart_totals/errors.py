"""Typed errors raised by the cart totals collaborators."""


class CartTotalsError(ValueError):
    """Base class for configuration and data errors."""


class ConfigurationError(CartTotalsError):
    """A setting could not be parsed."""


class TaxRateError(CartTotalsError):
    """Tax rate data is missing required fields or is malformed."""
