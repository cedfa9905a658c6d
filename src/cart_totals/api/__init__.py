"""API subpackage - HTTP access to the cart totals engine."""
