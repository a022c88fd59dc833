"""Display formatting helpers."""

from finance_tracker.formatting.currency import (
    AVATAR_OPTIONS,
    CURRENCIES,
    DEFAULT_CURRENCY,
    currency_label,
    default_avatar,
    format_censored,
    format_currency,
    resolve_currency,
)

__all__ = [
    "AVATAR_OPTIONS",
    "CURRENCIES",
    "DEFAULT_CURRENCY",
    "currency_label",
    "default_avatar",
    "format_censored",
    "format_currency",
    "resolve_currency",
]
