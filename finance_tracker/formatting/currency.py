"""
Currency Formatting

Currency is a display label only: amounts are never converted. Every
figure is rendered with the profile's currency symbol, a thousands
separator and exactly two decimals.
"""

from decimal import Decimal
from typing import Optional, Union

import structlog


logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "USD"

# code -> (symbol, display name)
CURRENCIES: dict[str, tuple[str, str]] = {
    "USD": ("$", "US Dollar"),
    "IDR": ("Rp", "Indonesian Rupiah"),
    "EUR": ("€", "Euro"),
    "JPY": ("¥", "Japanese Yen"),
    "GBP": ("£", "British Pound"),
}

AVATAR_OPTIONS: list[str] = [
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Apple&backgroundColor=ef4444",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Banana&backgroundColor=f59e0b",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Blueberry&backgroundColor=3b82f6",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Grape&backgroundColor=8b5cf6",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Kiwi&backgroundColor=22c55e",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Orange&backgroundColor=f97316",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Strawberry&backgroundColor=ec4899",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Lemon&backgroundColor=eab308",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Watermelon&backgroundColor=10b981",
    "https://api.dicebear.com/7.x/lorelei/svg?seed=Peach&backgroundColor=f472b6",
]

CENSORED = "••••••"


def resolve_currency(code: Optional[str]) -> str:
    """Catalogue code for a (possibly unknown) currency code."""
    normalized = (code or "").strip().upper()
    if normalized in CURRENCIES:
        return normalized
    logger.warning("unknown_currency", currency=code, fallback=DEFAULT_CURRENCY)
    return DEFAULT_CURRENCY


def format_currency(
    amount: Union[Decimal, int, float],
    currency_code: Optional[str] = DEFAULT_CURRENCY,
) -> str:
    """
    Format an amount for display.

    Grouping is always "," for thousands and "." for decimals, whatever
    the currency. Only the symbol changes, so the same amount reads the
    same in every browser.

    Examples:
        format_currency(Decimal("1234.5"), "USD")  -> "$1,234.50"
        format_currency(Decimal("-20"), "EUR")     -> "-€20.00"
        format_currency(Decimal("1500000"), "IDR") -> "Rp1,500,000.00"
        format_currency(Decimal("5"), "XYZ")       -> "$5.00"
    """
    symbol, _ = CURRENCIES[resolve_currency(currency_code)]
    value = Decimal(str(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_censored(
    amount: Union[Decimal, int, float],
    currency_code: Optional[str] = DEFAULT_CURRENCY,
    visible: bool = True,
) -> str:
    """format_currency, or a mask when the user has hidden balances."""
    return format_currency(amount, currency_code) if visible else CENSORED


def currency_label(code: str) -> str:
    """e.g. 'USD - US Dollar'."""
    _, name = CURRENCIES[resolve_currency(code)]
    return f"{code} - {name}"


def default_avatar(email: Optional[str]) -> str:
    """Initials avatar generated from the user's email."""
    return f"https://api.dicebear.com/7.x/initials/svg?seed={email or ''}"
