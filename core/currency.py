"""Currency conversion between Guyanese and US dollars."""

from __future__ import annotations

from core.models import Currency

# Approximate rate, 1 USD = 215 GYD
GYD_TO_USD_RATE = 215.0

CURRENCY_FLAGS: dict[Currency, str] = {
    Currency.USD: "🇺🇸",
    Currency.GYD: "🇬🇾",
}


def convert_price(price_gyd: float, to_currency: Currency | str) -> float:
    """Convert a GYD listing price for display."""
    if Currency(to_currency) is Currency.USD:
        return price_gyd / GYD_TO_USD_RATE
    return price_gyd


def format_price(price_gyd: float, currency: Currency | str) -> str:
    currency = Currency(currency)
    converted = convert_price(price_gyd, currency)
    return f"${converted:.2f} {currency.value}"


def currency_flag(currency: Currency | str) -> str:
    return CURRENCY_FLAGS[Currency(currency)]
