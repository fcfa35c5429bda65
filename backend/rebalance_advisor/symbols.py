"""Symbol parsing, precision and display helpers."""
from __future__ import annotations

from typing import Tuple

KNOWN_QUOTES = ("USDT", "USDC", "BUSD", "BTC", "ETH", "USD", "PEN")
USD_LIKE = frozenset({"USD", "USDT", "USDC"})
BASE_DECIMALS = 8

_QUOTE_DECIMALS = {"USDT": 8, "USD": 3, "PEN": 3}
_DISPLAY_DECIMALS = {"USD": 3, "PEN": 3, "USDT": 8, "BTC": 6}


def split_symbol(symbol: str, default_quote: str = "USD") -> Tuple[str, str]:
    """Split a pair symbol such as ``BTCUSDT`` into ``(base, quote)``.

    Symbols without a recognised quote suffix (stocks, commodities) are
    quoted in ``default_quote``.
    """

    upper = symbol.strip().upper()
    for quote in KNOWN_QUOTES:
        if upper.endswith(quote) and len(upper) > len(quote):
            return upper[: -len(quote)], quote
    return upper, default_quote


def quote_decimals(quote: str) -> int:
    return _QUOTE_DECIMALS.get(quote.upper(), 2)


def round_base(value: float) -> float:
    return round(value, BASE_DECIMALS)


def round_quote(value: float, quote: str) -> float:
    return round(value, quote_decimals(quote))


def is_usd_like(code: str) -> bool:
    return code.upper() in USD_LIKE


def format_asset_amount(amount: float, asset: str) -> str:
    return f"{amount:.{_DISPLAY_DECIMALS.get(asset.upper(), 4)}f}"


def format_quote_value(value: float, quote: str) -> str:
    upper = (quote or "USD").upper()
    if upper == "USD":
        return f"${value:.3f}"
    return f"{value:.{quote_decimals(upper)}f} {upper}"


__all__ = [
    "BASE_DECIMALS",
    "KNOWN_QUOTES",
    "format_asset_amount",
    "format_quote_value",
    "is_usd_like",
    "quote_decimals",
    "round_base",
    "round_quote",
    "split_symbol",
]
