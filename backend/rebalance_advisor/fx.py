"""Reference-currency conversion helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional

from .config import (
    REFERENCE_FIAT,
    SECONDARY_FIAT,
    SETTLEMENT_STABLECOIN,
    USDT_BUY_PRICE_KEYS,
    USDT_SELL_PRICE_KEYS,
    config_number,
)


@dataclass(frozen=True)
class ReferenceRates:
    """Conversion rates into the reference fiat for one refresh cycle."""

    usdt_buy_price: float = 1.0
    usdt_sell_price: float = 1.0
    secondary_to_reference: Optional[float] = None

    @property
    def usdt_usd_rate(self) -> float:
        """Mid rate between the configured stablecoin buy and sell prices."""

        buy, sell = self.usdt_buy_price, self.usdt_sell_price
        if buy > 0 and sell > 0:
            return (buy + sell) / 2
        if sell > 0:
            return sell
        if buy > 0:
            return buy
        return 1.0

    def rate(self, currency: str) -> float:
        """Return the rate converting one unit of ``currency`` into the reference fiat."""

        code = currency.upper()
        if code == REFERENCE_FIAT:
            return 1.0
        if code == SETTLEMENT_STABLECOIN:
            return self.usdt_usd_rate
        if code == SECONDARY_FIAT and self.secondary_to_reference:
            return self.secondary_to_reference
        raise KeyError(f"Missing FX rate for {code}->{REFERENCE_FIAT}")


def resolve_reference_rates(
    config_values: Mapping[str, object],
    secondary_to_reference: Optional[float] = None,
) -> ReferenceRates:
    """Read the stablecoin reference prices from named configuration values."""

    buy = config_number(config_values, *USDT_BUY_PRICE_KEYS)
    if buy is None or buy <= 0:
        buy = 1.0
    sell = config_number(config_values, *USDT_SELL_PRICE_KEYS)
    if sell is None or sell <= 0:
        sell = buy
    fx = secondary_to_reference
    if fx is None or not math.isfinite(fx) or fx <= 0:
        fx = None
    return ReferenceRates(usdt_buy_price=buy, usdt_sell_price=sell, secondary_to_reference=fx)


__all__ = ["ReferenceRates", "resolve_reference_rates"]
