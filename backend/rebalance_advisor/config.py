"""Configuration helpers for the rebalance engine."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Tuple


REFERENCE_FIAT = "USD"
SECONDARY_FIAT = "PEN"
SETTLEMENT_STABLECOIN = "USDT"

DEFAULT_MIN_ORDER_USD = 10.0
DEFAULT_DRIFT_BUFFER_USD = 200.0
BASE_TOLERANCE = 1e-8
PROFIT_TOLERANCE = 1e-6

USDT_BUY_PRICE_KEYS = ("PrecioCompraUSDT", "lastPriceUsdtBuy")
USDT_SELL_PRICE_KEYS = ("PrecioVentaUSDT", "lastPriceUsdtSell")
REFERENCE_TOTAL_KEYS = ("totalUSD", "totalUsd")
SECONDARY_TOTAL_KEYS = ("totalPen", "totalPEN")


@dataclass(frozen=True)
class EngineParameters:
    """Tunable thresholds used while sizing operations."""

    min_order_usd: float = DEFAULT_MIN_ORDER_USD
    relative_tolerance: float = 0.0
    drift_buffer_usd: float = DEFAULT_DRIFT_BUFFER_USD
    profit_tolerance: float = PROFIT_TOLERANCE
    base_tolerance: float = BASE_TOLERANCE
    stable_pair_symbol: str = "USDTUSD"
    fx_pair_symbol: str = "USDPEN"

    @property
    def fiat_pairs(self) -> Tuple[str, str]:
        return (self.stable_pair_symbol, self.fx_pair_symbol)

    def minimum_order(self, allocation: float) -> float:
        """Return the suppression threshold in reference currency."""

        return max(self.min_order_usd, allocation * self.relative_tolerance)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@lru_cache()
def get_engine_parameters() -> EngineParameters:
    """Return engine parameters, honouring ``REBALANCE_*`` environment overrides."""

    return EngineParameters(
        min_order_usd=_env_float("REBALANCE_MIN_ORDER_USD", DEFAULT_MIN_ORDER_USD),
        relative_tolerance=_env_float("REBALANCE_RELATIVE_TOLERANCE", 0.0),
        drift_buffer_usd=_env_float("REBALANCE_DRIFT_BUFFER_USD", DEFAULT_DRIFT_BUFFER_USD),
    )


def config_number(values: Mapping[str, object], *names: str) -> Optional[float]:
    """Return the first finite numeric value stored under any of ``names``."""

    for name in names:
        raw = values.get(name)
        if raw is None or isinstance(raw, bool):
            continue
        try:
            number = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            return number
    return None


__all__ = [
    "BASE_TOLERANCE",
    "DEFAULT_DRIFT_BUFFER_USD",
    "DEFAULT_MIN_ORDER_USD",
    "EngineParameters",
    "PROFIT_TOLERANCE",
    "REFERENCE_FIAT",
    "REFERENCE_TOTAL_KEYS",
    "SECONDARY_FIAT",
    "SECONDARY_TOTAL_KEYS",
    "SETTLEMENT_STABLECOIN",
    "USDT_BUY_PRICE_KEYS",
    "USDT_SELL_PRICE_KEYS",
    "config_number",
    "get_engine_parameters",
]
