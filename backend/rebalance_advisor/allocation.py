"""Target allocation calculator.

Turns the position of a price inside its seven-year band into a desired
base/quote split of an allocation budget. A positive trend slope reserves
part of the budget in the base asset, a negative slope reserves part of it in
the quote asset, and neither reservation is ever traded away.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .config import BASE_TOLERANCE, EngineParameters
from .models import Asset, BandUpdate, PriceBand


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


@dataclass(frozen=True)
class TargetAllocation:
    """Result of sizing one pair against its allocation budget."""

    target_base_usd: float
    target_quote_usd: float
    base_diff_usd: float
    action: str
    base_hold_usd: float
    quote_hold_usd: float
    desired_base_usd: float

    @property
    def target_base_percent(self) -> float:
        total = self.target_base_usd + self.target_quote_usd
        return self.target_base_usd / total if total > 0 else 0.0


def hold_reservations(slope: float, allocation: float) -> Tuple[float, float]:
    """Return ``(base_hold_usd, quote_hold_usd)`` reserved by a trend slope."""

    fraction = (slope or 0.0) / 100
    base_hold = allocation * min(fraction, 1.0) if fraction > 0 else 0.0
    quote_hold = allocation * min(abs(fraction), 1.0) if fraction < 0 else 0.0
    return base_hold, quote_hold


def slope_sign(slope: float) -> int:
    if slope > 0:
        return 1
    if slope < 0:
        return -1
    return 0


def normalize_price(price: float, band: PriceBand) -> float:
    """Position of ``price`` inside ``band`` in ``[0, 1]``; 0.5 for a flat band."""

    if band.width == 0:
        return 0.5
    return _clamp((price - band.min_price) / band.width, 0.0, 1.0)


def compute_target(
    asset: Asset,
    price: float,
    *,
    allocation: float,
    actual_base_usd: float,
    band: Optional[PriceBand] = None,
) -> TargetAllocation:
    """Compute the target base/quote split for ``asset`` at ``price``."""

    band = band or asset.band
    base_hold, quote_hold = hold_reservations(asset.slope, allocation)
    max_base_allowed = max(allocation - quote_hold, 0.0)

    base_share = _clamp(1 - normalize_price(price, band), 0.0, 1.0)
    desired_base = allocation * base_share

    candidate = desired_base
    raw_sell = max(actual_base_usd - desired_base, 0.0)
    if base_hold > 0 and raw_sell > 0:
        available_excess = max(0.0, actual_base_usd - base_hold)
        if raw_sell < base_hold or available_excess <= BASE_TOLERANCE:
            candidate = actual_base_usd
        else:
            candidate = actual_base_usd - min(raw_sell - base_hold, available_excess)

    adjusted_desired = _clamp(candidate, 0.0, max_base_allowed)

    if actual_base_usd < adjusted_desired:
        target_base = min(adjusted_desired, max_base_allowed)
    else:
        floor = _clamp(max(adjusted_desired, base_hold), 0.0, max_base_allowed)
        target_base = floor if actual_base_usd > floor else actual_base_usd
    target_base = _clamp(target_base, 0.0, max_base_allowed)

    target_quote = allocation - target_base
    if target_quote < quote_hold:
        target_quote = quote_hold
        target_base = _clamp(allocation - target_quote, 0.0, max_base_allowed)

    diff = target_base - actual_base_usd
    return TargetAllocation(
        target_base_usd=target_base,
        target_quote_usd=target_quote,
        base_diff_usd=diff,
        action="buy" if diff > 0 else "sell",
        base_hold_usd=base_hold,
        quote_hold_usd=quote_hold,
        desired_base_usd=desired_base,
    )


def passes_threshold(
    base_diff_usd: float,
    mode: str,
    *,
    allocation: float,
    parameters: EngineParameters,
) -> bool:
    """Return whether a difference is large enough to act on in ``mode``.

    ``buy`` scenarios only accept purchases, ``sell`` scenarios only sales
    and ``neutral`` either direction.
    """

    threshold = parameters.minimum_order(allocation)
    if mode == "buy":
        return base_diff_usd > threshold
    if mode == "sell":
        return base_diff_usd < -threshold
    return abs(base_diff_usd) > threshold


def ratchet_band(asset: Asset, price: float) -> Tuple[PriceBand, Optional[BandUpdate]]:
    """Widen the stored band to include ``price``.

    The band is never narrowed. Returns the band to evaluate with and an
    update intent when it moved.
    """

    min_price, max_price = asset.min_price_seven_year, asset.max_price_seven_year
    new_min: Optional[float] = None
    new_max: Optional[float] = None
    if price < min_price:
        min_price = new_min = price
    if price > max_price:
        max_price = new_max = price
    band = PriceBand(min_price, max_price)
    if new_min is None and new_max is None:
        return band, None
    return band, BandUpdate(
        asset_id=asset.id,
        min_price_seven_year=new_min,
        max_price_seven_year=new_max,
    )


def allocation_adjustment(
    portfolio_total: float,
    designated_total: float,
    adjustable_count: int,
    drift_buffer_usd: float,
) -> float:
    """Spread the gap between the portfolio value and the designated budgets.

    A shortfall is spread entirely; a surplus only beyond ``drift_buffer_usd``.
    """

    difference = portfolio_total - designated_total
    count = adjustable_count or 1
    if difference < 0:
        return difference / count
    if difference > drift_buffer_usd:
        return (difference - drift_buffer_usd) / count
    return 0.0


def designated_total(assets: Sequence[Asset]) -> float:
    return sum(asset.total_capital_when_last_added or 0.0 for asset in assets)


__all__ = [
    "TargetAllocation",
    "allocation_adjustment",
    "compute_target",
    "designated_total",
    "hold_reservations",
    "normalize_price",
    "passes_threshold",
    "ratchet_band",
    "slope_sign",
]
