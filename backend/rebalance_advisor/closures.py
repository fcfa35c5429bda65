"""Closure planner.

Selects which open positions an operation should close before any new
position is opened. Candidates closest to the current price are considered
first; a slice is accepted only when closing it books a profit. Once at
least one profitable slice was found, any remaining requested amount is
filled from the leftover capacity in FIFO order, regardless of profit.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .config import BASE_TOLERANCE, PROFIT_TOLERANCE
from .models import ClosingEntry, ClosurePlan, OpenPosition
from .positions import opened_timestamp
from .symbols import round_base, round_quote


@dataclass
class _Slice:
    position: OpenPosition
    amount: float
    close_value: float
    profit: float


def order_candidates(positions: Sequence[OpenPosition], current_price: float) -> List[OpenPosition]:
    """Order positions by distance of their open price to ``current_price``.

    Ties keep the oldest position first.
    """

    by_age = sorted(positions, key=opened_timestamp)
    return sorted(by_age, key=lambda position: abs(position.open_price - current_price))


def _slice(position: OpenPosition, take: float, current_price: float, action: str) -> _Slice:
    factor = take / position.amount
    close_value = take * current_price
    open_gross = position.open_value * factor
    fee_part = position.open_fee * factor
    if action == "sell":
        profit = close_value - (open_gross + fee_part)
    else:
        profit = (open_gross - fee_part) - close_value
    return _Slice(position=position, amount=take, close_value=close_value, profit=profit)


def plan_closures(
    requested_base_amount: float,
    positions: Sequence[OpenPosition],
    current_price: float,
    action: str,
    *,
    quote_asset: str = "USD",
    profit_tolerance: float = PROFIT_TOLERANCE,
) -> Optional[ClosurePlan]:
    """Plan which positions to close for an operation of ``action``.

    ``sell`` closes longs and ``buy`` closes shorts. Returns ``None`` when no
    profitable closure exists.
    """

    if not positions or not (requested_base_amount > BASE_TOLERANCE) or current_price <= 0:
        return None

    taken: Dict[str, float] = {}
    slices: List[_Slice] = []
    base_used = 0.0

    for position in order_candidates(positions, current_price):
        if position.amount <= 0:
            continue
        remaining = requested_base_amount - base_used
        if remaining <= BASE_TOLERANCE:
            break
        take = min(position.amount, remaining)
        if take <= BASE_TOLERANCE:
            continue
        candidate = _slice(position, take, current_price, action)
        if candidate.profit <= profit_tolerance:
            continue
        slices.append(candidate)
        taken[position.id] = take
        base_used += take

    if not slices:
        return None

    for position in sorted(positions, key=opened_timestamp):
        remaining = requested_base_amount - base_used
        if remaining <= BASE_TOLERANCE:
            break
        capacity = position.amount - taken.get(position.id, 0.0)
        take = min(capacity, remaining)
        if take <= BASE_TOLERANCE:
            continue
        slices.append(_slice(position, take, current_price, action))
        taken[position.id] = taken.get(position.id, 0.0) + take
        base_used += take

    entries = tuple(
        ClosingEntry(
            id=item.position.id,
            amount=round_base(item.amount),
            close_value=round_quote(item.close_value, quote_asset),
            close_price=current_price,
            profit=item.profit,
        )
        for item in slices
    )
    return ClosurePlan(
        base_used=round_base(sum(item.amount for item in slices)),
        quote_used=round_quote(sum(item.close_value for item in slices), quote_asset),
        entries=entries,
    )


__all__ = ["order_candidates", "plan_closures"]
