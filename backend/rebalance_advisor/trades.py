"""Recording of an executed operation as closings plus an optional new position."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from .closures import plan_closures
from .config import BASE_TOLERANCE, SETTLEMENT_STABLECOIN
from .fx import ReferenceRates
from .models import ClosingEntry, Operation
from .symbols import round_base, round_quote


class TradeRecordError(ValueError):
    """Raised when an executed trade cannot be recorded."""


@dataclass(frozen=True)
class ClosingRecord:
    """Closing of one open position, with its share of the close fee."""

    position_id: str
    amount: float
    close_value: float
    close_price: float
    close_fee: float


@dataclass(frozen=True)
class NewPosition:
    asset_id: str
    side: str
    fiat_currency: str
    opened_at: datetime
    open_price: float
    amount: float
    open_value: float
    open_fee: float


@dataclass(frozen=True)
class TradeRecordPlan:
    closings: Tuple[ClosingRecord, ...]
    new_position: Optional[NewPosition]


def fee_in_reference(
    amount: float,
    currency: str,
    rates: ReferenceRates,
    bnb_usdt_price: Optional[float] = None,
) -> float:
    """Convert an opening fee into the reference fiat.

    BNB fees are first valued in the settlement stablecoin. Currencies
    without a reference rate are recorded at face value.
    """

    if not amount or amount <= 0:
        return 0.0
    code = currency.upper()
    if code == "BNB":
        in_stable = amount * bnb_usdt_price if bnb_usdt_price and bnb_usdt_price > 0 else amount
        return round(in_stable * rates.rate(SETTLEMENT_STABLECOIN), 8)
    try:
        rate = rates.rate(code)
    except KeyError:
        rate = 1.0
    return round(amount * rate, 8)


def prorate_close_fee(entries: Tuple[ClosingEntry, ...], total_fee: float) -> List[float]:
    """Split ``total_fee`` across ``entries`` by close value.

    The last entry absorbs the rounding remainder so the shares add up.
    """

    if not entries:
        return []
    total_fee = max(0.0, total_fee)
    if total_fee == 0:
        return [0.0 for _ in entries]
    total_value = sum(entry.close_value or 0.0 for entry in entries)
    remaining = total_fee
    shares: List[float] = []
    for index, entry in enumerate(entries):
        if index == len(entries) - 1:
            share = remaining
        elif total_value > 0:
            share = entry.close_value / total_value * total_fee
        else:
            share = total_fee / len(entries)
        share = round(share, 8)
        remaining = round(remaining - share, 8)
        shares.append(share)
    return shares


def _validate(executed_price: float, executed_amount: float, close_fee_total: float) -> None:
    if not math.isfinite(executed_price) or executed_price <= 0:
        raise TradeRecordError("Executed price must be a positive number")
    if not math.isfinite(executed_amount) or executed_amount <= 0:
        raise TradeRecordError("Executed amount must be a positive number")
    if not math.isfinite(close_fee_total) or close_fee_total < 0:
        raise TradeRecordError("Close fee must not be negative")


def plan_trade_record(
    operation: Operation,
    *,
    executed_price: float,
    executed_amount: float,
    opened_at: datetime,
    open_fee_in_reference: float = 0.0,
    close_fee_total: float = 0.0,
) -> TradeRecordPlan:
    """Plan the store writes for an executed ``operation``.

    Profitable opposite positions are closed first at the executed price;
    any base amount left over opens a new long (buy) or short (sell).
    """

    _validate(executed_price, executed_amount, close_fee_total)

    candidates = operation.context.open_positions.closable_by(operation.action)
    remaining = executed_amount
    closings: Tuple[ClosingRecord, ...] = ()
    if candidates and executed_amount > BASE_TOLERANCE:
        plan = plan_closures(
            executed_amount,
            candidates,
            executed_price,
            operation.action,
            quote_asset=operation.quote_asset,
        )
        if plan is not None:
            fees = prorate_close_fee(plan.entries, close_fee_total)
            closings = tuple(
                ClosingRecord(
                    position_id=entry.id,
                    amount=entry.amount,
                    close_value=entry.close_value,
                    close_price=executed_price,
                    close_fee=fee,
                )
                for entry, fee in zip(plan.entries, fees)
            )
            remaining = round_base(max(0.0, executed_amount - plan.base_used))

    residual = round_base(max(0.0, remaining))
    new_position = None
    if residual > BASE_TOLERANCE:
        currency = (operation.fiat_currency or "USD").upper()
        new_position = NewPosition(
            asset_id=operation.asset_id,
            side="long" if operation.action == "buy" else "short",
            fiat_currency=currency,
            opened_at=opened_at,
            open_price=executed_price,
            amount=residual,
            open_value=round_quote(residual * executed_price, currency),
            open_fee=max(0.0, open_fee_in_reference),
        )
    return TradeRecordPlan(closings=closings, new_position=new_position)


__all__ = [
    "ClosingRecord",
    "NewPosition",
    "TradeRecordError",
    "TradeRecordPlan",
    "fee_in_reference",
    "plan_trade_record",
    "prorate_close_fee",
]
