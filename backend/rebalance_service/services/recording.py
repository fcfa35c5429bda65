"""Persist an executed operation: close matched positions, open the residual."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from rebalance_advisor.fx import ReferenceRates
from rebalance_advisor.models import Operation
from rebalance_advisor.trades import (
    ClosingRecord,
    NewPosition,
    TradeRecordPlan,
    fee_in_reference,
    plan_trade_record,
)

logger = logging.getLogger(__name__)

BNB_TICKER = "BNBUSDT"


class TransactionWriter(Protocol):
    async def close_transaction(self, closing: ClosingRecord, closed_at: datetime) -> Any: ...

    async def create_transaction(self, position: NewPosition) -> Any: ...


class TickerSource(Protocol):
    async def binance_price(self, symbol: str) -> float | None: ...


async def record_operation(
    operation: Operation,
    store: TransactionWriter,
    prices: TickerSource,
    *,
    rates: ReferenceRates,
    executed_price: float,
    executed_amount: float,
    open_fee: float = 0.0,
    fee_currency: str | None = None,
    close_fee: float = 0.0,
    opened_at: datetime | None = None,
) -> TradeRecordPlan:
    """Write the closings and the new position for an executed operation.

    ``rates`` are the reference rates of the refresh cycle that produced
    ``operation``; they value the opening fee.
    """

    currency = (fee_currency or operation.fiat_currency or "USD").upper()
    bnb_price = None
    if currency == "BNB" and open_fee > 0:
        bnb_price = await prices.binance_price(BNB_TICKER)
        if bnb_price is None:
            logger.warning("BNB price unavailable, converting fee at the stablecoin rate")

    plan = plan_trade_record(
        operation,
        executed_price=executed_price,
        executed_amount=executed_amount,
        opened_at=opened_at or datetime.now(timezone.utc),
        open_fee_in_reference=fee_in_reference(open_fee, currency, rates, bnb_price),
        close_fee_total=close_fee,
    )

    closed_at = datetime.now(timezone.utc)
    if plan.closings:
        await asyncio.gather(
            *(store.close_transaction(closing, closed_at) for closing in plan.closings)
        )
    if plan.new_position is not None:
        await store.create_transaction(plan.new_position)
    logger.info(
        "Recorded %s: %d closings, new position %s",
        operation.id,
        len(plan.closings),
        "yes" if plan.new_position else "no",
    )
    return plan


__all__ = ["record_operation"]
