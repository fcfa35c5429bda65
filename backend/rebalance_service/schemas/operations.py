"""Schemas for suggested operations and trade recording."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from rebalance_advisor.models import BandUpdate, ClosingEntry, Operation
from rebalance_advisor.trades import TradeRecordPlan


class ClosingEntrySchema(BaseModel):
    id: str
    amount: float
    close_value: float
    close_price: float
    profit: float

    @classmethod
    def from_entry(cls, entry: ClosingEntry) -> "ClosingEntrySchema":
        return cls(
            id=entry.id,
            amount=entry.amount,
            close_value=entry.close_value,
            close_price=entry.close_price,
            profit=entry.profit,
        )


class OperationSchema(BaseModel):
    id: str
    asset_id: str
    symbol: str
    base_asset: str
    quote_asset: str
    fiat_currency: str
    exchange_id: Optional[str] = None
    exchange_name: Optional[str] = None
    is_binance: bool = False
    usdt_usd_rate: float
    allocation: float
    price: float
    price_label: Optional[str] = None
    mode: Literal["buy", "sell", "neutral"]
    action: Literal["buy", "sell"]
    slope_sign: int
    buy_price: Optional[float] = None
    sell_price: Optional[float] = None
    suggested_base_amount: float
    suggested_fiat_value: float
    closing_positions: list[ClosingEntrySchema] = Field(default_factory=list)
    residual_base_amount: float = 0.0
    residual_fiat_value: float = 0.0
    target_base_usd: float
    target_quote_usd: float
    target_base_percent: float
    actual_base_usd: float
    actual_quote_usd: float
    base_diff_usd: float
    action_message: str

    @classmethod
    def from_operation(cls, operation: Operation) -> "OperationSchema":
        return cls(
            id=operation.id,
            asset_id=operation.asset_id,
            symbol=operation.symbol,
            base_asset=operation.base_asset,
            quote_asset=operation.quote_asset,
            fiat_currency=operation.fiat_currency,
            exchange_id=operation.exchange_id,
            exchange_name=operation.exchange_name,
            is_binance=operation.is_binance,
            usdt_usd_rate=operation.usdt_usd_rate,
            allocation=operation.allocation,
            price=operation.price,
            price_label=operation.price_label,
            mode=operation.mode,
            action=operation.action,
            slope_sign=operation.slope_sign,
            buy_price=operation.buy_price,
            sell_price=operation.sell_price,
            suggested_base_amount=operation.suggested_base_amount,
            suggested_fiat_value=operation.suggested_fiat_value,
            closing_positions=[
                ClosingEntrySchema.from_entry(entry) for entry in operation.closing_positions
            ],
            residual_base_amount=operation.residual_base_amount,
            residual_fiat_value=operation.residual_fiat_value,
            target_base_usd=operation.target_base_usd,
            target_quote_usd=operation.target_quote_usd,
            target_base_percent=operation.target_base_percent,
            actual_base_usd=operation.actual_base_usd,
            actual_quote_usd=operation.actual_quote_usd,
            base_diff_usd=operation.base_diff_usd,
            action_message=operation.action_message,
        )


class BandUpdateSchema(BaseModel):
    asset_id: str
    min_price_seven_year: Optional[float] = None
    max_price_seven_year: Optional[float] = None

    @classmethod
    def from_update(cls, update: BandUpdate) -> "BandUpdateSchema":
        return cls(
            asset_id=update.asset_id,
            min_price_seven_year=update.min_price_seven_year,
            max_price_seven_year=update.max_price_seven_year,
        )


class OperationsResponse(BaseModel):
    refreshed_at: Optional[datetime] = None
    operations: list[OperationSchema] = Field(default_factory=list)
    band_updates: list[BandUpdateSchema] = Field(default_factory=list)
    rejected_band_updates: list[str] = Field(default_factory=list)
    skipped: dict[str, str] = Field(default_factory=dict)


class RefreshResponse(BaseModel):
    started: bool
    result: Optional[OperationsResponse] = None


class TradeRecordRequest(BaseModel):
    executed_price: float = Field(gt=0)
    executed_amount: float = Field(gt=0)
    open_fee: float = Field(default=0.0, ge=0.0)
    fee_currency: Optional[str] = None
    close_fee: float = Field(default=0.0, ge=0.0)
    opened_at: Optional[datetime] = None


class ClosingRecordSchema(BaseModel):
    position_id: str
    amount: float
    close_value: float
    close_price: float
    close_fee: float


class NewPositionSchema(BaseModel):
    asset_id: str
    side: Literal["long", "short"]
    fiat_currency: str
    opened_at: datetime
    open_price: float
    amount: float
    open_value: float
    open_fee: float


class TradeRecordResponse(BaseModel):
    closings: list[ClosingRecordSchema] = Field(default_factory=list)
    new_position: Optional[NewPositionSchema] = None

    @classmethod
    def from_plan(cls, plan: TradeRecordPlan) -> "TradeRecordResponse":
        position = plan.new_position
        return cls(
            closings=[
                ClosingRecordSchema(
                    position_id=closing.position_id,
                    amount=closing.amount,
                    close_value=closing.close_value,
                    close_price=closing.close_price,
                    close_fee=closing.close_fee,
                )
                for closing in plan.closings
            ],
            new_position=(
                NewPositionSchema(
                    asset_id=position.asset_id,
                    side=position.side,
                    fiat_currency=position.fiat_currency,
                    opened_at=position.opened_at,
                    open_price=position.open_price,
                    amount=position.amount,
                    open_value=position.open_value,
                    open_fee=position.open_fee,
                )
                if position is not None
                else None
            ),
        )


__all__ = [
    "BandUpdateSchema",
    "ClosingEntrySchema",
    "ClosingRecordSchema",
    "NewPositionSchema",
    "OperationSchema",
    "OperationsResponse",
    "RefreshResponse",
    "TradeRecordRequest",
    "TradeRecordResponse",
]
