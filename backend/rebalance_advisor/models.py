"""Domain models used by the rebalance engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Literal, Mapping, Optional, Sequence, Tuple

from .fx import ReferenceRates

Action = Literal["buy", "sell"]
Mode = Literal["buy", "sell", "neutral"]
Side = Literal["long", "short"]
SimulationStatus = Literal["action", "none", "invalid"]


@dataclass(frozen=True)
class Asset:
    """A tradable pair or instrument under an allocation policy."""

    id: str
    symbol: str
    type: str
    total_capital_when_last_added: float = 0.0
    min_price_seven_year: float = 0.0
    max_price_seven_year: float = 0.0
    slope: float = 0.0
    exchange_id: Optional[str] = None
    exchange_name: Optional[str] = None
    initial_investment: Optional[float] = None

    @property
    def is_fiat(self) -> bool:
        return self.type.lower() == "fiat"

    @property
    def band(self) -> "PriceBand":
        return PriceBand(self.min_price_seven_year, self.max_price_seven_year)


@dataclass(frozen=True)
class PriceBand:
    """Historical low/high used to normalize the current price."""

    min_price: float
    max_price: float

    @property
    def width(self) -> float:
        return self.max_price - self.min_price


@dataclass(frozen=True)
class Holding:
    """Units held of one currency and their value in the reference currency."""

    amount: float = 0.0
    value_in_reference: float = 0.0


@dataclass(frozen=True)
class BalanceEntry:
    asset: str
    total: float
    value_in_reference: float


@dataclass(frozen=True)
class BalanceTotals:
    """Aggregated cash totals kept outside the exchange balances."""

    reference: float = 0.0
    secondary_fiat: float = 0.0


@dataclass(frozen=True)
class BalanceSnapshot:
    entries: Tuple[BalanceEntry, ...] = ()
    totals: BalanceTotals = field(default_factory=BalanceTotals)


@dataclass(frozen=True)
class PositionRecord:
    """A persisted transaction as delivered by the document store."""

    id: str
    asset_id: str
    side: str
    amount: float
    open_value: float
    open_price: float
    open_fee: float = 0.0
    opened_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    status: str = "open"


@dataclass(frozen=True)
class OpenPosition:
    """A normalized open position eligible for closure."""

    id: str
    amount: float
    open_value: float
    open_price: float
    open_fee: float
    opened_at: datetime


@dataclass(frozen=True)
class OpenPositions:
    """Open longs and shorts of one asset, oldest first."""

    longs: Tuple[OpenPosition, ...] = ()
    shorts: Tuple[OpenPosition, ...] = ()

    def closable_by(self, action: str) -> Tuple[OpenPosition, ...]:
        """Return the positions an operation of ``action`` would close."""

        return self.longs if action == "sell" else self.shorts


@dataclass(frozen=True)
class ClosingEntry:
    id: str
    amount: float
    close_value: float
    close_price: float
    profit: float


@dataclass(frozen=True)
class ClosurePlan:
    base_used: float
    quote_used: float
    entries: Tuple[ClosingEntry, ...]


@dataclass(frozen=True)
class BandUpdate:
    """Intent to widen the stored historical band of an asset."""

    asset_id: str
    min_price_seven_year: Optional[float] = None
    max_price_seven_year: Optional[float] = None


@dataclass(frozen=True)
class EvaluationContext:
    """Inputs an operation was computed from, kept for what-if replays."""

    asset: Asset
    base_holding: Holding
    quote_holding: Holding
    allocation: float
    mark_to_price: bool = False
    open_positions: OpenPositions = field(default_factory=OpenPositions)


@dataclass(frozen=True)
class Operation:
    """One recommended rebalancing action for a pair."""

    id: str
    asset_id: str
    symbol: str
    base_asset: str
    quote_asset: str
    fiat_currency: str
    exchange_id: Optional[str]
    exchange_name: Optional[str]
    is_binance: bool
    usdt_usd_rate: float
    allocation: float
    price: float
    price_label: Optional[str]
    mode: str
    action: str
    slope_sign: int
    suggested_base_amount: float
    suggested_fiat_value: float
    target_base_usd: float
    target_quote_usd: float
    target_base_percent: float
    actual_base_usd: float
    actual_quote_usd: float
    base_diff_usd: float
    action_message: str
    context: EvaluationContext
    buy_price: Optional[float] = None
    sell_price: Optional[float] = None
    closing_positions: Tuple[ClosingEntry, ...] = ()
    residual_base_amount: float = 0.0
    residual_fiat_value: float = 0.0


@dataclass(frozen=True)
class InputsSnapshot:
    """Everything one refresh cycle reads from its collaborators."""

    assets: Sequence[Asset]
    balances: BalanceSnapshot
    prices: Mapping[str, Optional[float]]
    positions: Sequence[PositionRecord] = ()
    config_values: Mapping[str, object] = field(default_factory=dict)
    secondary_fx_rate: Optional[float] = None


@dataclass(frozen=True)
class EngineResult:
    operations: Tuple[Operation, ...]
    band_updates: Tuple[BandUpdate, ...]
    skipped: Dict[str, str] = field(default_factory=dict)
    rates: ReferenceRates = field(default_factory=ReferenceRates)


@dataclass(frozen=True)
class SimulationResult:
    status: str
    operation: Optional[Operation] = None
    reason: Optional[str] = None


__all__ = [
    "Action",
    "Asset",
    "BalanceEntry",
    "BalanceSnapshot",
    "BalanceTotals",
    "BandUpdate",
    "ClosingEntry",
    "ClosurePlan",
    "EngineResult",
    "EvaluationContext",
    "Holding",
    "InputsSnapshot",
    "Mode",
    "OpenPosition",
    "OpenPositions",
    "Operation",
    "PositionRecord",
    "PriceBand",
    "Side",
    "SimulationResult",
    "SimulationStatus",
]
