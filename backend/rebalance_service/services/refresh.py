"""Refresh cycle: gather inputs, run the engine, persist band widenings."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from rebalance_advisor import compute_operations
from rebalance_advisor.config import REFERENCE_FIAT, EngineParameters
from rebalance_advisor.models import (
    Asset,
    BalanceSnapshot,
    BandUpdate,
    EngineResult,
    InputsSnapshot,
    Operation,
    PositionRecord,
)
from rebalance_service.providers.portfolio_store import PortfolioStoreError

logger = logging.getLogger(__name__)


class PortfolioStore(Protocol):
    async def list_assets(self) -> list[Asset]: ...

    async def list_transactions(self) -> list[PositionRecord]: ...

    async def list_config_values(self) -> dict[str, float]: ...

    async def fetch_balances(self) -> BalanceSnapshot: ...

    async def update_asset_band(self, update: BandUpdate) -> None: ...


class PriceSource(Protocol):
    async def asset_price(self, asset: Asset) -> float | None: ...

    async def fx_rate(self, base: str, target: str) -> float | None: ...


@dataclass(frozen=True)
class RefreshOutcome:
    result: EngineResult
    refreshed_at: datetime
    rejected_band_updates: tuple[str, ...] = field(default_factory=tuple)

    @property
    def operations(self) -> tuple[Operation, ...]:
        return self.result.operations


class RefreshCoordinator:
    """Run refresh cycles one at a time and keep the latest outcome.

    A refresh triggered while another one is in flight is ignored rather
    than queued.
    """

    def __init__(
        self,
        store: PortfolioStore,
        prices: PriceSource,
        *,
        parameters: EngineParameters | None = None,
        secondary_currency: str = "PEN",
    ) -> None:
        self._store = store
        self._prices = prices
        self._parameters = parameters
        self._secondary_currency = secondary_currency
        self._lock = asyncio.Lock()
        self._in_flight = False
        self._latest: RefreshOutcome | None = None

    @property
    def latest(self) -> RefreshOutcome | None:
        return self._latest

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def gather_snapshot(self) -> InputsSnapshot:
        """Fetch every input of a refresh cycle concurrently."""

        assets, balances, config_values, positions, fx_rate = await asyncio.gather(
            self._store.list_assets(),
            self._store.fetch_balances(),
            self._store.list_config_values(),
            self._store.list_transactions(),
            self._prices.fx_rate(self._secondary_currency, REFERENCE_FIAT),
        )
        priced = [asset for asset in assets if not asset.is_fiat]
        quotes: Sequence[Any] = await asyncio.gather(
            *(self._prices.asset_price(asset) for asset in priced)
        )
        prices: dict[str, float | None] = {}
        for asset, price in zip(priced, quotes):
            if price is None:
                logger.warning("No price available for %s", asset.symbol)
            prices[asset.symbol] = price
        return InputsSnapshot(
            assets=tuple(assets),
            balances=balances,
            prices=prices,
            positions=tuple(positions),
            config_values=config_values,
            secondary_fx_rate=fx_rate,
        )

    async def _apply_band_updates(self, updates: Sequence[BandUpdate]) -> tuple[str, ...]:
        rejected: list[str] = []
        for update in updates:
            try:
                await self._store.update_asset_band(update)
            except PortfolioStoreError as exc:
                logger.warning("Band update for asset %s rejected: %s", update.asset_id, exc)
                rejected.append(update.asset_id)
        return tuple(rejected)

    async def refresh(self) -> RefreshOutcome | None:
        """Run one refresh cycle; return ``None`` when one is already running."""

        async with self._lock:
            if self._in_flight:
                logger.info("Refresh already in flight, ignoring trigger")
                return None
            self._in_flight = True
        try:
            snapshot = await self.gather_snapshot()
            result = compute_operations(snapshot, self._parameters)
            for symbol, reason in result.skipped.items():
                logger.info("Skipped %s: %s", symbol, reason)
            rejected = await self._apply_band_updates(result.band_updates)
            outcome = RefreshOutcome(
                result=result,
                refreshed_at=datetime.now(timezone.utc),
                rejected_band_updates=rejected,
            )
            self._latest = outcome
            logger.info("Refresh produced %d operations", len(result.operations))
            return outcome
        finally:
            async with self._lock:
                self._in_flight = False

    def find_operation(self, operation_id: str) -> Operation | None:
        if self._latest is None:
            return None
        for operation in self._latest.operations:
            if operation.id == operation_id:
                return operation
        return None


__all__ = ["PortfolioStore", "PriceSource", "RefreshCoordinator", "RefreshOutcome"]
