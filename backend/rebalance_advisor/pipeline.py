"""Pipeline turning one inputs snapshot into recommended operations."""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .allocation import allocation_adjustment, designated_total, ratchet_band
from .config import (
    SECONDARY_TOTAL_KEYS,
    SETTLEMENT_STABLECOIN,
    EngineParameters,
    config_number,
    get_engine_parameters,
)
from .fx import ReferenceRates, resolve_reference_rates
from .holdings import build_balance_map, resolve_holding
from .models import (
    Asset,
    BalanceTotals,
    BandUpdate,
    EngineResult,
    EvaluationContext,
    InputsSnapshot,
    OpenPositions,
    Operation,
)
from .operations import evaluate_scenario, reconcile_operation
from .positions import group_open_positions
from .symbols import split_symbol

logger = logging.getLogger(__name__)

BUY_PRICE_LABEL = "reference buy price"
SELL_PRICE_LABEL = "reference sell price"


def _positive(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


def _external_values(
    assets: Sequence[Asset], prices: Dict[str, Optional[float]]
) -> Dict[str, float]:
    """Value manually tracked holdings (stocks, commodities) at their price."""

    values: Dict[str, float] = {}
    for asset in assets:
        if asset.type.lower() == "crypto" or asset.initial_investment is None:
            continue
        price = _positive(prices.get(asset.symbol))
        if price is not None:
            values[asset.symbol] = asset.initial_investment * price
    return values


def _resolve_price(
    asset: Asset,
    snapshot: InputsSnapshot,
    rates: ReferenceRates,
    parameters: EngineParameters,
) -> Optional[float]:
    symbol = asset.symbol.upper()
    if symbol == parameters.stable_pair_symbol:
        return rates.usdt_sell_price
    if symbol == parameters.fx_pair_symbol and rates.secondary_to_reference:
        return 1 / rates.secondary_to_reference
    return _positive(snapshot.prices.get(asset.symbol))


def _scenarios(
    asset: Asset, price: float, rates: ReferenceRates, parameters: EngineParameters
) -> List[Tuple[str, float, bool, Optional[str]]]:
    if asset.symbol.upper() == parameters.stable_pair_symbol:
        return [
            ("buy", rates.usdt_buy_price, True, BUY_PRICE_LABEL),
            ("sell", rates.usdt_sell_price, False, SELL_PRICE_LABEL),
        ]
    return [("neutral", price, True, None)]


def compute_operations(
    snapshot: InputsSnapshot,
    parameters: Optional[EngineParameters] = None,
    *,
    now: Optional[datetime] = None,
) -> EngineResult:
    """Compute the reconciled operations for every evaluated asset.

    Non-fiat assets are sized against their drift-adjusted allocation budget;
    the configured fiat pairs are sized against the cash they represent.
    Band widenings are returned as :class:`BandUpdate` intents.
    """

    parameters = parameters or get_engine_parameters()
    rates = resolve_reference_rates(snapshot.config_values, snapshot.secondary_fx_rate)
    fx_rate = rates.secondary_to_reference or 0.0

    balance_map = build_balance_map(snapshot.balances.entries)
    raw_totals = snapshot.balances.totals
    secondary_total = config_number(snapshot.config_values, *SECONDARY_TOTAL_KEYS)
    totals = BalanceTotals(
        reference=raw_totals.reference,
        secondary_fiat=raw_totals.secondary_fiat if secondary_total is None else secondary_total,
    )

    non_fiat = [asset for asset in snapshot.assets if not asset.is_fiat]
    fiat_pairs = [
        asset for asset in snapshot.assets
        if asset.is_fiat and asset.symbol.upper() in parameters.fiat_pairs
    ]

    external = _external_values(non_fiat, dict(snapshot.prices))
    crypto_value = sum(entry.value_in_reference for entry in snapshot.balances.entries)
    secondary_value = totals.secondary_fiat * fx_rate
    portfolio_total = totals.reference + crypto_value + secondary_value + sum(external.values())
    adjustment = allocation_adjustment(
        portfolio_total,
        designated_total(non_fiat),
        len(non_fiat),
        parameters.drift_buffer_usd,
    )
    stable_entry = balance_map.get(SETTLEMENT_STABLECOIN)
    stable_value = stable_entry.value_in_reference if stable_entry else 0.0

    grouped = group_open_positions(snapshot.positions, now)

    operations: List[Operation] = []
    band_updates: Dict[str, BandUpdate] = {}
    skipped: Dict[str, str] = {}

    for asset in [*non_fiat, *fiat_pairs]:
        symbol = asset.symbol.upper()
        if symbol == parameters.stable_pair_symbol:
            allocation = max(totals.reference + stable_value, 0.0)
        elif symbol == parameters.fx_pair_symbol:
            allocation = max(totals.reference + secondary_value, 0.0)
        else:
            allocation = max(asset.total_capital_when_last_added + adjustment, 0.0)
        if allocation <= 0:
            skipped[asset.symbol] = "no_allocation"
            continue

        price = _resolve_price(asset, snapshot, rates, parameters)
        if price is None:
            logger.debug("Skipping %s: no price available", asset.symbol)
            skipped[asset.symbol] = "missing_price"
            continue

        base, quote = split_symbol(asset.symbol)
        base_holding = resolve_holding(
            base, balance_map, totals, fx_rate, rates.usdt_sell_price,
            fallback_value=external.get(asset.symbol, 0.0),
        )
        quote_holding = resolve_holding(quote, balance_map, totals, fx_rate, rates.usdt_sell_price)
        positions = grouped.get(asset.id, OpenPositions())
        is_stable_pair = symbol == parameters.stable_pair_symbol

        for mode, scenario_price, allow_updates, label in _scenarios(asset, price, rates, parameters):
            evaluated = asset
            if allow_updates:
                band, update = ratchet_band(asset, scenario_price)
                if update is not None:
                    band_updates[asset.id] = update
                    evaluated = replace(
                        asset,
                        min_price_seven_year=band.min_price,
                        max_price_seven_year=band.max_price,
                    )
            context = EvaluationContext(
                asset=evaluated,
                base_holding=base_holding,
                quote_holding=quote_holding,
                allocation=allocation,
                mark_to_price=is_stable_pair,
                open_positions=positions,
            )
            operation = evaluate_scenario(
                context,
                scenario_price,
                mode,
                price_label=label,
                usdt_usd_rate=rates.usdt_usd_rate,
                buy_price=rates.usdt_buy_price if is_stable_pair else None,
                sell_price=rates.usdt_sell_price if is_stable_pair else None,
                parameters=parameters,
            )
            if operation is not None:
                operations.append(operation)

    reconciled = []
    for operation in operations:
        adjusted = reconcile_operation(operation, parameters=parameters)
        if adjusted is not None:
            reconciled.append(adjusted)

    return EngineResult(
        operations=tuple(reconciled),
        band_updates=tuple(band_updates.values()),
        skipped=skipped,
        rates=rates,
    )


__all__ = ["compute_operations"]
