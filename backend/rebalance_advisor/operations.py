"""Build operations from target allocations and reconcile them with open positions."""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional

from .allocation import compute_target, passes_threshold, slope_sign
from .closures import plan_closures
from .config import BASE_TOLERANCE, EngineParameters, get_engine_parameters
from .models import EvaluationContext, OpenPositions, Operation
from .symbols import (
    format_asset_amount,
    format_quote_value,
    is_usd_like,
    round_base,
    round_quote,
    split_symbol,
)


def _is_binance(exchange_id: Optional[str], exchange_name: Optional[str]) -> bool:
    for value in (exchange_id, exchange_name):
        if value and "binance" in value.lower():
            return True
    return False


def _base_units(base_diff_usd: float, base: str, price: float) -> float:
    # Non-USD quotes divide a reference-fiat diff by a quote-denominated price.
    if base == "USD" or price <= 0:
        return base_diff_usd
    return base_diff_usd / price


def _quote_value(base_units: float, abs_diff_usd: float, quote: str, price: float) -> float:
    if price <= 0 or is_usd_like(quote):
        return abs_diff_usd
    return base_units * price


def _action_message(
    action: str,
    base: str,
    quote: str,
    amount: float,
    abs_diff_usd: float,
    quote_value: float,
    price: float,
    price_label: Optional[str],
) -> str:
    approx = f"${abs_diff_usd:.2f}" if is_usd_like(quote) else f"{quote_value:.2f} {quote}"
    at_price = f" at ${price:.4f} ({price_label})" if price_label else ""
    if action == "buy":
        return f"Buy {amount:.6f} {base} (~{approx}) using {quote}{at_price}."
    return f"Sell {amount:.6f} {base} (~{approx}) for {quote}{at_price}."


def evaluate_scenario(
    context: EvaluationContext,
    price: float,
    mode: str = "neutral",
    *,
    price_label: Optional[str] = None,
    usdt_usd_rate: float = 1.0,
    buy_price: Optional[float] = None,
    sell_price: Optional[float] = None,
    parameters: Optional[EngineParameters] = None,
) -> Optional[Operation]:
    """Size one scenario of an asset and return the resulting operation.

    Returns ``None`` when the difference to the target does not clear the
    minimum order threshold for ``mode``.
    """

    parameters = parameters or get_engine_parameters()
    if not price or not math.isfinite(price) or price <= 0:
        return None

    asset = context.asset
    base, quote = split_symbol(asset.symbol)
    if context.mark_to_price:
        actual_base_usd = context.base_holding.amount * price
    else:
        actual_base_usd = context.base_holding.value_in_reference
    actual_quote_usd = context.quote_holding.value_in_reference

    target = compute_target(
        asset,
        price,
        allocation=context.allocation,
        actual_base_usd=actual_base_usd,
    )
    if not passes_threshold(
        target.base_diff_usd, mode, allocation=context.allocation, parameters=parameters
    ):
        return None

    abs_diff_usd = abs(target.base_diff_usd)
    units = abs(_base_units(target.base_diff_usd, base, price))
    suggested_base = round_base(units)
    if suggested_base <= BASE_TOLERANCE:
        return None
    quote_value = _quote_value(units, abs_diff_usd, quote, price)
    message = _action_message(
        target.action, base, quote, units, abs_diff_usd, quote_value, price, price_label
    )

    return Operation(
        id=f"{asset.id}-{mode}-{target.action}",
        asset_id=asset.id,
        symbol=asset.symbol,
        base_asset=base,
        quote_asset=quote,
        fiat_currency=quote,
        exchange_id=asset.exchange_id,
        exchange_name=asset.exchange_name,
        is_binance=_is_binance(asset.exchange_id, asset.exchange_name),
        usdt_usd_rate=usdt_usd_rate,
        allocation=context.allocation,
        price=price,
        price_label=price_label,
        mode=mode,
        action=target.action,
        slope_sign=slope_sign(asset.slope),
        suggested_base_amount=suggested_base,
        suggested_fiat_value=round_quote(quote_value, quote),
        target_base_usd=target.target_base_usd,
        target_quote_usd=target.target_quote_usd,
        target_base_percent=target.target_base_percent,
        actual_base_usd=actual_base_usd,
        actual_quote_usd=actual_quote_usd,
        base_diff_usd=target.base_diff_usd,
        action_message=message,
        context=context,
        buy_price=buy_price,
        sell_price=sell_price,
    )


def _closure_message(operation: Operation, entries: int, base_used: float, quote_used: float) -> str:
    base, quote = operation.base_asset, operation.quote_asset
    plural = "s" if entries > 1 else ""
    quote_label = format_quote_value(quote_used, quote)
    base_label = format_asset_amount(base_used, base)
    if operation.action == "sell":
        return (
            f"Close {entries} open long{plural} ({quote_label}) "
            f"selling {base_label} {base} for {quote}."
        )
    return (
        f"Close {entries} open short{plural} ({quote_label}) "
        f"buying {base_label} {base} using {quote}."
    )


def _residual_message(operation: Operation, residual_base: float, residual_fiat: float) -> str:
    base, quote = operation.base_asset, operation.quote_asset
    base_label = format_asset_amount(residual_base, base)
    fiat_label = format_quote_value(residual_fiat, quote)
    if operation.action == "sell":
        return f" Then open a short with {base_label} {base} ({fiat_label})."
    return f" Then open a long with {base_label} {base} using {fiat_label}."


def reconcile_operation(
    operation: Operation,
    open_positions: Optional[OpenPositions] = None,
    *,
    parameters: Optional[EngineParameters] = None,
) -> Optional[Operation]:
    """Fold profitable closures of opposite positions into ``operation``.

    Sells close longs and buys close shorts. Without opposite positions the
    operation is returned unchanged. When positions exist but none can be
    closed at a profit, the operation survives only if the trend agrees with
    its direction.
    """

    parameters = parameters or get_engine_parameters()
    positions = operation.context.open_positions if open_positions is None else open_positions
    candidates = positions.closable_by(operation.action)
    if not candidates:
        return operation

    price = operation.price
    total_needed = round_base(abs(_base_units(operation.base_diff_usd, operation.base_asset, price)))
    plan = plan_closures(
        total_needed,
        candidates,
        price,
        operation.action,
        quote_asset=operation.quote_asset,
        profit_tolerance=parameters.profit_tolerance,
    )
    if plan is None:
        if operation.action == "sell" and operation.slope_sign < 0:
            return operation
        if operation.action == "buy" and operation.slope_sign > 0:
            return operation
        return None

    quote = operation.quote_asset
    residual_base = max(0.0, round_base(total_needed - plan.base_used))
    residual_fiat = round_quote(residual_base * price, quote) if residual_base > 0 else 0.0
    message = _closure_message(operation, len(plan.entries), plan.base_used, plan.quote_used)
    if residual_base > parameters.base_tolerance:
        message += _residual_message(operation, residual_base, residual_fiat)

    return replace(
        operation,
        suggested_base_amount=round_base(plan.base_used + residual_base),
        suggested_fiat_value=round_quote(plan.quote_used + residual_fiat, quote),
        closing_positions=plan.entries,
        residual_base_amount=residual_base,
        residual_fiat_value=residual_fiat,
        action_message=message,
    )


__all__ = ["evaluate_scenario", "reconcile_operation"]
