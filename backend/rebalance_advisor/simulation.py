"""What-if re-evaluation of an operation under a manually supplied price."""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional

from .config import EngineParameters, get_engine_parameters
from .models import Operation, SimulationResult
from .operations import evaluate_scenario, reconcile_operation


def _parse_price(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        price = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def simulate(
    operation: Operation,
    override_price: object,
    parameters: Optional[EngineParameters] = None,
) -> SimulationResult:
    """Re-run sizing and reconciliation of ``operation`` at ``override_price``.

    Uses the allocation, holdings, band and open positions stored on the
    operation. Sizing runs in neutral mode, but the result keeps the id and
    mode of ``operation``. Nothing is mutated and no band widening is proposed.
    """

    price = _parse_price(override_price)
    if price is None:
        return SimulationResult(status="invalid", reason="Override price must be a positive number")

    parameters = parameters or get_engine_parameters()
    rebuilt = evaluate_scenario(
        operation.context,
        price,
        "neutral",
        price_label=operation.price_label,
        usdt_usd_rate=operation.usdt_usd_rate,
        buy_price=operation.buy_price,
        sell_price=operation.sell_price,
        parameters=parameters,
    )
    if rebuilt is None:
        return SimulationResult(status="none", reason="Difference below the minimum order size")

    reconciled = reconcile_operation(rebuilt, parameters=parameters)
    if reconciled is None:
        return SimulationResult(
            status="none", reason="No profitable closure and the trend does not support a new position"
        )
    return SimulationResult(
        status="action", operation=replace(reconciled, id=operation.id, mode=operation.mode)
    )


__all__ = ["simulate"]
