"""Resolve how much of a currency is held and what it is worth."""
from __future__ import annotations

from typing import Dict, Iterable, Mapping

from .config import REFERENCE_FIAT, SECONDARY_FIAT, SETTLEMENT_STABLECOIN
from .models import BalanceEntry, BalanceTotals, Holding


def build_balance_map(entries: Iterable[BalanceEntry]) -> Dict[str, BalanceEntry]:
    """Index balance entries by upper-cased asset code."""

    balance_map: Dict[str, BalanceEntry] = {}
    for entry in entries:
        balance_map[entry.asset.upper()] = entry
    return balance_map


def resolve_holding(
    code: str,
    balances: Mapping[str, BalanceEntry],
    totals: BalanceTotals,
    fx_rate: float | None,
    reference_price: float,
    fallback_value: float = 0.0,
) -> Holding:
    """Return the :class:`Holding` for ``code``.

    Fiat codes read the aggregated totals, the settlement stablecoin falls
    back to an amount implied by the reference total and anything else is
    looked up in ``balances``.
    """

    upper = code.upper()
    if upper == REFERENCE_FIAT:
        return Holding(amount=totals.reference, value_in_reference=totals.reference)
    if upper == SECONDARY_FIAT:
        amount = totals.secondary_fiat
        return Holding(amount=amount, value_in_reference=amount * (fx_rate or 0.0))
    if upper == SETTLEMENT_STABLECOIN:
        entry = balances.get(upper)
        if entry is not None:
            return Holding(amount=entry.total, value_in_reference=entry.value_in_reference)
        if reference_price > 0:
            amount = totals.reference / reference_price
            return Holding(amount=amount, value_in_reference=amount * reference_price)
        return Holding()
    entry = balances.get(upper)
    if entry is not None:
        return Holding(amount=entry.total, value_in_reference=entry.value_in_reference)
    return Holding(amount=0.0, value_in_reference=fallback_value)


__all__ = ["build_balance_map", "resolve_holding"]
