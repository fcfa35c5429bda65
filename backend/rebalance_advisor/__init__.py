"""Core package for the portfolio rebalance engine."""

from .models import (
    Asset,
    BalanceEntry,
    BalanceSnapshot,
    BalanceTotals,
    BandUpdate,
    EngineResult,
    InputsSnapshot,
    Operation,
    PositionRecord,
    SimulationResult,
)
from .pipeline import compute_operations
from .simulation import simulate

__all__ = [
    "Asset",
    "BalanceEntry",
    "BalanceSnapshot",
    "BalanceTotals",
    "BandUpdate",
    "EngineResult",
    "InputsSnapshot",
    "Operation",
    "PositionRecord",
    "SimulationResult",
    "compute_operations",
    "simulate",
]
