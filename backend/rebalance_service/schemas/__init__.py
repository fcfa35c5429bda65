"""Pydantic schema exports."""

from .operations import (
    BandUpdateSchema,
    ClosingEntrySchema,
    ClosingRecordSchema,
    NewPositionSchema,
    OperationSchema,
    OperationsResponse,
    RefreshResponse,
    TradeRecordRequest,
    TradeRecordResponse,
)
from .simulate import SimulationRequest, SimulationResponse

__all__ = [
    "BandUpdateSchema",
    "ClosingEntrySchema",
    "ClosingRecordSchema",
    "NewPositionSchema",
    "OperationSchema",
    "OperationsResponse",
    "RefreshResponse",
    "SimulationRequest",
    "SimulationResponse",
    "TradeRecordRequest",
    "TradeRecordResponse",
]
