"""Schemas for what-if simulation of a suggested operation."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from .operations import OperationSchema


class SimulationRequest(BaseModel):
    operation_id: str
    price: str | float


class SimulationResponse(BaseModel):
    status: Literal["action", "none", "invalid"]
    reason: Optional[str] = None
    operation: Optional[OperationSchema] = None


__all__ = ["SimulationRequest", "SimulationResponse"]
