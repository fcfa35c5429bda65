"""Route registration helpers."""

from __future__ import annotations

from fastapi import APIRouter

from .operations import router as operations_router
from .simulate import router as simulate_router

api_router = APIRouter()
api_router.include_router(operations_router, prefix="/operations", tags=["operations"])
api_router.include_router(simulate_router, prefix="/simulate", tags=["simulate"])

__all__ = ["api_router"]
