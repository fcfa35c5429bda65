"""Suggested operations endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from rebalance_advisor.trades import TradeRecordError
from rebalance_service.api.dependencies import get_coordinator, get_market_data, get_store
from rebalance_service.providers.market_data import MarketDataClient
from rebalance_service.providers.portfolio_store import PortfolioStoreClient, PortfolioStoreError
from rebalance_service.schemas import (
    BandUpdateSchema,
    OperationSchema,
    OperationsResponse,
    RefreshResponse,
    TradeRecordRequest,
    TradeRecordResponse,
)
from rebalance_service.services.recording import record_operation
from rebalance_service.services.refresh import RefreshCoordinator, RefreshOutcome

router = APIRouter()


def _to_response(outcome: RefreshOutcome | None) -> OperationsResponse:
    if outcome is None:
        return OperationsResponse()
    result = outcome.result
    return OperationsResponse(
        refreshed_at=outcome.refreshed_at,
        operations=[OperationSchema.from_operation(op) for op in result.operations],
        band_updates=[BandUpdateSchema.from_update(update) for update in result.band_updates],
        rejected_band_updates=list(outcome.rejected_band_updates),
        skipped=dict(result.skipped),
    )


async def _run_refresh(coordinator: RefreshCoordinator) -> RefreshOutcome | None:
    try:
        return await coordinator.refresh()
    except PortfolioStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("", response_model=OperationsResponse)
async def list_operations(
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> OperationsResponse:
    """Return the latest operations, refreshing first when none were computed yet."""

    if coordinator.latest is None:
        await _run_refresh(coordinator)
    return _to_response(coordinator.latest)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_operations(
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> RefreshResponse:
    """Trigger a refresh cycle; ignored while another one is running."""

    outcome = await _run_refresh(coordinator)
    if outcome is None:
        return RefreshResponse(started=False, result=_to_response(coordinator.latest))
    return RefreshResponse(started=True, result=_to_response(outcome))


@router.post("/{operation_id}/record", response_model=TradeRecordResponse)
async def record_executed_operation(
    operation_id: str,
    request: TradeRecordRequest,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
    store: PortfolioStoreClient = Depends(get_store),
    market_data: MarketDataClient = Depends(get_market_data),
) -> TradeRecordResponse:
    """Record an executed operation as closings plus an optional new position."""

    operation = coordinator.find_operation(operation_id)
    if operation is None or coordinator.latest is None:
        raise HTTPException(status_code=404, detail=f"Unknown operation {operation_id}")
    try:
        plan = await record_operation(
            operation,
            store,
            market_data,
            rates=coordinator.latest.result.rates,
            executed_price=request.executed_price,
            executed_amount=request.executed_amount,
            open_fee=request.open_fee,
            fee_currency=request.fee_currency,
            close_fee=request.close_fee,
            opened_at=request.opened_at,
        )
    except TradeRecordError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PortfolioStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return TradeRecordResponse.from_plan(plan)


__all__ = ["list_operations", "record_executed_operation", "refresh_operations"]
