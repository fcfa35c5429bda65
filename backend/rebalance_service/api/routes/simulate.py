"""What-if simulation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from rebalance_advisor import simulate
from rebalance_service.api.dependencies import get_coordinator
from rebalance_service.config import get_settings
from rebalance_service.schemas import OperationSchema, SimulationRequest, SimulationResponse
from rebalance_service.services.refresh import RefreshCoordinator

router = APIRouter()


@router.post("", response_model=SimulationResponse)
async def simulate_operation(
    request: SimulationRequest,
    coordinator: RefreshCoordinator = Depends(get_coordinator),
) -> SimulationResponse:
    """Re-evaluate a previously suggested operation under an override price."""

    operation = coordinator.find_operation(request.operation_id)
    if operation is None:
        raise HTTPException(status_code=404, detail=f"Unknown operation {request.operation_id}")
    result = simulate(operation, request.price, get_settings().engine_parameters())
    return SimulationResponse(
        status=result.status,
        reason=result.reason,
        operation=OperationSchema.from_operation(result.operation) if result.operation else None,
    )


__all__ = ["simulate_operation"]
