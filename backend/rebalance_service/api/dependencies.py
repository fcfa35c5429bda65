"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from rebalance_service.config import get_settings
from rebalance_service.providers.market_data import MarketDataClient
from rebalance_service.providers.portfolio_store import PortfolioStoreClient
from rebalance_service.services.refresh import RefreshCoordinator


@lru_cache(maxsize=1)
def get_store() -> PortfolioStoreClient:
    return PortfolioStoreClient()


@lru_cache(maxsize=1)
def get_market_data() -> MarketDataClient:
    return MarketDataClient()


@lru_cache(maxsize=1)
def get_coordinator() -> RefreshCoordinator:
    """Return the process-wide refresh coordinator."""

    settings = get_settings()
    return RefreshCoordinator(
        get_store(),
        get_market_data(),
        parameters=settings.engine_parameters(),
        secondary_currency=settings.secondary_currency,
    )


__all__ = ["get_coordinator", "get_market_data", "get_store"]
