"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rebalance_service.api.dependencies import get_coordinator, get_market_data, get_store
from rebalance_service.api.routes import api_router
from rebalance_service.config import AppSettings, get_settings
from rebalance_service.core.logging import setup_logging
from rebalance_service.core.telemetry import setup_telemetry, shutdown_telemetry
from rebalance_service.services.refresh import RefreshCoordinator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Release pooled outbound connections and flush telemetry on shutdown."""

    yield
    await get_store().aclose()
    await get_market_data().aclose()
    shutdown_telemetry()


async def health(coordinator: RefreshCoordinator = Depends(get_coordinator)) -> dict[str, Any]:
    """Report liveness plus the age of the cached operations."""

    latest = coordinator.latest
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "base_currency": get_settings().base_currency,
        "last_refresh": latest.refreshed_at.isoformat() if latest else None,
        "operations": len(latest.operations) if latest else 0,
    }


def configure_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the service: logging, telemetry, CORS and routes."""

    settings = settings or get_settings()
    setup_logging(settings.log_level)
    application = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    setup_telemetry(application, settings)
    logger.info("Starting with settings %s", settings.dict_for_logging())

    application.add_middleware(
        CORSMiddleware,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["traceparent", "tracestate"],
    )
    application.add_api_route("/health", health, methods=["GET"], tags=["health"])
    application.include_router(api_router)
    return application


app = configure_app()

__all__ = ["app", "configure_app"]
