"""Application configuration and environment helpers."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rebalance_advisor.config import (
    DEFAULT_DRIFT_BUFFER_USD,
    DEFAULT_MIN_ORDER_USD,
    EngineParameters,
)

DEFAULT_BASE_CURRENCY = "USD"


class AppSettings(BaseSettings):
    """Configuration options for the rebalance advisor service."""

    app_name: str = Field(default="Rebalance Advisor")
    base_currency: str = Field(default=DEFAULT_BASE_CURRENCY)
    log_level: str = Field(default="INFO")

    store_api_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the document store REST API (assets, transactions, config).",
    )
    store_api_token: str | None = Field(
        default=None,
        description="Optional bearer token sent to the document store.",
    )
    store_timeout_seconds: float = Field(default=15.0)

    binance_base_url: str = Field(default="https://api.binance.com")
    yahoo_base_url: str = Field(default="https://query1.finance.yahoo.com")
    fx_base_url: str = Field(default="https://open.er-api.com")
    market_data_timeout_seconds: float = Field(default=10.0)
    secondary_currency: str = Field(default="PEN")
    cors_origin_regex: str = Field(
        default=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        description="Origins allowed to call the API from a browser.",
    )

    min_order_usd: float = Field(
        default=DEFAULT_MIN_ORDER_USD,
        ge=0.0,
        description="Operations smaller than this reference-currency value are suppressed.",
    )
    relative_tolerance: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Optional suppression threshold as a fraction of the allocation.",
    )
    drift_buffer_usd: float = Field(
        default=DEFAULT_DRIFT_BUFFER_USD,
        ge=0.0,
        description="Portfolio surplus kept unallocated before budgets are raised.",
    )

    telemetry_enabled: bool = Field(default=False)
    telemetry_service_name: str = Field(default="rebalance-advisor")
    telemetry_otlp_endpoint: str | None = Field(default=None)
    telemetry_otlp_insecure: bool = Field(default=True)
    telemetry_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    def engine_parameters(self) -> EngineParameters:
        """Return the engine thresholds configured for this service."""

        return EngineParameters(
            min_order_usd=self.min_order_usd,
            relative_tolerance=self.relative_tolerance,
            drift_buffer_usd=self.drift_buffer_usd,
        )

    def dict_for_logging(self) -> dict[str, Any]:
        """Return a sanitized dict for logging purposes."""

        hidden = {"store_api_token"}
        return {k: ("***" if k in hidden else v) for k, v in self.model_dump().items()}


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> AppSettings:
    """Return cached application settings with optional overrides."""

    if overrides:
        return AppSettings(**overrides)
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_BASE_CURRENCY",
    "get_settings",
]
