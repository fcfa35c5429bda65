"""Price and FX discovery against public market-data endpoints."""

from __future__ import annotations

import logging
import math
from typing import Any
from urllib.parse import quote

import httpx

from rebalance_advisor.models import Asset
from rebalance_service.config import get_settings

logger = logging.getLogger(__name__)


def _positive_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


class MarketDataClient:
    """Fetch spot prices from Binance and Yahoo Finance, FX rates from open.er-api.

    Every lookup returns ``None`` when the upstream is unreachable or answers
    with something unusable; callers treat that as a missing price.
    """

    def __init__(
        self,
        *,
        binance_base_url: str | None = None,
        yahoo_base_url: str | None = None,
        fx_base_url: str | None = None,
        timeout_seconds: float | None = None,
        client: Any | None = None,
    ) -> None:
        settings = get_settings()
        self._binance_url = (binance_base_url or settings.binance_base_url).rstrip("/")
        self._yahoo_url = (yahoo_base_url or settings.yahoo_base_url).rstrip("/")
        self._fx_url = (fx_base_url or settings.fx_base_url).rstrip("/")
        self._timeout = timeout_seconds or settings.market_data_timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any | None:
        if self._client is None:
            self._client = httpx.AsyncClient()
        try:
            response = await self._client.get(url, params=params or {}, timeout=self._timeout)
        except httpx.HTTPError as exc:
            logger.warning("Market data request to %s failed: %s", url, exc)
            return None
        if response.status_code >= 400:
            logger.warning("Market data error %s for %s", response.status_code, url)
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Market data response from %s is not JSON", url)
            return None

    async def binance_price(self, symbol: str) -> float | None:
        payload = await self._get_json(
            f"{self._binance_url}/api/v3/ticker/price", {"symbol": symbol.upper()}
        )
        if not isinstance(payload, dict):
            return None
        return _positive_float(payload.get("price"))

    async def yahoo_price(self, symbol: str) -> float | None:
        """Return the regular market price from the Yahoo Finance chart endpoint."""

        payload = await self._get_json(
            f"{self._yahoo_url}/v8/finance/chart/{quote(symbol, safe='')}",
            {"interval": "1d", "range": "1mo"},
        )
        try:
            meta = payload["chart"]["result"][0]["meta"]
        except (KeyError, IndexError, TypeError):
            return None
        return _positive_float(meta.get("regularMarketPrice"))

    async def commodity_price(self, symbol: str) -> float | None:
        """Try the Yahoo ``=X`` quote first, then the Binance spot ticker."""

        yahoo_symbol = symbol if "=" in symbol else f"{symbol}=X"
        price = await self.yahoo_price(yahoo_symbol)
        if price is not None:
            return price
        return await self.binance_price(symbol)

    async def fx_rate(self, base: str, target: str) -> float | None:
        """Return how many units of ``target`` one unit of ``base`` buys."""

        payload = await self._get_json(f"{self._fx_url}/v6/latest/{base.upper()}")
        if not isinstance(payload, dict) or payload.get("result") != "success":
            return None
        rates = payload.get("rates") or {}
        return _positive_float(rates.get(target.upper()))

    async def asset_price(self, asset: Asset) -> float | None:
        """Dispatch a price lookup on the asset type; fiat pairs are priced by the engine."""

        kind = asset.type.lower()
        if kind == "crypto":
            return await self.binance_price(asset.symbol)
        if kind == "stock":
            return await self.yahoo_price(asset.symbol)
        if kind == "commodity":
            return await self.commodity_price(asset.symbol)
        return None

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = ["MarketDataClient"]
