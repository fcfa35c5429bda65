"""HTTP client for the document store holding assets, transactions and config values."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

import httpx
from opentelemetry.propagate import inject

from rebalance_advisor.models import (
    Asset,
    BalanceEntry,
    BalanceSnapshot,
    BalanceTotals,
    BandUpdate,
    PositionRecord,
)
from rebalance_advisor.trades import ClosingRecord, NewPosition
from rebalance_service.config import get_settings

logger = logging.getLogger(__name__)


class PortfolioStoreError(RuntimeError):
    """Raised when the document store rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _number(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _reference_id(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        ref = value.get("_id") or value.get("id")
        return str(ref) if ref else None
    return None


def _initial_investment(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, dict):
        for key in ("USD", "amount"):
            if isinstance(value.get(key), (int, float)):
                return float(value[key])
    return None


def parse_asset(item: dict[str, Any]) -> Asset | None:
    """Map an asset document onto :class:`Asset`; ``None`` when unusable."""

    asset_id = item.get("_id") or item.get("id")
    symbol = str(item.get("symbol") or "").strip().upper()
    if not asset_id or not symbol:
        return None
    exchange = item.get("exchange")
    exchange_name = item.get("exchangeName")
    if not isinstance(exchange_name, str):
        exchange_name = exchange.get("name") if isinstance(exchange, dict) else None
    return Asset(
        id=str(asset_id),
        symbol=symbol,
        type=str(item.get("type") or "crypto").lower(),
        total_capital_when_last_added=_number(item.get("totalCapitalWhenLastAdded")),
        min_price_seven_year=_number(item.get("minPriceSevenYear")),
        max_price_seven_year=_number(item.get("maxPriceSevenYear")),
        slope=_number(item.get("slope")),
        exchange_id=_reference_id(exchange),
        exchange_name=exchange_name,
        initial_investment=_initial_investment(item.get("initialInvestment")),
    )


def parse_position(item: dict[str, Any]) -> PositionRecord | None:
    tx_id = item.get("_id") or item.get("id")
    asset_id = _reference_id(item.get("asset"))
    if not tx_id or not asset_id:
        return None
    return PositionRecord(
        id=str(tx_id),
        asset_id=asset_id,
        side=str(item.get("type") or "").lower(),
        amount=_number(item.get("amount")),
        open_value=_number(item.get("openValueFiat")),
        open_price=_number(item.get("openPrice")),
        open_fee=_number(item.get("openFee")),
        opened_at=_parse_datetime(item.get("openDate")),
        created_at=_parse_datetime(item.get("createdAt")),
        status=str(item.get("status") or "open").lower(),
    )


def parse_balances(payload: Any) -> BalanceSnapshot:
    if not isinstance(payload, dict):
        return BalanceSnapshot()
    entries = []
    for item in payload.get("balances") or []:
        if not isinstance(item, dict) or not item.get("asset"):
            continue
        entries.append(
            BalanceEntry(
                asset=str(item["asset"]).upper(),
                total=_number(item.get("total")),
                value_in_reference=_number(item.get("usdValue")),
            )
        )
    totals = payload.get("totals") or {}
    return BalanceSnapshot(
        entries=tuple(entries),
        totals=BalanceTotals(
            reference=_number(totals.get("usd")),
            secondary_fiat=_number(totals.get("pen")),
        ),
    )


def parse_config_values(payload: Any) -> dict[str, float]:
    values: dict[str, float] = {}
    if not isinstance(payload, list):
        return values
    for item in payload:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        total = item.get("total")
        if isinstance(total, (int, float)) and not isinstance(total, bool) and math.isfinite(total):
            values[str(item["name"])] = float(total)
    return values


class PortfolioStoreClient:
    """Thin REST client over the document store."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float | None = None,
        client: Any | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.store_api_url).rstrip("/")
        self._token = token if token is not None else settings.store_api_token
        self._timeout = timeout_seconds or settings.store_timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def _request(self, method: str, path: str, json: Any | None = None) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient()
        url = f"{self._base_url}{path}"
        headers: dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        inject(headers)
        try:
            response = await self._client.request(
                method, url, json=json, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise PortfolioStoreError(f"Failed to reach document store: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Document store error %s for %s %s", response.status_code, method, url)
            detail: Any
            try:
                payload = response.json()
                detail = payload.get("message", payload) if isinstance(payload, dict) else payload
            except ValueError:
                detail = response.text
            raise PortfolioStoreError(
                f"Document store error {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise PortfolioStoreError("Document store returned invalid JSON payload") from exc

    async def list_assets(self) -> list[Asset]:
        payload = await self._request("GET", "/assets")
        items = payload if isinstance(payload, list) else []
        assets = [parse_asset(item) for item in items if isinstance(item, dict)]
        return [asset for asset in assets if asset is not None]

    async def list_transactions(self) -> list[PositionRecord]:
        payload = await self._request("GET", "/transactions")
        items = payload if isinstance(payload, list) else []
        records = [parse_position(item) for item in items if isinstance(item, dict)]
        return [record for record in records if record is not None]

    async def list_config_values(self) -> dict[str, float]:
        return parse_config_values(await self._request("GET", "/config-info"))

    async def fetch_balances(self) -> BalanceSnapshot:
        return parse_balances(await self._request("GET", "/binance/balances"))

    async def update_asset_band(self, update: BandUpdate) -> None:
        body: dict[str, float] = {}
        if update.min_price_seven_year is not None:
            body["minPriceSevenYear"] = update.min_price_seven_year
        if update.max_price_seven_year is not None:
            body["maxPriceSevenYear"] = update.max_price_seven_year
        if body:
            await self._request("PUT", f"/assets/{update.asset_id}", json=body)

    async def close_transaction(self, closing: ClosingRecord, closed_at: datetime) -> Any:
        return await self._request(
            "PUT",
            f"/transactions/{closing.position_id}/close",
            json={
                "closeDate": closed_at.isoformat(),
                "closePrice": closing.close_price,
                "closeValueFiat": closing.close_value,
                "closeFee": closing.close_fee,
            },
        )

    async def create_transaction(self, position: NewPosition) -> Any:
        return await self._request(
            "POST",
            "/transactions",
            json={
                "asset": position.asset_id,
                "type": position.side,
                "fiatCurrency": position.fiat_currency,
                "openDate": position.opened_at.isoformat(),
                "openPrice": position.open_price,
                "amount": position.amount,
                "openValueFiat": position.open_value,
                "openFee": position.open_fee,
            },
        )

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = [
    "PortfolioStoreClient",
    "PortfolioStoreError",
    "parse_asset",
    "parse_balances",
    "parse_config_values",
    "parse_position",
]
