"""Document store client tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from rebalance_advisor.models import BandUpdate
from rebalance_advisor.trades import ClosingRecord, NewPosition
from rebalance_service.providers.portfolio_store import (
    PortfolioStoreClient,
    PortfolioStoreError,
    parse_asset,
    parse_balances,
    parse_config_values,
    parse_position,
)


class StubResponse:
    def __init__(self, payload: object, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def json(self) -> object:
        return self._payload


class StubClient:
    def __init__(self, response: StubResponse | None = None) -> None:
        self.response = response or StubResponse({})
        self.calls: list[dict[str, object]] = []

    async def request(self, method, url, json=None, headers=None, timeout=None) -> StubResponse:
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers})
        return self.response

    async def aclose(self) -> None:  # pragma: no cover - included for interface completeness
        return None


def _store(response: StubResponse | None = None) -> PortfolioStoreClient:
    return PortfolioStoreClient(
        base_url="http://store.test/api/",
        token="secret",
        timeout_seconds=1.0,
        client=StubClient(response),
    )


def test_parse_asset_maps_document_fields():
    asset = parse_asset(
        {
            "_id": "a1",
            "symbol": "btcusdt",
            "type": "Crypto",
            "totalCapitalWhenLastAdded": 1000,
            "minPriceSevenYear": 20000,
            "maxPriceSevenYear": "40000",
            "slope": -12.5,
            "exchange": {"_id": "ex1", "name": "Binance"},
            "initialInvestment": {"USD": 250},
        }
    )
    assert asset is not None
    assert asset.symbol == "BTCUSDT"
    assert asset.type == "crypto"
    assert asset.max_price_seven_year == 40000.0
    assert asset.exchange_id == "ex1"
    assert asset.exchange_name == "Binance"
    assert asset.initial_investment == 250.0
    assert parse_asset({"symbol": "ETHUSDT"}) is None


def test_parse_position_reads_dates_and_asset_reference():
    record = parse_position(
        {
            "_id": "t1",
            "asset": {"_id": "a1"},
            "type": "Long",
            "amount": 0.5,
            "openValueFiat": 15000,
            "openPrice": 30000,
            "openDate": "2024-03-01T10:00:00Z",
            "status": "open",
        }
    )
    assert record is not None
    assert record.asset_id == "a1"
    assert record.side == "long"
    assert record.opened_at == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert record.created_at is None
    assert parse_position({"_id": "t2"}) is None


def test_parse_balances_and_config_values():
    snapshot = parse_balances(
        {
            "balances": [{"asset": "usdt", "total": 120.5, "usdValue": 120.5}, {"total": 3}],
            "totals": {"usd": 800, "pen": 370},
        }
    )
    assert [entry.asset for entry in snapshot.entries] == ["USDT"]
    assert snapshot.totals.reference == 800.0
    assert snapshot.totals.secondary_fiat == 370.0

    values = parse_config_values(
        [{"name": "PrecioCompraUSDT", "total": 1.01}, {"name": "broken", "total": "x"}, {"total": 1}]
    )
    assert values == {"PrecioCompraUSDT": 1.01}


@pytest.mark.asyncio
async def test_requests_carry_bearer_token():
    store = _store(StubResponse([{"_id": "a1", "symbol": "BTCUSDT", "type": "crypto"}]))
    assets = await store.list_assets()
    assert [asset.id for asset in assets] == ["a1"]
    call = store._client.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "http://store.test/api/assets"
    assert call["headers"]["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_error_status_raises_store_error():
    store = _store(StubResponse({"message": "asset not found"}, status_code=404))
    with pytest.raises(PortfolioStoreError) as excinfo:
        await store.update_asset_band(BandUpdate(asset_id="a1", max_price_seven_year=45000.0))
    assert excinfo.value.status_code == 404
    assert "asset not found" in str(excinfo.value)


@pytest.mark.asyncio
async def test_band_update_sends_only_widened_bound():
    store = _store()
    await store.update_asset_band(BandUpdate(asset_id="a1", min_price_seven_year=15000.0))
    call = store._client.calls[0]
    assert (call["method"], call["url"]) == ("PUT", "http://store.test/api/assets/a1")
    assert call["json"] == {"minPriceSevenYear": 15000.0}

    await store.update_asset_band(BandUpdate(asset_id="a1"))
    assert len(store._client.calls) == 1


@pytest.mark.asyncio
async def test_transaction_writes():
    store = _store()
    when = datetime(2024, 6, 1, tzinfo=timezone.utc)
    await store.close_transaction(
        ClosingRecord(position_id="t1", amount=1.0, close_value=180.0, close_price=180.0, close_fee=0.5),
        when,
    )
    await store.create_transaction(
        NewPosition(
            asset_id="a1",
            side="short",
            fiat_currency="USDT",
            opened_at=when,
            open_price=180.0,
            amount=0.5,
            open_value=90.0,
            open_fee=0.1,
        )
    )
    close_call, create_call = store._client.calls
    assert close_call["url"].endswith("/transactions/t1/close")
    assert close_call["json"]["closeFee"] == 0.5
    assert close_call["json"]["closeDate"] == when.isoformat()
    assert create_call["method"] == "POST"
    assert create_call["json"]["type"] == "short"
    assert create_call["json"]["openValueFiat"] == 90.0
