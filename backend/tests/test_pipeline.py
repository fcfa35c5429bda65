from dataclasses import replace
from datetime import datetime, timezone

import pytest

from rebalance_advisor import (
    Asset,
    BalanceEntry,
    BalanceSnapshot,
    BalanceTotals,
    InputsSnapshot,
    PositionRecord,
    compute_operations,
)
from rebalance_advisor.config import EngineParameters


def _btc(capital: float = 1000.0, **overrides) -> Asset:
    fields = dict(
        id="btc",
        symbol="BTCUSDT",
        type="crypto",
        total_capital_when_last_added=capital,
        min_price_seven_year=20000.0,
        max_price_seven_year=40000.0,
    )
    fields.update(overrides)
    return Asset(**fields)


def _balances(usdt: float = 1000.0, reference: float = 0.0) -> BalanceSnapshot:
    return BalanceSnapshot(
        entries=(BalanceEntry(asset="USDT", total=usdt, value_in_reference=usdt),),
        totals=BalanceTotals(reference=reference),
    )


def test_btc_end_to_end_buy():
    snapshot = InputsSnapshot(
        assets=[_btc()],
        balances=_balances(),
        prices={"BTCUSDT": 30000.0},
    )
    result = compute_operations(snapshot, EngineParameters())

    assert len(result.operations) == 1
    operation = result.operations[0]
    assert operation.action == "buy"
    assert operation.allocation == pytest.approx(1000.0)
    assert operation.base_diff_usd == pytest.approx(500.0)
    assert operation.suggested_base_amount == pytest.approx(0.016667, abs=1e-6)
    assert operation.actual_quote_usd == pytest.approx(1000.0)
    assert result.band_updates == ()
    assert result.skipped == {}


def test_missing_price_skips_asset():
    snapshot = InputsSnapshot(assets=[_btc()], balances=_balances(), prices={"BTCUSDT": None})
    result = compute_operations(snapshot, EngineParameters())
    assert result.operations == ()
    assert result.skipped == {"BTCUSDT": "missing_price"}


@pytest.mark.parametrize("price", [float("nan"), float("inf")])
def test_non_finite_price_skips_asset(price):
    snapshot = InputsSnapshot(assets=[_btc()], balances=_balances(), prices={"BTCUSDT": price})
    result = compute_operations(snapshot, EngineParameters())
    assert result.operations == ()
    assert result.band_updates == ()
    assert result.skipped == {"BTCUSDT": "missing_price"}


def test_price_above_band_emits_band_update():
    snapshot = InputsSnapshot(assets=[_btc()], balances=_balances(), prices={"BTCUSDT": 45000.0})
    result = compute_operations(snapshot, EngineParameters())
    assert len(result.band_updates) == 1
    update = result.band_updates[0]
    assert update.asset_id == "btc"
    assert update.max_price_seven_year == 45000.0
    assert update.min_price_seven_year is None
    assert result.operations == ()


def test_allocation_shrinks_when_portfolio_below_designated_budget():
    eth = _btc(id="eth", symbol="ETHUSDT", min_price_seven_year=1000.0, max_price_seven_year=3000.0)
    snapshot = InputsSnapshot(
        assets=[_btc(), eth],
        balances=_balances(usdt=1500.0),
        prices={"BTCUSDT": 30000.0, "ETHUSDT": 2000.0},
    )
    result = compute_operations(snapshot, EngineParameters())
    assert {op.symbol for op in result.operations} == {"BTCUSDT", "ETHUSDT"}
    for operation in result.operations:
        assert operation.allocation == pytest.approx(750.0)
        assert operation.base_diff_usd == pytest.approx(375.0)


def test_corrupt_positions_are_ignored():
    records = [
        PositionRecord(id="bad", asset_id="btc", side="short", amount=0.0, open_value=10.0, open_price=35000.0),
        PositionRecord(id="closed", asset_id="btc", side="short", amount=0.01, open_value=350.0,
                       open_price=35000.0, status="closed"),
    ]
    snapshot = InputsSnapshot(
        assets=[_btc()], balances=_balances(), prices={"BTCUSDT": 30000.0}, positions=records
    )
    result = compute_operations(snapshot, EngineParameters())
    assert len(result.operations) == 1
    assert result.operations[0].closing_positions == ()


def test_open_short_is_closed_before_new_long():
    records = [
        PositionRecord(
            id="short-1",
            asset_id="btc",
            side="short",
            amount=0.01,
            open_value=350.0,
            open_price=35000.0,
            opened_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )
    ]
    snapshot = InputsSnapshot(
        assets=[_btc()], balances=_balances(), prices={"BTCUSDT": 30000.0}, positions=records
    )
    operation = compute_operations(snapshot, EngineParameters()).operations[0]
    assert [entry.id for entry in operation.closing_positions] == ["short-1"]
    assert operation.residual_base_amount == pytest.approx(0.00666667)


def test_stable_pair_is_sized_per_reference_price_scenario():
    usdt = Asset(
        id="usdt",
        symbol="USDTUSD",
        type="fiat",
        min_price_seven_year=0.9,
        max_price_seven_year=1.1,
    )
    snapshot = InputsSnapshot(
        assets=[usdt],
        balances=BalanceSnapshot(totals=BalanceTotals(reference=1000.0)),
        prices={},
        config_values={"PrecioCompraUSDT": 1.0, "lastPriceUsdtSell": 1.05},
    )
    result = compute_operations(snapshot, EngineParameters())

    assert [op.id for op in result.operations] == ["usdt-sell-sell"]
    operation = result.operations[0]
    assert operation.price == 1.05
    assert operation.price_label == "reference sell price"
    assert operation.buy_price == 1.0
    assert operation.sell_price == 1.05
    assert operation.usdt_usd_rate == pytest.approx(1.025)
    assert operation.allocation == pytest.approx(1000.0)
    assert operation.base_diff_usd == pytest.approx(-750.0)
    assert operation.suggested_fiat_value == pytest.approx(750.0)


def test_unlisted_fiat_assets_are_not_evaluated():
    eur = Asset(id="eur", symbol="EURUSD", type="fiat", total_capital_when_last_added=500.0)
    snapshot = InputsSnapshot(assets=[eur], balances=_balances(), prices={"EURUSD": 1.1})
    result = compute_operations(snapshot, EngineParameters())
    assert result.operations == ()
    assert result.skipped == {}


@pytest.mark.parametrize("usdt, allocation", [(1150.0, 1000.0), (1500.0, 1300.0)])
def test_surplus_is_spread_only_beyond_drift_buffer(usdt, allocation):
    snapshot = InputsSnapshot(
        assets=[_btc()], balances=_balances(usdt=usdt), prices={"BTCUSDT": 30000.0}
    )
    operation = compute_operations(snapshot, EngineParameters()).operations[0]
    assert operation.allocation == pytest.approx(allocation)
    assert operation.base_diff_usd == pytest.approx(allocation / 2)


@pytest.mark.parametrize("asset_type", ["stock", "commodity"])
def test_external_holding_is_valued_from_initial_investment(asset_type):
    holding = Asset(
        id="aapl",
        symbol="AAPL",
        type=asset_type,
        total_capital_when_last_added=1000.0,
        min_price_seven_year=100.0,
        max_price_seven_year=200.0,
        initial_investment=5.0,
    )
    snapshot = InputsSnapshot(
        assets=[holding],
        balances=BalanceSnapshot(totals=BalanceTotals(reference=250.0)),
        prices={"AAPL": 150.0},
    )
    result = compute_operations(snapshot, EngineParameters())

    assert [op.id for op in result.operations] == ["aapl-neutral-sell"]
    operation = result.operations[0]
    assert operation.quote_asset == "USD"
    assert operation.allocation == pytest.approx(1000.0)
    assert operation.actual_base_usd == pytest.approx(750.0)
    assert operation.actual_quote_usd == pytest.approx(250.0)
    assert operation.base_diff_usd == pytest.approx(-250.0)
    assert operation.suggested_base_amount == pytest.approx(1.66666667)
    assert operation.suggested_fiat_value == pytest.approx(250.0)


def test_secondary_fiat_pair_is_priced_from_fx_rate():
    pen = Asset(
        id="usdpen",
        symbol="USDPEN",
        type="fiat",
        min_price_seven_year=3.0,
        max_price_seven_year=5.0,
    )
    snapshot = InputsSnapshot(
        assets=[pen],
        balances=BalanceSnapshot(totals=BalanceTotals(reference=1000.0)),
        prices={},
        config_values={"totalPen": 2000},
        secondary_fx_rate=0.25,
    )
    result = compute_operations(snapshot, EngineParameters())

    assert [op.id for op in result.operations] == ["usdpen-neutral-sell"]
    operation = result.operations[0]
    assert operation.price == pytest.approx(4.0)
    assert operation.allocation == pytest.approx(1500.0)
    assert operation.actual_base_usd == pytest.approx(1000.0)
    assert operation.actual_quote_usd == pytest.approx(500.0)
    assert operation.base_diff_usd == pytest.approx(-250.0)
    assert operation.suggested_base_amount == pytest.approx(250.0)
    assert operation.suggested_fiat_value == pytest.approx(1000.0)
    assert operation.action_message == "Sell 250.000000 USD (~1000.00 PEN) for PEN."
    assert result.band_updates == ()

    without_fx = compute_operations(replace(snapshot, secondary_fx_rate=None), EngineParameters())
    assert without_fx.operations == ()
    assert without_fx.skipped == {"USDPEN": "missing_price"}
