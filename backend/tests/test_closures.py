from datetime import datetime, timezone

import pytest

from rebalance_advisor.closures import order_candidates, plan_closures
from rebalance_advisor.models import OpenPosition


def _position(position_id: str, open_price: float, day: int, amount: float = 1.0, fee: float = 0.0) -> OpenPosition:
    return OpenPosition(
        id=position_id,
        amount=amount,
        open_value=open_price * amount,
        open_price=open_price,
        open_fee=fee,
        opened_at=datetime(2024, 1, day, tzinfo=timezone.utc),
    )


def _ladder():
    return [
        _position("p100", 100.0, 1),
        _position("p105", 105.0, 2),
        _position("p110", 110.0, 3),
    ]


def test_candidates_ordered_by_distance_to_current_price():
    ordered = order_candidates(_ladder(), 108.0)
    assert [p.id for p in ordered] == ["p110", "p105", "p100"]


def test_distance_ties_keep_oldest_first():
    positions = [_position("late", 110.0, 5), _position("early", 106.0, 1)]
    ordered = order_candidates(positions, 108.0)
    assert [p.id for p in ordered] == ["early", "late"]


def test_buy_closure_picks_nearest_profitable_short_first():
    plan = plan_closures(1.0, _ladder(), 108.0, "buy", quote_asset="USDT")
    assert plan is not None
    assert [entry.id for entry in plan.entries] == ["p110"]
    assert plan.entries[0].profit == pytest.approx(2.0)
    assert plan.base_used == pytest.approx(1.0)
    assert plan.quote_used == pytest.approx(108.0)


def test_sell_closure_skips_losing_long_then_fills_residual_fifo():
    plan = plan_closures(2.5, _ladder(), 108.0, "sell", quote_asset="USDT")
    assert plan is not None
    assert [entry.id for entry in plan.entries] == ["p105", "p100", "p110"]
    amounts = [entry.amount for entry in plan.entries]
    assert amounts == pytest.approx([1.0, 1.0, 0.5])
    assert plan.entries[2].profit == pytest.approx(-1.0)
    assert plan.base_used == pytest.approx(2.5)
    assert plan.quote_used == pytest.approx(270.0)


def test_residual_pass_stops_at_requested_amount():
    plan = plan_closures(1.5, _ladder(), 108.0, "sell", quote_asset="USDT")
    assert plan is not None
    assert [entry.id for entry in plan.entries] == ["p105", "p100"]
    assert plan.entries[1].amount == pytest.approx(0.5)
    assert plan.base_used == pytest.approx(1.5)


def test_no_plan_when_nothing_is_profitable():
    positions = [_position("high", 120.0, 1), _position("higher", 130.0, 2)]
    assert plan_closures(1.0, positions, 108.0, "sell") is None


def test_open_fee_counts_against_profit():
    position = _position("fee", 100.0, 1, fee=10.0)
    assert plan_closures(1.0, [position], 105.0, "sell") is None
    assert plan_closures(1.0, [position], 111.0, "sell") is not None


def test_partial_slice_profit_is_pro_rata():
    position = _position("big", 100.0, 1, amount=2.0, fee=2.0)
    plan = plan_closures(0.5, [position], 120.0, "sell", quote_asset="USDT")
    assert plan is not None
    entry = plan.entries[0]
    assert entry.amount == pytest.approx(0.5)
    assert entry.close_value == pytest.approx(60.0)
    assert entry.profit == pytest.approx(60.0 - (50.0 + 0.5))


def test_empty_or_tiny_requests_produce_no_plan():
    assert plan_closures(1.0, [], 108.0, "sell") is None
    assert plan_closures(1e-9, _ladder(), 108.0, "buy") is None


def test_quote_values_rounded_to_quote_precision():
    position = _position("usd", 100.0, 1, amount=1.0)
    plan = plan_closures(0.3333333, [position], 150.123456, "sell", quote_asset="USD")
    assert plan is not None
    assert plan.entries[0].close_value == round(0.3333333 * 150.123456, 3)
