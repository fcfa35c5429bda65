import pytest

from rebalance_advisor.fx import resolve_reference_rates
from rebalance_advisor.holdings import build_balance_map, resolve_holding
from rebalance_advisor.models import BalanceEntry, BalanceTotals
from rebalance_advisor.symbols import format_quote_value, split_symbol


def _balances():
    return build_balance_map(
        [
            BalanceEntry(asset="btc", total=0.1, value_in_reference=3000.0),
            BalanceEntry(asset="USDT", total=250.0, value_in_reference=250.0),
        ]
    )


def test_fiat_holdings_read_totals():
    totals = BalanceTotals(reference=1200.0, secondary_fiat=370.0)
    usd = resolve_holding("USD", _balances(), totals, 0.27, 1.0)
    pen = resolve_holding("pen", _balances(), totals, 0.27, 1.0)
    assert (usd.amount, usd.value_in_reference) == (1200.0, 1200.0)
    assert pen.amount == 370.0
    assert pen.value_in_reference == pytest.approx(99.9)


def test_stablecoin_prefers_exchange_balance():
    holding = resolve_holding("USDT", _balances(), BalanceTotals(reference=500.0), None, 1.05)
    assert holding.amount == 250.0


def test_stablecoin_falls_back_to_reference_total():
    holding = resolve_holding("USDT", {}, BalanceTotals(reference=1050.0), None, 1.05)
    assert holding.amount == pytest.approx(1000.0)
    assert holding.value_in_reference == pytest.approx(1050.0)


def test_crypto_uses_balance_or_fallback():
    totals = BalanceTotals()
    assert resolve_holding("BTC", _balances(), totals, None, 1.0).value_in_reference == 3000.0
    missing = resolve_holding("AAPL", _balances(), totals, None, 1.0, fallback_value=420.0)
    assert (missing.amount, missing.value_in_reference) == (0.0, 420.0)


def test_reference_rates_from_config_values():
    rates = resolve_reference_rates({"lastPriceUsdtBuy": "0.98", "PrecioVentaUSDT": 1.02}, 0.27)
    assert rates.usdt_buy_price == 0.98
    assert rates.usdt_sell_price == 1.02
    assert rates.usdt_usd_rate == pytest.approx(1.0)
    assert rates.rate("PEN") == 0.27
    assert rates.rate("USD") == 1.0


def test_reference_rates_defaults_and_missing_fx():
    rates = resolve_reference_rates({"PrecioCompraUSDT": "n/a"})
    assert rates.usdt_buy_price == 1.0
    assert rates.usdt_sell_price == 1.0
    with pytest.raises(KeyError):
        rates.rate("PEN")


@pytest.mark.parametrize(
    "symbol, expected",
    [
        ("BTCUSDT", ("BTC", "USDT")),
        ("ETHBTC", ("ETH", "BTC")),
        ("USDTUSD", ("USDT", "USD")),
        ("USDPEN", ("USD", "PEN")),
        ("AAPL", ("AAPL", "USD")),
    ],
)
def test_split_symbol(symbol, expected):
    assert split_symbol(symbol) == expected


def test_quote_value_formatting():
    assert format_quote_value(12.5, "USD") == "$12.500"
    assert format_quote_value(12.5, "USDT") == "12.50000000 USDT"
    assert format_quote_value(0.25, "BTC") == "0.25 BTC"
