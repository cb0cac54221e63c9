import json
from unittest.mock import patch

import requests

from uma_engine.market_rates import (
    FixedMarketRateProvider,
    HttpMarketRateProvider,
)


def _rates_response(rates: dict) -> str:
    return json.dumps({"data": {"currency": "BTC", "rates": rates}})


def test_fixed_rates() -> None:
    provider = FixedMarketRateProvider()
    assert provider.get_multipliers("BTC", ["USD", "EUR"]) == {"USD": 10_000}
    assert provider.get_multipliers("btc", ["SAT"]) == {"SAT": 1_000}
    assert provider.get_multipliers("DOGE", ["USD"]) == {}

    custom = FixedMarketRateProvider({"BTC": {"EUR": 11_000}})
    assert custom.get_multipliers("BTC", ["USD", "EUR"]) == {"EUR": 11_000}


def test_http_rates() -> None:
    provider = HttpMarketRateProvider("https://rates.example.com/v2/exchange-rates")
    with patch(
        "uma_engine.market_rates._run_http_get",
        return_value=_rates_response({"USD": "100000.00", "EUR": "80000", "MXN": "0"}),
    ) as mock_get:
        multipliers = provider.get_multipliers("BTC", ["USD", "EUR", "MXN", "GBP"])

    mock_get.assert_called_once_with(
        "https://rates.example.com/v2/exchange-rates", {"currency": "BTC"}, 5.0
    )
    # 1e11 msats per BTC / (100,000 USD * 100 cents)
    assert multipliers == {"USD": 10_000, "EUR": 12_500}


def test_http_rates_for_stablecoin() -> None:
    provider = HttpMarketRateProvider("https://rates.example.com")
    with patch(
        "uma_engine.market_rates._run_http_get",
        return_value=_rates_response({"USD": "1.0"}),
    ):
        assert provider.get_multipliers("USDT", ["USD"]) == {"USD": 10_000}


def test_http_rates_failure() -> None:
    provider = HttpMarketRateProvider("https://rates.example.com")
    with patch(
        "uma_engine.market_rates._run_http_get",
        side_effect=requests.ConnectionError("down"),
    ):
        assert provider.get_multipliers("BTC", ["USD"]) == {}

    with patch("uma_engine.market_rates._run_http_get", return_value="{}"):
        assert provider.get_multipliers("BTC", ["USD"]) == {}


def test_http_rates_unknown_asset() -> None:
    provider = HttpMarketRateProvider("https://rates.example.com")
    with patch("uma_engine.market_rates._run_http_get") as mock_get:
        assert provider.get_multipliers("DOGE", ["USD"]) == {}
    mock_get.assert_not_called()
