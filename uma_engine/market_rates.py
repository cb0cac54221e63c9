import json
import logging
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Mapping, Optional

import requests

from uma_engine.currencies import ASSET_UNITS_PER_WHOLE, CURRENCIES

logger = logging.getLogger(__name__)


class IMarketRateProvider(ABC):
    @abstractmethod
    def get_multipliers(self, asset: str, currencies: List[str]) -> Dict[str, int]:
        """
        Returns, for each currency code it can price, the number of smallest units of `asset`
        that equal one smallest unit of the currency. Currencies it cannot price are left out.

        Args:
            asset: the settlement asset, e.g. BTC (priced in msats) or USDT.
            currencies: the currency codes to price.
        """


# Multipliers assuming 1 BTC = $100,000 and 1 USDT = $1.
DEFAULT_FIXED_MULTIPLIERS: Mapping[str, Mapping[str, int]] = {
    # msats per cent, msats per sat
    "BTC": {"USD": 10_000, "SAT": 1_000},
    # micro-USDT per cent, micro-USDT per sat
    "USDT": {"USD": 10_000, "SAT": 1_000},
}


class FixedMarketRateProvider(IMarketRateProvider):
    """
    Serves multipliers from a static table. Useful for development and tests where live rates
    are not wanted.
    """

    def __init__(
        self, multipliers: Optional[Mapping[str, Mapping[str, int]]] = None
    ) -> None:
        source = DEFAULT_FIXED_MULTIPLIERS if multipliers is None else multipliers
        self._multipliers = {
            asset.upper(): dict(rates) for asset, rates in source.items()
        }

    def get_multipliers(self, asset: str, currencies: List[str]) -> Dict[str, int]:
        rates = self._multipliers.get(asset.upper(), {})
        return {code: rates[code] for code in currencies if code in rates}


class HttpMarketRateProvider(IMarketRateProvider):
    """
    Fetches exchange rates over HTTP. The endpoint is queried with `?currency=<ASSET>` and must
    answer in the shape `{"data": {"rates": {"USD": "101234.56", ...}}}`, where each rate is
    the price of one whole unit of the asset in that currency.
    """

    def __init__(self, url: str, timeout_seconds: float = 5.0) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds

    def get_multipliers(self, asset: str, currencies: List[str]) -> Dict[str, int]:
        units_per_whole = ASSET_UNITS_PER_WHOLE.get(asset.upper())
        if units_per_whole is None:
            logger.warning("No unit definition for asset %s", asset)
            return {}
        try:
            rates = self._fetch_rates(asset.upper())
        except (requests.RequestException, ValueError, KeyError) as ex:
            logger.warning("Unable to fetch market rates for %s: %s", asset, ex)
            return {}

        multipliers: Dict[str, int] = {}
        for code in currencies:
            multiplier = _multiplier_from_price(
                units_per_whole, rates.get(code), code
            )
            if multiplier is not None:
                multipliers[code] = multiplier
        return multipliers

    def _fetch_rates(self, asset: str) -> Dict[str, str]:
        response = _run_http_get(self._url, {"currency": asset}, self._timeout_seconds)
        return json.loads(response)["data"]["rates"]


def _multiplier_from_price(
    asset_units_per_whole: int, price: Optional[str], currency_code: str
) -> Optional[int]:
    currency = CURRENCIES.get(currency_code)
    if price is None or currency is None:
        return None
    try:
        whole_price = Decimal(str(price))
    except InvalidOperation:
        return None
    if whole_price <= 0:
        return None
    currency_units = whole_price * (Decimal(10) ** currency.decimals)
    multiplier = (Decimal(asset_units_per_whole) / currency_units).to_integral_value(
        rounding=ROUND_HALF_UP
    )
    return int(multiplier) if multiplier > 0 else None


def _run_http_get(url: str, params: Dict[str, str], timeout_seconds: float) -> str:
    session = requests.session()
    try:
        response = session.get(url=url, params=params, timeout=timeout_seconds)
        response.raise_for_status()
        return response.text
    finally:
        session.close()
