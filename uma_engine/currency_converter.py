import logging
from typing import Dict, List, Optional

from uma_engine.exceptions import NoRateAvailableException
from uma_engine.market_rates import IMarketRateProvider

logger = logging.getLogger(__name__)


class CurrencyConverter:
    """
    Computes multipliers between a settlement asset and the currencies a receiver quotes in.
    A multiplier is the number of smallest units of the asset that equal one smallest unit of
    the currency (eg. msats per cent). Rates are time-sensitive and are never cached here.
    """

    def __init__(self, rate_provider: IMarketRateProvider) -> None:
        self._rate_provider = rate_provider

    def multipliers(self, asset: str, currencies: List[str]) -> Dict[str, int]:
        if not currencies:
            return {}
        rates = self._rate_provider.get_multipliers(asset, list(currencies))
        multipliers: Dict[str, int] = {}
        for code in currencies:
            multiplier = rates.get(code)
            if multiplier is None or multiplier <= 0:
                logger.warning("No multiplier available for %s in %s", asset, code)
                continue
            multipliers[code] = int(multiplier)
        return multipliers

    def require_multiplier(self, asset: str, currency_code: str) -> int:
        multiplier = self.multipliers(asset, [currency_code]).get(currency_code)
        if multiplier is None:
            raise NoRateAvailableException(asset, currency_code)
        return multiplier


def convert(amount: int, multiplier: Optional[int], fee: int = 0) -> int:
    """
    Converts an amount in smallest units of the settlement asset into smallest units of the
    currency: (amount - fee) / multiplier, truncated toward zero. The receiver is under-credited
    rather than over-credited on rounding.

    Args:
        amount: the amount in smallest units of the settlement asset (eg. msats).
        multiplier: smallest units of the asset per smallest unit of the currency.
        fee: fees charged by the receiver, in smallest units of the asset.
    """
    if multiplier is None or multiplier <= 0:
        raise NoRateAvailableException("settlement asset", "requested currency")
    numerator = int(amount) - int(fee)
    quotient = abs(numerator) // int(multiplier)
    return quotient if numerator >= 0 else -quotient
