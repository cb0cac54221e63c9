from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class CurrencyConfig:
    code: str
    name: str
    symbol: str
    decimals: int


CURRENCIES: Mapping[str, CurrencyConfig] = MappingProxyType(
    {
        "USD": CurrencyConfig(code="USD", name="US Dollar", symbol="$", decimals=2),
        "EUR": CurrencyConfig(code="EUR", name="Euro", symbol="€", decimals=2),
        "GBP": CurrencyConfig(code="GBP", name="British Pound", symbol="£", decimals=2),
        "MXN": CurrencyConfig(code="MXN", name="Mexican Peso", symbol="$", decimals=2),
        "PHP": CurrencyConfig(code="PHP", name="Philippine Peso", symbol="₱", decimals=2),
        "BRL": CurrencyConfig(code="BRL", name="Brazilian Real", symbol="R$", decimals=2),
        "INR": CurrencyConfig(code="INR", name="Indian Rupee", symbol="₹", decimals=2),
        "NGN": CurrencyConfig(code="NGN", name="Nigerian Naira", symbol="₦", decimals=2),
        "KES": CurrencyConfig(code="KES", name="Kenyan Shilling", symbol="KSh", decimals=2),
        "BTC": CurrencyConfig(code="BTC", name="Bitcoin", symbol="₿", decimals=8),
        "SAT": CurrencyConfig(code="SAT", name="Satoshi", symbol="sat", decimals=0),
    }
)

# Smallest units per whole unit of each settlement asset. BTC settles in millisatoshis.
ASSET_UNITS_PER_WHOLE: Mapping[str, int] = MappingProxyType(
    {
        "BTC": 100_000_000_000,
        "USDT": 1_000_000,
        "USDC": 1_000_000,
    }
)
