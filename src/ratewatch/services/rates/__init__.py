"""Currency rate and crypto price providers."""

from .base import CryptoPriceProvider, CurrencyRateProvider, HttpJsonProvider, Quote
from .crypto import BINANCE_SYMBOLS, BinancePriceProvider, CoinGeckoPriceProvider
from .currency import HexarateRateProvider, YahooFinanceRateProvider
from .providers import (
    RateProviders,
    create_rate_providers,
    get_crypto_provider,
    get_currency_provider,
)

__all__ = [
    "BINANCE_SYMBOLS",
    "BinancePriceProvider",
    "CoinGeckoPriceProvider",
    "CryptoPriceProvider",
    "CurrencyRateProvider",
    "HexarateRateProvider",
    "HttpJsonProvider",
    "Quote",
    "RateProviders",
    "YahooFinanceRateProvider",
    "create_rate_providers",
    "get_crypto_provider",
    "get_currency_provider",
]
