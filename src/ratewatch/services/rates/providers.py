"""Provider selection and per-alert value resolution."""

from dataclasses import dataclass

from ...config.settings import Settings
from ...models import Alert, AlertKind
from .base import CryptoPriceProvider, CurrencyRateProvider, Quote
from .crypto import BinancePriceProvider, CoinGeckoPriceProvider
from .currency import HexarateRateProvider, YahooFinanceRateProvider

CURRENCY_PROVIDERS = {
    "hexarate": HexarateRateProvider,
    "yahoo": YahooFinanceRateProvider,
}

CRYPTO_PROVIDERS = {
    "coingecko": CoinGeckoPriceProvider,
    "binance": BinancePriceProvider,
}


def get_currency_provider(provider_id: str, **kwargs) -> CurrencyRateProvider:
    """Instantiate a currency rate backend by id."""
    try:
        provider_class = CURRENCY_PROVIDERS[provider_id.lower()]
    except KeyError:
        raise ValueError(f"Unknown currency provider: {provider_id}") from None
    return provider_class(**kwargs)


def get_crypto_provider(provider_id: str, **kwargs) -> CryptoPriceProvider:
    """Instantiate a crypto price backend by id."""
    try:
        provider_class = CRYPTO_PROVIDERS[provider_id.lower()]
    except KeyError:
        raise ValueError(f"Unknown crypto provider: {provider_id}") from None
    return provider_class(**kwargs)


@dataclass
class RateProviders:
    """The pair of providers an alert pass reads from."""

    currency: CurrencyRateProvider
    crypto: CryptoPriceProvider

    async def fetch_for(self, alert: Alert) -> Quote:
        """Resolve the current value an alert is compared against."""
        if alert.kind == AlertKind.CRYPTO:
            return await self.crypto.fetch_price(alert.crypto_id)
        return await self.currency.fetch_rate(
            alert.base_currency, alert.target_currency
        )


def create_rate_providers(settings: Settings) -> RateProviders:
    """Build the configured providers."""
    crypto_kwargs = {"timeout_seconds": settings.provider_timeout_seconds}
    if settings.crypto_provider == "coingecko":
        crypto_kwargs["api_key"] = settings.coingecko_api_key

    return RateProviders(
        currency=get_currency_provider(
            settings.currency_provider,
            timeout_seconds=settings.provider_timeout_seconds,
        ),
        crypto=get_crypto_provider(settings.crypto_provider, **crypto_kwargs),
    )
