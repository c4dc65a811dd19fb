"""Currency pair rate providers."""

import asyncio
import math
from datetime import datetime
from decimal import Decimal

import yfinance as yf

from ...config.logging import get_logger
from ...exceptions import ProviderNetworkError, QuoteNotFoundError
from ...models import utcnow
from .base import HttpJsonProvider, Quote

logger = get_logger(__name__)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return utcnow()


class HexarateRateProvider(HttpJsonProvider):
    """Mid-market rates for any currency pair from hexarate."""

    name = "hexarate"
    base_url = "https://hexarate.paikama.co/api/rates"

    async def fetch_rate(self, base: str, target: str) -> Quote:
        operation = f"fetch_rate {base}/{target}"
        payload = await self._get_json(
            f"{self.base_url}/{base.upper()}/{target.upper()}/latest", operation
        )

        data = payload.get("data") if isinstance(payload, dict) else None
        if not data or data.get("mid") is None:
            raise QuoteNotFoundError(self.name, operation, "response has no mid rate")

        return Quote(
            value=Decimal(data["mid"]),
            as_of=_parse_timestamp(data.get("timestamp")),
        )


class YahooFinanceRateProvider:
    """Currency rates from Yahoo Finance `BASETARGET=X` tickers."""

    name = "yahoo"

    def __init__(self, timeout_seconds: float = 30.0):
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(provider=self.name)

    async def fetch_rate(self, base: str, target: str) -> Quote:
        operation = f"fetch_rate {base}/{target}"
        try:
            price = await asyncio.wait_for(
                asyncio.to_thread(self._last_price, f"{base.upper()}{target.upper()}=X"),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderNetworkError(self.name, operation, "request timed out") from e
        except Exception as e:
            raise ProviderNetworkError(self.name, operation, str(e)) from e

        if price is None or math.isnan(price):
            raise QuoteNotFoundError(self.name, operation, "no price for ticker")

        # repr of the float is the shortest exact decimal form yfinance returned
        return Quote(value=Decimal(repr(float(price))), as_of=utcnow())

    @staticmethod
    def _last_price(symbol: str):
        ticker = yf.Ticker(symbol)
        data = ticker.history(period="1d", interval="1m")

        if not data.empty:
            return data["Close"].iloc[-1]  # most recent minute
        return ticker.fast_info.last_price  # fallback
