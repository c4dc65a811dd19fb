"""Cryptocurrency price providers, quoted in USD."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Dict, Optional

from ...exceptions import QuoteNotFoundError
from ...models import utcnow
from .base import HttpJsonProvider, Quote

# CoinGecko ids of the main coins and their Binance base symbols
BINANCE_SYMBOLS: Dict[str, str] = {
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "binancecoin": "BNB",
    "ripple": "XRP",
    "solana": "SOL",
    "tron": "TRX",
    "dogecoin": "DOGE",
    "cardano": "ADA",
    "bitcoin-cash": "BCH",
    "chainlink": "LINK",
    "stellar": "XLM",
    "zcash": "ZEC",
    "litecoin": "LTC",
    "sui": "SUI",
    "avalanche-2": "AVAX",
    "hedera-hashgraph": "HBAR",
    "shiba-inu": "SHIB",
    "the-open-network": "TON",
    "uniswap": "UNI",
    "polkadot": "DOT",
    "pepe": "PEPE",
    "aave": "AAVE",
    "near": "NEAR",
    "ethereum-classic": "ETC",
    "ethena": "ENA",
    "internet-computer": "ICP",
    "aptos": "APT",
    "arbitrum": "ARB",
    "algorand": "ALGO",
    "filecoin": "FIL",
    "cosmos": "ATOM",
    "vechain": "VET",
    "optimism": "OP",
    "injective-protocol": "INJ",
    "the-graph": "GRT",
    "fetch-ai": "FET",
    "floki": "FLOKI",
    "bonk": "BONK",
}


class CoinGeckoPriceProvider(HttpJsonProvider):
    """USD prices from the CoinGecko simple price endpoint."""

    name = "coingecko"
    base_url = "https://api.coingecko.com/api/v3"

    def __init__(self, timeout_seconds: float = 30.0, api_key: Optional[str] = None):
        super().__init__(timeout_seconds)
        self.api_key = api_key

    async def fetch_price(self, crypto_id: str) -> Quote:
        operation = f"fetch_price {crypto_id}"
        headers = {"x-cg-demo-api-key": self.api_key} if self.api_key else None
        payload = await self._get_json(
            f"{self.base_url}/simple/price",
            operation,
            params={
                "ids": crypto_id,
                "vs_currencies": "usd",
                "include_last_updated_at": "true",
            },
            headers=headers,
        )

        entry = payload.get(crypto_id) if isinstance(payload, dict) else None
        if not entry or entry.get("usd") is None:
            raise QuoteNotFoundError(self.name, operation, "unknown coin id")

        updated = entry.get("last_updated_at")
        as_of = datetime.fromtimestamp(int(updated), UTC) if updated else utcnow()
        return Quote(value=Decimal(entry["usd"]), as_of=as_of)


class BinancePriceProvider(HttpJsonProvider):
    """Spot prices of `<SYMBOL>USDT` pairs from Binance."""

    name = "binance"
    base_url = "https://api.binance.com/api/v3"
    # Binance answers unknown symbols with 400 / code -1121
    not_found_statuses = (400, 404)

    async def fetch_price(self, crypto_id: str) -> Quote:
        operation = f"fetch_price {crypto_id}"
        symbol = BINANCE_SYMBOLS.get(crypto_id.lower())
        if symbol is None:
            raise QuoteNotFoundError(self.name, operation, "no Binance pair for coin id")

        payload = await self._get_json(
            f"{self.base_url}/ticker/price",
            operation,
            params={"symbol": f"{symbol}USDT"},
        )

        price = payload.get("price") if isinstance(payload, dict) else None
        if price is None:
            raise QuoteNotFoundError(self.name, operation, "response has no price")

        return Quote(value=Decimal(price), as_of=utcnow())
