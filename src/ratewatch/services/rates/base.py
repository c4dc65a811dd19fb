"""Rate provider interfaces and the shared HTTP plumbing."""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Any, Dict, Optional, Protocol

import aiohttp

from ...config.logging import get_logger
from ...exceptions import (
    ProviderError,
    ProviderNetworkError,
    QuoteNotFoundError,
    RateLimitedError,
)

logger = get_logger(__name__)

# Parse JSON numbers straight into Decimal so no float ever touches a price
_decimal_loads = partial(json.loads, parse_float=Decimal)


@dataclass(frozen=True)
class Quote:
    """A single observed rate or price."""

    value: Decimal
    as_of: datetime


class CurrencyRateProvider(Protocol):
    """Looks up the rate of one currency expressed in another."""

    name: str

    async def fetch_rate(self, base: str, target: str) -> Quote:
        ...


class CryptoPriceProvider(Protocol):
    """Looks up the USD price of one cryptocurrency by provider id."""

    name: str

    async def fetch_price(self, crypto_id: str) -> Quote:
        ...


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class HttpJsonProvider:
    """Base class for providers that speak JSON over HTTP GET."""

    name = "http"
    not_found_statuses = (404,)

    def __init__(self, timeout_seconds: float = 30.0):
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(provider=self.name)

    async def _get_json(
        self,
        url: str,
        operation: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        GET a JSON document and translate failures into provider errors.

        Raises:
            RateLimitedError: HTTP 429
            QuoteNotFoundError: one of `not_found_statuses`
            ProviderNetworkError: timeouts, connection errors, other statuses
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, params=params, headers=headers) as response:
                    if response.status == 429:
                        retry_after = _parse_retry_after(
                            response.headers.get("Retry-After")
                        )
                        self.logger.warning(
                            "Provider rate limit hit",
                            operation=operation,
                            retry_after=retry_after,
                        )
                        raise RateLimitedError(self.name, operation, retry_after)

                    if response.status in self.not_found_statuses:
                        raise QuoteNotFoundError(
                            self.name, operation, f"HTTP {response.status}"
                        )

                    if response.status != 200:
                        error_text = await response.text()
                        raise ProviderNetworkError(
                            self.name,
                            operation,
                            f"HTTP {response.status}: {error_text[:200]}",
                        )

                    return await response.json(
                        loads=_decimal_loads, content_type=None
                    )

        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderNetworkError(self.name, operation, "request timed out") from e
        except aiohttp.ClientError as e:
            raise ProviderNetworkError(self.name, operation, str(e)) from e
        except ValueError as e:
            raise ProviderNetworkError(
                self.name, operation, f"malformed response: {e}"
            ) from e
