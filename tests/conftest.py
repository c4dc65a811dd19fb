"""Shared test configuration and fixtures."""

import asyncio
import os
import sys
import tempfile
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.append("src")
from ratewatch.config.settings import Settings, get_settings
from ratewatch.core.checker import AlertChecker
from ratewatch.core.monitor import AlertMonitor
from ratewatch.exceptions import QuoteNotFoundError
from ratewatch.models import Alert, AlertCondition, AlertKind
from ratewatch.ormdb.repositories import AlertRepository
from ratewatch.services.notification import (
    AlertNotifier,
    AuthorizationStatus,
    LogNotificationCenter,
)
from ratewatch.services.rates import Quote, RateProviders

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


class FixedClock:
    """Controllable replacement for `utcnow`."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


QuoteSource = Union[Decimal, str, Exception]


class FakeCurrencyProvider:
    """Currency provider answering from a dict of (base, target) -> value."""

    name = "fake-currency"

    def __init__(self, rates: Optional[Dict[Tuple[str, str], QuoteSource]] = None):
        self.rates = rates or {}
        self.calls: List[Tuple[str, str]] = []
        self.on_fetch: Optional[Callable[[], None]] = None
        self.delay = 0.0

    async def fetch_rate(self, base: str, target: str) -> Quote:
        self.calls.append((base, target))
        if self.on_fetch is not None:
            self.on_fetch()
        if self.delay:
            await asyncio.sleep(self.delay)

        value = self.rates.get((base, target))
        if value is None:
            raise QuoteNotFoundError(self.name, "fetch_rate", "unknown pair")
        if isinstance(value, Exception):
            raise value
        return Quote(value=Decimal(value), as_of=FIXED_NOW)


class FakeCryptoProvider:
    """Crypto provider answering from a dict of crypto id -> USD price."""

    name = "fake-crypto"

    def __init__(self, prices: Optional[Dict[str, QuoteSource]] = None):
        self.prices = prices or {}
        self.calls: List[str] = []

    async def fetch_price(self, crypto_id: str) -> Quote:
        self.calls.append(crypto_id)
        value = self.prices.get(crypto_id)
        if value is None:
            raise QuoteNotFoundError(self.name, "fetch_price", "unknown coin")
        if isinstance(value, Exception):
            raise value
        return Quote(value=Decimal(value), as_of=FIXED_NOW)


@pytest.fixture
def isolated_db():
    """Create an isolated database for testing."""
    temp_fd, temp_path = tempfile.mkstemp(suffix=".db")
    db_url = f"sqlite:///{temp_path}"

    engine = create_engine(db_url, connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )

    from ratewatch.ormdb.database import Base
    from ratewatch.ormdb import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    try:
        yield {
            "engine": engine,
            "session_factory": SessionLocal,
            "db_url": db_url,
            "db_path": temp_path,
        }
    finally:
        engine.dispose()
        os.close(temp_fd)
        os.unlink(temp_path)


@pytest.fixture
def store(isolated_db):
    return AlertRepository(isolated_db["session_factory"])


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def currency_provider():
    return FakeCurrencyProvider()


@pytest.fixture
def crypto_provider():
    return FakeCryptoProvider()


@pytest.fixture
def providers(currency_provider, crypto_provider):
    return RateProviders(currency=currency_provider, crypto=crypto_provider)


@pytest.fixture
def center():
    """Notification center that records deliveries; already authorized."""
    return LogNotificationCenter(status=AuthorizationStatus.AUTHORIZED)


@pytest.fixture
def notifier(center):
    return AlertNotifier(center)


@pytest.fixture
def checker(store, providers, clock):
    return AlertChecker(store, providers, clock=clock)


@pytest.fixture
def monitor(checker, notifier, store):
    return AlertMonitor(checker, notifier, store)


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="testing",
        database_url="sqlite://",
        log_file_enabled=False,
    )


@pytest.fixture
def make_alert():
    """Factory for currency alerts, USD → ILS above 3.70 unless overridden."""

    def _make(**overrides) -> Alert:
        data = {
            "kind": AlertKind.CURRENCY,
            "base_currency": "USD",
            "target_currency": "ILS",
            "condition": AlertCondition.above(Decimal("3.70")),
        }
        data.update(overrides)
        return Alert(**data)

    return _make


@pytest.fixture
def make_crypto_alert():
    """Factory for crypto alerts, bitcoin above 100000 unless overridden."""

    def _make(**overrides) -> Alert:
        data = {
            "kind": AlertKind.CRYPTO,
            "crypto_id": "bitcoin",
            "crypto_symbol": "BTC",
            "condition": AlertCondition.above(Decimal("100000")),
        }
        data.update(overrides)
        return Alert(**data)

    return _make


@pytest.fixture(autouse=True)
def clean_registries():
    """Clear cached settings and background handlers between tests."""
    from ratewatch import scheduler

    yield

    get_settings.cache_clear()
    scheduler._handlers.clear()
