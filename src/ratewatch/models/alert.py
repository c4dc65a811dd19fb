"""Alert data model and state machine."""

import re
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Crypto alerts are always quoted against this currency.
QUOTE_CURRENCY = "USD"

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


class AlertKind(str, Enum):
    """Which rate provider an alert is evaluated against."""

    CURRENCY = "currency"
    CRYPTO = "crypto"


class ConditionDirection(str, Enum):
    """Threshold crossing direction."""

    ABOVE = "above"
    BELOW = "below"


class AlertStatus(str, Enum):
    """Alert state machine value."""

    ACTIVE = "active"
    TRIGGERED = "triggered"
    PAUSED = "paused"


class AlertCondition(BaseModel):
    """Threshold condition, `above(t)` or `below(t)`."""

    direction: ConditionDirection
    threshold: Decimal = Field(..., gt=0, description="Threshold, compared strictly")

    model_config = {"frozen": True}

    @classmethod
    def above(cls, threshold) -> "AlertCondition":
        return cls(direction=ConditionDirection.ABOVE, threshold=threshold)

    @classmethod
    def below(cls, threshold) -> "AlertCondition":
        return cls(direction=ConditionDirection.BELOW, threshold=threshold)

    @property
    def display_name(self) -> str:
        return self.direction.value.capitalize()


class Alert(BaseModel):
    """A user-defined threshold watch on a currency pair or a cryptocurrency."""

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        frozen=True,
        description="Opaque unique identifier",
    )
    kind: AlertKind = Field(default=AlertKind.CURRENCY, frozen=True)
    base_currency: Optional[str] = None
    target_currency: Optional[str] = None
    crypto_id: Optional[str] = None
    crypto_symbol: Optional[str] = None
    condition: AlertCondition
    enabled: bool = True
    status: AlertStatus = AlertStatus.ACTIVE
    triggered_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow, frozen=True)
    auto_reset_after_hours: Optional[int] = Field(default=None, gt=0)

    @field_validator("triggered_at", "created_at")
    @classmethod
    def ensure_utc(cls, v):
        """SQLite hands datetimes back naive; they are always stored as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @model_validator(mode="after")
    def check_invariants(self):
        if self.kind == AlertKind.CURRENCY:
            if not self.base_currency or not self.target_currency:
                raise ValueError("Currency alerts require base and target currencies")
            if self.base_currency == self.target_currency:
                raise ValueError("Base currency and target currency must be different")
            if self.crypto_id:
                raise ValueError("Currency alerts cannot carry a crypto id")
        else:
            if not self.crypto_id:
                raise ValueError("Crypto alerts require a crypto id")
            if self.base_currency or self.target_currency:
                raise ValueError("Crypto alerts cannot carry a currency pair")

        if (self.status == AlertStatus.TRIGGERED) != (self.triggered_at is not None):
            raise ValueError("triggered_at must be set exactly when status is triggered")
        return self

    @property
    def pair_label(self) -> str:
        """Human readable pair, e.g. 'USD → ILS' or 'BTC → USD'."""
        if self.kind == AlertKind.CRYPTO:
            symbol = self.crypto_symbol or self.crypto_id.upper()
            return f"{symbol} → {QUOTE_CURRENCY}"
        return f"{self.base_currency} → {self.target_currency}"

    @property
    def is_eligible(self) -> bool:
        """Whether the checker should evaluate this alert."""
        return self.enabled and self.status != AlertStatus.TRIGGERED

    @property
    def effective_state(self) -> AlertStatus:
        """State shown to the user; a disabled alert reads as paused."""
        if not self.enabled:
            return AlertStatus.PAUSED
        return self.status

    def mark_as_triggered(self, now: Optional[datetime] = None) -> None:
        self.status = AlertStatus.TRIGGERED
        self.triggered_at = now or utcnow()

    def reset(self) -> None:
        self.status = AlertStatus.ACTIVE
        self.triggered_at = None

    def toggle_enabled(self) -> None:
        self.enabled = not self.enabled
        # Older records stored "paused" as a status; enabling normalises them.
        if self.enabled and self.status == AlertStatus.PAUSED:
            self.status = AlertStatus.ACTIVE

    def hours_since_trigger(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.triggered_at is None:
            return None
        return ((now or utcnow()) - self.triggered_at).total_seconds() / 3600

    def is_due_for_auto_reset(self, now: Optional[datetime] = None) -> bool:
        """True once a triggered alert has waited its auto-reset hours."""
        if self.status != AlertStatus.TRIGGERED or self.auto_reset_after_hours is None:
            return False
        hours = self.hours_since_trigger(now)
        return hours is not None and hours >= self.auto_reset_after_hours


class AlertDraft(BaseModel):
    """User-authored alert form, validated before anything is persisted."""

    kind: AlertKind = AlertKind.CURRENCY
    base_currency: Optional[str] = Field(default=None, description="ISO code, e.g. USD")
    target_currency: Optional[str] = Field(default=None, description="ISO code, e.g. ILS")
    crypto_id: Optional[str] = Field(default=None, description="Provider id, e.g. bitcoin")
    crypto_symbol: Optional[str] = Field(default=None, description="Display symbol")
    direction: ConditionDirection = ConditionDirection.ABOVE
    threshold: Decimal
    enabled: bool = True
    auto_reset_after_hours: Optional[int] = Field(default=None, gt=0)

    @field_validator("base_currency", "target_currency")
    @classmethod
    def normalise_currency(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            return None
        if not _CURRENCY_CODE.match(v):
            raise ValueError("Currency code must be three letters")
        return v

    @field_validator("crypto_id")
    @classmethod
    def normalise_crypto_id(cls, v):
        if v is None:
            return v
        return v.strip().lower() or None

    @field_validator("threshold")
    @classmethod
    def validate_threshold(cls, v):
        if not v.is_finite() or v <= 0:
            raise ValueError("Target value must be a positive number")
        return v

    @model_validator(mode="after")
    def check_selection(self):
        if self.kind == AlertKind.CRYPTO:
            if not self.crypto_id:
                raise ValueError("Please select a cryptocurrency")
            if not self.crypto_symbol:
                self.crypto_symbol = self.crypto_id.split("-")[0].upper()
            else:
                self.crypto_symbol = self.crypto_symbol.strip().upper()
        else:
            if not self.base_currency:
                raise ValueError("Please select a base currency")
            if not self.target_currency:
                raise ValueError("Please select a target currency")
            if self.base_currency == self.target_currency:
                raise ValueError("Base currency and target currency must be different")
        return self

    def _condition(self) -> AlertCondition:
        return AlertCondition(direction=self.direction, threshold=self.threshold)

    def _subject_fields(self) -> dict:
        if self.kind == AlertKind.CRYPTO:
            return {
                "base_currency": None,
                "target_currency": None,
                "crypto_id": self.crypto_id,
                "crypto_symbol": self.crypto_symbol,
            }
        return {
            "base_currency": self.base_currency,
            "target_currency": self.target_currency,
            "crypto_id": None,
            "crypto_symbol": None,
        }

    def to_alert(self) -> Alert:
        """Build a brand new, active alert from this form."""
        return Alert(
            kind=self.kind,
            condition=self._condition(),
            enabled=self.enabled,
            auto_reset_after_hours=self.auto_reset_after_hours,
            **self._subject_fields(),
        )

    def apply_to(self, alert: Alert) -> Alert:
        """
        Edit an existing alert, keeping its identity and trigger state.

        The kind of an alert cannot change; a different kind needs a new alert.
        """
        if alert.kind != self.kind:
            raise ValueError("Alert kind cannot be changed on edit")
        data = alert.model_dump()
        data.update(self._subject_fields())
        data.update(
            condition=self._condition(),
            enabled=self.enabled,
            auto_reset_after_hours=self.auto_reset_after_hours,
        )
        return Alert.model_validate(data)
