"""Tests for the alert model and the alert form."""

import sys
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

sys.path.append("src")
from ratewatch.models import (
    Alert,
    AlertCondition,
    AlertDraft,
    AlertKind,
    AlertStatus,
    ConditionDirection,
)

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


class TestAlertCondition:
    """Test threshold conditions."""

    def test_constructors(self):
        above = AlertCondition.above("3.70")
        below = AlertCondition.below(Decimal("3.50"))

        assert above.direction == ConditionDirection.ABOVE
        assert above.threshold == Decimal("3.70")
        assert below.direction == ConditionDirection.BELOW
        assert above.display_name == "Above"
        assert below.display_name == "Below"

    def test_threshold_must_be_positive(self):
        with pytest.raises(ValidationError):
            AlertCondition.above("0")


class TestAlertInvariants:
    """Test model-level validation of alerts."""

    def test_currency_alert_defaults(self, make_alert):
        alert = make_alert()

        assert alert.status == AlertStatus.ACTIVE
        assert alert.enabled is True
        assert alert.triggered_at is None
        assert alert.crypto_id is None
        assert len(alert.id) == 32
        assert alert.created_at.tzinfo is not None

    def test_ids_are_unique(self, make_alert):
        assert make_alert().id != make_alert().id

    def test_currency_alert_requires_pair(self):
        with pytest.raises(ValidationError, match="require base and target"):
            Alert(
                kind=AlertKind.CURRENCY,
                base_currency="USD",
                condition=AlertCondition.above("1"),
            )

    def test_currency_pair_must_differ(self, make_alert):
        with pytest.raises(ValidationError, match="must be different"):
            make_alert(target_currency="USD")

    def test_crypto_alert_requires_crypto_id(self):
        with pytest.raises(ValidationError, match="require a crypto id"):
            Alert(kind=AlertKind.CRYPTO, condition=AlertCondition.above("1"))

    def test_crypto_alert_rejects_currency_pair(self, make_crypto_alert):
        with pytest.raises(ValidationError, match="cannot carry a currency pair"):
            make_crypto_alert(base_currency="USD", target_currency="EUR")

    def test_triggered_at_only_when_triggered(self, make_alert):
        with pytest.raises(ValidationError, match="triggered_at"):
            make_alert(status=AlertStatus.TRIGGERED)
        with pytest.raises(ValidationError, match="triggered_at"):
            make_alert(triggered_at=T0)

        alert = make_alert(status=AlertStatus.TRIGGERED, triggered_at=T0)
        assert alert.triggered_at == T0

    def test_naive_datetimes_are_utc(self, make_alert):
        alert = make_alert(
            status=AlertStatus.TRIGGERED, triggered_at=datetime(2025, 1, 15, 12, 0)
        )
        assert alert.triggered_at == T0


class TestAlertDerived:
    """Test derived properties."""

    def test_pair_labels(self, make_alert, make_crypto_alert):
        assert make_alert().pair_label == "USD → ILS"
        assert make_crypto_alert().pair_label == "BTC → USD"

    def test_eligibility(self, make_alert):
        assert make_alert().is_eligible
        assert not make_alert(enabled=False).is_eligible
        assert not make_alert(
            status=AlertStatus.TRIGGERED, triggered_at=T0
        ).is_eligible

    def test_effective_state(self, make_alert):
        assert make_alert().effective_state == AlertStatus.ACTIVE
        assert make_alert(enabled=False).effective_state == AlertStatus.PAUSED
        triggered = make_alert(status=AlertStatus.TRIGGERED, triggered_at=T0)
        assert triggered.effective_state == AlertStatus.TRIGGERED


class TestAlertTransitions:
    """Test in-place state changes."""

    def test_mark_as_triggered_and_reset(self, make_alert):
        alert = make_alert()

        alert.mark_as_triggered(T0)
        assert alert.status == AlertStatus.TRIGGERED
        assert alert.triggered_at == T0

        alert.reset()
        assert alert.status == AlertStatus.ACTIVE
        assert alert.triggered_at is None

    def test_toggle_keeps_triggered_status(self, make_alert):
        alert = make_alert(status=AlertStatus.TRIGGERED, triggered_at=T0)

        alert.toggle_enabled()
        assert alert.enabled is False
        assert alert.status == AlertStatus.TRIGGERED

        alert.toggle_enabled()
        assert alert.enabled is True
        assert alert.status == AlertStatus.TRIGGERED

    def test_toggle_normalises_legacy_paused_status(self, make_alert):
        alert = make_alert(enabled=False, status=AlertStatus.PAUSED)

        alert.toggle_enabled()

        assert alert.enabled is True
        assert alert.status == AlertStatus.ACTIVE

    def test_hours_since_trigger(self, make_alert):
        alert = make_alert(status=AlertStatus.TRIGGERED, triggered_at=T0)

        assert alert.hours_since_trigger(T0 + timedelta(hours=3)) == 3
        assert make_alert().hours_since_trigger(T0) is None


class TestAutoReset:
    """Test the auto-reset boundary."""

    @pytest.fixture
    def triggered(self, make_alert):
        return make_alert(
            status=AlertStatus.TRIGGERED, triggered_at=T0, auto_reset_after_hours=6
        )

    def test_due_after_the_configured_hours(self, triggered):
        assert triggered.is_due_for_auto_reset(T0 + timedelta(hours=6, seconds=1))

    def test_due_exactly_at_the_boundary(self, triggered):
        assert triggered.is_due_for_auto_reset(T0 + timedelta(hours=6))

    def test_not_due_before_the_boundary(self, triggered):
        assert not triggered.is_due_for_auto_reset(
            T0 + timedelta(hours=5, minutes=59)
        )

    def test_never_due_without_auto_reset(self, make_alert):
        alert = make_alert(status=AlertStatus.TRIGGERED, triggered_at=T0)
        assert not alert.is_due_for_auto_reset(T0 + timedelta(days=365))

    def test_never_due_when_not_triggered(self, make_alert):
        alert = make_alert(auto_reset_after_hours=1)
        assert not alert.is_due_for_auto_reset(T0 + timedelta(days=1))

    def test_auto_reset_hours_must_be_positive(self, make_alert):
        with pytest.raises(ValidationError):
            make_alert(auto_reset_after_hours=0)


class TestAlertDraft:
    """Test validation of the user-authored alert form."""

    def test_currency_draft_is_normalised(self):
        draft = AlertDraft(
            base_currency=" usd ", target_currency="ils", threshold="3.70"
        )

        assert draft.base_currency == "USD"
        assert draft.target_currency == "ILS"
        assert draft.threshold == Decimal("3.70")

    @pytest.mark.parametrize("threshold", ["0", "-1.5"])
    def test_threshold_must_be_positive(self, threshold):
        with pytest.raises(ValidationError, match="Target value must be a positive number"):
            AlertDraft(base_currency="USD", target_currency="ILS", threshold=threshold)

    def test_threshold_must_be_a_number(self):
        with pytest.raises(ValidationError):
            AlertDraft(base_currency="USD", target_currency="ILS", threshold="abc")

    def test_currency_codes_must_be_three_letters(self):
        with pytest.raises(ValidationError, match="three letters"):
            AlertDraft(base_currency="US", target_currency="ILS", threshold="1")

    def test_missing_base_currency(self):
        with pytest.raises(ValidationError, match="Please select a base currency"):
            AlertDraft(target_currency="ILS", threshold="1")

    def test_missing_target_currency(self):
        with pytest.raises(ValidationError, match="Please select a target currency"):
            AlertDraft(base_currency="USD", target_currency="", threshold="1")

    def test_same_currencies_rejected(self):
        with pytest.raises(
            ValidationError, match="Base currency and target currency must be different"
        ):
            AlertDraft(base_currency="usd", target_currency="USD", threshold="1")

    def test_crypto_draft_requires_selection(self):
        with pytest.raises(ValidationError, match="Please select a cryptocurrency"):
            AlertDraft(kind=AlertKind.CRYPTO, threshold="1")

    def test_crypto_symbol_defaults_from_id(self):
        draft = AlertDraft(kind=AlertKind.CRYPTO, crypto_id="Avalanche-2", threshold="40")

        assert draft.crypto_id == "avalanche-2"
        assert draft.crypto_symbol == "AVALANCHE"

    def test_to_alert_builds_active_alert(self):
        draft = AlertDraft(
            base_currency="EUR",
            target_currency="USD",
            direction="below",
            threshold="1.05",
            auto_reset_after_hours=24,
        )

        alert = draft.to_alert()

        assert alert.kind == AlertKind.CURRENCY
        assert alert.condition == AlertCondition.below("1.05")
        assert alert.status == AlertStatus.ACTIVE
        assert alert.auto_reset_after_hours == 24

    def test_crypto_to_alert_has_no_currency_pair(self):
        alert = AlertDraft(
            kind=AlertKind.CRYPTO, crypto_id="bitcoin", crypto_symbol="btc", threshold="1"
        ).to_alert()

        assert alert.base_currency is None
        assert alert.target_currency is None
        assert alert.crypto_symbol == "BTC"

    def test_apply_to_preserves_identity_and_trigger_state(self, make_alert):
        alert = make_alert(status=AlertStatus.TRIGGERED, triggered_at=T0)
        draft = AlertDraft(base_currency="USD", target_currency="EUR", threshold="0.95")

        edited = draft.apply_to(alert)

        assert edited.id == alert.id
        assert edited.created_at == alert.created_at
        assert edited.status == AlertStatus.TRIGGERED
        assert edited.triggered_at == T0
        assert edited.target_currency == "EUR"
        assert edited.condition.threshold == Decimal("0.95")

    def test_apply_to_rejects_kind_change(self, make_alert):
        draft = AlertDraft(kind=AlertKind.CRYPTO, crypto_id="bitcoin", threshold="1")

        with pytest.raises(ValueError, match="kind cannot be changed"):
            draft.apply_to(make_alert())
