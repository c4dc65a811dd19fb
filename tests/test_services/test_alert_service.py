"""Tests for alert management and user-initiated checks."""

import sys
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

sys.path.append("src")
from ratewatch.core.monitor import AlertMonitor
from ratewatch.exceptions import AlertNotFoundError, PersistenceError
from ratewatch.models import (
    AlertDraft,
    AlertKind,
    AlertStatus,
    ConditionDirection,
)
from ratewatch.services.alert_service import (
    PERMISSION_REQUIRED_MESSAGE,
    AlertService,
)
from ratewatch.services.notification import (
    AlertNotifier,
    AuthorizationStatus,
    LogNotificationCenter,
)

TRIGGERED_AT = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)


@pytest.fixture
def service(store, monitor, notifier):
    return AlertService(store, monitor, notifier)


def currency_draft(**overrides):
    data = {
        "base_currency": "usd",
        "target_currency": "ils",
        "direction": "above",
        "threshold": Decimal("3.70"),
    }
    data.update(overrides)
    return AlertDraft(**data)


class TestAlertManagement:
    """Test create, edit, delete, toggle and reset."""

    @pytest.mark.asyncio
    async def test_create_alert(self, service, store):
        alert = await service.create_alert(currency_draft())

        assert alert.base_currency == "USD"
        assert alert.status == AlertStatus.ACTIVE
        assert store.get(alert.id) == alert
        assert service.list_alerts() == [alert]

    def test_get_missing_alert(self, service):
        with pytest.raises(AlertNotFoundError) as exc_info:
            service.get_alert("missing")

        assert exc_info.value.alert_id == "missing"

    @pytest.mark.asyncio
    async def test_update_keeps_identity_and_trigger_state(
        self, service, store, make_alert
    ):
        alert = store.save(
            make_alert(status=AlertStatus.TRIGGERED, triggered_at=TRIGGERED_AT)
        )

        updated = await service.update_alert(
            alert.id,
            currency_draft(
                base_currency="EUR",
                direction="below",
                threshold=Decimal("4.10"),
                auto_reset_after_hours=12,
            ),
        )

        assert updated.id == alert.id
        assert updated.created_at == alert.created_at
        assert updated.status == AlertStatus.TRIGGERED
        assert updated.triggered_at == TRIGGERED_AT
        assert updated.base_currency == "EUR"
        assert updated.condition.direction == ConditionDirection.BELOW
        assert updated.auto_reset_after_hours == 12
        assert store.get(alert.id) == updated

    @pytest.mark.asyncio
    async def test_update_cannot_change_kind(self, service, store, make_alert):
        alert = store.save(make_alert())
        draft = AlertDraft(kind=AlertKind.CRYPTO, crypto_id="bitcoin", threshold=1)

        with pytest.raises(ValueError, match="kind cannot be changed"):
            await service.update_alert(alert.id, draft)

        assert store.get(alert.id) == alert

    @pytest.mark.asyncio
    async def test_update_missing_alert(self, service):
        with pytest.raises(AlertNotFoundError):
            await service.update_alert("missing", currency_draft())

    @pytest.mark.asyncio
    async def test_delete_cancels_notification(
        self, service, store, center, notifier, make_alert
    ):
        alert = store.save(
            make_alert(status=AlertStatus.TRIGGERED, triggered_at=TRIGGERED_AT)
        )
        await notifier.deliver(alert, Decimal("3.71"))

        await service.delete_alert(alert.id)

        assert store.get(alert.id) is None
        assert alert.id not in center.delivered
        assert center.badge_count == 0

    @pytest.mark.asyncio
    async def test_delete_missing_alert(self, service):
        with pytest.raises(AlertNotFoundError):
            await service.delete_alert("missing")

    @pytest.mark.asyncio
    async def test_toggle_keeps_status(self, service, store, make_alert):
        alert = store.save(
            make_alert(status=AlertStatus.TRIGGERED, triggered_at=TRIGGERED_AT)
        )

        disabled = await service.toggle_alert(alert.id)
        enabled = await service.toggle_alert(alert.id)

        assert disabled.enabled is False
        assert disabled.effective_state == AlertStatus.PAUSED
        assert disabled.status == AlertStatus.TRIGGERED
        assert enabled.enabled is True
        assert enabled.status == AlertStatus.TRIGGERED

    @pytest.mark.asyncio
    async def test_toggle_missing_alert(self, service):
        with pytest.raises(AlertNotFoundError):
            await service.toggle_alert("missing")

    @pytest.mark.asyncio
    async def test_reset_cancels_notification_and_updates_badge(
        self, service, store, center, notifier, make_alert
    ):
        alert = store.save(
            make_alert(status=AlertStatus.TRIGGERED, triggered_at=TRIGGERED_AT)
        )
        await notifier.deliver(alert, Decimal("3.71"))

        reset = await service.reset_alert(alert.id)

        assert reset.status == AlertStatus.ACTIVE
        assert reset.triggered_at is None
        assert alert.id not in center.delivered
        assert center.badge_count == 0


class TestChecks:
    """Test check_now and check_on_launch."""

    @pytest.mark.asyncio
    async def test_check_now_triggers(
        self, service, store, center, currency_provider, make_alert
    ):
        alert = store.save(make_alert())
        currency_provider.rates[("USD", "ILS")] = "3.71"

        outcome = await service.check_now()

        assert outcome.success is True
        assert outcome.triggered_count == 1
        assert alert.id in center.delivered

    @pytest.mark.asyncio
    async def test_check_now_requires_permission(
        self, store, monitor, currency_provider, make_alert
    ):
        store.save(make_alert())
        currency_provider.rates[("USD", "ILS")] = "3.71"
        notifier = AlertNotifier(LogNotificationCenter(grant=AuthorizationStatus.DENIED))
        service = AlertService(store, monitor, notifier)

        outcome = await service.check_now()

        assert outcome.success is False
        assert outcome.error_message == PERMISSION_REQUIRED_MESSAGE
        assert outcome.triggered_count == 0
        assert currency_provider.calls == []

    @pytest.mark.asyncio
    async def test_persistence_failure_becomes_message(self, store, notifier):
        monitor = Mock(spec=AlertMonitor)
        monitor.run_pass = AsyncMock(
            side_effect=PersistenceError("load_all", "database is locked")
        )
        service = AlertService(store, monitor, notifier)

        outcome = await service.check_now()

        assert outcome.success is False
        assert outcome.error_message == (
            "Error checking alerts: Alert store load_all failed: database is locked"
        )

    @pytest.mark.asyncio
    async def test_check_on_launch_does_not_ask_for_permission(
        self, store, monitor, currency_provider, make_alert
    ):
        store.save(make_alert())
        currency_provider.rates[("USD", "ILS")] = "3.71"
        center = LogNotificationCenter(status=AuthorizationStatus.DENIED)
        service = AlertService(store, monitor, AlertNotifier(center))

        outcome = await service.check_on_launch()

        assert outcome.success is True
        assert currency_provider.calls == [("USD", "ILS")]
        assert center.authorization_requests == 0
