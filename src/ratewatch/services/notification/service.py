"""Alert notification delivery."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from ...config.logging import get_logger
from ...exceptions import NotificationError
from ...models import Alert, AlertKind, AlertStatus
from ...ormdb.repositories import AlertStore
from .channels import NotificationCenterProtocol
from .models import AuthorizationStatus, NotificationContent, NotificationResult

logger = get_logger(__name__)

CURRENCY_ALERT_TITLE = "Currency Rate Alert"
CRYPTO_ALERT_TITLE = "Crypto Price Alert"


def _format_value(value) -> str:
    return f"{Decimal(str(value)):.4f}"


def format_alert_body(alert: Alert, current_value) -> str:
    """
    Render the notification text for a triggered alert.

    Example:
        "USD → ILS crossed the value Above 3.7000. Current rate: 3.7100"
    """
    return (
        f"{alert.pair_label} crossed the value "
        f"{alert.condition.display_name} {_format_value(alert.condition.threshold)}. "
        f"Current rate: {_format_value(current_value)}"
    )


class AlertNotifier:
    """Posts one user-visible notification per triggered alert."""

    def __init__(self, center: NotificationCenterProtocol):
        self.center = center
        self.logger = logger.bind(
            service="alert_notifier", channel=center.channel.value
        )

    async def request_permission(self) -> bool:
        """
        Ask the user for permission to post alerts, sound and badges.

        Returns:
            True if notifications are authorized
        """
        try:
            status = await self.center.request_authorization()
        except NotificationError as e:
            self.logger.error("Failed to request notification permission", error=str(e))
            return False

        granted = status == AuthorizationStatus.AUTHORIZED
        self.logger.info(
            "Notification permission requested", status=status.value, granted=granted
        )
        return granted

    async def get_authorization_status(self) -> AuthorizationStatus:
        return await self.center.get_authorization_status()

    async def ensure_permission(self) -> bool:
        """Check authorization, requesting it once when not yet granted."""
        status = await self.get_authorization_status()
        if status == AuthorizationStatus.AUTHORIZED:
            return True

        self.logger.warning(
            "Not authorized to send notifications", status=status.value
        )
        return await self.request_permission()

    async def deliver(
        self, alert: Alert, current_value, badge: Optional[int] = 1
    ) -> NotificationResult:
        """
        Deliver the notification for a triggered alert.

        The alert id is the notification identifier, so a second delivery for
        the same alert replaces the first instead of stacking up.

        Args:
            alert: Triggered alert
            current_value: Value observed when the alert triggered
            badge: Badge count to show with the notification

        Returns:
            NotificationResult with delivery status; never raises
        """
        start_time = datetime.now()

        def elapsed_ms() -> float:
            return (datetime.now() - start_time).total_seconds() * 1000

        if not await self.ensure_permission():
            self.logger.warning(
                "Permission denied, cannot send notification", alert_id=alert.id
            )
            return NotificationResult(
                channel=self.center.channel,
                success=False,
                identifier=alert.id,
                message_id=None,
                error="Notification permission denied",
                delivery_time_ms=elapsed_ms(),
            )

        content = NotificationContent(
            title=(
                CRYPTO_ALERT_TITLE
                if alert.kind == AlertKind.CRYPTO
                else CURRENCY_ALERT_TITLE
            ),
            body=format_alert_body(alert, current_value),
            badge=badge,
        )

        try:
            message_id = await self.center.schedule(alert.id, content)
        except Exception as e:
            self.logger.error(
                "Failed to deliver notification",
                alert_id=alert.id,
                error=str(e),
                exc_info=True,
            )
            return NotificationResult(
                channel=self.center.channel,
                success=False,
                identifier=alert.id,
                message_id=None,
                error=str(e),
                delivery_time_ms=elapsed_ms(),
            )

        self.logger.info(
            "Notification scheduled for alert",
            alert_id=alert.id,
            body=content.body,
            delivery_time_ms=elapsed_ms(),
        )
        return NotificationResult(
            channel=self.center.channel,
            success=True,
            identifier=alert.id,
            message_id=message_id,
            error=None,
            delivery_time_ms=elapsed_ms(),
        )

    async def cancel(self, alert_id: str) -> None:
        """Remove pending and delivered notifications for an alert."""
        try:
            await self.center.remove_pending([alert_id])
            await self.center.remove_delivered([alert_id])
        except NotificationError as e:
            self.logger.warning(
                "Failed to cancel notification", alert_id=alert_id, error=str(e)
            )

    async def set_badge_count(self, count: int) -> None:
        await self.center.set_badge_count(max(count, 0))

    async def clear_badge(self) -> None:
        await self.set_badge_count(0)
        self.logger.debug("Badge cleared")

    async def refresh_badge(self, store: AlertStore) -> int:
        """Set the badge to the number of triggered alerts."""
        count = sum(
            1 for alert in store.load_all() if alert.status == AlertStatus.TRIGGERED
        )
        await self.set_badge_count(count)
        return count
