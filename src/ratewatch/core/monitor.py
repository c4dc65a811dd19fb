"""Alert monitoring pipeline shared by foreground and background passes."""

from typing import Optional

from ..config.logging import get_logger
from ..ormdb.repositories import AlertStore
from ..services.notification import AlertNotifier
from .checker import AlertChecker, CheckContext, CheckResult

logger = get_logger(__name__)


class AlertMonitor:
    """Runs a checking pass and turns its outcome into notifications."""

    def __init__(self, checker: AlertChecker, notifier: AlertNotifier, store: AlertStore):
        self.checker = checker
        self.notifier = notifier
        self.store = store
        self.logger = logger.bind(service="alert_monitor")

    async def run_pass(self, context: Optional[CheckContext] = None) -> CheckResult:
        """
        Check all alerts, notify the triggered ones and update the badge.

        Raises:
            PersistenceError: If the alert store cannot be read
        """
        result = await self.checker.check_alerts(context)

        delivered = 0
        for alert in result.triggered:
            notification = await self.notifier.deliver(
                alert, result.observed[alert.id]
            )
            if notification.success:
                delivered += 1

        for alert in result.reset:
            await self.notifier.cancel(alert.id)

        badge = await self.notifier.refresh_badge(self.store)

        self.logger.info(
            "Alert pass completed",
            triggered=len(result.triggered),
            notified=delivered,
            reset=len(result.reset),
            errors=len(result.errors),
            badge=badge,
            cancelled=result.cancelled,
        )
        return result
