"""Alert management and foreground alert checks."""

from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config.logging import get_logger
from ..core.checker import CheckResult
from ..core.monitor import AlertMonitor
from ..exceptions import AlertNotFoundError, PersistenceError
from ..models import Alert, AlertDraft
from ..ormdb.repositories import AlertStore
from .notification import AlertNotifier

logger = get_logger(__name__)

PERMISSION_REQUIRED_MESSAGE = (
    "Notification permission is required to check alerts. "
    "Please enable notifications in Settings."
)


@dataclass
class CheckOutcome:
    """What a user-initiated check reports back."""

    result: Optional[CheckResult] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error_message is None

    @property
    def triggered_count(self) -> int:
        return len(self.result.triggered) if self.result else 0


class AlertService:
    """Service for alert management and on-demand checking."""

    def __init__(self, store: AlertStore, monitor: AlertMonitor, notifier: AlertNotifier):
        self.store = store
        self.monitor = monitor
        self.notifier = notifier
        self.logger = logger.bind(service="alert_service")

    def list_alerts(self) -> List[Alert]:
        return self.store.load_all()

    def get_alert(self, alert_id: str) -> Alert:
        alert = self.store.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    async def create_alert(self, draft: AlertDraft) -> Alert:
        """Persist a new alert built from a validated form."""
        alert = self.store.save(draft.to_alert())
        self.logger.info(
            "Alert created",
            alert_id=alert.id,
            pair=alert.pair_label,
            condition=alert.condition.display_name,
            threshold=str(alert.condition.threshold),
        )
        return alert

    async def update_alert(self, alert_id: str, draft: AlertDraft) -> Alert:
        """
        Edit an alert's subject, condition and settings.

        Identity and trigger state are kept as they are.

        Raises:
            AlertNotFoundError: If the alert does not exist
            ValueError: If the draft changes the alert kind
        """
        edited = draft.apply_to(self.get_alert(alert_id))

        def apply(alert: Alert) -> bool:
            for field_name in (
                "base_currency",
                "target_currency",
                "crypto_id",
                "crypto_symbol",
                "condition",
                "enabled",
                "auto_reset_after_hours",
            ):
                setattr(alert, field_name, getattr(edited, field_name))
            return True

        updated = self._update(alert_id, apply)
        self.logger.info("Alert updated", alert_id=alert_id, pair=updated.pair_label)
        return updated

    async def delete_alert(self, alert_id: str) -> None:
        if not self.store.delete(alert_id):
            raise AlertNotFoundError(alert_id)

        await self.notifier.cancel(alert_id)
        await self.notifier.refresh_badge(self.store)
        self.logger.info("Alert deleted", alert_id=alert_id)

    async def toggle_alert(self, alert_id: str) -> Alert:
        """Flip an alert between enabled and disabled."""

        def toggle(alert: Alert) -> bool:
            alert.toggle_enabled()
            return True

        updated = self._update(alert_id, toggle)
        await self.notifier.refresh_badge(self.store)
        self.logger.info("Alert toggled", alert_id=alert_id, enabled=updated.enabled)
        return updated

    async def reset_alert(self, alert_id: str) -> Alert:
        """Return a triggered alert to active so it can fire again."""

        def reset(alert: Alert) -> bool:
            alert.reset()
            return True

        updated = self._update(alert_id, reset)
        await self.notifier.cancel(alert_id)
        await self.notifier.refresh_badge(self.store)
        self.logger.info("Alert reset", alert_id=alert_id)
        return updated

    def _update(self, alert_id: str, mutator: Callable[[Alert], bool]) -> Alert:
        updated = self.store.update(alert_id, mutator)
        if updated is None:
            raise AlertNotFoundError(alert_id)
        return updated

    async def check_now(self) -> CheckOutcome:
        """
        User-initiated check of every alert.

        Notification permission is required up front, since a triggered
        alert the user is never told about would be lost.
        """
        if not await self.notifier.ensure_permission():
            self.logger.warning("Check skipped, notification permission denied")
            return CheckOutcome(error_message=PERMISSION_REQUIRED_MESSAGE)

        return await self._run_check("check_now")

    async def check_on_launch(self) -> CheckOutcome:
        """Check every alert at process start."""
        return await self._run_check("check_on_launch")

    async def _run_check(self, trigger: str) -> CheckOutcome:
        try:
            result = await self.monitor.run_pass()
        except PersistenceError as e:
            self.logger.error("Alert check failed", trigger=trigger, error=str(e))
            return CheckOutcome(error_message=f"Error checking alerts: {e.message}")

        self.logger.info(
            "Alert check finished",
            trigger=trigger,
            triggered=len(result.triggered),
            errors=len(result.errors),
        )
        return CheckOutcome(result=result)
