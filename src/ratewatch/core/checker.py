"""Alert checking pass: fetch, evaluate, persist triggers, auto-reset."""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from ..config.logging import get_logger, log_performance
from ..exceptions import PersistenceError, ProviderError
from ..models import Alert, utcnow
from ..ormdb.repositories import AlertStore
from ..services.rates import RateProviders
from .evaluator import evaluate

logger = get_logger(__name__)


class CheckContext:
    """Cancellation handle for a single checking pass."""

    def __init__(
        self,
        deadline: Optional[datetime] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.deadline = deadline
        self._clock = clock
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def should_stop(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._cancelled:
            return True
        return self.deadline is not None and self._clock() >= self.deadline


@dataclass
class CheckResult:
    """Outcome of one checking pass."""

    triggered: List[Alert] = field(default_factory=list)
    errors: Dict[str, Exception] = field(default_factory=dict)
    observed: Dict[str, Decimal] = field(default_factory=dict)
    reset: List[Alert] = field(default_factory=list)
    cancelled: bool = False
    evaluated: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class AlertChecker:
    """
    Evaluates every eligible alert against its provider once per pass.

    Passes are single-flight: a second caller waits for the running pass to
    finish before starting its own.
    """

    def __init__(
        self,
        store: AlertStore,
        providers: RateProviders,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.providers = providers
        self.clock = clock
        self._lock = asyncio.Lock()
        self.logger = logger.bind(service="alert_checker")

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def check_alerts(self, context: Optional[CheckContext] = None) -> CheckResult:
        """
        Run one checking pass.

        Args:
            context: Optional cancellation handle; checked before every fetch

        Returns:
            CheckResult with the alerts triggered and reset by this pass

        Raises:
            PersistenceError: If the alerts cannot be loaded
        """
        if context is None:
            context = CheckContext(clock=self.clock)

        if self._lock.locked():
            self.logger.debug("Check already in progress, waiting")

        async with self._lock:
            start = time.perf_counter()
            result = await self._run_pass(context)
            duration_ms = (time.perf_counter() - start) * 1000

            log_performance(
                "check_alerts",
                duration_ms,
                evaluated=result.evaluated,
                triggered=len(result.triggered),
                reset=len(result.reset),
                errors=len(result.errors),
                cancelled=result.cancelled,
            )
            return result

    async def _run_pass(self, context: CheckContext) -> CheckResult:
        result = CheckResult()
        alerts = self.store.load_all()
        eligible = [alert for alert in alerts if alert.is_eligible]

        self.logger.info(
            "Starting alert check", total=len(alerts), eligible=len(eligible)
        )

        for alert in eligible:
            if context.should_stop():
                result.cancelled = True
                break

            try:
                quote = await self.providers.fetch_for(alert)
            except ProviderError as e:
                self.logger.warning(
                    "Failed to fetch value for alert",
                    alert_id=alert.id,
                    pair=alert.pair_label,
                    error=str(e),
                )
                result.errors[alert.id] = e
                continue
            except Exception as e:
                self.logger.error(
                    "Unexpected error fetching value for alert",
                    alert_id=alert.id,
                    pair=alert.pair_label,
                    error=str(e),
                    exc_info=True,
                )
                result.errors[alert.id] = e
                continue

            # The pass was cancelled while the fetch was in flight
            if context.should_stop():
                result.cancelled = True
                break

            result.evaluated += 1
            if not evaluate(alert.condition, quote.value):
                continue

            triggered = self._persist_trigger(alert, result)
            if triggered is not None:
                result.triggered.append(triggered)
                result.observed[triggered.id] = quote.value
                self.logger.info(
                    "Alert triggered",
                    alert_id=triggered.id,
                    pair=triggered.pair_label,
                    condition=triggered.condition.display_name,
                    threshold=str(triggered.condition.threshold),
                    current_value=str(quote.value),
                )

        if result.cancelled:
            self.logger.warning(
                "Alert check cancelled",
                evaluated=result.evaluated,
                eligible=len(eligible),
            )
            return result

        result.reset = self._auto_reset(alerts, result)
        return result

    def _persist_trigger(self, alert: Alert, result: CheckResult) -> Optional[Alert]:
        triggered_at = self.clock()

        def mark(fresh: Alert) -> bool:
            # Deleted, disabled or triggered since the pass loaded it
            if not fresh.is_eligible:
                return False
            fresh.mark_as_triggered(triggered_at)
            return True

        try:
            updated = self.store.update(alert.id, mark)
        except PersistenceError as e:
            self.logger.error(
                "Failed to persist triggered alert",
                alert_id=alert.id,
                error=str(e),
            )
            result.errors[alert.id] = e
            return None

        if updated is None:
            self.logger.info(
                "Alert changed during check, trigger skipped", alert_id=alert.id
            )
        return updated

    def _auto_reset(self, alerts: List[Alert], result: CheckResult) -> List[Alert]:
        now = self.clock()
        reset: List[Alert] = []

        def reset_if_due(fresh: Alert) -> bool:
            if not fresh.is_due_for_auto_reset(now):
                return False
            fresh.reset()
            return True

        for alert in alerts:
            if not alert.is_due_for_auto_reset(now):
                continue

            try:
                updated = self.store.update(alert.id, reset_if_due)
            except PersistenceError as e:
                self.logger.error(
                    "Failed to auto-reset alert", alert_id=alert.id, error=str(e)
                )
                result.errors[alert.id] = e
                continue

            if updated is not None:
                reset.append(updated)
                self.logger.info(
                    "Alert auto-reset",
                    alert_id=updated.id,
                    pair=updated.pair_label,
                    after_hours=updated.auto_reset_after_hours,
                )

        return reset
