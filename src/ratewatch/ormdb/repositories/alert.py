"""Repository for alert persistence."""

import threading
from datetime import UTC, datetime
from decimal import Decimal
from typing import Callable, List, Optional, Protocol

from sqlalchemy.orm.exc import StaleDataError

from ...config.logging import get_logger
from ...exceptions import PersistenceError
from ...models import Alert, AlertCondition
from ..models import AlertRecord
from .base import BaseRepository

logger = get_logger(__name__)

# Concurrent writes to one alert before update gives up
UPDATE_ATTEMPTS = 3

# One writer at a time across every repository instance in the process;
# writers in other processes are caught by the row version check.
_write_lock = threading.RLock()


class AlertStore(Protocol):
    """Durable alert collection keyed by alert id."""

    def load_all(self) -> List[Alert]:
        ...

    def get(self, alert_id: str) -> Optional[Alert]:
        ...

    def save(self, alert: Alert) -> Alert:
        ...

    def delete(self, alert_id: str) -> bool:
        ...

    def update(
        self, alert_id: str, mutator: Callable[[Alert], bool]
    ) -> Optional[Alert]:
        ...


def _to_storage_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.astimezone(UTC).replace(tzinfo=None)


class AlertRepository(BaseRepository):
    """SQLAlchemy-backed alert store with per-alert read-modify-write."""

    def load_all(self) -> List[Alert]:
        """Load every alert, oldest first."""
        with self.session_scope("load_all") as session:
            records = (
                session.query(AlertRecord).order_by(AlertRecord.created_at).all()
            )
            return [self._to_alert(record) for record in records]

    def get(self, alert_id: str) -> Optional[Alert]:
        """Get a single alert by id."""
        with self.session_scope("get") as session:
            record = session.get(AlertRecord, alert_id)
            return self._to_alert(record) if record else None

    def save(self, alert: Alert) -> Alert:
        """Insert or replace the row for this alert id."""
        with _write_lock, self.session_scope("save") as session:
            record = session.get(AlertRecord, alert.id)
            if record is None:
                record = AlertRecord(id=alert.id)
                session.add(record)
            self._populate(record, alert)
        return alert

    def delete(self, alert_id: str) -> bool:
        """Delete an alert; deleting a missing id is not an error."""
        with _write_lock, self.session_scope("delete") as session:
            record = session.get(AlertRecord, alert_id)
            if record is None:
                return False
            session.delete(record)
            return True

    def update(
        self, alert_id: str, mutator: Callable[[Alert], bool]
    ) -> Optional[Alert]:
        """
        Atomically read, mutate and write back a single alert.

        The write only lands if the row still has the version that was read.
        When another process wrote it in between, the mutator runs again on
        the newer row, so a condition it checks (such as eligibility) is
        always judged against what is actually stored.

        Args:
            alert_id: Alert to update
            mutator: Applied to a fresh copy; returns True if it changed it

        Returns:
            The stored alert when the mutator changed it, otherwise None
            (including when the alert no longer exists)

        Raises:
            PersistenceError: If storage fails or the row keeps changing
        """
        for attempt in range(1, UPDATE_ATTEMPTS + 1):
            with _write_lock, self.session_scope("update") as session:
                record = session.get(AlertRecord, alert_id)
                if record is None:
                    return None

                alert = self._to_alert(record)
                if not mutator(alert):
                    return None

                # Re-validate so a mutation can never persist a broken invariant
                alert = Alert.model_validate(alert.model_dump())
                self._populate(record, alert)
                try:
                    session.flush()
                except StaleDataError:
                    session.rollback()
                    logger.info(
                        "Alert changed by another writer, retrying update",
                        alert_id=alert_id,
                        attempt=attempt,
                    )
                    continue
                return alert

        raise PersistenceError(
            "update", f"alert {alert_id} kept changing during {UPDATE_ATTEMPTS} attempts"
        )

    @staticmethod
    def _populate(record: AlertRecord, alert: Alert) -> None:
        record.kind = alert.kind.value
        record.base_currency = alert.base_currency
        record.target_currency = alert.target_currency
        record.crypto_id = alert.crypto_id
        record.crypto_symbol = alert.crypto_symbol
        record.condition_direction = alert.condition.direction.value
        record.threshold = str(alert.condition.threshold)
        record.enabled = alert.enabled
        record.status = alert.status.value
        record.triggered_at = _to_storage_time(alert.triggered_at)
        record.created_at = _to_storage_time(alert.created_at)
        record.auto_reset_after_hours = alert.auto_reset_after_hours

    @staticmethod
    def _to_alert(record: AlertRecord) -> Alert:
        return Alert(
            id=record.id,
            kind=record.kind,
            base_currency=record.base_currency,
            target_currency=record.target_currency,
            crypto_id=record.crypto_id,
            crypto_symbol=record.crypto_symbol,
            condition=AlertCondition(
                direction=record.condition_direction,
                threshold=Decimal(record.threshold),
            ),
            enabled=record.enabled,
            status=record.status,
            triggered_at=record.triggered_at,
            created_at=record.created_at,
            auto_reset_after_hours=record.auto_reset_after_hours,
        )
