"""SQLAlchemy ORM models for the ratewatch application."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from .database import Base


class AlertRecord(Base):
    """Persisted alert, one row per alert id."""

    __tablename__ = "alerts"

    id = Column(String(32), primary_key=True)
    kind = Column(String, nullable=False, index=True)
    base_currency = Column(String(3), nullable=True)
    target_currency = Column(String(3), nullable=True)
    crypto_id = Column(String, nullable=True)
    crypto_symbol = Column(String, nullable=True)
    condition_direction = Column(String, nullable=False)
    # Text keeps the Decimal threshold exact on every backend
    threshold = Column(String, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    status = Column(String, default="active", nullable=False, index=True)
    triggered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    auto_reset_after_hours = Column(Integer, nullable=True)
    # Bumped on every write; an UPDATE against a stale version matches no row
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return (
            f"<AlertRecord(id='{self.id}', kind='{self.kind}', "
            f"status='{self.status}', version={self.version})>"
        )


class NotificationMessageRecord(Base):
    """Message a channel posted for a notification identifier (an alert id)."""

    __tablename__ = "notification_messages"

    channel = Column(String, primary_key=True)
    identifier = Column(String, primary_key=True)
    message_id = Column(String, nullable=False)
    delivered_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return (
            f"<NotificationMessageRecord(channel='{self.channel}', "
            f"identifier='{self.identifier}', message_id='{self.message_id}')>"
        )
