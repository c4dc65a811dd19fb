"""Database module for SQLAlchemy ORM integration."""

from .database import (
    Base,
    create_engine_from_url,
    create_tables,
    get_engine,
    get_session_factory,
)
from .models import AlertRecord, NotificationMessageRecord
from .repositories import (
    AlertRepository,
    AlertStore,
    BaseRepository,
    NotificationMessageRepository,
)

__all__ = [
    # Database components
    "Base",
    "create_engine_from_url",
    "create_tables",
    "get_engine",
    "get_session_factory",
    # Models
    "AlertRecord",
    "NotificationMessageRecord",
    # Repositories
    "AlertRepository",
    "AlertStore",
    "BaseRepository",
    "NotificationMessageRepository",
]
