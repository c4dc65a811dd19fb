"""Repository classes for database operations using SQLAlchemy ORM."""

from .alert import AlertRepository, AlertStore
from .base import BaseRepository
from .notification_message import NotificationMessageRepository

__all__ = [
    "AlertRepository",
    "AlertStore",
    "BaseRepository",
    "NotificationMessageRepository",
]
