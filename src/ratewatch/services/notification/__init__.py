"""Alert notification delivery module."""

from .channels import (
    LogNotificationCenter,
    NotificationCenterProtocol,
    NotificationMessageStore,
    TelegramNotificationCenter,
    create_notification_center,
)
from .models import (
    AuthorizationStatus,
    NotificationChannel,
    NotificationContent,
    NotificationResult,
    PresentationOption,
)
from .service import AlertNotifier, format_alert_body

__all__ = [
    "AlertNotifier",
    "AuthorizationStatus",
    "LogNotificationCenter",
    "NotificationCenterProtocol",
    "NotificationChannel",
    "NotificationContent",
    "NotificationMessageStore",
    "NotificationResult",
    "PresentationOption",
    "TelegramNotificationCenter",
    "create_notification_center",
    "format_alert_body",
]
