"""Data models for alert notifications."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class AuthorizationStatus(Enum):
    """Whether the user allows the app to post notifications."""

    AUTHORIZED = "authorized"
    DENIED = "denied"
    NOT_DETERMINED = "not_determined"
    PROVISIONAL = "provisional"
    UNKNOWN = "unknown"


class NotificationChannel(Enum):
    """Available notification channels."""

    LOG = "log"
    TELEGRAM = "telegram"


class PresentationOption(Enum):
    """How a delivered notification is presented."""

    BANNER = "banner"
    SOUND = "sound"
    BADGE = "badge"


# Alerts are presented in full even while the app is in the foreground
DEFAULT_PRESENTATION: Tuple[PresentationOption, ...] = (
    PresentationOption.BANNER,
    PresentationOption.SOUND,
    PresentationOption.BADGE,
)


@dataclass
class NotificationContent:
    """Content of a single user-visible notification."""

    title: str
    body: str
    sound: bool = True
    badge: Optional[int] = None
    presentation: Tuple[PresentationOption, ...] = field(
        default_factory=lambda: DEFAULT_PRESENTATION
    )


@dataclass
class NotificationResult:
    """Result of notification delivery attempt."""

    channel: NotificationChannel
    success: bool
    identifier: str
    message_id: Optional[str]
    error: Optional[str]
    delivery_time_ms: float
