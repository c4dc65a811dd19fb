"""Notification center implementations."""

import asyncio
import html
from typing import Any, Dict, Iterable, Optional, Protocol

import aiohttp

from ...config.logging import get_logger
from ...config.settings import Settings
from ...exceptions import NotificationError, PersistenceError
from .models import AuthorizationStatus, NotificationChannel, NotificationContent

logger = get_logger(__name__)


class NotificationCenterProtocol(Protocol):
    """Protocol for the system that actually shows notifications to the user."""

    channel: NotificationChannel

    async def request_authorization(self) -> AuthorizationStatus:
        """Ask the user for permission to post notifications."""
        ...

    async def get_authorization_status(self) -> AuthorizationStatus:
        ...

    async def schedule(
        self, identifier: str, content: NotificationContent
    ) -> Optional[str]:
        """Deliver now, replacing any notification with the same identifier."""
        ...

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        ...

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        ...

    async def set_badge_count(self, count: int) -> None:
        ...


class LogNotificationCenter:
    """
    Notification center that delivers by writing a structured log line.

    It keeps the delivered notifications and the badge count in memory, so
    it also serves as the local channel when no messaging service is set up.
    """

    channel = NotificationChannel.LOG

    def __init__(
        self,
        grant: AuthorizationStatus = AuthorizationStatus.AUTHORIZED,
        status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
    ):
        self._grant = grant
        self._status = status
        self.pending: Dict[str, NotificationContent] = {}
        self.delivered: Dict[str, NotificationContent] = {}
        self.badge_count = 0
        self.authorization_requests = 0
        self.logger = logger.bind(channel=self.channel.value)

    async def request_authorization(self) -> AuthorizationStatus:
        self.authorization_requests += 1
        # The user is only ever asked once
        if self._status == AuthorizationStatus.NOT_DETERMINED:
            self._status = self._grant
        return self._status

    async def get_authorization_status(self) -> AuthorizationStatus:
        return self._status

    async def schedule(
        self, identifier: str, content: NotificationContent
    ) -> Optional[str]:
        if self._status != AuthorizationStatus.AUTHORIZED:
            raise NotificationError(self.channel.value, "not authorized")

        self.pending.pop(identifier, None)
        self.delivered[identifier] = content
        if content.badge is not None:
            self.badge_count = content.badge

        self.logger.info(
            "Notification delivered",
            identifier=identifier,
            title=content.title,
            body=content.body,
            sound=content.sound,
            badge=content.badge,
        )
        return identifier

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self.pending.pop(identifier, None)

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            if self.delivered.pop(identifier, None) is not None:
                self.logger.debug("Notification removed", identifier=identifier)

    async def set_badge_count(self, count: int) -> None:
        self.badge_count = count


class NotificationMessageStore(Protocol):
    """Durable identifier → message id map for channels that post messages."""

    def get(self, channel: str, identifier: str) -> Optional[str]:
        ...

    def save(self, channel: str, identifier: str, message_id: str) -> None:
        ...

    def pop(self, channel: str, identifier: str) -> Optional[str]:
        ...


class TelegramNotificationCenter:
    """
    Notification center backed by a Telegram bot chat.

    Each alert id maps to at most one visible message: delivering again for
    the same id deletes the previous message first. The message ids live in
    `message_store`, so any process can replace or remove them.
    """

    channel = NotificationChannel.TELEGRAM

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        message_store: NotificationMessageStore,
        timeout_seconds: float = 30.0,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.message_store = message_store
        self.base_url = f"https://api.telegram.org/bot{bot_token}"
        self.timeout_seconds = timeout_seconds
        self._status = AuthorizationStatus.NOT_DETERMINED
        self.badge_count = 0
        self.logger = logger.bind(channel=self.channel.value)

    async def _call(self, method: str, data: Optional[Dict[str, Any]] = None) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    f"{self.base_url}/{method}", json=data or {}
                ) as response:
                    payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise NotificationError(self.channel.value, f"{method}: {e}") from e

        if not isinstance(payload, dict):
            raise NotificationError(
                self.channel.value, f"{method}: unexpected response {payload!r}"
            )
        if not payload.get("ok"):
            raise NotificationError(
                self.channel.value,
                f"{method}: {payload.get('description', 'request rejected')}",
            )
        return payload.get("result")

    async def request_authorization(self) -> AuthorizationStatus:
        if not self.bot_token or not self.chat_id:
            self.logger.warning("Telegram bot token or chat id not configured")
            self._status = AuthorizationStatus.DENIED
            return self._status

        try:
            bot = await self._call("getMe")
        except NotificationError as e:
            self.logger.warning("Telegram authorization failed", error=str(e))
            self._status = AuthorizationStatus.DENIED
            return self._status

        username = bot.get("username") if isinstance(bot, dict) else None
        self.logger.info("Telegram bot authorized", username=username)
        self._status = AuthorizationStatus.AUTHORIZED
        return self._status

    async def get_authorization_status(self) -> AuthorizationStatus:
        return self._status

    async def schedule(
        self, identifier: str, content: NotificationContent
    ) -> Optional[str]:
        if self._stored_message_id(identifier) is not None:
            await self.remove_delivered([identifier])

        text = f"<b>{html.escape(content.title)}</b>\n{html.escape(content.body)}"
        result = await self._call(
            "sendMessage",
            {
                "chat_id": self.chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_notification": not content.sound,
            },
        )

        message_id = result.get("message_id") if isinstance(result, dict) else None
        if message_id is not None:
            try:
                self.message_store.save(self.channel.value, identifier, str(message_id))
            except PersistenceError as e:
                # Sent, but a later replace or cancel will not find it
                self.logger.error(
                    "Failed to record Telegram message",
                    identifier=identifier,
                    message_id=message_id,
                    error=str(e),
                )
        if content.badge is not None:
            self.badge_count = content.badge

        self.logger.info(
            "Telegram notification sent",
            identifier=identifier,
            chat_id=self.chat_id,
            message_id=message_id,
        )
        return str(message_id) if message_id is not None else None

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        # Telegram messages are sent immediately, nothing is ever pending
        return None

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            try:
                message_id = self.message_store.pop(self.channel.value, identifier)
            except PersistenceError as e:
                raise NotificationError(self.channel.value, str(e)) from e
            if message_id is None:
                continue
            try:
                await self._call(
                    "deleteMessage",
                    {"chat_id": self.chat_id, "message_id": int(message_id)},
                )
            except NotificationError as e:
                # Messages older than 48 hours cannot be deleted by bots
                self.logger.warning(
                    "Failed to delete Telegram message",
                    identifier=identifier,
                    message_id=message_id,
                    error=str(e),
                )

    async def set_badge_count(self, count: int) -> None:
        self.badge_count = count

    def _stored_message_id(self, identifier: str) -> Optional[str]:
        try:
            return self.message_store.get(self.channel.value, identifier)
        except PersistenceError as e:
            raise NotificationError(self.channel.value, str(e)) from e


def create_notification_center(
    settings: Settings, message_store: NotificationMessageStore
) -> NotificationCenterProtocol:
    """Create the notification center selected by `notification_channel`."""
    if settings.notification_channel == NotificationChannel.TELEGRAM.value:
        return TelegramNotificationCenter(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            message_store=message_store,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    return LogNotificationCenter()
