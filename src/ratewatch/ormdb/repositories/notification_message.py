"""Repository for messages posted by notification channels."""

from typing import Optional

from ...models import utcnow
from ..models import NotificationMessageRecord
from .base import BaseRepository


class NotificationMessageRepository(BaseRepository):
    """
    Remembers which message a channel posted for each notification identifier.

    Lets a later process (a CLI reset, a restarted service) replace or delete
    a message it did not send itself.
    """

    def get(self, channel: str, identifier: str) -> Optional[str]:
        with self.session_scope("get_message") as session:
            record = session.get(NotificationMessageRecord, (channel, identifier))
            return record.message_id if record else None

    def save(self, channel: str, identifier: str, message_id: str) -> None:
        """Record the message now shown for this identifier."""
        with self.session_scope("save_message") as session:
            record = session.get(NotificationMessageRecord, (channel, identifier))
            if record is None:
                record = NotificationMessageRecord(channel=channel, identifier=identifier)
                session.add(record)
            record.message_id = str(message_id)
            record.delivered_at = utcnow().replace(tzinfo=None)

    def pop(self, channel: str, identifier: str) -> Optional[str]:
        """Forget the message for this identifier and return its id, if any."""
        with self.session_scope("pop_message") as session:
            record = session.get(NotificationMessageRecord, (channel, identifier))
            if record is None:
                return None
            message_id = record.message_id
            session.delete(record)
            return message_id
