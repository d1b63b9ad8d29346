"""Squad chat: a single conversation per squad, oldest message first."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from basecamp.core.constants import (
    DEFAULT_DISPLAY_NAME,
    MAX_MESSAGE_LENGTH,
    MESSAGE_HISTORY_LIMIT,
    MESSAGES_COLLECTION,
)
from basecamp.core.dates import to_utc
from basecamp.core.live import LiveCollection
from basecamp.errors import ValidationError

from .models import Message

if TYPE_CHECKING:
    from basecamp.core.store import EventStore

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def sent_at(message: dict[str, Any]) -> datetime.datetime:
    try:
        return to_utc(message.get("createdAt")) or _EPOCH
    except (TypeError, ValueError):
        return _EPOCH


def latest_messages(
    messages: list[dict[str, Any]], limit: int = MESSAGE_HISTORY_LIMIT
) -> list[dict[str, Any]]:
    """The newest ``limit`` messages, in the order they were sent."""
    ordered = sorted(messages, key=sent_at)
    return ordered[-limit:] if limit else ordered


class MessageService:
    """Sends and reads squad chat messages."""

    @staticmethod
    def _require_squad(actor: dict[str, Any]) -> str:
        group_id = actor.get("groupId")
        if not group_id:
            raise ValidationError("Join a squad to chat.")
        return group_id

    @staticmethod
    def send(store: EventStore, actor: dict[str, Any], text: str) -> Message:
        """Post ``text`` to the actor's squad chat."""
        group_id = MessageService._require_squad(actor)
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message cannot be empty.")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError("Message is too long.")

        message_id = store.new_document_id(MESSAGES_COLLECTION)
        message = {
            "text": text,
            "senderId": actor["id"],
            "senderName": actor.get("displayName") or DEFAULT_DISPLAY_NAME,
            "senderPhoto": actor.get("photoURL"),
            "groupId": group_id,
            "createdAt": datetime.datetime.now(datetime.timezone.utc),
        }
        store.write_document(MESSAGES_COLLECTION, message_id, message)
        logger.debug(f"Message {message_id} sent to squad {group_id}")
        return {**message, "id": message_id}  # type: ignore[return-value]

    @staticmethod
    def list_messages(
        store: EventStore,
        actor: dict[str, Any],
        limit: int = MESSAGE_HISTORY_LIMIT,
    ) -> list[Message]:
        group_id = MessageService._require_squad(actor)
        messages = store.query(MESSAGES_COLLECTION, [("groupId", "==", group_id)])
        return latest_messages(messages, limit)  # type: ignore[return-value]

    @staticmethod
    def live_feed(store: EventStore, actor: dict[str, Any]) -> LiveCollection:
        """An unstarted live view of the actor's squad chat."""
        group_id = MessageService._require_squad(actor)
        return LiveCollection(
            store,
            MESSAGES_COLLECTION,
            [("groupId", "==", group_id)],
            sort_key=sent_at,
        )
