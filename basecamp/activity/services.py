"""Service layer for the squad activity feed."""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import TYPE_CHECKING, Any, Iterable

from basecamp.core.constants import ACTIVITIES_COLLECTION, ACTIVITY_FEED_LIMIT
from basecamp.core.dates import to_utc

from .models import ACTIVITY_TYPES, ActivityLog

if TYPE_CHECKING:
    from basecamp.core.store import EventStore

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _timestamp_key(entry: dict[str, Any]) -> datetime.datetime:
    try:
        return to_utc(entry.get("timestamp")) or _EPOCH
    except (TypeError, ValueError):
        return _EPOCH


def latest_entries(
    entries: Iterable[dict[str, Any]], limit: int = ACTIVITY_FEED_LIMIT
) -> list[dict[str, Any]]:
    """Newest first, at most ``limit`` entries."""
    return sorted(entries, key=_timestamp_key, reverse=True)[:limit]


class ActivityService:
    """Records and reads squad activity entries."""

    @staticmethod
    def log_activity(  # noqa: PLR0913
        store: EventStore,
        actor: dict[str, Any],
        activity_type: str,
        entity_id: str,
        entity_title: str,
        details: str | None = None,
        entity_type: str = "event",
    ) -> ActivityLog | None:
        """Append one entry describing ``actor``'s action.

        The actor's name and photo are copied into the entry as they are now.
        A failed write is logged and otherwise ignored so that it never undoes
        or blocks the action being described. Actors without a squad are not
        logged.
        """
        if activity_type not in ACTIVITY_TYPES:
            raise ValueError(f"Unknown activity type: {activity_type}")
        group_id = actor.get("groupId")
        if not group_id:
            return None

        activity_id = str(uuid.uuid4())
        entry: dict[str, Any] = {
            "type": activity_type,
            "entityType": entity_type,
            "entityId": entity_id,
            "entityTitle": entity_title,
            "userId": actor["id"],
            "userName": actor.get("displayName") or "User",
            "userPhotoURL": actor.get("photoURL"),
            "groupId": group_id,
            "timestamp": datetime.datetime.now(datetime.timezone.utc),
        }
        if details:
            entry["details"] = details

        try:
            store.write_document(ACTIVITIES_COLLECTION, activity_id, entry)
        except Exception as e:
            logger.error(f"Failed to log activity for {entity_id}: {e}")
            return None

        entry["id"] = activity_id
        return entry  # type: ignore[return-value]

    @staticmethod
    def get_recent_activity(
        store: EventStore, group_id: str | None, limit: int = ACTIVITY_FEED_LIMIT
    ) -> list[dict[str, Any]]:
        """The most recent entries for a squad.

        Sorting happens here rather than in the query so that no composite
        index is needed.
        """
        if not group_id:
            return []
        entries = store.query(ACTIVITIES_COLLECTION, [("groupId", "==", group_id)])
        return latest_entries(entries, limit)
