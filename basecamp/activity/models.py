"""Data models for the activity blueprint."""

from __future__ import annotations

import datetime
from typing import Literal

from basecamp.core.types import FirestoreDocument

ActivityType = Literal["create", "update", "delete", "join", "leave"]
EntityType = Literal["event"]

ACTIVITY_TYPES = ("create", "update", "delete", "join", "leave")


class ActivityLog(FirestoreDocument, total=False):
    """An append-only activity entry, scoped to a squad."""

    type: ActivityType
    entityType: EntityType
    entityId: str
    entityTitle: str
    userId: str
    userName: str
    userPhotoURL: str | None
    groupId: str
    timestamp: datetime.datetime
    details: str
