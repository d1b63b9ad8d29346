"""Data models for the squad blueprint."""

from __future__ import annotations

import datetime

from basecamp.core.types import FirestoreDocument


class User(FirestoreDocument, total=False):
    """A user document in Firestore."""

    email: str
    displayName: str
    photoURL: str | None
    isOnline: bool
    lastSeen: datetime.datetime | None
    currentActivity: str
    groupId: str


class Group(FirestoreDocument, total=False):
    """A squad document in Firestore."""

    name: str
    inviteCode: str
    createdBy: str
    members: list[str]


class Message(FirestoreDocument, total=False):
    """A squad chat message. Sender name and photo are copied at send time."""

    text: str
    senderId: str
    senderName: str
    senderPhoto: str | None
    groupId: str
