"""Data models for the events blueprint."""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, TypedDict

from basecamp.core.dates import to_utc
from basecamp.core.types import FirestoreDocument

SET_FIELDS = ("participants", "pendingParticipants", "tags")
TIME_FIELDS = ("startTime", "endTime")


class EventColor(str, Enum):
    GREEN = "green"
    BLUE = "blue"
    RED = "red"
    PURPLE = "purple"
    ORANGE = "orange"
    PINK = "pink"
    TEAL = "teal"
    GRAY = "gray"


DEFAULT_COLOR = EventColor.BLUE


class CalendarEvent(FirestoreDocument, total=False):
    """An event document in Firestore."""

    title: str
    description: str
    startTime: datetime.datetime
    endTime: datetime.datetime
    color: str
    tags: list[str]
    createdBy: str
    groupId: str
    participants: list[str]
    pendingParticipants: list[str]
    meetingLink: str
    coverPhoto: str
    isAllDay: bool


class Comment(FirestoreDocument, total=False):
    """A comment on an event."""

    eventId: str
    userId: str
    text: str


class ParticipantView(TypedDict):
    id: str
    displayName: str
    photoURL: str | None
    isOnline: bool
    known: bool


def _unique(values: Any) -> list[str]:
    return list(dict.fromkeys(values or []))


def event_to_firestore(event: dict[str, Any]) -> dict[str, Any]:
    """Prepare an event (or a partial patch) for storage."""
    data = {key: value for key, value in event.items() if key != "id"}
    for field in TIME_FIELDS:
        if field in data:
            data[field] = to_utc(data[field])
    for field in SET_FIELDS:
        if field in data:
            data[field] = sorted(set(data[field] or []))
    if isinstance(data.get("color"), EventColor):
        data["color"] = data["color"].value
    return data


def event_from_firestore(data: dict[str, Any]) -> CalendarEvent:
    """Build an event from a stored document (id already folded in)."""
    event: dict[str, Any] = dict(data)
    for field in TIME_FIELDS:
        event[field] = to_utc(event.get(field))
    for field in SET_FIELDS:
        event[field] = _unique(event.get(field))
    event.setdefault("description", "")
    event.setdefault("color", DEFAULT_COLOR.value)
    event["isAllDay"] = bool(event.get("isAllDay", False))
    return event  # type: ignore[return-value]


def event_to_json(event: dict[str, Any]) -> dict[str, Any]:
    """Render an event for a JSON response."""
    data = dict(event)
    for field in TIME_FIELDS:
        if isinstance(data.get(field), datetime.datetime):
            data[field] = data[field].isoformat()
    return data
