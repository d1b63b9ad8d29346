"""Service layer for events, participation and comments."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from google.api_core import exceptions as google_exceptions

from basecamp.activity.services import ActivityService
from basecamp.core.constants import (
    COMMENTS_COLLECTION,
    EVENT_PARTICIPANTS,
    EVENT_PENDING,
    EVENTS_COLLECTION,
    MAX_COVER_PHOTO_BYTES,
    USERS_COLLECTION,
)
from basecamp.errors import AccessDenied, NotFoundError, ValidationError

from .models import (
    DEFAULT_COLOR,
    CalendarEvent,
    Comment,
    EventColor,
    event_from_firestore,
    event_to_firestore,
    to_utc,
)
from .participation import (
    ParticipationAction,
    ParticipationState,
    Transition,
    apply_action,
)

if TYPE_CHECKING:
    from basecamp.core.store import EventStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "startTime",
        "endTime",
        "color",
        "tags",
        EVENT_PARTICIPANTS,
        "meetingLink",
        "coverPhoto",
        "isAllDay",
    }
)
MAX_COMMENT_LENGTH = 1000
_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def validate_event_fields(
    fields: dict[str, Any],
    current: dict[str, Any] | None = None,
    max_cover_bytes: int = MAX_COVER_PHOTO_BYTES,
) -> None:
    """Reject bad event input before anything is written.

    ``current`` is the stored event when ``fields`` is a partial patch.
    """
    current = current or {}
    if "title" in fields and not str(fields["title"] or "").strip():
        raise ValidationError("Event title is required.")

    start = fields.get("startTime", current.get("startTime"))
    end = fields.get("endTime", current.get("endTime"))
    if start is None or end is None:
        raise ValidationError("Event start and end times are required.")
    try:
        start, end = to_utc(start), to_utc(end)
    except (TypeError, ValueError) as e:
        raise ValidationError("Event times are not valid.") from e
    if end < start:
        raise ValidationError("An event cannot end before it starts.")

    color = fields.get("color")
    if color is not None and color not in {c.value for c in EventColor}:
        raise ValidationError(f"Unknown event color: {color}.")

    cover = fields.get("coverPhoto")
    if cover and len(cover.encode("utf-8")) > max_cover_bytes:
        raise ValidationError("Cover photo is too large.")


def filter_events(
    events: Iterable[dict[str, Any]], user_id: str | None = None, mine: bool = False
) -> list[dict[str, Any]]:
    """Apply the "my events only" predicate to an event list."""
    if not mine:
        return list(events)
    return [event for event in events if event.get("createdBy") == user_id]


def upcoming_events(
    events: Iterable[dict[str, Any]], now: datetime.datetime | None = None
) -> list[dict[str, Any]]:
    """Events starting after a day ago, soonest first."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    cutoff = now - datetime.timedelta(days=1)
    upcoming = [event for event in events if to_utc(event["startTime"]) > cutoff]
    upcoming.sort(key=lambda event: to_utc(event["startTime"]))
    return upcoming


def owned_events_summary(
    events: Iterable[dict[str, Any]], user_id: str
) -> list[dict[str, Any]]:
    """The user's own events with the number of join requests waiting on them."""
    return [
        {"event": event, "pendingCount": len(event.get(EVENT_PENDING) or [])}
        for event in events
        if event.get("createdBy") == user_id
    ]


class EventService:
    """Service class for event-related operations."""

    @staticmethod
    def get_event(store: EventStore, event_id: str) -> CalendarEvent:
        data = store.get_document(EVENTS_COLLECTION, event_id)
        if data is None:
            raise NotFoundError("Event not found.")
        return event_from_firestore(data)

    @staticmethod
    def get_visible_event(
        store: EventStore, actor: dict[str, Any], event_id: str
    ) -> CalendarEvent:
        """Fetch an event the actor's squad can see."""
        event = EventService.get_event(store, event_id)
        if event.get("groupId") != actor.get("groupId"):
            raise AccessDenied("This event belongs to another squad.")
        return event

    @staticmethod
    def get_group_events(
        store: EventStore, group_id: str | None
    ) -> list[CalendarEvent]:
        """All events of a squad, ordered by start time."""
        if not group_id:
            return []
        events = [
            event_from_firestore(data)
            for data in store.query(EVENTS_COLLECTION, [("groupId", "==", group_id)])
        ]
        events.sort(key=lambda event: event["startTime"])
        return events

    @staticmethod
    def require_owner(event: dict[str, Any], actor_id: str) -> None:
        if event.get("createdBy") != actor_id:
            raise AccessDenied("Only the event owner can do that.")

    @staticmethod
    def create_event(
        store: EventStore,
        actor: dict[str, Any],
        data: dict[str, Any],
        max_cover_bytes: int = MAX_COVER_PHOTO_BYTES,
    ) -> CalendarEvent:
        """Create an event owned by ``actor`` in the actor's squad."""
        group_id = actor.get("groupId")
        if not group_id:
            raise ValidationError("Create or join a squad before adding events.")
        if not str(data.get("title") or "").strip():
            raise ValidationError("Event title is required.")
        validate_event_fields(data, max_cover_bytes=max_cover_bytes)

        owner_id = actor["id"]
        state = ParticipationState.of(
            data.get(EVENT_PARTICIPANTS) or [owner_id], owner_id=owner_id
        )
        event: dict[str, Any] = {
            key: value for key, value in data.items() if key in EDITABLE_FIELDS
        }
        event.update(
            {
                "title": data["title"].strip(),
                "description": data.get("description") or "",
                "color": data.get("color") or DEFAULT_COLOR.value,
                "tags": data.get("tags") or [],
                "isAllDay": bool(data.get("isAllDay", False)),
                "createdBy": owner_id,
                "groupId": group_id,
                **state.as_fields(),
            }
        )

        event_id = store.new_document_id(EVENTS_COLLECTION)
        stored = event_to_firestore(event)
        store.write_document(EVENTS_COLLECTION, event_id, stored)
        ActivityService.log_activity(store, actor, "create", event_id, event["title"])
        return event_from_firestore({**stored, "id": event_id})

    @staticmethod
    def update_event(
        store: EventStore,
        actor: dict[str, Any],
        event_id: str,
        patch: dict[str, Any],
        max_cover_bytes: int = MAX_COVER_PHOTO_BYTES,
    ) -> CalendarEvent:
        """Merge ``patch`` into an event; fields not in the patch are untouched."""
        event = EventService.get_event(store, event_id)
        EventService.require_owner(event, actor["id"])

        changes = {key: value for key, value in patch.items() if key in EDITABLE_FIELDS}
        if not changes:
            return event
        validate_event_fields(changes, event, max_cover_bytes=max_cover_bytes)

        remove: dict[str, list[str]] = {}
        if EVENT_PARTICIPANTS in changes:
            state = ParticipationState.of(
                changes[EVENT_PARTICIPANTS], owner_id=event["createdBy"]
            )
            changes[EVENT_PARTICIPANTS] = sorted(state.participants)
            cleared = sorted(state.participants & set(event.get(EVENT_PENDING, [])))
            if cleared:
                remove[EVENT_PENDING] = cleared

        fields = event_to_firestore(changes)
        store.update_document(EVENTS_COLLECTION, event_id, fields, remove=remove)
        ActivityService.log_activity(
            store,
            actor,
            "update",
            event_id,
            fields.get("title", event.get("title", "")),
            details="changed " + ", ".join(sorted(fields)),
        )

        updated = {**event, **fields}
        if remove:
            updated[EVENT_PENDING] = [
                uid
                for uid in event.get(EVENT_PENDING, [])
                if uid not in remove[EVENT_PENDING]
            ]
        return event_from_firestore(updated)

    @staticmethod
    def delete_event(store: EventStore, actor: dict[str, Any], event_id: str) -> None:
        """Delete an event the actor owns."""
        event = EventService.get_event(store, event_id)
        EventService.require_owner(event, actor["id"])
        store.delete_document(EVENTS_COLLECTION, event_id)
        ActivityService.log_activity(
            store, actor, "delete", event_id, event.get("title", "")
        )

    @staticmethod
    def delete_events(
        store: EventStore, actor: dict[str, Any], event_ids: Iterable[str]
    ) -> tuple[list[str], list[str]]:
        """Delete several events; returns (deleted ids, refused ids)."""
        deleted, refused = [], []
        for event_id in dict.fromkeys(event_ids):
            try:
                EventService.delete_event(store, actor, event_id)
            except (AccessDenied, NotFoundError):
                refused.append(event_id)
            else:
                deleted.append(event_id)
        return deleted, refused


def _request_join(store: EventStore, event_id: str, user_id: str) -> None:
    store.array_add(EVENTS_COLLECTION, event_id, EVENT_PENDING, user_id)


def _drop_request(store: EventStore, event_id: str, user_id: str) -> None:
    store.array_remove(EVENTS_COLLECTION, event_id, EVENT_PENDING, user_id)


def _approve(store: EventStore, event_id: str, user_id: str) -> None:
    store.array_move(
        EVENTS_COLLECTION, event_id, EVENT_PENDING, EVENT_PARTICIPANTS, user_id
    )


def _leave(store: EventStore, event_id: str, user_id: str) -> None:
    store.array_remove(EVENTS_COLLECTION, event_id, EVENT_PARTICIPANTS, user_id)


# Each transition is written as an atomic array operation so that concurrent
# writers touching other ids (or other fields) are never overwritten.
WRITES: dict[ParticipationAction, Callable[[EventStore, str, str], None]] = {
    ParticipationAction.REQUEST_JOIN: _request_join,
    ParticipationAction.CANCEL_REQUEST: _drop_request,
    ParticipationAction.APPROVE: _approve,
    ParticipationAction.REJECT: _drop_request,
    ParticipationAction.LEAVE: _leave,
}


class ParticipationService:
    """Applies participation actions to stored events."""

    @staticmethod
    def plan(
        event: dict[str, Any],
        actor: dict[str, Any],
        action: ParticipationAction | str,
        subject_id: str | None = None,
    ) -> Transition:
        """Compute the transition without writing anything."""
        return apply_action(
            ParticipationState.from_event(event),
            owner_id=event["createdBy"],
            actor_id=actor["id"],
            action=action,
            subject_id=subject_id,
        )

    @staticmethod
    def commit(
        store: EventStore,
        event: dict[str, Any],
        actor: dict[str, Any],
        transition: Transition,
    ) -> None:
        """Write a planned transition and log it when it is a join or leave."""
        if not transition.changed:
            return
        WRITES[transition.action](store, event["id"], transition.subject_id)
        if transition.log_type:
            subject = ParticipationService._subject_snapshot(
                store, actor, transition.subject_id
            )
            ActivityService.log_activity(
                store,
                subject,
                transition.log_type,
                event["id"],
                event.get("title", ""),
            )

    @staticmethod
    def _subject_snapshot(
        store: EventStore, actor: dict[str, Any], subject_id: str
    ) -> dict[str, Any]:
        """Identity of the user the log entry is about, in the actor's squad."""
        if subject_id == actor["id"]:
            return actor
        try:
            subject = store.get_document(USERS_COLLECTION, subject_id)
        except google_exceptions.GoogleAPICallError as e:
            logger.warning(f"Could not load user {subject_id} for activity log: {e}")
            subject = None
        subject = subject or {"id": subject_id}
        return {**subject, "groupId": actor.get("groupId")}

    @staticmethod
    def perform(
        store: EventStore,
        actor: dict[str, Any],
        event_id: str,
        action: ParticipationAction | str,
        subject_id: str | None = None,
    ) -> Transition:
        """Read the event, apply ``action`` and write the result."""
        event = EventService.get_visible_event(store, actor, event_id)
        transition = ParticipationService.plan(event, actor, action, subject_id)
        ParticipationService.commit(store, event, actor, transition)
        return transition

    @staticmethod
    def request_join(store, actor, event_id):
        return ParticipationService.perform(
            store, actor, event_id, ParticipationAction.REQUEST_JOIN
        )

    @staticmethod
    def cancel_request(store, actor, event_id):
        return ParticipationService.perform(
            store, actor, event_id, ParticipationAction.CANCEL_REQUEST
        )

    @staticmethod
    def approve(store, actor, event_id, user_id):
        return ParticipationService.perform(
            store, actor, event_id, ParticipationAction.APPROVE, user_id
        )

    @staticmethod
    def reject(store, actor, event_id, user_id):
        return ParticipationService.perform(
            store, actor, event_id, ParticipationAction.REJECT, user_id
        )

    @staticmethod
    def leave(store, actor, event_id):
        return ParticipationService.perform(
            store, actor, event_id, ParticipationAction.LEAVE
        )


class CommentService:
    """Append-only comments on events."""

    @staticmethod
    def add_comment(
        store: EventStore, actor: dict[str, Any], event_id: str, text: str
    ) -> Comment:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment cannot be empty.")
        if len(text) > MAX_COMMENT_LENGTH:
            raise ValidationError("Comment is too long.")
        EventService.get_visible_event(store, actor, event_id)

        comment_id = store.new_document_id(COMMENTS_COLLECTION)
        comment = {
            "eventId": event_id,
            "userId": actor["id"],
            "text": text,
            "createdAt": datetime.datetime.now(datetime.timezone.utc),
        }
        store.write_document(COMMENTS_COLLECTION, comment_id, comment)
        return {**comment, "id": comment_id}  # type: ignore[return-value]

    @staticmethod
    def list_comments(store: EventStore, event_id: str) -> list[Comment]:
        comments = store.query(COMMENTS_COLLECTION, [("eventId", "==", event_id)])
        comments.sort(key=lambda comment: to_utc(comment.get("createdAt")) or _EPOCH)
        return comments  # type: ignore[return-value]
