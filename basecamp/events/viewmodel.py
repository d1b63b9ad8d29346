"""Transient calendar UI state and the live data behind it.

``ViewState`` is the per-session part: which date and view mode are shown,
whether the "my events" filter is on, and which event modal is open.
``CalendarViewModel`` owns the live subscriptions for one viewer and turns
them into render-ready payloads.
"""

from __future__ import annotations

import datetime
import logging
import threading
from dataclasses import asdict, dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Iterable

from firebase_admin import exceptions as firebase_exceptions

from basecamp.core.constants import (
    EVENT_PARTICIPANTS,
    EVENT_PENDING,
    EVENTS_COLLECTION,
    USERS_COLLECTION,
)
from basecamp.core.live import LiveCollection
from basecamp.errors import AccessDenied, AppError, NotFoundError
from basecamp.squad.presence import PresenceService, merge_presence

from .models import ParticipantView, event_from_firestore, event_to_json, to_utc
from .projector import CalendarProjector, ViewMode, grid_to_json
from .services import (
    ParticipationService,
    filter_events,
    owned_events_summary,
    upcoming_events,
)

if TYPE_CHECKING:
    from basecamp.core.store import EventStore

    from .participation import ParticipationAction, Transition

logger = logging.getLogger(__name__)

SESSION_KEY = "calendar_view"
MODAL_EDIT = "edit"
MODAL_VIEW = "view"
UNKNOWN_USER_NAME = "Unknown"


def projector_from_config(config: dict[str, Any]) -> CalendarProjector:
    return CalendarProjector(
        timezone=config["CALENDAR_TIMEZONE"],
        first_weekday=config["FIRST_WEEKDAY"],
        min_height=config["MIN_EVENT_HEIGHT"],
        preview_limit=config["MONTH_PREVIEW_LIMIT"],
    )


def resolve_modal_mode(
    event: dict[str, Any] | None, viewer_id: str, requested: str = MODAL_EDIT
) -> str:
    """Edit mode only for the owner, and only when not opened read-only.

    A modal without an event is the "new event" form, always editable.
    """
    if event is None:
        return MODAL_EDIT
    if requested == MODAL_VIEW or event.get("createdBy") != viewer_id:
        return MODAL_VIEW
    return MODAL_EDIT


def resolve_people(
    user_ids: Iterable[str], members: Iterable[dict[str, Any]]
) -> list[ParticipantView]:
    """Join user ids against the member list.

    Ids with no member yet (the users snapshot can lag behind the events
    snapshot) come back as placeholders with ``known=False``.
    """
    by_id = {member["id"]: member for member in members}
    people = []
    for user_id in user_ids:
        member = by_id.get(user_id)
        if member is None:
            people.append(
                ParticipantView(
                    id=user_id,
                    displayName=UNKNOWN_USER_NAME,
                    photoURL=None,
                    isOnline=False,
                    known=False,
                )
            )
            continue
        people.append(
            ParticipantView(
                id=user_id,
                displayName=member.get("displayName") or UNKNOWN_USER_NAME,
                photoURL=member.get("photoURL"),
                isOnline=bool(member.get("isOnline")),
                known=True,
            )
        )
    return people


@dataclass(frozen=True)
class ViewState:
    """What the calendar is currently showing."""

    selected_date: datetime.date
    view_mode: ViewMode = ViewMode.WEEK
    filter_mine: bool = False
    open_event_id: str | None = None
    modal_mode: str | None = None

    @classmethod
    def from_session(
        cls, data: dict[str, Any] | None, today: datetime.date
    ) -> ViewState:
        data = data or {}
        try:
            selected = datetime.date.fromisoformat(data["selected_date"])
        except (KeyError, TypeError, ValueError):
            selected = today
        try:
            mode = ViewMode(data.get("view_mode", ViewMode.WEEK))
        except ValueError:
            mode = ViewMode.WEEK
        return cls(
            selected_date=selected,
            view_mode=mode,
            filter_mine=bool(data.get("filter_mine", False)),
            open_event_id=data.get("open_event_id"),
            modal_mode=data.get("modal_mode"),
        )

    def to_session(self) -> dict[str, Any]:
        data = asdict(self)
        data["selected_date"] = self.selected_date.isoformat()
        data["view_mode"] = self.view_mode.value
        return data

    def select_date(self, day: datetime.date) -> ViewState:
        return replace(self, selected_date=day)

    def with_mode(self, mode: ViewMode | str) -> ViewState:
        return replace(self, view_mode=ViewMode(mode))

    def with_filter(self, mine: bool) -> ViewState:
        return replace(self, filter_mine=mine)

    def drill_into(self, day: datetime.date) -> ViewState:
        """Show every event of ``day``, as picked from a month or year cell."""
        return replace(self, selected_date=day, view_mode=ViewMode.DAY)

    def open_event(
        self,
        event: dict[str, Any] | None,
        viewer_id: str,
        requested: str = MODAL_EDIT,
    ) -> ViewState:
        return replace(
            self,
            open_event_id=event["id"] if event else None,
            modal_mode=resolve_modal_mode(event, viewer_id, requested),
        )

    def switch_to_edit(self, event: dict[str, Any], viewer_id: str) -> ViewState:
        if event.get("createdBy") != viewer_id:
            raise AccessDenied("Only the event owner can edit it.")
        return replace(self, open_event_id=event["id"], modal_mode=MODAL_EDIT)

    def close_modal(self) -> ViewState:
        return replace(self, open_event_id=None, modal_mode=None)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of an optimistic participation action."""

    transition: Transition
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_payload(  # noqa: PLR0913
    state: ViewState,
    events: list[dict[str, Any]],
    members: list[dict[str, Any]],
    viewer_id: str,
    projector: CalendarProjector,
    loaded: bool = True,
    today: datetime.date | None = None,
) -> dict[str, Any]:
    """Render-ready calendar screen for ``state`` over the squad's events."""
    visible = filter_events(events, viewer_id, state.filter_mine)
    grid = projector.project(visible, state.selected_date, state.view_mode, today)
    payload: dict[str, Any] = {
        "state": state.to_session(),
        "loaded": loaded,
        "grid": grid_to_json(grid),
        "weekdays": projector.weekday_names(),
        "upcoming": [event_to_json(e) for e in upcoming_events(visible)],
        "owned": [
            {
                "event": event_to_json(item["event"]),
                "pendingCount": item["pendingCount"],
            }
            for item in owned_events_summary(events, viewer_id)
        ],
        "members": members,
        "modal": None,
    }

    event = next((e for e in events if e["id"] == state.open_event_id), None)
    if event is not None:
        payload["modal"] = {
            "mode": state.modal_mode,
            "event": event_to_json(event),
            "participants": resolve_people(
                event.get(EVENT_PARTICIPANTS) or [], members
            ),
            "pending": resolve_people(event.get(EVENT_PENDING) or [], members),
        }
    elif state.modal_mode == MODAL_EDIT and state.open_event_id is None:
        payload["modal"] = {"mode": MODAL_EDIT, "event": None}
    return payload


def _start_key(event: dict[str, Any]) -> Any:
    return to_utc(event.get("startTime")) or datetime.datetime.min.replace(
        tzinfo=datetime.timezone.utc
    )


class CalendarViewModel:
    """Live events, members and presence for one viewer's squad."""

    def __init__(
        self,
        store: EventStore,
        viewer: dict[str, Any],
        projector: CalendarProjector | None = None,
        presence: PresenceService | None = None,
    ) -> None:
        self.store = store
        self.viewer = viewer
        self.projector = projector or CalendarProjector()
        group_filter = [("groupId", "==", viewer.get("groupId"))]
        self.events = LiveCollection(
            store, EVENTS_COLLECTION, group_filter, sort_key=_start_key
        )
        self.users = LiveCollection(store, USERS_COLLECTION, group_filter)
        self.presence = presence or PresenceService()
        self._unsubscribers: list[Callable[[], None]] = []

    def start(self) -> CalendarViewModel:
        self.events.start()
        self.users.start()
        try:
            self.presence.start()
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.warning(f"Presence unavailable, showing stored status: {e}")
        return self

    def close(self) -> None:
        """Stop every subscription; nothing fires after this returns."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.events.stop()
        self.users.stop()
        self.presence.stop()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` whenever events, members or presence change."""
        handles = [
            self.events.subscribe(lambda _items: callback()),
            self.users.subscribe(lambda _items: callback()),
            self.presence.subscribe(lambda _statuses: callback()),
        ]

        def unsubscribe() -> None:
            for handle in handles:
                handle()

        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    @property
    def loaded(self) -> bool:
        return self.events.loaded

    def all_events(self) -> list[dict[str, Any]]:
        return [event_from_firestore(doc) for doc in self.events.current_snapshot()]

    def visible_events(self, state: ViewState) -> list[dict[str, Any]]:
        return filter_events(self.all_events(), self.viewer["id"], state.filter_mine)

    def members(self) -> list[dict[str, Any]]:
        return merge_presence(
            self.users.current_snapshot(), self.presence.current_snapshot()
        )

    def grid(self, state: ViewState, today: datetime.date | None = None):
        return self.projector.project(
            self.visible_events(state), state.selected_date, state.view_mode, today
        )

    def payload(
        self, state: ViewState, today: datetime.date | None = None
    ) -> dict[str, Any]:
        """Everything a client needs to render the calendar screen."""
        return build_payload(
            state,
            self.all_events(),
            self.members(),
            self.viewer["id"],
            self.projector,
            loaded=self.loaded,
            today=today,
        )

    def perform(
        self,
        actor: dict[str, Any],
        event_id: str,
        action: ParticipationAction | str,
        subject_id: str | None = None,
    ) -> ActionResult:
        """Apply a participation action, showing its result before the write.

        Refused actions raise before anything changes. A failed write is
        reported in the result; the local guess stays until the next
        snapshot from the store replaces it.
        """
        doc = self.events.get(event_id)
        if doc is None:
            raise NotFoundError("Event not found.")
        event = event_from_firestore(doc)
        if event.get("groupId") != actor.get("groupId"):
            raise AccessDenied("This event belongs to another squad.")

        transition = ParticipationService.plan(event, actor, action, subject_id)
        if not transition.changed:
            return ActionResult(transition)

        self.events.apply_optimistic(
            event_id, {**doc, **transition.after.as_fields()}
        )
        try:
            ParticipationService.commit(self.store, event, actor, transition)
        except AppError as e:
            logger.warning(
                f"{transition.action.value} on {event_id} was not saved: {e}"
            )
            return ActionResult(transition, e.message)
        return ActionResult(transition)


class LiveViewRegistry:
    """The open live views, by viewer id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._views: dict[str, list[CalendarViewModel]] = {}

    def add(self, viewer_id: str, view: CalendarViewModel) -> None:
        with self._lock:
            self._views.setdefault(viewer_id, []).append(view)

    def discard(self, viewer_id: str, view: CalendarViewModel) -> None:
        with self._lock:
            views = self._views.get(viewer_id, [])
            if view in views:
                views.remove(view)
            if not views:
                self._views.pop(viewer_id, None)

    def get(self, viewer_id: str) -> CalendarViewModel | None:
        with self._lock:
            views = self._views.get(viewer_id)
            return views[-1] if views else None


live_views = LiveViewRegistry()
