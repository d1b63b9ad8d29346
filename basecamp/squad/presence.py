"""Online presence backed by the Realtime Database ``/status`` tree.

Each signed-in client owns a ``/status/{uid}`` node holding
``{"state": "online" | "offline", "lastChanged": <server time>}``.
``PresenceService`` keeps a live ``{uid: is_online}`` map of that tree.
"""

from __future__ import annotations

import datetime
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable

from firebase_admin import db as rtdb
from firebase_admin import exceptions as firebase_exceptions

from basecamp.core.constants import (
    PRESENCE_OFFLINE,
    PRESENCE_ONLINE,
    PRESENCE_ROOT,
    USERS_COLLECTION,
)
from basecamp.errors import StoreError

if TYPE_CHECKING:
    from basecamp.core.store import EventStore

logger = logging.getLogger(__name__)

SERVER_TIMESTAMP = {".sv": "timestamp"}

StatusListener = Callable[[dict[str, bool]], None]


def _is_online(node: Any) -> bool:
    return isinstance(node, dict) and node.get("state") == PRESENCE_ONLINE


class PresenceService:
    """Live map of which users are online."""

    def __init__(
        self,
        reference: Callable[[str], Any] | None = None,
        root: str = PRESENCE_ROOT,
    ) -> None:
        self._reference = reference or rtdb.reference
        self.root = root
        self._lock = threading.Lock()
        self._nodes: dict[str, Any] = {}
        self._listeners: list[StatusListener] = []
        self._registration: Any = None

    def start(self) -> PresenceService:
        if self._registration is None:
            self._registration = self._reference(self.root).listen(self._on_event)
        return self

    def stop(self) -> None:
        with self._lock:
            self._listeners.clear()
        if self._registration is not None:
            self._registration.close()
            self._registration = None

    def _on_event(self, event: Any) -> None:
        parts = [part for part in (event.path or "/").split("/") if part]
        with self._lock:
            if not parts:
                data = event.data or {}
                if event.event_type == "put":
                    self._nodes = dict(data)
                else:
                    self._nodes.update(data)
            elif len(parts) == 1:
                if event.data is None:
                    self._nodes.pop(parts[0], None)
                elif event.event_type == "patch":
                    self._nodes[parts[0]] = {
                        **(self._nodes.get(parts[0]) or {}),
                        **event.data,
                    }
                else:
                    self._nodes[parts[0]] = event.data
            else:
                node = dict(self._nodes.get(parts[0]) or {})
                node[parts[1]] = event.data
                self._nodes[parts[0]] = node
            listeners = list(self._listeners)
        snapshot = self.current_snapshot()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Presence listener failed: {e}")

    def subscribe(self, callback: StatusListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def current_snapshot(self) -> dict[str, bool]:
        with self._lock:
            return {uid: _is_online(node) for uid, node in self._nodes.items()}

    def fetch(self) -> dict[str, bool]:
        """One-shot read of the whole status tree."""
        nodes = self._reference(self.root).get() or {}
        with self._lock:
            self._nodes = dict(nodes)
        return self.current_snapshot()

    def set_status(self, user_id: str, online: bool) -> None:
        self._reference(f"{self.root}/{user_id}").set(
            {
                "state": PRESENCE_ONLINE if online else PRESENCE_OFFLINE,
                "lastChanged": SERVER_TIMESTAMP,
            }
        )


def update_presence(
    store: EventStore,
    user_id: str,
    online: bool,
    presence: PresenceService | None = None,
) -> None:
    """Record a user going online or offline.

    Presence is advisory, so failures are logged and not raised.
    """
    presence = presence or PresenceService()
    try:
        presence.set_status(user_id, online)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning(f"Could not update realtime presence for {user_id}: {e}")

    try:
        store.write_document(
            USERS_COLLECTION,
            user_id,
            {
                "isOnline": online,
                "lastSeen": datetime.datetime.now(datetime.timezone.utc),
            },
            merge=True,
        )
    except StoreError as e:
        logger.warning(f"Could not update presence for {user_id}: {e}")


def merge_presence(
    users: list[dict[str, Any]], statuses: dict[str, bool]
) -> list[dict[str, Any]]:
    """Users with ``isOnline`` taken from live presence where it is known."""
    return [
        {**user, "isOnline": statuses.get(user["id"], bool(user.get("isOnline")))}
        for user in users
    ]


def set_online(
    store: EventStore, user_id: str, presence: PresenceService | None = None
) -> None:
    update_presence(store, user_id, True, presence)


def set_offline(
    store: EventStore, user_id: str, presence: PresenceService | None = None
) -> None:
    update_presence(store, user_id, False, presence)
