"""Live, push-updated views over store collections.

A ``LiveCollection`` owns one store subscription and keeps the latest full
snapshot of the matching documents. Every snapshot replaces the local view
entirely. Local writes can be shown ahead of the store through
``apply_optimistic``; such documents are held as ``Pending`` until the next
authoritative snapshot arrives, at which point every document is
``Confirmed`` again.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Union

if TYPE_CHECKING:
    from basecamp.core.store import EventStore, Filter, Subscription

logger = logging.getLogger(__name__)

Listener = Callable[[list[dict[str, Any]]], None]


@dataclass(frozen=True)
class Pending:
    """A local guess not yet confirmed by the store. ``None`` means deleted."""

    local_guess: dict[str, Any] | None


@dataclass(frozen=True)
class Confirmed:
    """A document as last delivered by the store."""

    snapshot: dict[str, Any]


DocumentState = Union[Pending, Confirmed]


class LiveCollection:
    """Subscription-backed snapshot of one collection query."""

    def __init__(
        self,
        store: EventStore,
        collection: str,
        filters: Iterable[Filter] = (),
        sort_key: Callable[[dict[str, Any]], Any] | None = None,
    ) -> None:
        self.store = store
        self.collection = collection
        self.filters = tuple(filters)
        self.sort_key = sort_key
        self.loaded = False
        self._lock = threading.Lock()
        self._confirmed: dict[str, dict[str, Any]] = {}
        self._pending: dict[str, Pending] = {}
        self._listeners: list[Listener] = []
        self._subscription: Subscription | None = None
        self._closed = False

    def start(self) -> LiveCollection:
        """Open the store subscription."""
        if self._subscription is None:
            self._subscription = self.store.subscribe_collection(
                self.collection, self.filters, self._on_snapshot
            )
        return self

    def stop(self) -> None:
        """Terminate the subscription; no listener fires after this returns."""
        with self._lock:
            self._closed = True
            self._listeners.clear()
        if self._subscription is not None:
            self._subscription.unsubscribe()

    def _on_snapshot(self, docs: list[dict[str, Any]]) -> None:
        with self._lock:
            if self._closed:
                return
            self._confirmed = {doc["id"]: doc for doc in docs}
            self._pending.clear()
            self.loaded = True
        self._notify()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        items = self.current_snapshot()
        for listener in listeners:
            try:
                listener(items)
            except Exception as e:
                logger.error(f"Listener for {self.collection} failed: {e}")

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` for every new snapshot; returns the unsubscriber."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def current_snapshot(self) -> list[dict[str, Any]]:
        """The confirmed documents with pending local guesses laid over them."""
        with self._lock:
            merged = dict(self._confirmed)
            for doc_id, pending in self._pending.items():
                if pending.local_guess is None:
                    merged.pop(doc_id, None)
                else:
                    merged[doc_id] = pending.local_guess
        items = list(merged.values())
        if self.sort_key is not None:
            items.sort(key=self.sort_key)
        return items

    def get(self, doc_id: str) -> dict[str, Any] | None:
        state = self.state_of(doc_id)
        if isinstance(state, Pending):
            return state.local_guess
        if isinstance(state, Confirmed):
            return state.snapshot
        return None

    def state_of(self, doc_id: str) -> DocumentState | None:
        with self._lock:
            if doc_id in self._pending:
                return self._pending[doc_id]
            if doc_id in self._confirmed:
                return Confirmed(self._confirmed[doc_id])
        return None

    def apply_optimistic(self, doc_id: str, guess: dict[str, Any] | None) -> None:
        """Show ``guess`` for ``doc_id`` until the next snapshot replaces it."""
        with self._lock:
            self._pending[doc_id] = Pending(guess)
        self._notify()
