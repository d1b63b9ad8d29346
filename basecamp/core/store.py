"""Adapter between the application and the hosted document store.

Every read and write the application makes goes through ``EventStore`` so
that document shape handling (ids, missing documents, array sentinels) lives
in one place. Reads return plain dictionaries with the document id folded in
under ``"id"``; a missing document is ``None``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator

from firebase_admin import firestore
from flask import g
from google.api_core import exceptions as google_exceptions

from basecamp.errors import NotFoundError, StoreError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

Filter = tuple[str, str, Any]
SnapshotCallback = Callable[[list[dict[str, Any]]], None]


class Subscription:
    """Handle for a push-based collection subscription."""

    def __init__(self, watch: Any) -> None:
        self._watch = watch
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving snapshots. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self._watch.unsubscribe()


def document_to_dict(snapshot: Any) -> dict[str, Any] | None:
    """Convert a document snapshot into a dict, or None if it does not exist."""
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


@contextmanager
def _write_guard(action: str, collection: str, doc_id: str) -> Iterator[None]:
    try:
        yield
    except google_exceptions.NotFound as e:
        raise NotFoundError(f"No such document: {collection}/{doc_id}") from e
    except google_exceptions.GoogleAPICallError as e:
        logger.error(f"Failed to {action} {collection}/{doc_id}: {e}")
        raise StoreError() from e


class EventStore:
    """Reads, writes and subscriptions against a Firestore client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def _query(self, collection: str, filters: Iterable[Filter] = ()) -> Any:
        query = self.client.collection(collection)
        for field, op, value in filters:
            query = query.where(filter=firestore.FieldFilter(field, op, value))
        return query

    def subscribe_collection(
        self,
        collection: str,
        filters: Iterable[Filter],
        callback: SnapshotCallback,
    ) -> Subscription:
        """Call ``callback`` with the full matching document set on every change."""

        def on_snapshot(docs: list[Any], changes: Any, read_time: Any) -> None:
            snapshot = [data for doc in docs if (data := document_to_dict(doc))]
            callback(snapshot)

        watch = self._query(collection, filters).on_snapshot(on_snapshot)
        return Subscription(watch)

    def query(
        self, collection: str, filters: Iterable[Filter] = ()
    ) -> list[dict[str, Any]]:
        """One-shot read of every document matching ``filters``."""
        return [
            data
            for doc in self._query(collection, filters).stream()
            if (data := document_to_dict(doc))
        ]

    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """One-shot read of a single document."""
        if not doc_id:
            return None
        snapshot = self.client.collection(collection).document(doc_id).get()
        return document_to_dict(snapshot)

    def new_document_id(self, collection: str) -> str:
        """Reserve a fresh document id in ``collection``."""
        return self.client.collection(collection).document().id

    def write_document(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Write ``fields``; with ``merge`` unspecified fields are left alone."""
        ref = self.client.collection(collection).document(doc_id)
        with _write_guard("write", collection, doc_id):
            ref.set(fields, merge=merge)

    def update_document(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any] | None = None,
        add: dict[str, list[Any]] | None = None,
        remove: dict[str, list[Any]] | None = None,
    ) -> None:
        """Apply field values and atomic array additions/removals in one write."""
        data: dict[str, Any] = dict(fields or {})
        for field, values in (add or {}).items():
            data[field] = firestore.ArrayUnion(list(values))
        for field, values in (remove or {}).items():
            data[field] = firestore.ArrayRemove(list(values))
        if not data:
            return
        ref = self.client.collection(collection).document(doc_id)
        with _write_guard("update", collection, doc_id):
            ref.update(data)

    def delete_document(self, collection: str, doc_id: str) -> None:
        ref = self.client.collection(collection).document(doc_id)
        with _write_guard("delete", collection, doc_id):
            ref.delete()

    def array_add(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        self.update_document(collection, doc_id, add={field: [value]})

    def array_remove(
        self, collection: str, doc_id: str, field: str, value: Any
    ) -> None:
        self.update_document(collection, doc_id, remove={field: [value]})

    def array_move(
        self,
        collection: str,
        doc_id: str,
        source: str,
        target: str,
        value: Any,
    ) -> None:
        """Move ``value`` from one array field to another in a single write."""
        self.update_document(
            collection, doc_id, add={target: [value]}, remove={source: [value]}
        )


def get_store() -> EventStore:
    """Return the store for the current application context."""
    if "store" not in g:
        g.store = EventStore(firestore.client())
    return g.store
