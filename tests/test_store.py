"""Tests for the document store adapter."""

import unittest
from unittest.mock import MagicMock

from google.api_core import exceptions as google_exceptions

from basecamp.core.store import EventStore, Subscription, document_to_dict
from basecamp.errors import NotFoundError, StoreError
from tests.conftest import make_store, seed_event


class EventStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.store, self.db = make_store(self)

    def test_get_document_folds_in_id(self):
        seed_event(self.db, "e1")
        doc = self.store.get_document("events", "e1")
        self.assertEqual(doc["id"], "e1")
        self.assertEqual(doc["title"], "Mabar")

    def test_missing_document_is_none(self):
        self.assertIsNone(self.store.get_document("events", "nope"))
        self.assertIsNone(self.store.get_document("events", ""))

    def test_query_with_filters(self):
        seed_event(self.db, "e1")
        seed_event(self.db, "e2", groupId="other")
        docs = self.store.query("events", [("groupId", "==", "squad1")])
        self.assertEqual([d["id"] for d in docs], ["e1"])

    def test_merge_write_leaves_other_fields(self):
        seed_event(self.db, "e1")
        self.store.write_document("events", "e1", {"title": "Renamed"}, merge=True)
        doc = self.store.get_document("events", "e1")
        self.assertEqual(doc["title"], "Renamed")
        self.assertEqual(doc["createdBy"], "owner")

    def test_array_add_is_a_set_add(self):
        seed_event(self.db, "e1")
        self.store.array_add("events", "e1", "pendingParticipants", "bob")
        self.store.array_add("events", "e1", "pendingParticipants", "bob")
        doc = self.store.get_document("events", "e1")
        self.assertEqual(doc["pendingParticipants"], ["bob"])

    def test_array_move(self):
        seed_event(self.db, "e1", pendingParticipants=["bob", "carol"])
        self.store.array_move(
            "events", "e1", "pendingParticipants", "participants", "bob"
        )
        doc = self.store.get_document("events", "e1")
        self.assertEqual(doc["pendingParticipants"], ["carol"])
        self.assertEqual(doc["participants"], ["owner", "bob"])

    def test_update_document_without_changes_writes_nothing(self):
        client = MagicMock()
        EventStore(client).update_document("events", "e1")
        client.collection.assert_not_called()

    def test_delete_document(self):
        seed_event(self.db, "e1")
        self.store.delete_document("events", "e1")
        self.assertIsNone(self.store.get_document("events", "e1"))

    def test_new_document_id(self):
        self.assertTrue(self.store.new_document_id("events"))


class WriteErrorTestCase(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.ref = self.client.collection.return_value.document.return_value
        self.store = EventStore(self.client)

    def test_not_found_maps_to_not_found_error(self):
        self.ref.update.side_effect = google_exceptions.NotFound("gone")
        with self.assertRaises(NotFoundError):
            self.store.update_document("events", "e1", {"title": "x"})

    def test_api_failure_maps_to_store_error(self):
        self.ref.set.side_effect = google_exceptions.ServiceUnavailable("down")
        with self.assertLogs("basecamp.core.store", level="ERROR"):
            with self.assertRaises(StoreError):
                self.store.write_document("events", "e1", {"title": "x"})


class SubscriptionTestCase(unittest.TestCase):
    def test_snapshot_callback_gets_full_document_set(self):
        client = MagicMock()
        query = client.collection.return_value
        store = EventStore(client)
        received = []

        subscription = store.subscribe_collection("events", [], received.append)
        on_snapshot = query.on_snapshot.call_args[0][0]

        present = MagicMock(exists=True, id="e1")
        present.to_dict.return_value = {"title": "Mabar"}
        missing = MagicMock(exists=False)
        on_snapshot([present, missing], [], None)

        self.assertEqual(received, [[{"title": "Mabar", "id": "e1"}]])
        self.assertIsInstance(subscription, Subscription)

    def test_unsubscribe_is_idempotent(self):
        watch = MagicMock()
        subscription = Subscription(watch)
        subscription.unsubscribe()
        subscription.unsubscribe()
        watch.unsubscribe.assert_called_once()
        self.assertFalse(subscription.active)

    def test_document_to_dict(self):
        self.assertIsNone(document_to_dict(MagicMock(exists=False)))


if __name__ == "__main__":
    unittest.main()
