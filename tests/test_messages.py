"""Tests for the squad chat."""

import datetime
import unittest
from unittest.mock import ANY, MagicMock, patch

from basecamp.errors import ValidationError
from basecamp.squad.messages import MessageService, latest_messages
from tests.conftest import (
    GROUP_ID,
    MEMBER_ID,
    OWNER_ID,
    AppTestCase,
    make_store,
    seed_user,
)

UTC = datetime.timezone.utc


def at(minute):
    return datetime.datetime(2025, 6, 5, 12, minute, tzinfo=UTC)


def seed_message(db, message_id, minute, group_id=GROUP_ID, sender=OWNER_ID):
    data = {
        "text": message_id,
        "senderId": sender,
        "senderName": sender.title(),
        "senderPhoto": None,
        "groupId": group_id,
        "createdAt": at(minute),
    }
    db.collection("messages").document(message_id).set(data)
    return {**data, "id": message_id}


class MessageServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.store, self.db = make_store(self)
        self.owner = seed_user(
            self.db, OWNER_ID, displayName="Ayu", photoURL="https://example.com/a.png"
        )

    def test_send_copies_sender_identity(self):
        message = MessageService.send(self.store, self.owner, "  gas mabar  ")
        stored = self.store.get_document("messages", message["id"])
        self.assertEqual(stored["text"], "gas mabar")
        self.assertEqual(stored["senderId"], OWNER_ID)
        self.assertEqual(stored["senderName"], "Ayu")
        self.assertEqual(stored["senderPhoto"], "https://example.com/a.png")
        self.assertEqual(stored["groupId"], GROUP_ID)
        self.assertEqual(stored["createdAt"].tzinfo, UTC)

    def test_send_validation(self):
        for text in ("", "   ", "x" * 1001):
            with self.assertRaises(ValidationError):
                MessageService.send(self.store, self.owner, text)
        with self.assertRaises(ValidationError):
            MessageService.send(self.store, {**self.owner, "groupId": None}, "halo")
        self.assertEqual(self.store.query("messages"), [])

    def test_list_is_oldest_first_and_squad_only(self):
        seed_message(self.db, "second", 5)
        seed_message(self.db, "first", 1)
        seed_message(self.db, "elsewhere", 3, group_id="squad2")
        messages = MessageService.list_messages(self.store, self.owner)
        self.assertEqual([m["id"] for m in messages], ["first", "second"])

    def test_latest_messages_keeps_the_newest(self):
        messages = [{"id": str(i), "createdAt": at(i)} for i in (4, 1, 3, 2)]
        self.assertEqual([m["id"] for m in latest_messages(messages, 2)], ["3", "4"])
        undated = {"id": "undated", "createdAt": None}
        self.assertEqual(latest_messages([messages[0], undated])[0], undated)

    def test_live_feed_follows_the_squad(self):
        store = MagicMock()
        feed = MessageService.live_feed(store, self.owner).start()
        store.subscribe_collection.assert_called_once_with(
            "messages", (("groupId", "==", GROUP_ID),), ANY
        )
        on_snapshot = store.subscribe_collection.call_args.args[2]
        on_snapshot([{"id": "b", "createdAt": at(2)}, {"id": "a", "createdAt": at(1)}])
        self.assertEqual([m["id"] for m in feed.current_snapshot()], ["a", "b"])


class MessageRoutesTestCase(AppTestCase):
    def test_send_then_list(self):
        self.login(MEMBER_ID, displayName="Budi")
        response = self.client.post("/squad/messages", json={"text": "otw"})
        self.assertEqual(response.status_code, 201)
        sent = response.get_json()["message"]
        self.assertEqual(sent["senderName"], "Budi")

        messages = self.client.get("/squad/messages").get_json()["messages"]
        self.assertEqual([m["id"] for m in messages], [sent["id"]])
        self.assertEqual(messages[0]["createdAt"], sent["createdAt"])

    def test_send_validation(self):
        self.login(MEMBER_ID)
        response = self.client.post("/squad/messages", json={"text": ""})
        self.assertEqual(response.status_code, 400)
        self.login(OWNER_ID, group_id=None)
        response = self.client.post("/squad/messages", json={"text": "halo"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["message"], "Join a squad to chat.")

    def test_requires_login(self):
        self.assertEqual(self.client.get("/squad/messages").status_code, 401)

    def test_stream_sends_the_chat_and_stops_the_feed(self):
        self.login(MEMBER_ID)
        feed = MagicMock()
        with patch.object(MessageService, "live_feed", return_value=feed), patch(
            "basecamp.squad.routes.STREAM_HEARTBEAT_SECONDS", 0.01
        ):
            response = self.client.get("/squad/messages/stream")
            chunks = iter(response.response)
            self.assertEqual(next(chunks), b": keepalive\n\n")

            [push] = feed.subscribe.call_args.args
            push([{"id": "m1", "text": "halo", "createdAt": at(1)}])
            chunk = next(chunks)
            self.assertTrue(chunk.startswith(b"data: "))
            self.assertIn(b'"createdAt": "2025-06-05T12:01:00+00:00"', chunk)

            response.close()

        feed.start.assert_called_once()
        feed.stop.assert_called_once()


if __name__ == "__main__":
    unittest.main()
