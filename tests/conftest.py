"""Common utilities for tests."""

import datetime
import unittest
from typing import Any
from unittest.mock import patch

from basecamp import create_app

from tests.mock_utils import (  # noqa: F401
    MockArrayRemove,
    MockArrayUnion,
    MockFieldFilter,
    make_store,
    patch_mockfirestore,
    patch_store_firestore,
)

OWNER_ID = "owner"
MEMBER_ID = "member"
GROUP_ID = "squad1"


def seed_user(db: Any, user_id: str, group_id: str = GROUP_ID, **fields: Any) -> dict:
    data = {
        "email": f"{user_id}@example.com",
        "displayName": fields.pop("displayName", user_id.title()),
        "photoURL": None,
        "isOnline": False,
        "currentActivity": "Just joined",
        "groupId": group_id,
        **fields,
    }
    db.collection("users").document(user_id).set(data)
    return {**data, "id": user_id}


def seed_event(
    db: Any, event_id: str = "event1", owner_id: str = OWNER_ID, **fields: Any
) -> dict:
    start = datetime.datetime(2025, 6, 5, 13, 0, tzinfo=datetime.timezone.utc)
    data = {
        "title": "Mabar",
        "description": "",
        "startTime": start,
        "endTime": start + datetime.timedelta(hours=2),
        "color": "blue",
        "tags": [],
        "createdBy": owner_id,
        "groupId": GROUP_ID,
        "participants": [owner_id],
        "pendingParticipants": [],
        "isAllDay": False,
        **fields,
    }
    db.collection("events").document(event_id).set(data)
    return {**data, "id": event_id}


class AppTestCase(unittest.TestCase):
    """Base case with a test client over an in-memory database."""

    def setUp(self):
        init_app = patch("firebase_admin.initialize_app")
        init_app.start()
        self.addCleanup(init_app.stop)
        self.db = patch_store_firestore(self)

        self.app = create_app(
            {"TESTING": True, "WTF_CSRF_ENABLED": False, "SERVER_NAME": "localhost"}
        )
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()
        self.addCleanup(self.app_context.pop)

    def login(self, user_id: str, group_id: str = GROUP_ID, **fields: Any) -> dict:
        user = seed_user(self.db, user_id, group_id=group_id, **fields)
        with self.client.session_transaction() as sess:
            sess["user_id"] = user_id
        return user
