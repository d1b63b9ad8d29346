"""Tests for squads and their members."""

import unittest
from unittest.mock import patch

from basecamp.core.constants import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH
from basecamp.errors import NotFoundError, StoreError, ValidationError
from basecamp.squad.services import (
    SquadService,
    generate_invite_code,
    normalize_invite_code,
)
from tests.conftest import (
    GROUP_ID,
    MEMBER_ID,
    OWNER_ID,
    AppTestCase,
    make_store,
    seed_user,
)


class InviteCodeTestCase(unittest.TestCase):
    def test_generated_codes_use_the_alphabet(self):
        for _ in range(50):
            code = generate_invite_code()
            self.assertEqual(len(code), INVITE_CODE_LENGTH)
            self.assertTrue(set(code) <= set(INVITE_CODE_ALPHABET))

    def test_normalize(self):
        self.assertEqual(normalize_invite_code("  ab2cd3 "), "AB2CD3")
        self.assertEqual(normalize_invite_code(None), "")


class SquadServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.store, self.db = make_store(self)
        self.owner = seed_user(self.db, OWNER_ID, group_id=None, displayName="Ayu")
        self.member = seed_user(
            self.db, MEMBER_ID, group_id=None, displayName="budi"
        )

    def create(self, name="Kita"):
        return SquadService.create_squad(self.store, self.owner, name)

    def test_create_squad(self):
        squad = self.create("  Kita  ")
        self.assertEqual(squad["name"], "Kita")
        self.assertEqual(squad["members"], [OWNER_ID])
        self.assertEqual(len(squad["inviteCode"]), INVITE_CODE_LENGTH)
        user = self.store.get_document("users", OWNER_ID)
        self.assertEqual(user["groupId"], squad["id"])

    def test_create_squad_validation(self):
        for name in ("", "   ", "x" * 61):
            with self.assertRaises(ValidationError):
                SquadService.create_squad(self.store, self.owner, name)
        with self.assertRaises(ValidationError):
            SquadService.create_squad(
                self.store, {**self.owner, "groupId": GROUP_ID}, "Kita"
            )

    def test_create_gives_up_when_every_code_is_taken(self):
        with patch.object(
            SquadService, "find_by_invite_code", return_value={"id": "taken"}
        ):
            with self.assertLogs("basecamp.squad.services", level="ERROR"):
                with self.assertRaises(StoreError):
                    self.create()

    def test_join_with_lower_case_code(self):
        squad = self.create()
        joined = SquadService.join_squad(
            self.store, self.member, squad["inviteCode"].lower()
        )
        self.assertEqual(joined["id"], squad["id"])
        self.assertEqual(joined["members"], [OWNER_ID, MEMBER_ID])
        stored = self.store.get_document("groups", squad["id"])
        self.assertEqual(stored["members"], [OWNER_ID, MEMBER_ID])
        self.assertEqual(
            self.store.get_document("users", MEMBER_ID)["groupId"], squad["id"]
        )

    def test_join_unknown_code(self):
        self.create()
        with self.assertRaises(NotFoundError):
            SquadService.join_squad(self.store, self.member, "ZZZZZZ")
        with self.assertRaises(ValidationError):
            SquadService.join_squad(self.store, self.member, "ABC")

    def test_join_refused_while_in_another_squad(self):
        first = self.create()
        SquadService.join_squad(self.store, self.member, first["inviteCode"])
        member = self.store.get_document("users", MEMBER_ID)
        other = seed_user(self.db, "citra", group_id=None, displayName="Citra")
        second = SquadService.create_squad(self.store, other, "Lain")

        with self.assertRaises(ValidationError):
            SquadService.join_squad(self.store, member, second["inviteCode"])

        stored_first = self.store.get_document("groups", first["id"])
        stored_second = self.store.get_document("groups", second["id"])
        self.assertEqual(stored_first["members"], [OWNER_ID, MEMBER_ID])
        self.assertEqual(stored_second["members"], ["citra"])
        self.assertEqual(
            self.store.get_document("users", MEMBER_ID)["groupId"], first["id"]
        )

    def test_leave_squad(self):
        squad = self.create()
        SquadService.join_squad(self.store, self.member, squad["inviteCode"])
        member = self.store.get_document("users", MEMBER_ID)

        SquadService.leave_squad(self.store, member)

        self.assertIsNone(self.store.get_document("users", MEMBER_ID)["groupId"])
        stored = self.store.get_document("groups", squad["id"])
        self.assertEqual(stored["members"], [OWNER_ID])
        with self.assertRaises(ValidationError):
            SquadService.leave_squad(self.store, self.owner | {"groupId": None})

    def test_members_sorted_with_presence(self):
        seed_user(self.db, "a", displayName="Citra")
        seed_user(self.db, "b", displayName="ayu", isOnline=True)
        seed_user(self.db, "c", displayName="Bayu", isOnline=True)
        members = SquadService.get_members(self.store, GROUP_ID, {"c": False})
        self.assertEqual([m["id"] for m in members], ["b", "c", "a"])
        online = SquadService.online_members(members)
        self.assertEqual([m["id"] for m in online], ["b"])
        self.assertEqual(SquadService.get_members(self.store, None), [])

    def test_update_current_activity(self):
        text = SquadService.update_current_activity(
            self.store, self.owner, "  ranked grind "
        )
        self.assertEqual(text, "ranked grind")
        user = self.store.get_document("users", OWNER_ID)
        self.assertEqual(user["currentActivity"], "ranked grind")
        with self.assertRaises(ValidationError):
            SquadService.update_current_activity(self.store, self.owner, "x" * 121)


class SquadRoutesTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        presence = patch("basecamp.squad.routes.PresenceService")
        self.presence = presence.start()
        self.addCleanup(presence.stop)
        self.presence.return_value.fetch.return_value = {}

    def test_view_without_squad(self):
        self.login(OWNER_ID, group_id=None)
        response = self.client.get("/squad/")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.get_json()["squad"])

    def test_create_then_view(self):
        self.login(OWNER_ID, group_id=None, displayName="Ayu")
        response = self.client.post("/squad/create", json={"name": "Kita"})
        self.assertEqual(response.status_code, 201)
        squad = response.get_json()["squad"]

        self.presence.return_value.fetch.return_value = {OWNER_ID: True}
        data = self.client.get("/squad/").get_json()

        self.assertEqual(data["squad"]["id"], squad["id"])
        self.assertEqual([m["id"] for m in data["members"]], [OWNER_ID])
        self.assertEqual(data["online"], [OWNER_ID])

    def test_create_requires_name(self):
        self.login(OWNER_ID, group_id=None)
        response = self.client.post("/squad/create", json={"name": ""})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["status"], "error")

    def test_join_with_unknown_code(self):
        self.login(MEMBER_ID, group_id=None)
        response = self.client.post("/squad/join", json={"code": "zzzzzz"})
        self.assertEqual(response.status_code, 404)

    def test_leave(self):
        self.login(MEMBER_ID)
        self.db.collection("groups").document(GROUP_ID).set(
            {"name": "Kita", "inviteCode": "ABCDEF", "members": [MEMBER_ID]}
        )
        response = self.client.post("/squad/leave")
        self.assertEqual(response.status_code, 200)
        user = self.db.collection("users").document(MEMBER_ID).get().to_dict()
        self.assertIsNone(user["groupId"])

    def test_update_current_activity(self):
        self.login(OWNER_ID)
        response = self.client.post("/squad/me/activity", json={"text": "AFK"})
        self.assertEqual(response.get_json()["currentActivity"], "AFK")

    def test_requires_login(self):
        self.assertEqual(self.client.get("/squad/").status_code, 401)


if __name__ == "__main__":
    unittest.main()
