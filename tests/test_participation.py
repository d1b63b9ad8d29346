"""Tests for the participation state machine."""

import unittest

from basecamp.errors import AccessDenied, ConflictError
from basecamp.events.participation import (
    MemberStatus,
    ParticipationAction,
    ParticipationState,
    apply_action,
)

OWNER = "alice"
MEMBER = "bob"


def state(participants=(OWNER,), pending=()):
    return ParticipationState.of(participants, pending, owner_id=OWNER)


class ParticipationStateTestCase(unittest.TestCase):
    def test_owner_is_pinned_and_sets_are_disjoint(self):
        s = ParticipationState.of([], [OWNER, MEMBER], owner_id=OWNER)
        self.assertIn(OWNER, s.participants)
        self.assertEqual(s.pending, frozenset({MEMBER}))
        self.assertFalse(s.participants & s.pending)

    def test_from_event_tolerates_missing_fields(self):
        s = ParticipationState.from_event({"createdBy": OWNER})
        self.assertEqual(s.participants, frozenset({OWNER}))
        self.assertEqual(s.pending, frozenset())

    def test_status_of(self):
        s = state(pending=[MEMBER])
        self.assertIs(s.status_of(OWNER), MemberStatus.JOINED)
        self.assertIs(s.status_of(MEMBER), MemberStatus.PENDING)
        self.assertIs(s.status_of("carol"), MemberStatus.NONE)

    def test_as_fields_is_sorted(self):
        s = state(participants=[OWNER, "zed", "amy"])
        self.assertEqual(s.as_fields()["participants"], ["alice", "amy", "zed"])


class ApplyActionTestCase(unittest.TestCase):
    def act(self, s, actor, action, subject=None):
        return apply_action(
            s, owner_id=OWNER, actor_id=actor, action=action, subject_id=subject
        )

    def test_request_join_moves_to_pending(self):
        t = self.act(state(), MEMBER, ParticipationAction.REQUEST_JOIN)
        self.assertTrue(t.changed)
        self.assertIn(MEMBER, t.after.pending)
        self.assertNotIn(MEMBER, t.after.participants)
        self.assertIsNone(t.log_type)

    def test_request_join_is_idempotent(self):
        pending = state(pending=[MEMBER])
        t = self.act(pending, MEMBER, "request_join")
        self.assertFalse(t.changed)
        self.assertEqual(t.after, pending)

        joined = state(participants=[OWNER, MEMBER])
        t = self.act(joined, MEMBER, "request_join")
        self.assertFalse(t.changed)
        self.assertIn(MEMBER, t.after.participants)

    def test_owner_request_join_is_noop(self):
        t = self.act(state(), OWNER, "request_join")
        self.assertFalse(t.changed)
        self.assertNotIn(OWNER, t.after.pending)

    def test_cancel_request(self):
        t = self.act(state(pending=[MEMBER]), MEMBER, "cancel_request")
        self.assertTrue(t.changed)
        self.assertEqual(t.after.pending, frozenset())

    def test_approve_logs_join(self):
        t = self.act(state(pending=[MEMBER]), OWNER, "approve", MEMBER)
        self.assertEqual(t.after.participants, frozenset({OWNER, MEMBER}))
        self.assertEqual(t.after.pending, frozenset())
        self.assertEqual(t.log_type, "join")
        self.assertEqual(t.subject_id, MEMBER)

    def test_second_approve_is_noop(self):
        first = self.act(state(pending=[MEMBER]), OWNER, "approve", MEMBER)
        second = self.act(first.after, OWNER, "approve", MEMBER)
        self.assertFalse(second.changed)
        self.assertEqual(second.after, first.after)
        self.assertIsNone(second.log_type)

    def test_reject_does_not_log(self):
        t = self.act(state(pending=[MEMBER]), OWNER, "reject", MEMBER)
        self.assertTrue(t.changed)
        self.assertEqual(t.after.participants, frozenset({OWNER}))
        self.assertEqual(t.after.pending, frozenset())
        self.assertIsNone(t.log_type)

    def test_non_owner_cannot_approve_or_reject(self):
        for action in ("approve", "reject"):
            with self.assertRaises(AccessDenied):
                self.act(state(pending=[MEMBER]), MEMBER, action, MEMBER)

    def test_approve_needs_a_subject(self):
        with self.assertRaises(ValueError):
            self.act(state(pending=[MEMBER]), OWNER, "approve")

    def test_leave_logs_leave(self):
        t = self.act(state(participants=[OWNER, MEMBER]), MEMBER, "leave")
        self.assertEqual(t.after.participants, frozenset({OWNER}))
        self.assertEqual(t.log_type, "leave")

    def test_owner_cannot_leave(self):
        with self.assertRaises(ConflictError):
            self.act(state(participants=[OWNER, MEMBER]), OWNER, "leave")

    def test_leave_when_not_joined_is_noop(self):
        t = self.act(state(pending=[MEMBER]), MEMBER, "leave")
        self.assertFalse(t.changed)
        self.assertIn(MEMBER, t.after.pending)

    def test_sets_stay_disjoint_over_every_transition(self):
        users = [MEMBER, "carol", "dave"]
        s = state()
        steps = [
            (MEMBER, "request_join", None),
            ("carol", "request_join", None),
            (OWNER, "approve", MEMBER),
            ("carol", "cancel_request", None),
            ("dave", "request_join", None),
            (OWNER, "reject", "dave"),
            (MEMBER, "leave", None),
            (MEMBER, "request_join", None),
            (OWNER, "approve", MEMBER),
        ]
        for actor, action, subject in steps:
            s = self.act(s, actor, action, subject).after
            self.assertFalse(s.participants & s.pending)
            self.assertIn(OWNER, s.participants)
        self.assertEqual(s.participants, frozenset({OWNER, MEMBER}))
        self.assertTrue(all(u not in s.pending for u in users))

    def test_unknown_action_raises(self):
        with self.assertRaises(ValueError):
            self.act(state(), MEMBER, "teleport")


if __name__ == "__main__":
    unittest.main()
