"""Participation rules for a single event.

Each (event, user) pair is in exactly one of three states: not involved,
waiting for the owner's approval, or joined. The owner is always joined and
no action can move them. ``apply_action`` is pure: it takes the current
participant sets and returns the next ones, and never talks to the store.

    NONE    --request_join-->   PENDING
    PENDING --cancel_request--> NONE
    PENDING --approve-->        JOINED   (owner only, logs "join")
    PENDING --reject-->         NONE     (owner only)
    JOINED  --leave-->          NONE     (not the owner, logs "leave")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from basecamp.errors import AccessDenied, ConflictError


class MemberStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    JOINED = "joined"


class ParticipationAction(str, Enum):
    REQUEST_JOIN = "request_join"
    CANCEL_REQUEST = "cancel_request"
    APPROVE = "approve"
    REJECT = "reject"
    LEAVE = "leave"


OWNER_ACTIONS = frozenset({ParticipationAction.APPROVE, ParticipationAction.REJECT})

# (status before, action) -> (status after, activity type to log)
TRANSITIONS: dict[
    tuple[MemberStatus, ParticipationAction], tuple[MemberStatus, str | None]
] = {
    (MemberStatus.NONE, ParticipationAction.REQUEST_JOIN): (
        MemberStatus.PENDING,
        None,
    ),
    (MemberStatus.PENDING, ParticipationAction.CANCEL_REQUEST): (
        MemberStatus.NONE,
        None,
    ),
    (MemberStatus.PENDING, ParticipationAction.APPROVE): (MemberStatus.JOINED, "join"),
    (MemberStatus.PENDING, ParticipationAction.REJECT): (MemberStatus.NONE, None),
    (MemberStatus.JOINED, ParticipationAction.LEAVE): (MemberStatus.NONE, "leave"),
}


@dataclass(frozen=True)
class ParticipationState:
    """The participant and pending-participant sets of one event."""

    participants: frozenset[str]
    pending: frozenset[str]

    @classmethod
    def of(
        cls,
        participants: Iterable[str] = (),
        pending: Iterable[str] = (),
        owner_id: str | None = None,
    ) -> ParticipationState:
        """Build a state, pinning the owner and keeping the sets disjoint."""
        joined = set(participants)
        if owner_id:
            joined.add(owner_id)
        return cls(frozenset(joined), frozenset(set(pending) - joined))

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> ParticipationState:
        return cls.of(
            event.get("participants") or [],
            event.get("pendingParticipants") or [],
            owner_id=event.get("createdBy"),
        )

    def status_of(self, user_id: str) -> MemberStatus:
        if user_id in self.participants:
            return MemberStatus.JOINED
        if user_id in self.pending:
            return MemberStatus.PENDING
        return MemberStatus.NONE

    def with_status(self, user_id: str, status: MemberStatus) -> ParticipationState:
        participants = set(self.participants) - {user_id}
        pending = set(self.pending) - {user_id}
        if status is MemberStatus.JOINED:
            participants.add(user_id)
        elif status is MemberStatus.PENDING:
            pending.add(user_id)
        return ParticipationState(frozenset(participants), frozenset(pending))

    def as_fields(self) -> dict[str, list[str]]:
        return {
            "participants": sorted(self.participants),
            "pendingParticipants": sorted(self.pending),
        }


@dataclass(frozen=True)
class Transition:
    """Outcome of one participation action."""

    action: ParticipationAction
    subject_id: str
    before: ParticipationState
    after: ParticipationState
    previous_status: MemberStatus
    status: MemberStatus
    log_type: str | None = None

    @property
    def changed(self) -> bool:
        return self.previous_status is not self.status


def apply_action(
    state: ParticipationState,
    *,
    owner_id: str,
    actor_id: str,
    action: ParticipationAction | str,
    subject_id: str | None = None,
) -> Transition:
    """Compute the next participation state for ``action``.

    ``subject_id`` is the user whose status changes; it defaults to the actor
    and only differs for approve/reject, where the actor is the owner acting
    on someone else's request.

    Raises:
        AccessDenied: approve/reject requested by someone other than the owner.
        ConflictError: the owner tried to leave their own event.
    """
    action = ParticipationAction(action)
    if action in OWNER_ACTIONS:
        if actor_id != owner_id:
            raise AccessDenied("Only the event owner can answer join requests.")
        if subject_id is None:
            raise ValueError(f"{action.value} needs the id of the requesting user")
    else:
        subject_id = actor_id

    state = ParticipationState.of(state.participants, state.pending, owner_id)
    current = state.status_of(subject_id)

    if subject_id == owner_id:
        if action is ParticipationAction.LEAVE:
            raise ConflictError("The owner cannot leave their own event.")
        return Transition(action, subject_id, state, state, current, current)

    target = TRANSITIONS.get((current, action))
    if target is None:
        return Transition(action, subject_id, state, state, current, current)

    next_status, log_type = target
    return Transition(
        action,
        subject_id,
        state,
        state.with_status(subject_id, next_status),
        current,
        next_status,
        log_type,
    )
